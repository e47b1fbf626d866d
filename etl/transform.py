"""
Record Transformation

Turns raw student and enrollment records into canonical records using the
normalizers, validators, and run lookups. Checks run in a fixed order and the
first failure rejects the record; a rejected record never aborts the batch.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Optional, Set, Tuple

from etl.normalize import (
    clean_string,
    normalize_department,
    normalize_email,
    normalize_phone,
    normalize_year,
    parse_date,
    split_name,
)
from etl.records import (
    CanonicalEnrollment,
    CanonicalStudent,
    RawEnrollmentRecord,
    RawStudentRecord,
    RejectionKind,
    RejectionRecord,
)
from etl.validator import (
    DateOfBirthValidator,
    EmailValidator,
    GradeValidator,
    PhoneValidator,
    YearValidator,
)

logger = logging.getLogger(__name__)

DUPLICATE_CODES = ("duplicate_email", "duplicate_enrollment")


class RecordRejected(Exception):
    """Raised inside a transformer to stop checking the current record."""

    def __init__(self, kind: RejectionKind, code: str, reason: str):
        super().__init__(reason)
        self.kind = kind
        self.code = code
        self.reason = reason


def _reject(kind: RejectionKind, code: str, reason: str) -> None:
    raise RecordRejected(kind, code, reason)


def _check(result: Tuple[bool, Optional[str]], code: str) -> None:
    is_valid, error = result
    if not is_valid:
        _reject(RejectionKind.VALIDATION, code, error)


@dataclass
class TransformResult:
    """Admitted canonical records plus the rejection log for one batch."""
    records: list = field(default_factory=list)
    rejections: List[RejectionRecord] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.records) + len(self.rejections)

    @property
    def duplicates(self) -> int:
        return sum(1 for rejection in self.rejections if rejection.code in DUPLICATE_CODES)

    @property
    def metrics(self) -> Dict[str, int]:
        return {
            "total_rows": self.total,
            "valid_rows": len(self.records),
            "invalid_rows": len(self.rejections),
            "duplicates": self.duplicates,
        }


class _BatchTransformer:
    """Shared batch loop: reject early, log, keep going."""

    entity = "records"

    def transform(self, raw_records) -> TransformResult:
        result = TransformResult()
        logger.info(f"Transforming {len(raw_records)} {self.entity}...")

        for raw in raw_records:
            try:
                result.records.append(self.transform_record(raw))
            except RecordRejected as rejection:
                logger.warning(f"Row {raw.source_row}: {rejection.reason}")
                result.rejections.append(
                    RejectionRecord(
                        source_row=raw.source_row,
                        kind=rejection.kind,
                        code=rejection.code,
                        reason=rejection.reason,
                        payload=raw.payload,
                    )
                )

        logger.info(
            f"Transformed {len(result.records)} valid {self.entity} "
            f"({len(result.rejections)} skipped, {result.duplicates} duplicates)"
        )
        return result

    def transform_record(self, raw):
        raise NotImplementedError


class StudentTransformer(_BatchTransformer):
    """
    Student rules, in order:

    1. name (first/last pair, else split full name)
    2. email shape, then batch-scoped duplicate check
    3. year
    4. date of birth: not in the future, then minimum age
    5. phone
    6. department alias, then department id lookup
    """

    entity = "students"

    def __init__(
        self,
        departments: Dict[str, int],
        country_code: Optional[str] = "+91",
        min_age: int = 16,
        today: Optional[Callable[[], date]] = None,
    ):
        self.departments = departments
        self.country_code = country_code
        self.seen_emails: Set[str] = set()
        self.email_validator = EmailValidator()
        self.year_validator = YearValidator()
        self.dob_validator = DateOfBirthValidator(min_age=min_age, today=today)
        self.phone_validator = PhoneValidator()

    def transform_record(self, raw: RawStudentRecord) -> CanonicalStudent:
        first_name, last_name = self._resolve_name(raw)

        email = normalize_email(raw.email)
        _check(self.email_validator.validate(email), "invalid_email")
        if email in self.seen_emails:
            _reject(RejectionKind.REFERENCE, "duplicate_email", f"Duplicate email in batch: {email}")

        year = normalize_year(raw.year)
        if year is None:
            _reject(RejectionKind.NORMALIZATION, "invalid_year", f"Unrecognized year: {raw.year!r}")
        _check(self.year_validator.validate(year), "invalid_year")

        date_of_birth = parse_date(raw.date_of_birth)
        if date_of_birth is None:
            _reject(
                RejectionKind.NORMALIZATION,
                "invalid_date_of_birth",
                f"Unrecognized date of birth: {raw.date_of_birth!r}",
            )
        is_valid, error = self.dob_validator.validate(date_of_birth)
        if not is_valid:
            code = "future_date_of_birth" if date_of_birth > self.dob_validator.today() else "underage"
            _reject(RejectionKind.VALIDATION, code, error)

        phone = normalize_phone(raw.phone_number, self.country_code)
        if phone is None:
            _reject(RejectionKind.NORMALIZATION, "invalid_phone", f"Missing phone number: {raw.phone_number!r}")
        _check(self.phone_validator.validate(phone), "invalid_phone")

        department = normalize_department(raw.department)
        if department is None:
            _reject(RejectionKind.NORMALIZATION, "unknown_department", f"Unknown department: {raw.department!r}")
        department_id = self.departments.get(department)
        if department_id is None:
            _reject(
                RejectionKind.REFERENCE,
                "department_not_loaded",
                f"Department {department!r} not found in database",
            )

        self.seen_emails.add(email)
        return CanonicalStudent(
            first_name=first_name,
            last_name=last_name,
            email=email,
            date_of_birth=date_of_birth,
            year=year,
            phone_number=phone,
            department_id=department_id,
        )

    @staticmethod
    def _resolve_name(raw: RawStudentRecord) -> Tuple[str, str]:
        if raw.first_name is not None or raw.last_name is not None:
            first_name = clean_string(raw.first_name)
            last_name = clean_string(raw.last_name) or ""
        elif raw.full_name is not None:
            first_name, last_name = split_name(raw.full_name)
        else:
            _reject(RejectionKind.NORMALIZATION, "missing_name", "Missing name")

        if not first_name:
            _reject(RejectionKind.NORMALIZATION, "missing_name", "Missing first name")
        return first_name, last_name


class EnrollmentTransformer(_BatchTransformer):
    """
    Enrollment rules, in order:

    1. student email resolves through the student lookup
    2. course code is in the course set
    3. (student, course) not already admitted in this batch
    4. grade, if present, is on the scale
    5. enrollment date parses (required)
    """

    entity = "enrollments"

    def __init__(self, students: Optional[Dict[str, int]], courses: Set[str]):
        if students is None:
            raise ValueError("Student lookup has not been built; refresh it after loading students")
        self.students = students
        self.courses = courses
        self.seen_pairs: Set[Tuple[int, str]] = set()
        self.grade_validator = GradeValidator()

    def transform_record(self, raw: RawEnrollmentRecord) -> CanonicalEnrollment:
        email = normalize_email(raw.student_email)
        student_id = self.students.get(email) if email else None
        if student_id is None:
            _reject(RejectionKind.REFERENCE, "orphan_student", f"Student {email!r} not found")

        course_id = clean_string(raw.course_code)
        if course_id is None:
            _reject(RejectionKind.NORMALIZATION, "missing_course", "Missing course code")
        if course_id not in self.courses:
            _reject(RejectionKind.REFERENCE, "unknown_course", f"Course {course_id!r} not found")

        if (student_id, course_id) in self.seen_pairs:
            _reject(
                RejectionKind.REFERENCE,
                "duplicate_enrollment",
                f"Duplicate enrollment for student {email} in course {course_id}",
            )

        grade = clean_string(raw.grade)
        _check(self.grade_validator.validate(grade), "invalid_grade")

        enrollment_date = parse_date(raw.enrollment_date)
        if enrollment_date is None:
            _reject(
                RejectionKind.NORMALIZATION,
                "invalid_enrollment_date",
                f"Invalid or missing enrollment date: {raw.enrollment_date!r}",
            )

        self.seen_pairs.add((student_id, course_id))
        return CanonicalEnrollment(
            student_id=student_id,
            course_id=course_id,
            grade=grade.upper() if grade else None,
            enrollment_date=enrollment_date,
        )

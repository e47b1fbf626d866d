"""Tests for the student and enrollment transformers."""

from datetime import date

import pytest

from etl.adapters import enrollment_from_row, student_from_csv_row, student_from_json, students_from_rows
from etl.records import CanonicalStudent, RejectionKind
from etl.transform import EnrollmentTransformer, StudentTransformer
from tests.conftest import COURSES, DEPARTMENTS


def _student_row(**overrides):
    row = {
        "firstName": "Rahul",
        "lastName": "Sharma",
        "email": "RAHUL@UNI.EDU ",
        "dateOfBirth": "15/07/2004",
        "year": "three",
        "phoneNumber": "(555) 123-4567",
        "department": "CS",
    }
    row.update(overrides)
    return row


def _students(*rows):
    return [student_from_json(row, position) for position, row in enumerate(rows, 1)]


@pytest.fixture
def student_transformer(today):
    return StudentTransformer(DEPARTMENTS, country_code=None, today=today)


class TestStudentTransformer:

    def test_messy_row_becomes_canonical(self, student_transformer) -> None:
        result = student_transformer.transform(_students(_student_row()))

        assert result.rejections == []
        assert result.records == [
            CanonicalStudent(
                first_name="Rahul",
                last_name="Sharma",
                email="rahul@uni.edu",
                date_of_birth=date(2004, 7, 15),
                year=3,
                phone_number="555 123-4567",
                department_id=DEPARTMENTS["Computer Science"],
            )
        ]

    def test_default_country_code_policy(self, today) -> None:
        transformer = StudentTransformer(DEPARTMENTS, country_code="+91", today=today)
        student = transformer.transform_record(_students(_student_row())[0])
        assert student.phone_number == "+91-5551234567"

    def test_unknown_department_is_rejected(self, student_transformer) -> None:
        result = student_transformer.transform(_students(_student_row(department="Underwater Basket Weaving")))

        assert result.records == []
        [rejection] = result.rejections
        assert rejection.code == "unknown_department"
        assert rejection.kind is RejectionKind.NORMALIZATION
        assert rejection.payload["department"] == "Underwater Basket Weaving"

    def test_department_missing_from_store_has_its_own_reason(self, today) -> None:
        transformer = StudentTransformer({"Computer Science": 1}, today=today)
        result = transformer.transform(_students(_student_row(department="mech")))

        [rejection] = result.rejections
        assert rejection.code == "department_not_loaded"
        assert rejection.kind is RejectionKind.REFERENCE

    def test_case_and_whitespace_duplicate_email_is_rejected(self, student_transformer) -> None:
        result = student_transformer.transform(
            _students(
                _student_row(email="rahul@uni.edu"),
                _student_row(email="  RAHUL@Uni.Edu  ", firstName="Second"),
            )
        )

        assert [s.first_name for s in result.records] == ["Rahul"]
        [rejection] = result.rejections
        assert rejection.code == "duplicate_email"
        assert rejection.source_row == "2"
        assert result.duplicates == 1

    def test_rejected_row_does_not_reserve_its_email(self, student_transformer) -> None:
        result = student_transformer.transform(
            _students(
                _student_row(year="ninth"),
                _student_row(firstName="Valid"),
            )
        )

        assert [s.first_name for s in result.records] == ["Valid"]
        assert [r.code for r in result.rejections] == ["invalid_year"]

    def test_first_failure_wins(self, student_transformer) -> None:
        # Bad email and bad phone; email is checked first
        result = student_transformer.transform(_students(_student_row(email="nope", phoneNumber="x")))
        assert [r.code for r in result.rejections] == ["invalid_email"]

    @pytest.mark.parametrize(
        "overrides, code, kind",
        [
            ({"firstName": None, "lastName": None}, "missing_name", RejectionKind.NORMALIZATION),
            ({"email": ""}, "invalid_email", RejectionKind.VALIDATION),
            ({"year": "5"}, "invalid_year", RejectionKind.VALIDATION),
            ({"year": "senior"}, "invalid_year", RejectionKind.NORMALIZATION),
            ({"dateOfBirth": "sometime"}, "invalid_date_of_birth", RejectionKind.NORMALIZATION),
            ({"dateOfBirth": "2012-01-01"}, "underage", RejectionKind.VALIDATION),
            ({"dateOfBirth": "2027-01-01"}, "future_date_of_birth", RejectionKind.VALIDATION),
            ({"phoneNumber": "12"}, "invalid_phone", RejectionKind.VALIDATION),
            ({"phoneNumber": ""}, "invalid_phone", RejectionKind.NORMALIZATION),
        ],
    )
    def test_field_rejections(self, student_transformer, overrides, code, kind) -> None:
        result = student_transformer.transform(_students(_student_row(**overrides)))
        [rejection] = result.rejections
        assert (rejection.code, rejection.kind) == (code, kind)
        assert rejection.reason

    def test_snake_case_json_row_is_admitted(self, student_transformer) -> None:
        raws = students_from_rows(
            [{"first_name": "Rahul", "last_name": "Sharma", "email": "rahul@uni.edu", "date_of_birth": "2004-07-15",
              "year": 3, "phone_number": "9876543210", "department": "CS"}],
            source="json",
        )
        result = student_transformer.transform(raws)

        assert result.rejections == []
        assert result.records[0].first_name == "Rahul"
        assert result.records[0].year == 3

    def test_full_name_is_split(self, student_transformer) -> None:
        raw = student_from_csv_row(
            {"name": "Priya  Devi Nair", "email": "priya@uni.edu", "date_of_birth": "2001-05-05",
             "year": "1", "phone_number": "+44 20 7946 0958", "department": "ee"},
            position=1,
        )
        student = student_transformer.transform_record(raw)
        assert (student.first_name, student.last_name) == ("Priya", "Devi Nair")
        assert student.department_id == DEPARTMENTS["Electrical Engineering"]

    def test_single_token_name_has_empty_last_name(self, student_transformer) -> None:
        student = student_transformer.transform_record(
            _students(_student_row(firstName=None, lastName=None, name="Madonna"))[0]
        )
        assert (student.first_name, student.last_name) == ("Madonna", "")

    def test_bad_record_does_not_abort_batch(self, student_transformer) -> None:
        result = student_transformer.transform(
            _students(
                _student_row(email="a@uni.edu"),
                _student_row(email="b@uni.edu", department="??"),
                _student_row(email="c@uni.edu"),
            )
        )
        assert [s.email for s in result.records] == ["a@uni.edu", "c@uni.edu"]
        assert result.metrics == {"total_rows": 3, "valid_rows": 2, "invalid_rows": 1, "duplicates": 0}


def _enrollment(position=1, **overrides):
    row = {"student_email": "Rahul@Uni.edu", "course_code": " CS101 ", "grade": "B", "enrollment_date": "2024-08-01"}
    row.update(overrides)
    return enrollment_from_row(row, position)


@pytest.fixture
def enrollment_transformer():
    return EnrollmentTransformer({"rahul@uni.edu": 7, "asha@uni.edu": 8}, COURSES)


class TestEnrollmentTransformer:

    def test_valid_enrollment_resolves_student_id(self, enrollment_transformer) -> None:
        [enrollment] = enrollment_transformer.transform([_enrollment(grade="b-")]).records
        assert enrollment.student_id == 7
        assert enrollment.course_id == "CS101"
        assert enrollment.grade == "B-"
        assert enrollment.enrollment_date == date(2024, 8, 1)

    def test_plus_grade_rejected_plain_grade_accepted(self) -> None:
        rejected = EnrollmentTransformer({"rahul@uni.edu": 7}, COURSES).transform([_enrollment(grade="B+")])
        [rejection] = rejected.rejections
        assert rejection.code == "invalid_grade"
        assert rejected.records == []

        accepted = EnrollmentTransformer({"rahul@uni.edu": 7}, COURSES).transform([_enrollment(grade="B")])
        assert accepted.rejections == []
        assert accepted.records[0].grade == "B"

    def test_missing_grade_is_ungraded(self, enrollment_transformer) -> None:
        [enrollment] = enrollment_transformer.transform([_enrollment(grade="")]).records
        assert enrollment.grade is None

    def test_orphan_student_is_rejected_with_reason(self, enrollment_transformer) -> None:
        [rejection] = enrollment_transformer.transform([_enrollment(student_email="ghost@uni.edu")]).rejections
        assert rejection.code == "orphan_student"
        assert rejection.kind is RejectionKind.REFERENCE
        assert "ghost@uni.edu" in rejection.reason

    @pytest.mark.parametrize("course, code", [("", "missing_course"), ("BIO999", "unknown_course")])
    def test_course_rejections(self, enrollment_transformer, course, code) -> None:
        [rejection] = enrollment_transformer.transform([_enrollment(course_code=course)]).rejections
        assert rejection.code == code

    def test_duplicate_pair_in_batch(self, enrollment_transformer) -> None:
        result = enrollment_transformer.transform(
            [_enrollment(1), _enrollment(2, student_email="RAHUL@uni.edu", grade="A"), _enrollment(3, course_code="CS102")]
        )
        assert [e.course_id for e in result.records] == ["CS101", "CS102"]
        assert [r.code for r in result.rejections] == ["duplicate_enrollment"]
        assert result.duplicates == 1

    @pytest.mark.parametrize("value", ["", None, "soon", "July", "Monday"])
    def test_enrollment_date_is_required(self, enrollment_transformer, value) -> None:
        [rejection] = enrollment_transformer.transform([_enrollment(enrollment_date=value)]).rejections
        assert rejection.code == "invalid_enrollment_date"

    def test_requires_built_student_lookup(self) -> None:
        with pytest.raises(ValueError):
            EnrollmentTransformer(None, COURSES)

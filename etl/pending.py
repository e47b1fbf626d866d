"""
Pending Registrations (reduced-trust path)

Entries exported from the registration sheet were already checked by the
sheet's own script. This path re-applies only that light pre-validation and
then coerces entries straight to canonical students WITHOUT running the
field validators. It is a trust boundary: anything the sheet let through is
loaded as-is, with the store's CHECK constraints as the only backstop.
Keep it separate from the full transformer.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from etl.normalize import (
    clean_string,
    normalize_department,
    normalize_email,
    normalize_phone,
    normalize_year,
    parse_date,
)
from etl.records import CanonicalStudent, RejectionKind, RejectionRecord

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("firstName", "lastName", "email", "year", "department")


def prevalidate_entry(entry: Mapping[str, Any]) -> List[str]:
    """
    Mirror of the sheet-side checks. Every failing check is reported.

    Returns:
        List of error messages; empty when the entry passes
    """
    errors = [f"Missing {name}" for name in REQUIRED_FIELDS if clean_string(entry.get(name)) is None]

    email = clean_string(entry.get("email"))
    if email and "@" not in email:
        errors.append("Invalid email format")

    if clean_string(entry.get("year")) is not None:
        year = normalize_year(entry.get("year"))
        if year is None or year < 1 or year > 4:
            errors.append("Year must be between 1 and 4")

    return errors


def validate_pending_registrations(
    entries: List[Mapping[str, Any]],
) -> Tuple[List[Mapping[str, Any]], List[Dict[str, Any]]]:
    """
    Split entries into those passing pre-validation and those failing it.

    Returns:
        (valid_entries, invalid) where each invalid item holds ``index``
        (1-based), ``student`` and ``errors``
    """
    valid, invalid = [], []
    for index, entry in enumerate(entries, 1):
        errors = prevalidate_entry(entry)
        if errors:
            invalid.append({"index": index, "student": dict(entry), "errors": errors})
        else:
            valid.append(entry)
    return valid, invalid


def coerce_prevalidated(
    entries: List[Mapping[str, Any]],
    departments: Dict[str, int],
    country_code: Optional[str] = "+91",
) -> Tuple[List[CanonicalStudent], List[RejectionRecord]]:
    """
    Convert pre-validated entries to canonical students.

    Values are normalized but not validated. An entry is only refused when
    it cannot be represented at all: unparseable date of birth, missing
    phone, or a department with no id.
    """
    students: List[CanonicalStudent] = []
    rejections: List[RejectionRecord] = []

    for index, entry in enumerate(entries, 1):
        source_row = clean_string(entry.get("email")) or str(index)
        department = normalize_department(entry.get("department"))
        department_id = departments.get(department) if department else None
        date_of_birth = parse_date(entry.get("dateOfBirth"))
        phone = normalize_phone(entry.get("phoneNumber"), country_code)

        problem = None
        if date_of_birth is None:
            problem = ("invalid_date_of_birth", RejectionKind.NORMALIZATION,
                       f"Unrecognized date of birth: {entry.get('dateOfBirth')!r}")
        elif phone is None:
            problem = ("invalid_phone", RejectionKind.NORMALIZATION, "Missing phone number")
        elif department_id is None:
            problem = ("department_not_loaded", RejectionKind.REFERENCE,
                       f"Department {entry.get('department')!r} has no id")

        if problem:
            code, kind, reason = problem
            logger.warning(f"Pending entry {source_row}: {reason}")
            rejections.append(RejectionRecord(source_row, kind, code, reason, dict(entry)))
            continue

        students.append(
            CanonicalStudent(
                first_name=clean_string(entry.get("firstName")),
                last_name=clean_string(entry.get("lastName")) or "",
                email=normalize_email(entry.get("email")),
                date_of_birth=date_of_birth,
                year=normalize_year(entry.get("year")),
                phone_number=phone,
                department_id=department_id,
            )
        )

    return students, rejections

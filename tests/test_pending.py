"""Tests for the pre-validated registration path."""

from datetime import date

from etl.pending import coerce_prevalidated, prevalidate_entry, validate_pending_registrations
from etl.records import RejectionKind
from tests.conftest import DEPARTMENTS


def _entry(**overrides):
    entry = {
        "firstName": "Meera",
        "lastName": "Iyer",
        "email": " Meera@Uni.edu ",
        "dateOfBirth": "2002-03-04",
        "year": "2",
        "phoneNumber": "9876543210",
        "department": "cse",
    }
    entry.update(overrides)
    return entry


def test_prevalidation_reports_every_failure() -> None:
    errors = prevalidate_entry({"firstName": "", "email": "nope", "year": "7"})
    assert "Missing firstName" in errors
    assert "Missing lastName" in errors
    assert "Missing department" in errors
    assert "Invalid email format" in errors
    assert "Year must be between 1 and 4" in errors


def test_split_valid_and_invalid_keeps_one_based_index() -> None:
    valid, invalid = validate_pending_registrations([_entry(), _entry(email="")])
    assert len(valid) == 1
    assert invalid[0]["index"] == 2
    assert invalid[0]["errors"] == ["Missing email"]


def test_coercion_normalizes_without_validating() -> None:
    # Too young and a short phone: both pass because no validator runs here
    students, rejections = coerce_prevalidated(
        [_entry(dateOfBirth="2020-01-01", phoneNumber="12")], DEPARTMENTS
    )

    assert rejections == []
    [student] = students
    assert student.email == "meera@uni.edu"
    assert student.date_of_birth == date(2020, 1, 1)
    assert student.phone_number == "12"
    assert student.year == 2
    assert student.department_id == DEPARTMENTS["Computer Science"]


def test_country_code_applies_to_ten_digit_numbers() -> None:
    [student], _ = coerce_prevalidated([_entry()], DEPARTMENTS, country_code="+91")
    assert student.phone_number == "+91-9876543210"


def test_unrepresentable_entries_are_rejected() -> None:
    students, rejections = coerce_prevalidated(
        [
            _entry(email="a@uni.edu", dateOfBirth="whenever"),
            _entry(email="b@uni.edu", phoneNumber=""),
            _entry(email="c@uni.edu", department="Astrology"),
        ],
        DEPARTMENTS,
    )

    assert students == []
    assert [(r.source_row, r.code) for r in rejections] == [
        ("a@uni.edu", "invalid_date_of_birth"),
        ("b@uni.edu", "invalid_phone"),
        ("c@uni.edu", "department_not_loaded"),
    ]
    assert rejections[2].kind is RejectionKind.REFERENCE

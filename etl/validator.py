"""
Field-Level Validation Rules

Defines validation rules for canonical student and enrollment fields.
Each validator is an independent predicate over an already-normalized value.
"""

import re
import logging
from datetime import date
from typing import Any, Callable, Optional, Tuple
from abc import ABC, abstractmethod

from etl.normalize import parse_date

logger = logging.getLogger(__name__)

VALID_GRADES = ("A", "A-", "B", "B-", "C", "C-", "D", "F")


class Validator(ABC):
    """Abstract base class for field validators."""

    @abstractmethod
    def validate(self, value: Any) -> Tuple[bool, Optional[str]]:
        """
        Validate a value.

        Returns:
            Tuple of (is_valid, error_message)
        """
        pass


class EmailValidator(Validator):
    """Validates email addresses of the form local@domain.tld."""

    EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

    def validate(self, value: Any) -> Tuple[bool, Optional[str]]:
        if not value or not isinstance(value, str):
            return False, "Email is required"

        if not self.EMAIL_REGEX.match(value.strip()):
            return False, f"Invalid email format: {value}"

        return True, None


class YearValidator(Validator):
    """Validates student year (1-4)."""

    def validate(self, value: Any) -> Tuple[bool, Optional[str]]:
        if value is None or isinstance(value, bool) or not isinstance(value, int):
            return False, f"Year must be an integer, got: {value!r}"

        if value < 1 or value > 4:
            return False, f"Year must be between 1 and 4, got: {value}"

        return True, None


def age_on(birth: date, today: date) -> int:
    """Whole calendar years between birth and today."""
    years = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        years -= 1
    return years


class DateOfBirthValidator(Validator):
    """
    Validates that a date of birth parses and meets the minimum age.

    Age is counted in whole calendar years, so someone born on Feb 29 turns
    a year older on Mar 1 in non-leap years.
    """

    def __init__(self, min_age: int = 16, today: Optional[Callable[[], date]] = None):
        self.min_age = min_age
        self._today = today or date.today

    def today(self) -> date:
        return self._today()

    def validate(self, value: Any) -> Tuple[bool, Optional[str]]:
        birth = parse_date(value)
        if birth is None:
            return False, f"Invalid date of birth: {value!r}"

        today = self.today()
        if birth > today:
            return False, f"Date of birth is in the future: {birth.isoformat()}"

        if age_on(birth, today) < self.min_age:
            return False, f"Student must be at least {self.min_age} years old (born {birth.isoformat()})"

        return True, None


class PhoneValidator(Validator):
    """Validates normalized phone numbers."""

    PHONE_REGEX = re.compile(r"^[0-9+ -]{7,20}$")

    def validate(self, value: Any) -> Tuple[bool, Optional[str]]:
        if not value or not isinstance(value, str):
            return False, "Phone number is required"

        if not self.PHONE_REGEX.match(value.strip()):
            return False, f"Invalid phone number format: {value}"

        return True, None


class GradeValidator(Validator):
    """Validates letter grades. Plus grades are not part of the scale."""

    def validate(self, value: Any) -> Tuple[bool, Optional[str]]:
        if value is None or (isinstance(value, str) and value.strip() == ""):
            # Ungraded
            return True, None

        if not isinstance(value, str) or value.strip().upper() not in VALID_GRADES:
            return False, f"Invalid grade: {value!r} (allowed: {', '.join(VALID_GRADES)})"

        return True, None

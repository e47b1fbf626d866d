"""
Record Types

Raw records produced by the source adapters, canonical records produced by
the transformer, and the rejection log entries surfaced to operators.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional


@dataclass
class RawStudentRecord:
    """
    One student row after source adaptation.

    Every field keeps its raw value; nothing here is trusted. The name is
    carried either as a first/last pair or as a single full name.
    """
    source_row: str
    first_name: Any = None
    last_name: Any = None
    full_name: Any = None
    email: Any = None
    date_of_birth: Any = None
    year: Any = None
    phone_number: Any = None
    department: Any = None
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RawEnrollmentRecord:
    """One enrollment row after source adaptation."""
    source_row: str
    student_email: Any = None
    course_code: Any = None
    grade: Any = None
    enrollment_date: Any = None
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CanonicalStudent:
    first_name: str
    last_name: str
    email: str
    date_of_birth: date
    year: int
    phone_number: str
    department_id: int


@dataclass(frozen=True)
class CanonicalEnrollment:
    student_id: int
    course_id: str
    grade: Optional[str]
    enrollment_date: date

    @property
    def key(self):
        return (self.student_id, self.course_id)


class RejectionKind(str, Enum):
    """Why a record was rejected, for operator triage."""
    NORMALIZATION = "normalization"
    VALIDATION = "validation"
    REFERENCE = "reference"


@dataclass(frozen=True)
class RejectionRecord:
    source_row: str
    kind: RejectionKind
    code: str
    reason: str
    payload: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_row": self.source_row,
            "kind": self.kind.value,
            "code": self.code,
            "reason": self.reason,
            "payload": self.payload,
        }

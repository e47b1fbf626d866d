"""
Single-Record Registration

Synchronous counterpart of the batch student path, used behind the
registration endpoint. It applies exactly the batch student rules to one
request body. An email that is already registered is reported as ``exists``,
which callers treat as an idempotent success rather than an error. The
write is insert-only, so a concurrent registration of the same email is
never overwritten.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, List, Mapping, Optional

from db.store import RegistryStore
from etl.adapters import student_from_http_body
from etl.transform import RecordRejected, StudentTransformer

logger = logging.getLogger(__name__)

CREATED = "created"
EXISTS = "exists"
REJECTED = "rejected"
ERROR = "error"

HTTP_STATUS = {CREATED: 201, EXISTS: 409, REJECTED: 400, ERROR: 500}


@dataclass
class RegistrationResult:
    status: str
    student_id: Optional[int] = None
    email: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == CREATED

    @property
    def already_exists(self) -> bool:
        return self.status == EXISTS

    @property
    def http_status(self) -> int:
        return HTTP_STATUS[self.status]

    def to_dict(self) -> dict:
        body = {"success": self.success}
        if self.success:
            body["message"] = "Student registered successfully"
            body["data"] = {"studentId": self.student_id, "email": self.email}
        else:
            body["errors"] = list(self.errors)
        return body


def register_student(
    body: Mapping[str, Any],
    store: RegistryStore,
    country_code: Optional[str] = "+91",
    min_age: int = 16,
    today: Optional[Callable[[], date]] = None,
) -> RegistrationResult:
    """
    Validate and register one student.

    Args:
        body: Request body with camelCase fields
        store: Registry store
        country_code: Phone prefix policy
        min_age: Minimum student age
        today: Clock override for the age check

    Returns:
        RegistrationResult with status created, exists, rejected or error
    """
    raw = student_from_http_body(body)

    try:
        transformer = StudentTransformer(
            store.departments(), country_code=country_code, min_age=min_age, today=today
        )
        student = transformer.transform_record(raw)
    except RecordRejected as rejection:
        logger.warning(f"Registration rejected for {raw.source_row}: {rejection.reason}")
        return RegistrationResult(REJECTED, errors=[rejection.reason])
    except Exception as e:
        logger.error(f"Registration failed for {raw.source_row}: {e}", exc_info=True)
        return RegistrationResult(ERROR, errors=[f"Internal server error: {e}"])

    try:
        existing = store.find_student(student.email)
        if existing is not None:
            logger.info(f"Student already registered: {student.email} (id {existing})")
            return RegistrationResult(
                EXISTS,
                student_id=existing,
                email=student.email,
                errors=["Student with this email already exists"],
            )

        student_id = store.insert_student(student)
        if student_id is None:
            # Registered concurrently since the lookup above
            logger.info(f"Student already registered: {student.email}")
            return RegistrationResult(
                EXISTS,
                student_id=store.find_student(student.email),
                email=student.email,
                errors=["Student with this email already exists"],
            )
    except Exception as e:
        logger.error(f"Registration failed for {student.email}: {e}", exc_info=True)
        return RegistrationResult(ERROR, email=student.email, errors=[f"Internal server error: {e}"])

    logger.info(f"Student registered: {student.email} (id {student_id})")
    return RegistrationResult(CREATED, student_id=student_id, email=student.email)

"""Shared fixtures: an in-memory registry store and a pinned clock."""

import threading
from datetime import date
from typing import Dict, Optional, Set

import pytest

from db.store import RegistryStore
from etl.records import CanonicalEnrollment, CanonicalStudent

TODAY = date(2026, 10, 18)

DEPARTMENTS = {
    "Computer Science": 1,
    "Electronics": 2,
    "Electrical Engineering": 3,
    "Mechanical": 4,
}

COURSES = {"CS101", "CS102", "EE201", "ME101"}


class FakeStore(RegistryStore):
    """In-memory store with the same conflict semantics as PostgresStore."""

    def __init__(self, departments: Optional[Dict[str, int]] = None, courses: Optional[Set[str]] = None):
        self._departments = dict(DEPARTMENTS if departments is None else departments)
        self._courses = set(COURSES if courses is None else courses)
        self.student_rows: Dict[str, dict] = {}
        self.enrollment_rows: Dict[tuple, dict] = {}
        self.fail_emails: Set[str] = set()
        self.student_lookups = 0
        self.closed = False
        self._next_student_id = 100
        self._next_enrollment_id = 1
        self._lock = threading.Lock()

    def departments(self) -> Dict[str, int]:
        return dict(self._departments)

    def students(self) -> Dict[str, int]:
        self.student_lookups += 1
        return {email: row["id"] for email, row in self.student_rows.items()}

    def course_ids(self) -> Set[str]:
        return set(self._courses)

    def find_student(self, email: str) -> Optional[int]:
        row = self.student_rows.get(email)
        return row["id"] if row else None

    def upsert_student(self, student: CanonicalStudent) -> int:
        if student.email in self.fail_emails:
            raise RuntimeError("check constraint violated")
        with self._lock:
            row = self.student_rows.get(student.email)
            student_id = row["id"] if row else self._next_student_id
            if row is None:
                self._next_student_id += 1
            self.student_rows[student.email] = {"id": student_id, "record": student}
            return student_id

    def insert_student(self, student: CanonicalStudent) -> Optional[int]:
        if student.email in self.fail_emails:
            raise RuntimeError("check constraint violated")
        with self._lock:
            if student.email in self.student_rows:
                return None
            student_id = self._next_student_id
            self._next_student_id += 1
            self.student_rows[student.email] = {"id": student_id, "record": student}
            return student_id

    def upsert_enrollment(self, enrollment: CanonicalEnrollment) -> int:
        with self._lock:
            row = self.enrollment_rows.get(enrollment.key)
            enrollment_id = row["id"] if row else self._next_enrollment_id
            if row is None:
                self._next_enrollment_id += 1
            self.enrollment_rows[enrollment.key] = {"id": enrollment_id, "record": enrollment}
            return enrollment_id

    def counts(self) -> Dict[str, int]:
        return {"students": len(self.student_rows), "enrollments": len(self.enrollment_rows)}

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def today():
    return lambda: TODAY


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def settings(monkeypatch, tmp_path):
    """Settings pointed at a temporary data directory."""
    from config.settings import Settings

    for name in ("DATABASE_URL", "GOOGLE_SHEET_ID", "PIPELINE_DEADLINE_SECONDS", "STUDENT_SOURCE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DB_USER", "etl")
    monkeypatch.setenv("DB_PASSWORD", "secret")
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    monkeypatch.setenv("REJECTIONS_FILE", str(tmp_path / "logs" / "rejections.jsonl"))
    monkeypatch.setenv("LOAD_WORKERS", "2")
    monkeypatch.setenv("DEFAULT_COUNTRY_CODE", "+91")
    return Settings()

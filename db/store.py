"""
Registry Store

The relational store the pipeline reads reference data from and upserts
canonical records into. PostgresStore runs against the schema in
db/schema.sql.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional, Set

from db.connection import DatabaseConnection
from etl.records import CanonicalEnrollment, CanonicalStudent

logger = logging.getLogger(__name__)


class RegistryStore(ABC):
    """Operations the pipeline needs from the store."""

    @abstractmethod
    def departments(self) -> Dict[str, int]:
        """Department name -> id."""

    @abstractmethod
    def students(self) -> Dict[str, int]:
        """Student email -> id."""

    @abstractmethod
    def course_ids(self) -> Set[str]:
        """Valid course codes."""

    @abstractmethod
    def find_student(self, email: str) -> Optional[int]:
        """Id of the student with this email, or None."""

    @abstractmethod
    def upsert_student(self, student: CanonicalStudent) -> int:
        """Insert, or replace every mutable field on email conflict."""

    @abstractmethod
    def insert_student(self, student: CanonicalStudent) -> Optional[int]:
        """Insert only; None when the email is already taken."""

    @abstractmethod
    def upsert_enrollment(self, enrollment: CanonicalEnrollment) -> int:
        """Insert, or replace grade and date on (student, course) conflict."""

    @abstractmethod
    def counts(self) -> Dict[str, int]:
        """Row counts: {"students": n, "enrollments": n}."""

    def close(self) -> None:
        pass


class PostgresStore(RegistryStore):
    """RegistryStore backed by the pooled PostgreSQL connection."""

    UPSERT_STUDENT = """
        INSERT INTO student (
            student_first_name,
            student_last_name,
            student_email,
            student_date_of_birth,
            student_year,
            student_phone_number,
            department_id
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s)
        ON CONFLICT (student_email) DO UPDATE SET
            student_first_name = EXCLUDED.student_first_name,
            student_last_name = EXCLUDED.student_last_name,
            student_date_of_birth = EXCLUDED.student_date_of_birth,
            student_year = EXCLUDED.student_year,
            student_phone_number = EXCLUDED.student_phone_number,
            department_id = EXCLUDED.department_id
        RETURNING student_id;
    """

    INSERT_STUDENT = """
        INSERT INTO student (
            student_first_name,
            student_last_name,
            student_email,
            student_date_of_birth,
            student_year,
            student_phone_number,
            department_id
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s)
        ON CONFLICT (student_email) DO NOTHING
        RETURNING student_id;
    """

    UPSERT_ENROLLMENT = """
        INSERT INTO enrollment (student_id, course_id, grade, enrollment_date)
        VALUES (%s, %s, %s, %s)
        ON CONFLICT (student_id, course_id) DO UPDATE SET
            grade = EXCLUDED.grade,
            enrollment_date = EXCLUDED.enrollment_date
        RETURNING enrollment_id;
    """

    def __init__(self, settings=None):
        """
        Args:
            settings: When given and the pool is not yet up, the pool is
                initialized from these settings
        """
        if settings is not None and not DatabaseConnection.is_initialized():
            DatabaseConnection.from_settings(settings)

    def departments(self) -> Dict[str, int]:
        rows = DatabaseConnection.execute_query(
            "SELECT department_id, department_name FROM department;"
        )
        lookup = {name: dept_id for dept_id, name in rows}
        logger.info(f"Loaded {len(lookup)} departments from database")
        return lookup

    def students(self) -> Dict[str, int]:
        rows = DatabaseConnection.execute_query(
            "SELECT student_id, student_email FROM student;"
        )
        return {email: student_id for student_id, email in rows}

    def course_ids(self) -> Set[str]:
        rows = DatabaseConnection.execute_query("SELECT course_id FROM course;")
        courses = {row[0] for row in rows}
        logger.info(f"Loaded {len(courses)} courses from database")
        return courses

    def find_student(self, email: str) -> Optional[int]:
        rows = DatabaseConnection.execute_query(
            "SELECT student_id FROM student WHERE student_email = %s;", (email,)
        )
        return rows[0][0] if rows else None

    @staticmethod
    def _student_params(student: CanonicalStudent) -> tuple:
        return (
            student.first_name,
            student.last_name,
            student.email,
            student.date_of_birth,
            student.year,
            student.phone_number,
            student.department_id,
        )

    def upsert_student(self, student: CanonicalStudent) -> int:
        row = DatabaseConnection.execute_returning(self.UPSERT_STUDENT, self._student_params(student))
        return row[0]

    def insert_student(self, student: CanonicalStudent) -> Optional[int]:
        row = DatabaseConnection.execute_returning(self.INSERT_STUDENT, self._student_params(student))
        return row[0] if row else None

    def upsert_enrollment(self, enrollment: CanonicalEnrollment) -> int:
        row = DatabaseConnection.execute_returning(
            self.UPSERT_ENROLLMENT,
            (
                enrollment.student_id,
                enrollment.course_id,
                enrollment.grade,
                enrollment.enrollment_date,
            ),
        )
        return row[0]

    def counts(self) -> Dict[str, int]:
        rows = DatabaseConnection.execute_query(
            "SELECT (SELECT COUNT(*) FROM student), (SELECT COUNT(*) FROM enrollment);"
        )
        students, enrollments = rows[0]
        return {"students": int(students), "enrollments": int(enrollments)}

    def close(self) -> None:
        DatabaseConnection.close_all()

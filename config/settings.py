"""
Configuration Management

Loads environment variables and provides settings for the ETL pipeline.
Uses python-dotenv for local development and environment variables for production.
"""

import os
from typing import Optional
from dotenv import load_dotenv

# Load .env file for local development
load_dotenv()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got: {value}")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number, got: {value}")


class Settings:
    """
    Application settings loaded from environment variables.

    Ensures no hardcoded credentials in code.
    """

    def __init__(self):
        """Read the environment and validate required settings."""
        # Database Configuration
        self.DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL")
        self.DB_HOST: str = os.getenv("DB_HOST", "localhost")
        self.DB_PORT: int = _env_int("DB_PORT", 5432)
        self.DB_NAME: str = os.getenv("DB_NAME", "etl_db")
        self.DB_USER: Optional[str] = os.getenv("DB_USER")
        self.DB_PASSWORD: Optional[str] = os.getenv("DB_PASSWORD")
        self.DB_SSLMODE: str = os.getenv("DB_SSLMODE", "prefer")
        self.DB_STATEMENT_TIMEOUT_MS: int = _env_int("DB_STATEMENT_TIMEOUT_MS", 10000)

        # Source Configuration
        self.DATA_DIR: str = os.getenv("DATA_DIR", "data")
        self.STUDENTS_FILE: str = os.getenv("STUDENTS_FILE", "messy_students.csv")
        self.ENROLLMENTS_FILE: str = os.getenv("ENROLLMENTS_FILE", "messy_enrollments.csv")
        self.PENDING_FILE: str = os.getenv("PENDING_FILE", "pending-registrations.json")
        self.STUDENT_SOURCE: str = os.getenv("STUDENT_SOURCE", "file").strip().lower()

        # Google Sheets Configuration
        self.GOOGLE_SHEET_ID: Optional[str] = os.getenv("GOOGLE_SHEET_ID")
        self.GOOGLE_CREDENTIALS_PATH: str = os.getenv("GOOGLE_CREDENTIALS_PATH", "credentials.json")
        self.SHEET_NAME: str = os.getenv("SHEET_NAME", "Students")

        # Normalization Policy
        self.DEFAULT_COUNTRY_CODE: str = os.getenv("DEFAULT_COUNTRY_CODE", "+91")
        self.MIN_STUDENT_AGE: int = _env_int("MIN_STUDENT_AGE", 16)

        # ETL Configuration
        self.LOAD_WORKERS: int = _env_int("LOAD_WORKERS", 4)
        self.RECORD_TIMEOUT_SECONDS: float = _env_float("RECORD_TIMEOUT_SECONDS", 30.0)
        self.PIPELINE_DEADLINE_SECONDS: float = _env_float("PIPELINE_DEADLINE_SECONDS", 0.0)
        self.REJECTIONS_FILE: str = os.getenv("REJECTIONS_FILE", "logs/rejections.jsonl")

        # Logging Configuration
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
        self.LOG_FILE: str = os.getenv("LOG_FILE", "logs/etl.log")

        self._validate_settings()

    def _validate_settings(self) -> None:
        """
        Validate that all required settings are provided.

        Raises:
            ValueError: If required settings are missing or out of range
        """
        required_fields = []
        if not self.DATABASE_URL:
            required_fields += ["DB_USER", "DB_PASSWORD"]
        if self.STUDENT_SOURCE == "sheet":
            required_fields.append("GOOGLE_SHEET_ID")

        missing_fields = [
            field for field in required_fields
            if not getattr(self, field, None)
        ]

        if missing_fields:
            raise ValueError(
                f"Missing required environment variables: {', '.join(missing_fields)}. "
                f"Please check your .env file."
            )

        if self.STUDENT_SOURCE not in ("file", "sheet"):
            raise ValueError(
                f"STUDENT_SOURCE must be 'file' or 'sheet', got: {self.STUDENT_SOURCE}"
            )

        if self.LOAD_WORKERS < 1:
            raise ValueError(f"LOAD_WORKERS must be at least 1, got: {self.LOAD_WORKERS}")

    @property
    def pipeline_deadline(self) -> Optional[float]:
        """Overall run deadline in seconds, or None when disabled."""
        return self.PIPELINE_DEADLINE_SECONDS if self.PIPELINE_DEADLINE_SECONDS > 0 else None

    def data_path(self, filename: str) -> str:
        """Resolve a source filename against DATA_DIR."""
        return os.path.join(self.DATA_DIR, filename)

    def __repr__(self) -> str:
        """Return string representation (excluding sensitive data)."""
        return (
            f"Settings("
            f"DB_HOST={self.DB_HOST}, "
            f"DB_NAME={self.DB_NAME}, "
            f"STUDENT_SOURCE={self.STUDENT_SOURCE}, "
            f"LOAD_WORKERS={self.LOAD_WORKERS}"
            f")"
        )

"""
ETL Pipeline Package

Ingests messy student and enrollment rows, validates them against the
registry schema's rules, and upserts them into PostgreSQL.

Modules:
- extract: CSV / JSON / Google Sheets extraction
- adapters: Source-shape adapters producing raw records
- normalize: Field normalizers
- validator: Field-level validation rules
- transform: Record transformer (students and enrollments)
- lookups: Reference lookups for one run
- load: Idempotent, concurrent upserts
- pending: Reduced-trust load of pre-validated registrations
- registration: Single-record synchronous registration
- report: Run summary and rejection log
- run_etl: Pipeline orchestration
"""

__version__ = "1.0.0"
__author__ = "Data Engineering Team"

"""
ETL Pipeline Orchestrator

Coordinates the complete ETL workflow:
- Extract student and enrollment rows
- Build reference lookups
- Transform and load students
- Refresh the student lookup, then transform and load enrollments
- Verify final counts and report
"""

import argparse
import logging
import os
import signal
import sys
import threading
import time
from datetime import date
from typing import Callable, List, Optional

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.settings import Settings
from db.store import PostgresStore, RegistryStore
from etl.adapters import detect_source, enrollments_from_rows, students_from_rows
from etl.extract import extract_from_file, extract_pending_registrations, fetch_google_sheet
from etl.load import LoadResult, load_enrollments, load_students
from etl.lookups import LookupBuilder
from etl.pending import coerce_prevalidated, validate_pending_registrations
from etl.records import RejectionKind, RejectionRecord
from etl.report import PipelineSummary, RejectionLog, log_summary
from etl.transform import EnrollmentTransformer, StudentTransformer

logger = logging.getLogger(__name__)


class PipelineStopped(Exception):
    """Raised between phases when the run is cancelled or out of time."""

    def __init__(self, status: str, phase: str):
        super().__init__(f"Pipeline {status} before {phase}")
        self.status = status
        self.phase = phase


class ETLOrchestrator:
    """
    Orchestrates one pipeline run.

    The run owns its lookups, rejection log and summary; nothing is shared
    with other runs except what is re-read from the store.
    """

    def __init__(
        self,
        settings: Settings,
        store: Optional[RegistryStore] = None,
        cancel_event: Optional[threading.Event] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        """
        Args:
            settings: Configuration object
            store: Registry store; a PostgresStore is opened (and closed) when omitted
            cancel_event: Set from outside to stop the run gracefully
            today: Clock override for the age check
        """
        self.settings = settings
        self.store = store
        self._owns_store = store is None
        self.cancel_event = cancel_event or threading.Event()
        self.today = today
        self.rejections = RejectionLog()
        self.summary = PipelineSummary()
        self.deadline: Optional[float] = None

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run(self) -> PipelineSummary:
        """Execute the full batch pipeline."""
        return self._run("batch", self._execute_pipeline)

    def run_pending(self) -> PipelineSummary:
        """Load pre-validated registrations (reduced-trust mode)."""
        return self._run("pending", self._execute_pending)

    def _run(self, mode: str, body: Callable[[], None]) -> PipelineSummary:
        self.summary = PipelineSummary(mode=mode)
        started = time.monotonic()
        if self.settings.pipeline_deadline:
            self.deadline = started + self.settings.pipeline_deadline

        try:
            logger.info("=" * 60)
            logger.info(f"Starting ETL Pipeline ({mode})")
            logger.info("=" * 60)

            if self.store is None:
                self.store = PostgresStore(self.settings)

            body()
            self.summary.status = "success"

        except PipelineStopped as stop:
            logger.warning(str(stop))
            self.summary.status = stop.status

        except Exception as e:
            logger.error(f"ETL Pipeline failed: {e}", exc_info=True)
            self.summary.status = "failed"
            self.summary.error_message = str(e)

        finally:
            self.summary.duration_seconds = time.monotonic() - started
            self._write_rejections()
            log_summary(self.summary)
            if self._owns_store and self.store is not None:
                self.store.close()
                self.store = None

        return self.summary

    # ------------------------------------------------------------------
    # Batch mode
    # ------------------------------------------------------------------

    def _execute_pipeline(self) -> None:
        logger.info("Step 1: Extracting source data...")
        student_rows, student_source = self._extract_students()
        enrollment_rows = extract_from_file(self.settings.data_path(self.settings.ENROLLMENTS_FILE))
        raw_students = students_from_rows(student_rows, source=student_source)
        raw_enrollments = enrollments_from_rows(enrollment_rows)
        self.summary.extracted = len(raw_students) + len(raw_enrollments)

        self._checkpoint("lookups")
        logger.info("Step 2: Building reference lookups...")
        builder = LookupBuilder(self.store)
        lookups = builder.build()

        self._checkpoint("student transform")
        logger.info("Step 3: Transforming students...")
        students = StudentTransformer(
            lookups.departments,
            country_code=self.settings.DEFAULT_COUNTRY_CODE or None,
            min_age=self.settings.MIN_STUDENT_AGE,
            today=self.today,
        ).transform(raw_students)
        self._absorb_transform(students)

        self._checkpoint("student load")
        logger.info("Step 4: Loading students...")
        self._absorb_load(load_students(students.records, self.store, **self._load_options()))

        self._checkpoint("student lookup refresh")
        logger.info("Step 5: Refreshing student lookup...")
        builder.refresh_students(lookups)

        self._checkpoint("enrollment transform")
        logger.info("Step 6: Transforming enrollments...")
        enrollments = EnrollmentTransformer(lookups.students, lookups.courses).transform(raw_enrollments)
        self._absorb_transform(enrollments)

        self._checkpoint("enrollment load")
        logger.info("Step 7: Loading enrollments...")
        self._absorb_load(load_enrollments(enrollments.records, self.store, **self._load_options()))

        self._verify()

    def _extract_students(self):
        if self.settings.STUDENT_SOURCE == "sheet":
            return fetch_google_sheet(self.settings), "csv"
        path = self.settings.data_path(self.settings.STUDENTS_FILE)
        return extract_from_file(path), detect_source(path)

    # ------------------------------------------------------------------
    # Pending mode (trust boundary: no field validation)
    # ------------------------------------------------------------------

    def _execute_pending(self) -> None:
        logger.info("Step 1: Extracting pending registrations...")
        entries = extract_pending_registrations(self.settings.data_path(self.settings.PENDING_FILE))
        self.summary.extracted = len(entries)

        valid, invalid = validate_pending_registrations(entries)
        for item in invalid:
            reason = ", ".join(item["errors"])
            logger.warning(f"Pending row {item['index']}: {reason}")
            self.rejections.extend([
                RejectionRecord(
                    str(item["index"]), RejectionKind.VALIDATION, "prevalidation_failed", reason, item["student"]
                )
            ])
        self.summary.skipped += len(invalid)
        logger.info(f"{len(valid)} pending registrations passed pre-validation")

        if not valid:
            logger.warning("No valid pending registrations to process")
            self._verify()
            return

        self._checkpoint("lookups")
        logger.info("Step 2: Loading department lookup...")
        departments = LookupBuilder(self.store).build().departments

        logger.warning("Loading pre-validated registrations without field validation")
        students, rejections = coerce_prevalidated(
            valid, departments, country_code=self.settings.DEFAULT_COUNTRY_CODE or None
        )
        self.rejections.extend(rejections)
        self.summary.skipped += len(rejections)
        self.summary.transformed += len(students)

        self._checkpoint("student load")
        logger.info("Step 3: Loading students...")
        self._absorb_load(load_students(students, self.store, **self._load_options()))

        self._verify()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _checkpoint(self, phase: str) -> None:
        if self.cancel_event.is_set():
            raise PipelineStopped("cancelled", phase)
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise PipelineStopped("timed_out", phase)

    def _load_options(self) -> dict:
        return {
            "workers": self.settings.LOAD_WORKERS,
            "record_timeout": self.settings.RECORD_TIMEOUT_SECONDS,
            "cancel_event": self.cancel_event,
            "deadline": self.deadline,
        }

    def _absorb_transform(self, result) -> None:
        self.rejections.extend(result.rejections)
        self.summary.transformed += len(result.records)
        self.summary.skipped += len(result.rejections)
        self.summary.duplicates += result.duplicates

    def _absorb_load(self, result: LoadResult) -> None:
        self.summary.loaded += result.loaded
        self.summary.errors += result.failed + result.timed_out
        self.summary.skipped += result.skipped
        if result.skipped:
            # Loader stopped early; report why
            self._checkpoint("verify")

    def _verify(self) -> None:
        logger.info("Verifying final counts...")
        self.summary.final_counts = self.store.counts()

    def _write_rejections(self) -> None:
        if not len(self.rejections):
            return
        try:
            self.rejections.write(self.settings.REJECTIONS_FILE)
        except OSError as e:
            logger.error(f"Could not write rejection log: {e}")


def setup_logging(log_file: str = "logs/etl.log", level: str = "INFO") -> None:
    """
    Configure logging for ETL pipeline.

    Args:
        log_file: Path to log file
        level: Console log level
    """
    directory = os.path.dirname(log_file)
    if directory:
        os.makedirs(directory, exist_ok=True)

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # File handler
    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    console_handler.setFormatter(formatter)

    # Root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Load student and enrollment data into the registry")
    parser.add_argument(
        "--pending",
        action="store_true",
        help="load pre-validated registrations exported from the sheet (skips field validation)",
    )
    parser.add_argument(
        "--source",
        choices=("file", "sheet"),
        help="where student rows come from (overrides STUDENT_SOURCE)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for ETL pipeline."""
    args = build_parser().parse_args(argv)
    if args.source:
        os.environ["STUDENT_SOURCE"] = args.source

    try:
        settings = Settings()
    except ValueError as e:
        setup_logging()
        logger.error(f"Fatal error: {e}")
        sys.exit(1)

    setup_logging(settings.LOG_FILE, settings.LOG_LEVEL)

    cancel_event = threading.Event()

    def _request_stop(signum, frame):
        logger.warning("Interrupt received, finishing in-flight records...")
        cancel_event.set()

    signal.signal(signal.SIGINT, _request_stop)

    orchestrator = ETLOrchestrator(settings, cancel_event=cancel_event)
    summary = orchestrator.run_pending() if args.pending else orchestrator.run()
    sys.exit(0 if summary.succeeded else 1)


if __name__ == "__main__":
    main()

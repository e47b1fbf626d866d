"""
Data Loading into the Registry Store

Persists canonical records with idempotent upserts. Records are independent,
so each one is written in its own transaction by a bounded worker pool; a
failed record is logged and counted without stopping the rest.
"""

import logging
import threading
import time
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

from db.store import RegistryStore
from etl.records import CanonicalEnrollment, CanonicalStudent

logger = logging.getLogger(__name__)


@dataclass
class LoadResult:
    """
    Outcome of one load phase.

    ``loaded`` counts inserts and updates alike; ``skipped`` counts records
    never written because the run was cancelled or hit its deadline.

    ``timed_out`` records have an unknown outcome: the worker thread is not
    interrupted and its statement may still commit. Only the server-side
    ``statement_timeout`` bounds such a call, and the pool waits for it
    before the load returns.
    """
    attempted: int = 0
    loaded: int = 0
    failed: int = 0
    timed_out: int = 0
    skipped: int = 0
    errors: List[Tuple[Any, str]] = field(default_factory=list)


class UpsertEngine:
    """Runs one upsert call per record on a bounded thread pool."""

    def __init__(
        self,
        upsert: Callable[[Any], Any],
        key: Callable[[Any], Any],
        entity: str = "records",
        workers: int = 4,
        record_timeout: Optional[float] = 30.0,
        cancel_event: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ):
        """
        Args:
            upsert: Store call persisting one record
            key: Natural key of a record, used in log lines
            entity: Plural noun for log lines
            workers: Pool size
            record_timeout: Seconds to wait for one record's result
            cancel_event: When set, no further records are written
            deadline: ``time.monotonic()`` value after which no further records are written
        """
        self.upsert = upsert
        self.key = key
        self.entity = entity
        self.workers = max(1, workers)
        self.record_timeout = record_timeout
        self.cancel_event = cancel_event
        self.deadline = deadline

    def should_stop(self) -> bool:
        if self.cancel_event is not None and self.cancel_event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def load(self, records: List[Any]) -> LoadResult:
        result = LoadResult(attempted=len(records))
        if not records:
            logger.info(f"No {self.entity} to load")
            return result

        logger.info(f"Loading {len(records)} {self.entity} with {self.workers} workers")

        submitted = 0
        in_flight = deque()
        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix=f"load-{self.entity}") as executor:
            for record in records:
                if self.should_stop():
                    break
                in_flight.append((executor.submit(self.upsert, record), record))
                submitted += 1
                if len(in_flight) >= self.workers:
                    self._collect(in_flight.popleft(), result)

            while in_flight:
                self._collect(in_flight.popleft(), result)

        result.skipped = len(records) - submitted
        if result.skipped:
            logger.warning(f"Stopped early: {result.skipped} {self.entity} not written")
        logger.info(
            f"Loaded {result.loaded} {self.entity} ({result.failed} failed, {result.timed_out} timed out)"
        )
        return result

    def _collect(self, item: Tuple[Future, Any], result: LoadResult) -> None:
        future, record = item
        try:
            future.result(timeout=self.record_timeout)
            result.loaded += 1
        except FutureTimeout:
            key = self.key(record)
            logger.error(f"Upsert of {self.entity[:-1]} {key} timed out after {self.record_timeout}s; outcome unknown")
            result.timed_out += 1
            result.errors.append((key, f"timed out after {self.record_timeout}s"))
        except Exception as e:
            self._record_failure(result, record, str(e))

    def _record_failure(self, result: LoadResult, record: Any, message: str) -> None:
        key = self.key(record)
        logger.error(f"Failed to upsert {self.entity[:-1]} {key}: {message}")
        result.failed += 1
        result.errors.append((key, message))


def load_students(
    students: List[CanonicalStudent],
    store: RegistryStore,
    **options,
) -> LoadResult:
    """
    Upsert students keyed on email; on conflict every mutable field is replaced.

    Args:
        students: Canonical students
        store: Target store
        **options: Passed to UpsertEngine (workers, record_timeout, cancel_event, deadline)
    """
    engine = UpsertEngine(store.upsert_student, key=lambda s: s.email, entity="students", **options)
    return engine.load(students)


def load_enrollments(
    enrollments: List[CanonicalEnrollment],
    store: RegistryStore,
    **options,
) -> LoadResult:
    """Upsert enrollments keyed on (student, course); on conflict grade and date are replaced."""
    engine = UpsertEngine(store.upsert_enrollment, key=lambda e: e.key, entity="enrollments", **options)
    return engine.load(enrollments)

"""
Run Reporting

End-of-run summary with data quality rates, and the rejection log written for
offline review. Rejections are never persisted to the registry store.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from etl.records import RejectionRecord

logger = logging.getLogger(__name__)


@dataclass
class PipelineSummary:
    """Counters for a single pipeline run."""
    mode: str = "batch"
    status: str = "in_progress"
    extracted: int = 0
    transformed: int = 0
    loaded: int = 0
    skipped: int = 0
    errors: int = 0
    duplicates: int = 0
    duration_seconds: float = 0.0
    final_counts: Dict[str, int] = field(default_factory=dict)
    error_message: Optional[str] = None

    @property
    def validity_rate(self) -> float:
        """Share of extracted rows that passed transformation, as a percentage."""
        if self.extracted == 0:
            return 0.0
        return (self.transformed / self.extracted) * 100

    @property
    def error_rate(self) -> float:
        if self.extracted == 0:
            return 0.0
        return (self.skipped / self.extracted) * 100

    @property
    def duplicate_rate(self) -> float:
        if self.extracted == 0:
            return 0.0
        return (self.duplicates / self.extracted) * 100

    @property
    def succeeded(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> Dict[str, object]:
        return {
            "mode": self.mode,
            "status": self.status,
            "extracted": self.extracted,
            "transformed": self.transformed,
            "loaded": self.loaded,
            "skipped": self.skipped,
            "errors": self.errors,
            "duplicates": self.duplicates,
            "duration_seconds": round(self.duration_seconds, 3),
            "final_counts": dict(self.final_counts),
            "error_message": self.error_message,
        }


def log_summary(summary: PipelineSummary) -> None:
    """Log the run summary with all metrics."""
    logger.info("=" * 60)
    logger.info(f"ETL Pipeline Summary ({summary.mode}): {summary.status}")
    logger.info("=" * 60)
    logger.info(f"Duration: {summary.duration_seconds:.2f} seconds")
    logger.info(f"Extracted:   {summary.extracted} rows")
    logger.info(f"Transformed: {summary.transformed} rows")
    logger.info(f"Loaded:      {summary.loaded} rows")
    logger.info(f"Skipped:     {summary.skipped} rows")
    logger.info(f"Errors:      {summary.errors}")

    if summary.extracted > 0:
        logger.info(f"Data validity rate: {summary.validity_rate:.2f}%")
        logger.info(f"Error rate: {summary.error_rate:.2f}%")
        logger.info(f"Duplicate rate: {summary.duplicate_rate:.2f}%")

    if summary.final_counts:
        logger.info(
            f"Final counts - Students: {summary.final_counts.get('students', 0)}, "
            f"Enrollments: {summary.final_counts.get('enrollments', 0)}"
        )
    if summary.error_message:
        logger.error(f"Run error: {summary.error_message}")


class RejectionLog:
    """Append-only collection of rejection records for one run."""

    def __init__(self):
        self._records: List[RejectionRecord] = []

    def extend(self, rejections: Iterable[RejectionRecord]) -> None:
        self._records.extend(rejections)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    def count_by_code(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for record in self._records:
            counts[record.code] = counts.get(record.code, 0) + 1
        return counts

    def write(self, path: str) -> int:
        """
        Write the log as JSON lines.

        Returns:
            Number of lines written
        """
        if not self._records:
            logger.info("No rejections to write")
            return 0

        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(path, "w", encoding="utf-8") as handle:
            for record in self._records:
                handle.write(json.dumps(record.to_dict(), default=str) + "\n")

        logger.info(f"Wrote {len(self._records)} rejections to {path}")
        return len(self._records)

"""
Reference Lookups

Reads reference data from the store into an explicit context object owned
by a single pipeline run.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Set

from db.store import RegistryStore

logger = logging.getLogger(__name__)


@dataclass
class LookupContext:
    """
    Reference data for one run.

    ``students`` stays None until it is fetched, so an enrollment pass that
    runs before the post-load refresh fails loudly instead of orphaning
    every row.
    """
    departments: Dict[str, int] = field(default_factory=dict)
    courses: Set[str] = field(default_factory=set)
    students: Optional[Dict[str, int]] = None


class LookupBuilder:
    """Fetches lookups from the store, one round trip per lookup."""

    def __init__(self, store: RegistryStore):
        self.store = store

    def build(self) -> LookupContext:
        """
        Load departments and courses.

        Raises:
            Exception: Any store failure; without lookups nothing downstream can run
        """
        departments = self.store.departments()
        courses = self.store.course_ids()
        logger.info(f"Reference data ready: {len(departments)} departments, {len(courses)} courses")
        return LookupContext(departments=dict(departments), courses=set(courses))

    def refresh_students(self, context: LookupContext) -> LookupContext:
        """
        Re-read the student lookup.

        Must run after the student load so that enrollments can reference
        students inserted in the same run.
        """
        context.students = dict(self.store.students())
        logger.info(f"Student lookup refreshed: {len(context.students)} students")
        return context

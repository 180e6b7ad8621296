"""
Sync Statistics

Running counters for one synchronization run.
"""

import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional

from project_sync.core.enums import SyncOutcomeType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncOutcome:
    """Result of syncing one resource"""
    key: Optional[str]
    status: SyncOutcomeType
    reason: Optional[str] = None

    @classmethod
    def created(cls, key: str) -> "SyncOutcome":
        return cls(key, SyncOutcomeType.CREATED)

    @classmethod
    def updated(cls, key: str) -> "SyncOutcome":
        return cls(key, SyncOutcomeType.UPDATED)

    @classmethod
    def unchanged(cls, key: str) -> "SyncOutcome":
        return cls(key, SyncOutcomeType.UNCHANGED)

    @classmethod
    def failed(cls, key: Optional[str], reason: str) -> "SyncOutcome":
        return cls(key, SyncOutcomeType.FAILED, reason)

    @classmethod
    def skipped(cls, key: Optional[str], reason: str) -> "SyncOutcome":
        return cls(key, SyncOutcomeType.SKIPPED, reason)


class SyncStatistics:
    """
    Aggregates outcome counts plus elapsed time for one run.

    Owned by a single run; report it (report_message / as_dict) and drop it
    when the run ends.
    """

    def __init__(self, resource_type: str):
        self.resource_type = resource_type
        self.counts: Dict[SyncOutcomeType, int] = {outcome: 0 for outcome in SyncOutcomeType}
        self._started = time.monotonic()
        self._finished: Optional[float] = None

    def record(self, outcome: SyncOutcome):
        self.counts[outcome.status] += 1

    def finish(self):
        if self._finished is None:
            self._finished = time.monotonic()

    @property
    def processed(self) -> int:
        return sum(self.counts.values())

    @property
    def created(self) -> int:
        return self.counts[SyncOutcomeType.CREATED]

    @property
    def updated(self) -> int:
        return self.counts[SyncOutcomeType.UPDATED]

    @property
    def unchanged(self) -> int:
        return self.counts[SyncOutcomeType.UNCHANGED]

    @property
    def failed(self) -> int:
        return self.counts[SyncOutcomeType.FAILED]

    @property
    def skipped(self) -> int:
        return self.counts[SyncOutcomeType.SKIPPED]

    @property
    def duration_seconds(self) -> float:
        end = self._finished if self._finished is not None else time.monotonic()
        return end - self._started

    def as_dict(self) -> Dict[str, int]:
        summary = {outcome.value: count for outcome, count in self.counts.items()}
        summary["processed"] = self.processed
        summary["duration_ms"] = int(self.duration_seconds * 1000)
        return summary

    def report_message(self) -> str:
        return (
            f"Summary: {self.processed} {self.resource_type} were processed in total "
            f"({self.created} created, {self.updated} updated, {self.unchanged} unchanged, "
            f"{self.skipped} skipped and {self.failed} failed to sync)."
        )

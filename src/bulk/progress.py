"""Live progress of a batch run.

Accounting invariant: ``success_count + fail_count`` always equals the number
of items that reached a terminal outcome, and each item contributes exactly
one terminal outcome. Items never started because the run was cancelled are
counted as skipped, not as failures.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from shared.errors import ConflictError


class ItemStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class ItemOutcome:
    index: int
    item: Any
    status: ItemStatus
    message: str = ""
    attempts: int = 0
    result: Any = None


@dataclass
class BatchProgress:
    total: int
    current: int = 0
    success_count: int = 0
    fail_count: int = 0
    skipped_count: int = 0
    batches_processed: int = 0
    cancelled: bool = False
    details: list[ItemOutcome] = field(default_factory=list)
    _settled: set[int] = field(default_factory=set, repr=False)

    @property
    def completed(self) -> int:
        return self.success_count + self.fail_count

    @property
    def is_finished(self) -> bool:
        return self.completed + self.skipped_count == self.total

    def is_settled(self, index: int) -> bool:
        return index in self._settled

    def record(self, outcome: ItemOutcome) -> None:
        if outcome.index in self._settled:
            raise ConflictError(f"Item {outcome.index} already reached a terminal outcome")
        self._settled.add(outcome.index)
        if outcome.status is ItemStatus.SUCCESS:
            self.success_count += 1
        elif outcome.status is ItemStatus.FAILED:
            self.fail_count += 1
        else:
            self.skipped_count += 1
        self.details.append(outcome)

    def failed_items(self) -> list:
        """Inputs that failed, in input order, ready to be queued again."""
        failed = [d for d in self.details if d.status is ItemStatus.FAILED]
        return [d.item for d in sorted(failed, key=lambda d: d.index)]

    def snapshot(self) -> "BatchProgress":
        return BatchProgress(
            total=self.total,
            current=self.current,
            success_count=self.success_count,
            fail_count=self.fail_count,
            skipped_count=self.skipped_count,
            batches_processed=self.batches_processed,
            cancelled=self.cancelled,
            details=list(self.details),
            _settled=set(self._settled),
        )

    def to_dict(self) -> dict:
        return {
            "current": self.current,
            "total": self.total,
            "successCount": self.success_count,
            "failCount": self.fail_count,
            "skippedCount": self.skipped_count,
            "details": [
                {"index": d.index, "status": d.status.value, "message": d.message, "attempts": d.attempts}
                for d in self.details
            ],
        }

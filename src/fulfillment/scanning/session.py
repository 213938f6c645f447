"""Fulfillment session — per-order scanning state.

One session exists per order being scanned. It exclusively owns the set of
codes already consumed, the line -> unit bindings and the append-only scan
history. Nothing outside the session mutates that state; the scan resolver
drives it one scan at a time under ``session.lock``.

Completion gate:
    is_complete() is true iff every order line has exactly one consumed unit.
"""

import asyncio
import os
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from shared.errors import ConflictError, NotFoundError
from shared.orders import Order, OrderLine

DEFAULT_HISTORY_LIMIT = 50


def history_limit() -> int:
    return int(os.environ.get("SCAN_HISTORY_LIMIT", DEFAULT_HISTORY_LIMIT))


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------
class ScanOutcomeKind(Enum):
    SUCCESS = "success"
    DUPLICATE = "duplicate"
    NO_MATCH = "no_match"
    FATAL = "fatal"


class ScanSeverity(Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class ScanOutcome:
    """Result of one submitted scan."""

    kind: ScanOutcomeKind
    message: str
    severity: ScanSeverity
    product_name: str | None = None
    order_item_id: str | None = None

    @classmethod
    def success(cls, product_name: str, order_item_id: str, message: str) -> "ScanOutcome":
        return cls(ScanOutcomeKind.SUCCESS, message, ScanSeverity.SUCCESS, product_name, order_item_id)

    @classmethod
    def duplicate(cls, message: str = "Duplicate scan") -> "ScanOutcome":
        return cls(ScanOutcomeKind.DUPLICATE, message, ScanSeverity.WARNING)

    @classmethod
    def no_match(cls, message: str, severity: ScanSeverity = ScanSeverity.ERROR) -> "ScanOutcome":
        return cls(ScanOutcomeKind.NO_MATCH, message, severity)

    @classmethod
    def fatal(cls, reason: str) -> "ScanOutcome":
        return cls(ScanOutcomeKind.FATAL, reason, ScanSeverity.ERROR)


@dataclass(frozen=True)
class ScanHistoryEntry:
    """Immutable audit record of a single scan."""

    code: str
    outcome: ScanOutcomeKind
    severity: ScanSeverity
    message: str
    timestamp: datetime
    product_name: str | None = None


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------
class FulfillmentSession:
    def __init__(self, order: Order):
        self.order_id = order.id
        self.order_number = order.order_number
        self._items: tuple[OrderLine, ...] = order.items
        # Lines that were already scanned before this session opened
        self._consumed: dict[str, str] = {i.id: i.consumed_unit for i in order.items if i.consumed_unit}
        self._history: list[ScanHistoryEntry] = []
        self.closed = False
        self.opened_at = datetime.now(UTC)
        self.lock = asyncio.Lock()

    @property
    def items(self) -> tuple[OrderLine, ...]:
        return self._items

    @property
    def consumed_units(self) -> dict[str, str]:
        return dict(self._consumed)

    @property
    def history(self) -> tuple[ScanHistoryEntry, ...]:
        return tuple(self._history)

    def is_scanned(self, code: str) -> bool:
        return code in self._consumed.values()

    def unresolved_items(self) -> list[OrderLine]:
        """Lines without a consumed unit, in order-line order."""
        return [item for item in self._items if item.id not in self._consumed]

    def is_complete(self) -> bool:
        return all(item.id in self._consumed for item in self._items)

    def progress(self) -> dict:
        total = len(self._items)
        fulfilled = sum(1 for item in self._items if item.id in self._consumed)
        return {
            "fulfilled_items": fulfilled,
            "total_items": total,
            "pending_items": total - fulfilled,
            "percentage": round(fulfilled / total * 100, 2) if total else 0.0,
            "is_complete": self.is_complete(),
        }

    def consume(self, order_item_id: str, code: str) -> None:
        """Bind ``code`` to a line. A code binds to one line, a line to one code."""
        if not any(item.id == order_item_id for item in self._items):
            raise NotFoundError(f"Order item {order_item_id} is not part of order {self.order_number}")
        if code in self._consumed.values():
            raise ConflictError(f"Unit {code} is already consumed in this order")
        if order_item_id in self._consumed:
            raise ConflictError(f"Order item {order_item_id} already has a consumed unit")
        self._consumed[order_item_id] = code

    def record(self, code: str, outcome: ScanOutcome) -> ScanHistoryEntry:
        entry = ScanHistoryEntry(
            code=code,
            outcome=outcome.kind,
            severity=outcome.severity,
            message=outcome.message,
            timestamp=datetime.now(UTC),
            product_name=outcome.product_name,
        )
        self._history.append(entry)
        return entry

    def recent(self, limit: int | None = None) -> list[ScanHistoryEntry]:
        """Newest-first view of the history for display."""
        limit = history_limit() if limit is None else limit
        return list(reversed(self._history))[:limit]

    def history_summary(self) -> dict:
        return {severity.value: sum(1 for e in self._history if e.severity == severity) for severity in ScanSeverity}

    def close(self) -> None:
        self.closed = True

"""Discriminated result returned by every remote collaborator call.

Adapters never raise for business outcomes: they return ``RemoteResult.ok``
with the payload or ``RemoteResult.err`` with a machine-checkable kind and a
human-readable message. Callers turn an error into the matching exception
from ``shared.errors`` with ``unwrap()``.
"""

from dataclasses import dataclass, field
from typing import Any

from shared.errors import ErrorKind, error_for


@dataclass(frozen=True)
class RemoteResult:
    """Outcome of a single remote call."""

    success: bool
    data: dict[str, Any] = field(default_factory=dict)
    error_kind: ErrorKind | None = None
    message: str | None = None

    @classmethod
    def ok(cls, data: dict[str, Any] | None = None) -> "RemoteResult":
        return cls(success=True, data=data or {})

    @classmethod
    def err(cls, kind: ErrorKind | str, message: str) -> "RemoteResult":
        return cls(success=False, error_kind=ErrorKind(kind), message=message)

    def unwrap(self) -> dict[str, Any]:
        """Return the payload, or raise the classified error."""
        if self.success:
            return self.data
        raise error_for(self.error_kind or ErrorKind.BUSINESS_RULE, self.message or "Remote call failed")

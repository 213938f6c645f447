"""Error taxonomy shared by every bounded context.

Each error carries a machine-checkable ``kind`` so that callers (and remote
adapters) can classify failures without parsing messages:

    ValidationError         malformed or incomplete input
    NotFoundError           the referenced record or unit does not exist
    ConflictError           duplicate / already consumed / already returned
    MismatchError           recoverable: the unit belongs to a different line
    RateLimitError          retryable with backoff
    TransientNetworkError   retryable
    TerminalBusinessError   state-machine guard violation, balance exceeded

``MismatchError`` is absorbed by the scan resolver and ``RateLimitError`` /
``TransientNetworkError`` by the batch runner. Everything else propagates.
"""

from enum import Enum


class ErrorKind(Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    ALREADY_CONSUMED = "already_consumed"
    PRODUCT_MISMATCH = "product_mismatch"
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    BUSINESS_RULE = "business_rule"


class RetailOpsError(Exception):
    """Base class for every classified failure."""

    kind = ErrorKind.BUSINESS_RULE

    def __init__(self, message: str, kind: ErrorKind | None = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message}


class ValidationError(RetailOpsError):
    kind = ErrorKind.VALIDATION


class NotFoundError(RetailOpsError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(RetailOpsError):
    kind = ErrorKind.ALREADY_CONSUMED


class MismatchError(RetailOpsError):
    kind = ErrorKind.PRODUCT_MISMATCH


class RateLimitError(RetailOpsError):
    kind = ErrorKind.RATE_LIMITED


class TransientNetworkError(RetailOpsError):
    kind = ErrorKind.TRANSIENT


class TerminalBusinessError(RetailOpsError):
    kind = ErrorKind.BUSINESS_RULE


_ERRORS_BY_KIND = {
    ErrorKind.VALIDATION: ValidationError,
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.ALREADY_CONSUMED: ConflictError,
    ErrorKind.PRODUCT_MISMATCH: MismatchError,
    ErrorKind.RATE_LIMITED: RateLimitError,
    ErrorKind.TRANSIENT: TransientNetworkError,
    ErrorKind.BUSINESS_RULE: TerminalBusinessError,
}


def error_for(kind: ErrorKind | str, message: str) -> RetailOpsError:
    """Build the exception that corresponds to a remote error kind."""
    kind = ErrorKind(kind)
    return _ERRORS_BY_KIND[kind](message)


def is_retryable(exc: BaseException) -> bool:
    """Rate limits and transient network failures may be retried."""
    return isinstance(exc, (RateLimitError, TransientNetworkError))


class ExchangeAborted(TerminalBusinessError):
    """A step of an exchange saga failed; earlier steps stay completed."""

    def __init__(self, exchange_id: str, step: str, message: str):
        super().__init__(f"Exchange {exchange_id} aborted at {step}: {message}")
        self.exchange_id = exchange_id
        self.step = step
        self.reason = message

    def to_dict(self) -> dict:
        return {**super().to_dict(), "exchange_id": self.exchange_id, "step": self.step}

"""Batch execution policies.

A policy fixes how a bulk operation is paced against the remote system:
batch size, worker count inside a batch, delays between items and between
batches, and how rate-limited items are retried.
"""

import os
from dataclasses import dataclass, fields, replace

from shared.errors import ValidationError


@dataclass(frozen=True)
class BatchPolicy:
    batch_size: int = 10
    worker_count: int = 1
    item_delay: float = 0.0
    batch_delay: float = 0.0
    max_retries: int = 0
    backoff_factor: float = 0.0

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValidationError("batch_size must be at least 1")
        if self.worker_count < 1:
            raise ValidationError("worker_count must be at least 1")
        if min(self.item_delay, self.batch_delay, self.backoff_factor) < 0 or self.max_retries < 0:
            raise ValidationError("delays, retries and backoff must not be negative")

    @property
    def is_sequential(self) -> bool:
        return self.worker_count == 1

    def backoff_for(self, attempt: int) -> float:
        """Linear backoff: the n-th retry waits ``backoff_factor * n`` seconds."""
        return self.backoff_factor * attempt

    def from_env(self, prefix: str) -> "BatchPolicy":
        """Overlay ``<PREFIX>_<FIELD>`` environment variables onto this policy."""
        overrides = {}
        for f in fields(self):
            raw = os.environ.get(f"{prefix.upper()}_{f.name.upper()}")
            if raw is not None:
                overrides[f.name] = int(raw) if f.type in (int, "int") else float(raw)
        return replace(self, **overrides)


# Bulk printing: one document at a time with a fixed pause for the spooler
SEQUENTIAL_PRINT = BatchPolicy(batch_size=50, worker_count=1, item_delay=0.65)

# Bulk courier dispatch: bounded worker pool, no retry
COURIER_DISPATCH = BatchPolicy(batch_size=25, worker_count=5, item_delay=0.25, batch_delay=1.0)

# Bulk variant creation: sequential, retried on rate limiting
VARIANT_CREATION = BatchPolicy(batch_size=10, worker_count=1, batch_delay=0.5, max_retries=3, backoff_factor=0.8)

"""Process-wide asyncio locks keyed by record id.

Every service that checks an invariant spanning several records (units
claimed by returns of one order, refunds drawn from one return) takes the
lock for that key from a shared registry, so separate service instances
serialize on the same lock.

An ``asyncio.Lock`` belongs to the event loop it is first used on, so locks
are kept per running loop.
"""

import asyncio
import weakref


class KeyedLocks:
    def __init__(self, name: str):
        self.name = name
        self._locks: weakref.WeakKeyDictionary = weakref.WeakKeyDictionary()

    def for_key(self, key) -> asyncio.Lock:
        per_loop = self._locks.setdefault(asyncio.get_running_loop(), {})
        lock = per_loop.get(str(key))
        if lock is None:
            lock = per_loop[str(key)] = asyncio.Lock()
        return lock

    def __repr__(self) -> str:
        return f"KeyedLocks({self.name!r})"


# Returns created for one order
ORDER_RETURN_LOCKS = KeyedLocks("order-returns")

# Refunds drawn from one return
RETURN_REFUND_LOCKS = KeyedLocks("return-refunds")

"""Aftersales backend abstraction — pluggable system of record for returns, refunds and orders."""

import os

_backend_instance = None


def get_backend():
    """Return the configured aftersales backend (singleton).

    Uses FakeAftersalesBackend by default. In production, configure via
    AFTERSALES_BACKEND environment variable.
    """
    global _backend_instance
    if _backend_instance is None:
        adapter = os.environ.get("AFTERSALES_BACKEND", "fake")
        if adapter == "fake":
            from aftersales.backend.fake_adapter import FakeAftersalesBackend

            _backend_instance = FakeAftersalesBackend()
        else:
            raise ValueError(f"Unknown aftersales backend: {adapter}")
    return _backend_instance


def set_backend(backend) -> None:
    global _backend_instance
    _backend_instance = backend


def reset_backend():
    """Reset the backend singleton (useful for testing)."""
    global _backend_instance
    _backend_instance = None

"""Assignment adapter abstraction — pluggable remote fulfillment service."""

import os

_assignment_instance = None


def get_assignment_service():
    """Return the configured assignment adapter (singleton).

    Uses FakeAssignmentService by default. In production, configure via
    ASSIGNMENT_ADAPTER environment variable.
    """
    global _assignment_instance
    if _assignment_instance is None:
        adapter = os.environ.get("ASSIGNMENT_ADAPTER", "fake")
        if adapter == "fake":
            from fulfillment.assignment.fake_adapter import FakeAssignmentService

            _assignment_instance = FakeAssignmentService()
        else:
            raise ValueError(f"Unknown assignment adapter: {adapter}")
    return _assignment_instance


def set_assignment_service(service) -> None:
    """Override the active assignment adapter (useful for tests)."""
    global _assignment_instance
    _assignment_instance = service


def reset_assignment_service():
    """Reset the assignment singleton (useful for testing)."""
    global _assignment_instance
    _assignment_instance = None

"""Bulk adapter abstraction — pluggable courier, printer and catalogue integrations."""

import os

_courier_instance = None
_printer_instance = None
_catalogue_instance = None


def get_courier():
    """Return the configured courier adapter (singleton).

    Uses FakeCourier by default. In production, configure via
    COURIER_ADAPTER environment variable.
    """
    global _courier_instance
    if _courier_instance is None:
        adapter = os.environ.get("COURIER_ADAPTER", "fake")
        if adapter == "fake":
            from bulk.adapters.fake_adapter import FakeCourier

            _courier_instance = FakeCourier()
        else:
            raise ValueError(f"Unknown courier adapter: {adapter}")
    return _courier_instance


def get_printer():
    """Return the configured printer adapter (singleton), set by PRINTER_ADAPTER."""
    global _printer_instance
    if _printer_instance is None:
        adapter = os.environ.get("PRINTER_ADAPTER", "fake")
        if adapter == "fake":
            from bulk.adapters.fake_adapter import FakePrinter

            _printer_instance = FakePrinter()
        else:
            raise ValueError(f"Unknown printer adapter: {adapter}")
    return _printer_instance


def get_catalogue():
    """Return the configured catalogue adapter (singleton), set by CATALOGUE_ADAPTER."""
    global _catalogue_instance
    if _catalogue_instance is None:
        adapter = os.environ.get("CATALOGUE_ADAPTER", "fake")
        if adapter == "fake":
            from bulk.adapters.fake_adapter import FakeCatalogue

            _catalogue_instance = FakeCatalogue()
        else:
            raise ValueError(f"Unknown catalogue adapter: {adapter}")
    return _catalogue_instance


def reset_adapters():
    """Reset every bulk adapter singleton (useful for testing)."""
    global _courier_instance, _printer_instance, _catalogue_instance
    _courier_instance = None
    _printer_instance = None
    _catalogue_instance = None

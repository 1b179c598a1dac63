"""Failure types surfaced to callers of the scanner."""

from __future__ import annotations


class ScanError(RuntimeError):
    """Base class for failures that abort an API scan."""


class ResolutionError(ScanError):
    """Raised when a classpath entry, scan target or class file cannot be read."""


class ReflectiveAccessError(ScanError):
    """Raised when language metadata on a class cannot be interpreted."""


class OutputError(ScanError, OSError):
    """Raised when an API file cannot be written."""


__all__ = ["OutputError", "ReflectiveAccessError", "ResolutionError", "ScanError"]

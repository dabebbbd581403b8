# twist_core/errors.py
from __future__ import annotations


class AnalysisError(Exception):
    """Base class for everything the analysis engine raises on purpose."""


class ValidationError(AnalysisError, ValueError):
    """Bad input: always attributable to the caller."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class NumericalError(AnalysisError, RuntimeError):
    """The input is well-formed but the system cannot be analyzed."""

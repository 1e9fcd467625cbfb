"""
Error types raised by the provmath pipeline.

Every stage raises a subclass of ProvmathError. The pipeline records the
name of the failing stage on the exception before re-raising it.
"""

from typing import Optional


class ProvmathError(Exception):
    """
    Base class for all provmath errors.
    """

    def __init__(self, message: str, stage: Optional[str] = None):
        """
        Initialize the error.

        Args:
            message: Human-readable reason
            stage: Pipeline stage that detected the error, if known
        """
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class MalformedInputError(ProvmathError):
    """An input row or column could not be parsed or is missing."""


class DivisionByZeroError(ProvmathError):
    """A derived ratio has a zero divisor in at least one row."""


class DegenerateColumnError(ProvmathError):
    """A column fed to standardization has zero variance."""


class NonConvergenceError(ProvmathError):
    """An iterative solver exhausted its iteration budget."""


class EmptyClusterError(ProvmathError):
    """A k-means centroid ended an iteration with no assigned points."""


class InvalidParameterError(ProvmathError):
    """A parameter is outside its allowed range."""

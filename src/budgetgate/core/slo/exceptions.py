"""
Error taxonomy for error-budget evaluation.

Configuration problems fail at load time; data problems fail the
computation that hit them and are never turned into a status.
"""

from datetime import timedelta
from typing import Optional


class SLOEngineError(Exception):
    """Base class for all engine errors."""

    pass


class ConfigurationError(SLOEngineError):
    """Raised when an SLO definition or decision matrix is invalid."""

    pass


class InsufficientDataError(SLOEngineError):
    """Raised when a required window contains zero samples."""

    def __init__(self, service: str, window: Optional[timedelta] = None):
        self.service = service
        self.window = window
        if window is not None:
            message = f"No samples for service '{service}' in the last {window}"
        else:
            message = f"No samples for service '{service}'"
        super().__init__(message)


class DataUnavailableError(SLOEngineError):
    """Raised when the SLI source fails or times out."""

    pass


class EvaluationInProgressError(SLOEngineError):
    """Raised when a tick is requested while another is still running."""

    pass


class UnknownServiceError(SLOEngineError):
    """Raised when no SLO is configured for the requested service."""

    pass

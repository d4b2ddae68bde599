"""
Custom exceptions for the TrueAudio spectral quality engine.

This module defines a hierarchy of exceptions for the structural error
conditions the engine can hit. Numeric edge cases (silence, empty peak
lists) are absorbed by the pipeline and never raise.
"""

from typing import Any, Optional


class AnalysisError(Exception):
    """Base exception for all analysis errors."""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class InsufficientDataError(AnalysisError):
    """Raised when a buffer is empty or too short to form an analysis window."""

    def __init__(self, message: str, frames: Optional[int] = None):
        super().__init__(message, details={"frames": frames})
        self.frames = frames


class DecodeError(AnalysisError):
    """Raised when the engine is not handed valid PCM."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message, details={"source": source})
        self.source = source


class ConfigurationError(AnalysisError):
    """Raised when configuration is invalid or contains unknown options."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message)
        self.config_key = config_key
        self.details = {"config_key": config_key}

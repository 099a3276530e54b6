"""
Exception hierarchy for looplib.

Every error carries an optional context dict so callers can report the
offending values without re-deriving them.
"""

from typing import Dict, Any, Optional


class LooplibError(Exception):
    """Base exception for all looplib errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        """
        Initialize exception with message and optional context.

        Args:
            message: Human-readable error description
            context: Additional diagnostic information (file paths, values, etc.)
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Format exception with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


# Audio Errors

class AudioError(LooplibError):
    """Base class for audio-related errors."""
    pass


class EmptyBuffer(AudioError):
    """Raised when an operation needs samples and the buffer has none."""
    pass


# Configuration Errors

class ConfigurationError(LooplibError):
    """Base class for configuration-related errors."""
    pass


class InvalidParameter(ConfigurationError):
    """Raised when a parameter lies outside its valid domain."""
    pass


# Processing Errors

class ProcessingError(LooplibError):
    """Base class for signal processing errors."""
    pass


class UnsupportedAlgorithm(ProcessingError):
    """
    Raised when a loop or resample algorithm variant is not implemented.

    This is a programming error; it is never recovered from internally.
    """
    pass


# Filesystem Errors

class FilesystemError(LooplibError):
    """Base class for filesystem-related errors."""
    pass


class DiskFullError(FilesystemError):
    """Raised when the disk is full."""
    pass


class PermissionError(FilesystemError):
    """Raised when filesystem permissions (or the export root) prevent a write."""
    pass

"""
Base exceptions for Flow Replay.
"""

from typing import Any, Dict, Optional


class FlowReplayError(Exception):
    """
    Root of every error raised by the recorder, the player and the stores.

    ``message`` is what users see (CLI output, ``error`` of a failed
    response); ``details`` carries context for logs. Details whose value
    is None are dropped.

    Attributes:
        message: Human-readable error message
        details: Extra context such as a selector, URL or flow id
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = {k: v for k, v in (details or {}).items() if v is not None}

    def __str__(self) -> str:
        if not self.details:
            return self.message
        context = ", ".join(f"{key}={value!r}" for key, value in self.details.items())
        return f"{self.message} ({context})"


class ConfigurationError(FlowReplayError):
    """
    Invalid settings.

    Raised for missing or malformed config files and values that fail
    validation.
    """
    pass


class InitializationError(FlowReplayError):
    """A backend could not start, e.g. the browser failed to launch."""
    pass

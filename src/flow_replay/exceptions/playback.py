"""
Playback exceptions.
"""

from flow_replay.exceptions.base import FlowReplayError


class PlaybackError(FlowReplayError):
    """Base exception for playback session errors."""
    pass


class FlowNotFoundError(PlaybackError):
    """
    The requested flow does not exist in the store.
    """
    
    def __init__(self, message: str, flow_id: str):
        super().__init__(message, {"flow_id": flow_id})
        self.flow_id = flow_id


class NavigationTimeoutError(PlaybackError):
    """
    The surface never became interactive after a navigation.
    
    Aborts the current playback session.
    """
    
    def __init__(self, message: str, url: str | None = None, timeout_ms: int | None = None):
        super().__init__(message, {"url": url, "timeout_ms": timeout_ms})
        self.url = url
        self.timeout_ms = timeout_ms


class SessionError(PlaybackError):
    """
    A session operation was requested in the wrong state.
    
    Raised, for example, when stopping a recording that was never started.
    """
    pass

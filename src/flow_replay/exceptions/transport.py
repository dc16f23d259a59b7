"""
Transport exceptions - delivery of requests to the page agent.
"""

from flow_replay.exceptions.base import FlowReplayError


class TransportError(FlowReplayError):
    """
    Base exception for request delivery errors.
    
    Attributes:
        request_type: Type of the request that could not be delivered
    """
    
    def __init__(self, message: str, request_type: str | None = None, details: dict | None = None):
        merged = {"request_type": request_type}
        if details:
            merged.update(details)
        super().__init__(message, merged)
        self.request_type = request_type


class AgentUnavailableError(TransportError):
    """
    The page agent is not reachable yet.
    
    Typical right after a navigation, before the new document is
    interactive. Callers retry.
    """
    pass


class DestinationClosedError(TransportError):
    """
    The destination is confirmed unreachable (surface closed).
    
    Never retried.
    """
    pass

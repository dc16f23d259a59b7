"""
Simulation exceptions - raised while reproducing user input.
"""

from flow_replay.exceptions.base import FlowReplayError


class SimulationError(FlowReplayError):
    """
    Error while dispatching a simulated action.
    
    Raised when an element cannot take the recorded action, for example
    a select step against an element that is not a selection control.
    The event simulator converts it into a boolean failure.
    """
    
    def __init__(self, message: str, action: str | None = None, reason: str | None = None):
        super().__init__(message, {"action": action, "reason": reason})
        self.action = action
        self.reason = reason

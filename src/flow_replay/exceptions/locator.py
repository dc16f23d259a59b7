"""
Locator exceptions - raised while finding recorded elements.
"""

from flow_replay.exceptions.base import FlowReplayError


class LocatorError(FlowReplayError):
    """Base exception for element location errors."""
    pass


class ElementNotFoundError(LocatorError):
    """
    No resolution strategy found the recorded element.
    
    The resolver itself reports this as a failed resolution; the error
    type exists for callers that want to raise it.
    """
    
    def __init__(self, message: str, selector: str, attempts: int | None = None):
        super().__init__(message, {"selector": selector, "attempts": attempts})
        self.selector = selector
        self.attempts = attempts


class InvalidSelectorError(LocatorError):
    """
    A CSS or XPath expression could not be parsed.
    
    Raised by document backends; resolver strategies treat it as
    "not applicable" and fall through to the next strategy.
    """
    
    def __init__(self, message: str, selector: str):
        super().__init__(message, {"selector": selector})
        self.selector = selector

"""
Storage and import/export exceptions.
"""

from flow_replay.exceptions.base import FlowReplayError


class StorageError(FlowReplayError):
    """
    Error reading or writing the flow store.
    """
    
    def __init__(self, message: str, path: str | None = None):
        super().__init__(message, {"path": path} if path else None)
        self.path = path


class ImportValidationError(FlowReplayError):
    """
    Imported data is malformed.
    
    Raised before any change to persisted flows.
    
    Attributes:
        reason: Short description of what is wrong with the data
    """
    
    def __init__(self, reason: str, details: dict | None = None):
        super().__init__(reason, details)
        self.reason = reason

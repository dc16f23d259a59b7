"""
Agent Interface - Request/response contract with the page-embedded agent.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class MessageType(str, Enum):
    """Request types understood by the page agent and the service."""
    PING = "PING"
    EXECUTE_STEP = "EXECUTE_STEP"
    HIGHLIGHT = "HIGHLIGHT"
    START_RECORDING = "START_RECORDING"
    STOP_RECORDING = "STOP_RECORDING"
    RECORD_STEP = "RECORD_STEP"
    GET_STATE = "GET_STATE"
    START_PLAYBACK = "START_PLAYBACK"
    STOP_PLAYBACK = "STOP_PLAYBACK"
    PAUSE_PLAYBACK = "PAUSE_PLAYBACK"
    RESUME_PLAYBACK = "RESUME_PLAYBACK"
    ADVANCE_PLAYBACK = "ADVANCE_PLAYBACK"
    SET_PLAYBACK_OPTIONS = "SET_PLAYBACK_OPTIONS"


@dataclass
class AgentRequest:
    """
    A request message.
    
    Attributes:
        type: Message type
        payload: Type-specific data, usually an object; START_PLAYBACK may
            carry a bare flow id
    """
    type: MessageType
    payload: Any = field(default_factory=dict)
    
    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "payload": self.payload}
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentRequest":
        return cls(type=MessageType(data["type"]), payload=data.get("payload") or {})


@dataclass
class AgentResponse:
    """
    Response to a request.
    
    Attributes:
        success: Whether the request was carried out
        data: Any returned data
        error: Error message if failed
    """
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    
    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success}
        if self.data is not None:
            result["data"] = self.data
        if self.error is not None:
            result["error"] = self.error
        return result


class IAgentDispatcher(ABC):
    """
    Delivers requests to the agent of the active page.
    """
    
    @abstractmethod
    async def send(self, request: AgentRequest) -> AgentResponse:
        """
        Deliver one request.
        
        Raises:
            AgentUnavailableError: If the agent cannot be reached right now
            DestinationClosedError: If the destination is gone for good
        """
        pass

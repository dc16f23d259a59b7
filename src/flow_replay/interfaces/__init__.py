"""
Interfaces module - Abstract contracts between the engine and its collaborators.
"""

from flow_replay.interfaces.document import (
    BoundingBox,
    ComputedStyle,
    DomEvent,
    EventListener,
    IScope,
    IElement,
    IDocument,
)
from flow_replay.interfaces.surface import ISurface, NavigationHandler
from flow_replay.interfaces.storage import IFlowStore
from flow_replay.interfaces.agent import (
    MessageType,
    AgentRequest,
    AgentResponse,
    IAgentDispatcher,
)

__all__ = [
    "BoundingBox",
    "ComputedStyle",
    "DomEvent",
    "EventListener",
    "IScope",
    "IElement",
    "IDocument",
    "ISurface",
    "NavigationHandler",
    "IFlowStore",
    "MessageType",
    "AgentRequest",
    "AgentResponse",
    "IAgentDispatcher",
]

"""
Exceptions module - Custom exception hierarchy.

This module defines all custom exceptions used throughout Flow Replay,
providing clear error types for the different failure scenarios of
recording, locating, simulating, dispatching and importing.
"""

from flow_replay.exceptions.base import (
    FlowReplayError,
    ConfigurationError,
    InitializationError,
)
from flow_replay.exceptions.locator import (
    LocatorError,
    ElementNotFoundError,
    InvalidSelectorError,
)
from flow_replay.exceptions.simulation import SimulationError
from flow_replay.exceptions.playback import (
    PlaybackError,
    FlowNotFoundError,
    NavigationTimeoutError,
    SessionError,
)
from flow_replay.exceptions.transport import (
    TransportError,
    AgentUnavailableError,
    DestinationClosedError,
)
from flow_replay.exceptions.storage import (
    StorageError,
    ImportValidationError,
)

__all__ = [
    # Base exceptions
    "FlowReplayError",
    "ConfigurationError",
    "InitializationError",
    # Locator exceptions
    "LocatorError",
    "ElementNotFoundError",
    "InvalidSelectorError",
    # Simulation exceptions
    "SimulationError",
    # Playback exceptions
    "PlaybackError",
    "FlowNotFoundError",
    "NavigationTimeoutError",
    "SessionError",
    # Transport exceptions
    "TransportError",
    "AgentUnavailableError",
    "DestinationClosedError",
    # Storage exceptions
    "StorageError",
    "ImportValidationError",
]

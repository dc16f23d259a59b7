"""
Flow Replay - Record user interactions on web pages and replay them.

Captures clicks, text entry, selections, key presses, scrolling and
navigations as a Flow of timed steps described by redundant element
selectors, and replays flows later by re-resolving each target and
synthesizing the corresponding events.

Example:
    >>> from flow_replay import FlowReplayService
    >>> service = FlowReplayService(surface, store)
    >>> await service.handle_message({"type": "START_RECORDING"})
"""

__version__ = "0.1.0"
__author__ = "Suhaib Bin Younis"

# Public API exports
from flow_replay.config.settings import Settings
from flow_replay.models.flow import Flow, RecordedStep, StepType
from flow_replay.registry.registry import ComponentRegistry
from flow_replay import browsers as _browsers  # noqa: F401
from flow_replay import storage as _storage  # noqa: F401
from flow_replay.service import FlowReplayService

__all__ = [
    "Flow",
    "RecordedStep",
    "StepType",
    "FlowReplayService",
    "Settings",
    "ComponentRegistry",
    "__version__",
]

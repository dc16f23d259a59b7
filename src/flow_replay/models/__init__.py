"""
Models module - Flow, step, selector and session state data types.
"""

from flow_replay.models.flow import (
    SHADOW_PATH_KEY,
    SHADOW_PATH_SEPARATOR,
    ELEMENT_STEP_TYPES,
    StepType,
    Point,
    ElementSelector,
    RecordedStep,
    Flow,
)
from flow_replay.models.state import (
    PlaybackOptions,
    PlaybackStatus,
    RecordingState,
    PlaybackState,
)

__all__ = [
    "SHADOW_PATH_KEY",
    "SHADOW_PATH_SEPARATOR",
    "ELEMENT_STEP_TYPES",
    "StepType",
    "Point",
    "ElementSelector",
    "RecordedStep",
    "Flow",
    "PlaybackOptions",
    "PlaybackStatus",
    "RecordingState",
    "PlaybackState",
]

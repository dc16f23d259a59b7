"""
Simulation module - Native-equivalent input event dispatch.
"""

from flow_replay.simulation.event_simulator import EventSimulator, FOCUSABLE_SELECTOR
from flow_replay.simulation.keys import (
    KeyDefinition,
    SPECIAL_KEYS,
    CONTROL_KEYS,
    TEXT_FIELD_CONTROL_KEYS,
    resolve_key,
)

__all__ = [
    "EventSimulator",
    "FOCUSABLE_SELECTOR",
    "KeyDefinition",
    "SPECIAL_KEYS",
    "CONTROL_KEYS",
    "TEXT_FIELD_CONTROL_KEYS",
    "resolve_key",
]

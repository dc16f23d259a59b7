"""
Playback module - Replaying recorded flows.
"""

from flow_replay.playback.scheduler import StepScheduler
from flow_replay.playback.agent import PageAgent
from flow_replay.playback.channel import LocalAgentDispatcher, send_with_retry, retry_config_from_settings
from flow_replay.playback.controller import (
    PlaybackController,
    PlaybackEvent,
    PlaybackSession,
    StepResult,
)

__all__ = [
    "StepScheduler",
    "PageAgent",
    "LocalAgentDispatcher",
    "send_with_retry",
    "retry_config_from_settings",
    "PlaybackController",
    "PlaybackEvent",
    "PlaybackSession",
    "StepResult",
]

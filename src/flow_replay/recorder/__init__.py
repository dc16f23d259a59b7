"""
Recorder module - Capturing user interaction as flows.
"""

from flow_replay.recorder.debounce import KeyedDebouncer
from flow_replay.recorder.capturer import RecordingCapturer, TEXT_INPUT_TYPES
from flow_replay.recorder.session import RecordingController, RecordingSession

__all__ = [
    "KeyedDebouncer",
    "RecordingCapturer",
    "TEXT_INPUT_TYPES",
    "RecordingController",
    "RecordingSession",
]

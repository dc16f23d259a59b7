"""
Session State - Recording and playback state snapshots.

These values describe one active session each. They are owned by the
recording and playback controllers and handed out as snapshots.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from flow_replay.models.flow import RecordedStep

if TYPE_CHECKING:
    from flow_replay.config.settings import PlaybackSettings


@dataclass(frozen=True)
class PlaybackOptions:
    """
    User-facing playback options.
    
    Attributes:
        speed: Pacing multiplier; scales only the delay between steps
        step_by_step: Wait for an explicit advance before each step
        stop_on_error: Halt on the first failed step
        highlight_elements: Outline elements before acting on them
    """
    speed: float = 1.0
    step_by_step: bool = False
    stop_on_error: bool = True
    highlight_elements: bool = True
    
    def __post_init__(self) -> None:
        if self.speed <= 0:
            raise ValueError(f"Playback speed must be positive, got {self.speed}")
    
    @classmethod
    def from_settings(cls, settings: "PlaybackSettings") -> "PlaybackOptions":
        return cls(
            speed=settings.speed,
            step_by_step=settings.step_by_step,
            stop_on_error=settings.stop_on_error,
            highlight_elements=settings.highlight_elements,
        )
    
    def merged(self, **changes: Any) -> "PlaybackOptions":
        """Copy with the non-None changes applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "speed": self.speed,
            "stepByStep": self.step_by_step,
            "stopOnError": self.stop_on_error,
            "highlightElements": self.highlight_elements,
        }
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlaybackOptions":
        defaults = cls()
        return cls(
            speed=float(data.get("speed", defaults.speed)),
            step_by_step=bool(data.get("stepByStep", defaults.step_by_step)),
            stop_on_error=bool(data.get("stopOnError", defaults.stop_on_error)),
            highlight_elements=bool(data.get("highlightElements", defaults.highlight_elements)),
        )


class PlaybackStatus(str, Enum):
    """Derived playback state-machine state."""
    IDLE = "idle"
    NAVIGATING = "navigating"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass
class RecordingState:
    """State of the single recording session."""
    is_recording: bool = False
    current_flow_id: Optional[str] = None
    steps: List[RecordedStep] = field(default_factory=list)
    start_url: Optional[str] = None
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "isRecording": self.is_recording,
            "currentFlowId": self.current_flow_id,
            "steps": [step.to_dict() for step in self.steps],
            "startUrl": self.start_url,
        }


@dataclass
class PlaybackState:
    """State of the single playback session."""
    is_playing: bool = False
    is_paused: bool = False
    is_navigating: bool = False
    current_flow_id: Optional[str] = None
    current_step_index: int = 0
    options: PlaybackOptions = field(default_factory=PlaybackOptions)
    
    @property
    def status(self) -> PlaybackStatus:
        if not self.is_playing:
            return PlaybackStatus.IDLE
        if self.is_paused:
            return PlaybackStatus.PAUSED
        if self.is_navigating:
            return PlaybackStatus.NAVIGATING
        return PlaybackStatus.PLAYING
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "isPlaying": self.is_playing,
            "isPaused": self.is_paused,
            "status": self.status.value,
            "currentFlowId": self.current_flow_id,
            "currentStepIndex": self.current_step_index,
            "options": self.options.to_dict(),
        }

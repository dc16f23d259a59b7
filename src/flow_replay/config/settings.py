"""
Settings - Validated configuration for Flow Replay.

One nested model per component. Bounds are enforced with Field
constraints so a bad YAML value fails at load time, not mid-playback.

Example:
    >>> from flow_replay.config import Settings, load_config
    >>> settings = load_config()
    >>> print(settings.resolver.max_attempts)
    10
"""

from typing import Literal, Optional
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "FLOW_REPLAY__"


def deep_merge(base: dict, updates: dict) -> dict:
    """Merge nested dictionaries into base in place and return it."""
    for key, value in updates.items():
        if isinstance(base.get(key), dict) and isinstance(value, dict):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


class BrowserSettings(BaseModel):
    """
    Browser surface settings.
    
    Attributes:
        engine: Surface backend to use
        headless: Run browser in headless mode
        browser_type: Playwright browser type
        timeout_ms: Default timeout for navigation
        viewport_width: Browser viewport width in pixels
        viewport_height: Browser viewport height in pixels
        slow_mo: Slow down operations by this amount (ms) - useful for debugging
    """
    engine: Literal["playwright", "memory"] = "playwright"
    headless: bool = True
    browser_type: Literal["chromium", "firefox", "webkit"] = "chromium"
    timeout_ms: int = Field(default=30000, ge=1000, le=300000)
    viewport_width: int = Field(default=1280, ge=320, le=3840)
    viewport_height: int = Field(default=720, ge=240, le=2160)
    slow_mo: int = Field(default=0, ge=0, le=5000)


class RecorderSettings(BaseModel):
    """
    Recording capture settings.
    
    Attributes:
        input_debounce_ms: Quiet period before a text value is recorded
        scroll_debounce_ms: Quiet period before a scroll position is evaluated
        scroll_threshold_px: Minimum displacement on either axis to record a scroll
        ui_marker_attribute: Attribute marking the recorder's own UI
    """
    input_debounce_ms: int = Field(default=500, ge=0, le=10000)
    scroll_debounce_ms: int = Field(default=150, ge=0, le=10000)
    scroll_threshold_px: int = Field(default=50, ge=0, le=10000)
    ui_marker_attribute: str = "data-flow-recorder"


class ResolverSettings(BaseModel):
    """
    Element resolution settings.
    
    Attributes:
        max_attempts: Times the whole strategy chain is tried
        interval_ms: Pause between attempts
        max_depth: Ancestor levels used by structural CSS paths
        max_text_length: Longest text recorded as a text matcher
    """
    max_attempts: int = Field(default=10, ge=1, le=100)
    interval_ms: int = Field(default=500, ge=0, le=10000)
    max_depth: int = Field(default=5, ge=1, le=20)
    max_text_length: int = Field(default=100, ge=1, le=1000)


class SimulatorSettings(BaseModel):
    """
    Event simulation settings.
    
    Attributes:
        settle_delay_ms: Pause after scrolling an element into view
        highlight_duration_ms: How long the highlight outline stays
        highlight_outline: CSS outline used for highlighting
    """
    settle_delay_ms: int = Field(default=300, ge=0, le=5000)
    highlight_duration_ms: int = Field(default=500, ge=0, le=10000)
    highlight_outline: str = "3px solid #4CAF50"


class PlaybackSettings(BaseModel):
    """
    Playback pacing and default options.
    
    Attributes:
        speed: Default speed multiplier
        step_by_step: Wait for an explicit advance between steps
        stop_on_error: Halt playback on the first failed step
        highlight_elements: Outline elements before acting on them
        default_step_delay_ms: Delay used when a step recorded none
        min_step_delay_ms: Floor for the scaled delay between steps
        min_navigation_delay_ms: Floor for the delay after a navigation step
        start_delay_ms: Pause between the start page becoming ready and step one
        ready_timeout_ms: Bound on waiting for a page to become interactive
        ready_poll_ms: Poll interval while waiting for a page
    """
    speed: float = Field(default=1.0, ge=0.1, le=10.0)
    step_by_step: bool = False
    stop_on_error: bool = True
    highlight_elements: bool = True
    default_step_delay_ms: int = Field(default=500, ge=0, le=60000)
    min_step_delay_ms: int = Field(default=300, ge=0, le=60000)
    min_navigation_delay_ms: int = Field(default=1000, ge=0, le=60000)
    start_delay_ms: int = Field(default=1000, ge=0, le=60000)
    ready_timeout_ms: int = Field(default=10000, ge=100, le=300000)
    ready_poll_ms: int = Field(default=500, ge=10, le=10000)


class TransportSettings(BaseModel):
    """
    Page agent request delivery settings.
    
    Attributes:
        max_attempts: Delivery attempts per request
        initial_delay_ms: Delay before the first retry
        max_delay_ms: Upper bound on the retry delay
        backoff_multiplier: Multiplier applied after each retry
    """
    max_attempts: int = Field(default=3, ge=1, le=20)
    initial_delay_ms: int = Field(default=1000, ge=0, le=60000)
    max_delay_ms: int = Field(default=5000, ge=0, le=120000)
    backoff_multiplier: float = Field(default=1.5, ge=1.0, le=10.0)


class StorageSettings(BaseModel):
    """
    Flow store settings.
    
    Attributes:
        backend: Store implementation
        path: Location of the JSON store file
        export_dir: Directory for exported files
    """
    backend: Literal["json", "memory"] = "json"
    path: str = "~/.local/share/flow-replay/flows.json"
    export_dir: str = "."


class LoggingSettings(BaseModel):
    """
    Logging configuration.
    
    Attributes:
        level: Log level
        file: Log file path (None for console only)
        json_format: Use JSON format for logs
    """
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    file: Optional[str] = None
    json_format: bool = False


class Settings(BaseSettings):
    """
    Root settings container - single source of truth for all configuration.
    
    Settings are loaded in this priority order (highest to lowest):
    1. Explicit values passed to constructor
    2. Environment variables (prefixed with FLOW_REPLAY__)
    3. Config file (YAML)
    4. Default values
    
    Example:
        >>> settings = Settings()  # Load from env vars
        >>> settings = Settings(playback=PlaybackSettings(speed=2.0))  # Override
    """
    
    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )
    
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    recorder: RecorderSettings = Field(default_factory=RecorderSettings)
    resolver: ResolverSettings = Field(default_factory=ResolverSettings)
    simulator: SimulatorSettings = Field(default_factory=SimulatorSettings)
    playback: PlaybackSettings = Field(default_factory=PlaybackSettings)
    transport: TransportSettings = Field(default_factory=TransportSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    
    debug: bool = False
    
    def merge_with(self, overrides: dict) -> "Settings":
        """
        Create a new Settings instance with overrides applied.
        
        Args:
            overrides: Dictionary of values to override
            
        Returns:
            New Settings instance with overrides applied
        """
        return Settings(**deep_merge(self.model_dump(), overrides))

"""
Configuration module - Timings, backends and defaults for recording and replay.

Every tunable constant of the recorder, resolver, simulator and player
lives here, read from YAML files, environment variables and CLI flags.

Usage:
    from flow_replay.config import get_settings, load_config
    
    # Process-wide settings, loaded on first use
    settings = get_settings()
    
    # Fresh settings with CLI overrides
    settings = load_config(playback={"speed": 2.0})

Environment Variables:
    FLOW_REPLAY__PLAYBACK__SPEED=2
    FLOW_REPLAY__PLAYBACK__STOP_ON_ERROR=false
    FLOW_REPLAY__BROWSER__HEADLESS=false
    FLOW_REPLAY__STORAGE__PATH=./flows.json
"""

from flow_replay.config.settings import (
    Settings,
    BrowserSettings,
    RecorderSettings,
    ResolverSettings,
    SimulatorSettings,
    PlaybackSettings,
    TransportSettings,
    StorageSettings,
    LoggingSettings,
)
from flow_replay.config.loader import ConfigLoader, load_config

_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Settings shared by components built without explicit settings.

    Loaded with load_config() on first call; reset_settings() drops them.
    """
    global _settings
    if _settings is None:
        _settings = load_config()
    return _settings


def reset_settings() -> None:
    """Forget the shared settings so the next get_settings() reloads them."""
    global _settings
    _settings = None


__all__ = [
    "Settings",
    "BrowserSettings",
    "RecorderSettings",
    "ResolverSettings",
    "SimulatorSettings",
    "PlaybackSettings",
    "TransportSettings",
    "StorageSettings",
    "LoggingSettings",
    "ConfigLoader",
    "load_config",
    "get_settings",
    "reset_settings",
]

"""
Config Loader - Load and merge configuration from multiple sources.

Sources, highest priority first:

1. Explicit overrides (CLI flags)
2. ``FLOW_REPLAY__SECTION__KEY`` environment variables, including those
   set by a ``.env`` file
3. A YAML config file: the explicit path, else ``$FLOW_REPLAY_CONFIG``,
   else the first of ``DEFAULT_CONFIG_PATHS`` that exists
4. Field defaults
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from flow_replay.config.settings import ENV_PREFIX, Settings, deep_merge
from flow_replay.exceptions import ConfigurationError

# Names a config file explicitly, like --config
CONFIG_ENV_VAR = "FLOW_REPLAY_CONFIG"


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Nest ``FLOW_REPLAY__PLAYBACK__SPEED=2`` style variables into
    ``{"playback": {"speed": "2"}}``.

    Values stay strings; Settings validation converts them.
    """
    environ = os.environ if environ is None else environ
    nested: Dict[str, Any] = {}
    for key, value in environ.items():
        if not key.upper().startswith(ENV_PREFIX):
            continue
        path = [part.lower() for part in key[len(ENV_PREFIX):].split("__") if part]
        if not path or path[0] not in Settings.model_fields:
            continue
        node = nested
        for part in path[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = node[part] = {}
            node = child
        node[path[-1]] = value
    return nested


class ConfigLoader:
    """
    Configuration loader that merges settings from multiple sources.

    Args:
        config_path: Explicit config file; it must exist
    """

    DEFAULT_CONFIG_PATHS = [
        Path("flow-replay.yaml"),
        Path("flow-replay.yml"),
        Path("config/flow-replay.yaml"),
        Path.home() / ".config" / "flow-replay" / "config.yaml",
    ]

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        self.config_path = Path(config_path).expanduser() if config_path else None

    def find_config_file(self) -> Optional[Path]:
        """
        Find the configuration file to load.

        An explicit path, from the constructor or $FLOW_REPLAY_CONFIG,
        that does not exist is an error; default locations are optional.

        Returns:
            Path to config file, or None if not found
        """
        explicit = self.config_path
        if explicit is None and os.environ.get(CONFIG_ENV_VAR):
            explicit = Path(os.environ[CONFIG_ENV_VAR]).expanduser()

        if explicit is not None:
            if not explicit.exists():
                raise ConfigurationError("Config file not found", {"path": str(explicit)})
            return explicit

        return next((path for path in self.DEFAULT_CONFIG_PATHS if path.exists()), None)

    @staticmethod
    def read_yaml(path: Path) -> Dict[str, Any]:
        """
        Read a YAML config file into a dictionary.

        Raises:
            ConfigurationError: If the file is not valid YAML or not a mapping
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}", {"error": str(e)}) from e
        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping")
        return config

    def load(
        self,
        env_file: Optional[Union[str, Path]] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> Settings:
        """
        Load settings from all sources.

        Args:
            env_file: .env file to read; defaults to ./.env or ./.env.local
            overrides: Values that win over every other source

        Returns:
            Complete Settings instance

        Raises:
            ConfigurationError: On a missing or malformed file, or values
                that fail validation
        """
        if env_file:
            load_dotenv(env_file)
        else:
            local = next((p for p in (Path(".env"), Path(".env.local")) if p.exists()), None)
            if local is not None:
                load_dotenv(local)

        config_file = self.find_config_file()
        values = self.read_yaml(config_file) if config_file else {}
        deep_merge(values, env_overrides())
        deep_merge(values, overrides or {})

        try:
            return Settings(**values)
        except ValidationError as e:
            source = str(config_file) if config_file else "environment"
            raise ConfigurationError(
                "Invalid configuration",
                {"source": source, "errors": e.errors(include_url=False)},
            ) from e


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    env_file: Optional[Union[str, Path]] = None,
    **overrides: Any,
) -> Settings:
    """
    Convenience function to load configuration.

    Args:
        config_path: Optional path to config file
        env_file: Optional path to .env file
        **overrides: Keyword arguments to override settings

    Returns:
        Complete Settings instance

    Example:
        >>> settings = load_config()
        >>> settings = load_config(config_path="flow-replay.yaml")
        >>> settings = load_config(playback={"speed": 2.0})
    """
    return ConfigLoader(config_path).load(env_file=env_file, overrides=overrides)

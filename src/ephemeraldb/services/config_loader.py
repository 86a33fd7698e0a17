"""Configuration loader for ephemeraldb."""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ephemeraldb.constants import CONFIG_ENV_VAR, CONFIG_FILE_NAME
from ephemeraldb.errors import ConfigError


class ConfigLoader:
    """Loads YAML configuration files for container defaults."""

    SUPPORTED_KEYS = {
        "image",
        "database",
        "username",
        "password",
        "container_port",
        "host",
        "name_prefix",
        "data_dir",
        "error_log",
        "log_error_verbosity",
        "ready_timeout_seconds",
        "probe_connect_timeout_seconds",
        "stop_timeout_seconds",
        "command_timeout_seconds",
        "backoff_initial_interval",
        "backoff_multiplier",
        "backoff_max_interval",
        "backoff_jitter",
        "quiet_migrations",
    }

    def __init__(self, environ=None, cwd: Optional[str] = None):
        self.environ = os.environ if environ is None else environ
        self.cwd = cwd

    def resolve_path(self, config_path: Optional[str] = None) -> Optional[str]:
        """Explicit path first, then the environment variable, then the working directory."""
        if config_path:
            return config_path

        env_path = self.environ.get(CONFIG_ENV_VAR)
        if env_path:
            return env_path

        default_path = Path(self.cwd or os.getcwd()) / CONFIG_FILE_NAME
        if default_path.exists():
            return str(default_path)
        return None

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ConfigError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ConfigError(f"Unknown configuration keys: {unknown_list}")

        return parsed

    def discover(self, config_path: Optional[str] = None) -> Dict[str, Any]:
        return self.load(self.resolve_path(config_path))

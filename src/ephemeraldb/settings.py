"""Runtime settings for a MySQL test container."""

from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional

from ephemeraldb import constants
from ephemeraldb.errors import ConfigError
from ephemeraldb.models import ContainerSpec, Credentials
from ephemeraldb.services.readiness import BackoffPolicy


@dataclass(frozen=True)
class ContainerSettings:
    image: str = constants.MYSQL_IMAGE
    database: str = constants.DEFAULT_DATABASE
    username: str = constants.DEFAULT_USERNAME
    password: str = constants.DEFAULT_PASSWORD
    container_port: str = constants.MYSQL_PORT
    host: str = constants.DEFAULT_HOST
    name_prefix: str = constants.CONTAINER_NAME_PREFIX
    data_dir: str = constants.MYSQL_DATA_DIR
    error_log: str = constants.MYSQL_ERROR_LOG
    log_error_verbosity: int = 3
    ready_timeout_seconds: float = constants.READY_TIMEOUT_SECONDS
    probe_connect_timeout_seconds: int = constants.PROBE_CONNECT_TIMEOUT_SECONDS
    stop_timeout_seconds: int = constants.STOP_TIMEOUT_SECONDS
    command_timeout_seconds: Optional[float] = None
    backoff_initial_interval: float = 0.5
    backoff_multiplier: float = 1.5
    backoff_max_interval: float = 60.0
    backoff_jitter: float = 0.5
    quiet_migrations: bool = True

    _POSITIVE_KEYS = (
        "ready_timeout_seconds",
        "probe_connect_timeout_seconds",
        "backoff_initial_interval",
        "backoff_max_interval",
    )

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "ContainerSettings":
        known = {item.name: item for item in fields(cls)}
        unknown = sorted(set(values) - set(known))
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

        cleaned: Dict[str, Any] = {}
        for key, value in values.items():
            default = getattr(cls, key)
            if value is None:
                if default is not None:
                    raise ConfigError(f"Configuration key '{key}' cannot be null.")
                cleaned[key] = None
                continue
            if isinstance(default, bool):
                if not isinstance(value, bool):
                    raise ConfigError(f"Configuration key '{key}' must be a boolean.")
            elif isinstance(default, (int, float)) or default is None:
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise ConfigError(f"Configuration key '{key}' must be a number.")
                if isinstance(default, int) and not isinstance(default, bool):
                    if isinstance(value, float) and not value.is_integer():
                        raise ConfigError(f"Configuration key '{key}' must be a whole number.")
                    value = int(value)
            elif not isinstance(value, str) or not value:
                raise ConfigError(f"Configuration key '{key}' must be a non-empty string.")
            cleaned[key] = value

        settings = cls(**cleaned)
        settings.validate()
        return settings

    def validate(self):
        for key in self._POSITIVE_KEYS:
            if getattr(self, key) <= 0:
                raise ConfigError(f"Configuration key '{key}' must be positive.")
        if self.stop_timeout_seconds < 0:
            raise ConfigError("Configuration key 'stop_timeout_seconds' cannot be negative.")
        if self.backoff_multiplier < 1:
            raise ConfigError("Configuration key 'backoff_multiplier' must be at least 1.")
        if self.backoff_jitter < 0:
            raise ConfigError("Configuration key 'backoff_jitter' cannot be negative.")
        if "/" not in self.container_port:
            raise ConfigError("Configuration key 'container_port' must look like '3306/tcp'.")

    def credentials(self) -> Credentials:
        return Credentials(username=self.username, password=self.password)

    def backoff_policy(self) -> BackoffPolicy:
        return BackoffPolicy(
            initial_interval=self.backoff_initial_interval,
            multiplier=self.backoff_multiplier,
            max_interval=self.backoff_max_interval,
            max_elapsed=self.ready_timeout_seconds,
            jitter=self.backoff_jitter,
        )

    def container_spec(self) -> ContainerSpec:
        environment = {"MYSQL_DATABASE": self.database}
        if self.username == "root":
            environment["MYSQL_ROOT_PASSWORD"] = self.password
        else:
            environment["MYSQL_RANDOM_ROOT_PASSWORD"] = "yes"
            environment["MYSQL_USER"] = self.username
            environment["MYSQL_PASSWORD"] = self.password

        return ContainerSpec(
            image=self.image,
            environment=environment,
            exposed_ports=(self.container_port,),
            command=(
                f"--log-error={self.error_log}",
                f"--log-error-verbosity={self.log_error_verbosity}",
            ),
            tmpfs=(self.data_dir,),
            name_prefix=self.name_prefix,
        )

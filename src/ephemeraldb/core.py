import logging
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import pymysql
from rich.console import Console
from rich.logging import RichHandler

from .errors import EphemeralDBError, ProvisionError, TeardownWarning
from .models import ConnectionEndpoint, ContainerHandle, ContainerState, MigrationBundle, SchemaState
from .services.command_runner import CommandRunner
from .services.config_loader import ConfigLoader
from .services.docker_runtime import DockerRuntimeService
from .services.image import ImageService
from .services.migrations import MigrationService, load_bundle
from .services.readiness import ReadinessService
from .services.teardown import TeardownService
from .settings import ContainerSettings

default_console = Console()
logger = logging.getLogger("ephemeraldb")


def configure_logging(level: str = "INFO"):
    """Rich log output for callers that do not configure logging themselves."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
    )


class MySQLTestContainer:
    """A disposable MySQL instance with a migrated schema.

    Use it as a context manager so the container is torn down on every
    exit path::

        with MySQLTestContainer() as db:
            uri = db.get_connection_uri()
    """

    def __init__(
        self,
        settings: Optional[ContainerSettings] = None,
        *,
        config_path: Optional[str] = None,
        console: Optional[Console] = None,
        diagnostic_stream=None,
        runner=None,
        bundle: Optional[MigrationBundle] = None,
        connect=pymysql.connect,
        sleep=time.sleep,
    ):
        if settings is None:
            settings = ContainerSettings.from_mapping(ConfigLoader().discover(config_path))
        self.settings = settings
        self.console = console or default_console
        self.diagnostics_console = Console(file=diagnostic_stream) if diagnostic_stream else self.console

        self.command_runner = runner or CommandRunner(
            logger=logger,
            default_timeout=settings.command_timeout_seconds,
        )
        self.image_service = ImageService(logger=logger, console=self.console, run_cmd=self.command_runner)
        self.runtime_service = DockerRuntimeService(
            logger=logger,
            console=self.console,
            run_cmd=self.command_runner,
        )
        self.readiness_service = ReadinessService(
            logger=logger,
            console=self.console,
            policy=settings.backoff_policy(),
            database=settings.database,
            connect_timeout=settings.probe_connect_timeout_seconds,
            connect=connect,
            sleep=sleep,
        )
        self.migration_service = MigrationService(
            logger=logger,
            console=self.console,
            bundle=bundle if bundle is not None else load_bundle(logger=logger),
            database=settings.database,
            quiet=settings.quiet_migrations,
            connect=connect,
            connect_timeout=settings.probe_connect_timeout_seconds,
        )
        self.teardown_service = TeardownService(
            logger=logger,
            console=self.diagnostics_console,
            runtime=self.runtime_service,
            error_log=settings.error_log,
            stop_timeout_seconds=settings.stop_timeout_seconds,
        )

        self._credentials = settings.credentials()
        self._handle: Optional[ContainerHandle] = None
        self._endpoint: Optional[ConnectionEndpoint] = None
        self._schema: Optional[SchemaState] = None
        self._state = ContainerState.PENDING
        self.teardown_warnings: List[TeardownWarning] = []

    def __enter__(self) -> "MySQLTestContainer":
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    @property
    def state(self) -> ContainerState:
        return self._state

    @property
    def handle(self) -> Optional[ContainerHandle]:
        return self._handle

    @property
    def endpoint(self) -> ConnectionEndpoint:
        if self._endpoint is None:
            raise EphemeralDBError(f"Container endpoint is not available in state '{self._state.value}'.")
        return self._endpoint

    def _advance(self, state: ContainerState):
        logger.debug("Container state %s -> %s", self._state.value, state.value)
        self._state = state

    def start(self) -> "MySQLTestContainer":
        if self._state is not ContainerState.PENDING:
            raise EphemeralDBError(f"Container cannot be started from state '{self._state.value}'.")

        settings = self.settings
        self.image_service.ensure_image(settings.image)

        try:
            self._handle = self.runtime_service.provision(settings.container_spec())
        except ProvisionError as exc:
            # A failed start leaves a created container behind.
            self._handle = exc.handle
            if self._handle is not None:
                self._advance(ContainerState.CREATED)
            self.stop()
            raise
        self._advance(ContainerState.CREATED)
        self._advance(ContainerState.STARTED)

        try:
            endpoint = self.runtime_service.resolve_endpoint(
                self._handle,
                settings.container_port,
                host=settings.host,
            )
            self._advance(ContainerState.ENDPOINT_RESOLVED)

            self.readiness_service.wait_ready(endpoint, self._credentials)
            schema = self.migration_service.apply_migrations(endpoint, self._credentials)
            self._advance(ContainerState.READY)
        except BaseException:
            self.stop()
            raise

        self._endpoint = endpoint
        self._schema = schema
        self._advance(ContainerState.IN_USE)
        return self

    run = start

    def stop(self) -> List[TeardownWarning]:
        """Capture diagnostics and stop the container. Safe to call more than once."""
        if self._state is ContainerState.TORN_DOWN:
            return []

        if self._handle is not None:
            self.teardown_warnings = self.teardown_service.teardown(self._handle)
        self._advance(ContainerState.TORN_DOWN)
        return self.teardown_warnings

    def get_connection_uri(self, include_credentials: bool = True) -> str:
        creds = ""
        if include_credentials:
            creds = f"{quote(self._credentials.username, safe='')}:{quote(self._credentials.password, safe='')}@"
        return f"mysql://{creds}{self.endpoint.address}/{self.settings.database}"

    def connection_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``pymysql.connect``."""
        return {
            "host": self.endpoint.host,
            "port": self.endpoint.port,
            "user": self._credentials.username,
            "password": self._credentials.password,
            "database": self.settings.database,
        }

    def get_username(self) -> str:
        return self._credentials.username

    def get_password(self) -> str:
        return self._credentials.password

    def get_database_schema_version(self) -> int:
        if self._schema is None:
            return 0
        return self._schema.version


def run_mysql_test_container(settings: Optional[ContainerSettings] = None, **kwargs) -> MySQLTestContainer:
    """Provision a container and return it ready for use. Call ``stop()`` when done."""
    return MySQLTestContainer(settings, **kwargs).start()

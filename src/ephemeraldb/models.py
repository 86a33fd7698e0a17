"""Shared domain models for ephemeraldb."""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping, Tuple


@dataclass(frozen=True)
class ContainerSpec:
    """Declarative description of the container to provision."""

    image: str
    environment: Mapping[str, str] = field(default_factory=dict)
    exposed_ports: Tuple[str, ...] = ()
    command: Tuple[str, ...] = ()
    tmpfs: Tuple[str, ...] = ()
    name_prefix: str = "container"

    def __post_init__(self):
        object.__setattr__(self, "environment", MappingProxyType(dict(self.environment)))
        object.__setattr__(self, "exposed_ports", tuple(self.exposed_ports))
        object.__setattr__(self, "command", tuple(self.command))
        object.__setattr__(self, "tmpfs", tuple(self.tmpfs))


@dataclass(frozen=True)
class ContainerHandle:
    container_id: str
    name: str


@dataclass(frozen=True)
class ConnectionEndpoint:
    host: str
    port: int

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class SchemaState:
    version: int


@dataclass(frozen=True)
class Migration:
    """One versioned migration script."""

    version: int
    name: str
    sql: str


class MigrationBundle:
    """Ordered collection of migrations with unique versions."""

    def __init__(self, migrations):
        ordered = sorted(migrations, key=lambda migration: migration.version)
        seen = set()
        for migration in ordered:
            if migration.version in seen:
                raise ValueError(f"Duplicate migration version: {migration.version}")
            seen.add(migration.version)
        self._migrations: Tuple[Migration, ...] = tuple(ordered)

    def __iter__(self) -> Iterator[Migration]:
        return iter(self._migrations)

    def __len__(self) -> int:
        return len(self._migrations)

    @property
    def latest_version(self) -> int:
        if not self._migrations:
            return 0
        return self._migrations[-1].version

    def pending(self, current_version: int) -> Tuple[Migration, ...]:
        return tuple(m for m in self._migrations if m.version > current_version)


class ContainerState(str, Enum):
    """Lifecycle of one provisioned instance. Transitions only move forward."""

    PENDING = "pending"
    CREATED = "created"
    STARTED = "started"
    ENDPOINT_RESOLVED = "endpoint_resolved"
    READY = "ready"
    IN_USE = "in_use"
    TORN_DOWN = "torn_down"

"""
ephemeraldb - disposable MySQL databases for integration tests
"""

__version__ = "0.1.0"

from .core import MySQLTestContainer, configure_logging, run_mysql_test_container
from .errors import (
    EndpointNotFoundError,
    EphemeralDBError,
    ImagePullError,
    MigrationError,
    ProvisionError,
    ReadinessTimeoutError,
    TeardownWarning,
)
from .settings import ContainerSettings

__all__ = [
    "ContainerSettings",
    "EndpointNotFoundError",
    "EphemeralDBError",
    "ImagePullError",
    "MigrationError",
    "MySQLTestContainer",
    "ProvisionError",
    "ReadinessTimeoutError",
    "TeardownWarning",
    "configure_logging",
    "run_mysql_test_container",
]

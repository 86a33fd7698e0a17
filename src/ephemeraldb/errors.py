"""Domain errors for ephemeraldb."""

from typing import Optional


class EphemeralDBError(RuntimeError):
    """Raised when the test database cannot be provisioned."""


class ConfigError(EphemeralDBError):
    """Raised when the configuration file or settings are invalid."""


class CommandError(EphemeralDBError):
    """Raised when a container runtime command fails."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class ImagePullError(EphemeralDBError):
    """Raised when the image is neither cached locally nor pullable."""


class ProvisionError(EphemeralDBError):
    """Raised when the container cannot be created or started."""

    def __init__(self, message: str, handle=None):
        super().__init__(message)
        self.handle = handle


class EndpointNotFoundError(EphemeralDBError):
    """Raised when the running container exposes no host port mapping."""


class ReadinessTimeoutError(EphemeralDBError):
    """Raised when the database does not accept connections in time."""


class MigrationError(EphemeralDBError):
    """Raised when the schema migrations cannot be applied."""


class TeardownWarning(UserWarning):
    """Non-fatal teardown problem. Logged and returned, never raised."""

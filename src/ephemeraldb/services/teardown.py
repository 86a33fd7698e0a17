"""Diagnostics capture and teardown for ephemeraldb containers."""

from typing import List, Optional

from ephemeraldb.errors import CommandError, TeardownWarning
from ephemeraldb.models import ContainerHandle
from ephemeraldb.services.docker_runtime import is_not_found


class TeardownService:
    """Dumps the engine error log, then stops the container. Never raises."""

    def __init__(self, logger, console, runtime, error_log: str, stop_timeout_seconds: int = 5):
        self.logger = logger
        self.console = console
        self.runtime = runtime
        self.error_log = error_log
        self.stop_timeout_seconds = stop_timeout_seconds

    def _warn(self, warnings: List[TeardownWarning], message: str):
        warning = TeardownWarning(message)
        warnings.append(warning)
        self.logger.warning("%s", warning)

    def capture_diagnostics(self, handle: ContainerHandle) -> Optional[str]:
        # Must run before stop: the container is auto-removed and its tmpfs discarded.
        output = self.runtime.exec_output(handle, ["cat", self.error_log])
        self.console.rule(f"[dim]{handle.name} error log[/dim]")
        self.console.print(output, markup=False, highlight=False, end="")
        self.console.rule()
        return output

    def teardown(self, handle: ContainerHandle) -> List[TeardownWarning]:
        warnings: List[TeardownWarning] = []

        try:
            self.capture_diagnostics(handle)
        except Exception as exc:
            if isinstance(exc, CommandError) and is_not_found(exc):
                self.logger.debug("Container %s already gone; no error log to capture", handle.name)
            else:
                self._warn(warnings, f"failed to capture error log of container {handle.name}: {exc}")

        self.logger.info("Stopping container %s", handle.name)
        try:
            self.runtime.stop(handle, self.stop_timeout_seconds)
        except Exception as exc:
            if isinstance(exc, CommandError) and is_not_found(exc):
                self.logger.debug("Container %s was already removed", handle.name)
            else:
                self._warn(warnings, f"failed to stop container {handle.name}: {exc}")
        else:
            self.logger.info("Stopped container %s", handle.name)

        return warnings

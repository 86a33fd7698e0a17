"""Docker runtime services for ephemeraldb."""

import json
from typing import Any, Callable, Dict, List, Optional

from ulid import ULID

from ephemeraldb.errors import CommandError, EndpointNotFoundError, ProvisionError
from ephemeraldb.errors_catalog import actionable_error
from ephemeraldb.models import ConnectionEndpoint, ContainerHandle, ContainerSpec

NOT_FOUND_MARKERS = ("no such container", "no such object")


def is_not_found(exc: CommandError) -> bool:
    text = f"{exc.stderr}\n{exc}".lower()
    return any(marker in text for marker in NOT_FOUND_MARKERS)


def generate_container_name(prefix: str) -> str:
    """Unique, time-sortable container name."""
    return f"{prefix}-{ULID()}"


class DockerRuntimeService:
    """Creates, starts, inspects, execs into and stops containers."""

    def __init__(self, logger, console, run_cmd: Callable, name_factory=generate_container_name):
        self.logger = logger
        self.console = console
        self.run_cmd = run_cmd
        self.name_factory = name_factory

    @staticmethod
    def build_create_command(spec: ContainerSpec, name: str) -> List[str]:
        cmd = ["docker", "create", "--name", name, "--rm", "--publish-all"]
        for port in spec.exposed_ports:
            cmd += ["--expose", port]
        for key, value in spec.environment.items():
            cmd += ["--env", f"{key}={value}"]
        for mount in spec.tmpfs:
            cmd += ["--tmpfs", mount]
        cmd.append(spec.image)
        cmd.extend(spec.command)
        return cmd

    def create(self, spec: ContainerSpec) -> ContainerHandle:
        name = self.name_factory(spec.name_prefix)
        try:
            result = self.run_cmd(self.build_create_command(spec, name), check=True, capture_output=True)
        except CommandError as exc:
            raise ProvisionError(
                f"{actionable_error('container_create_failed', name=name, image=spec.image)}\n{exc}"
            ) from exc

        lines = (result.stdout or "").strip().splitlines()
        if not lines:
            raise ProvisionError(
                f"{actionable_error('container_create_failed', name=name, image=spec.image)}\n"
                "docker create returned no container id."
            )
        handle = ContainerHandle(container_id=lines[-1].strip(), name=name)
        self.logger.info("Created container %s (%s)", handle.name, handle.container_id[:12])
        return handle

    def start(self, handle: ContainerHandle):
        try:
            self.run_cmd(["docker", "start", handle.container_id], check=True, capture_output=True)
        except CommandError as exc:
            raise ProvisionError(
                f"{actionable_error('container_start_failed', name=handle.name)}\n{exc}",
                handle=handle,
            ) from exc
        self.logger.info("Started container %s", handle.name)

    def provision(self, spec: ContainerSpec) -> ContainerHandle:
        self.console.print(f"[blue]Starting {spec.image} container...[/blue]")
        handle = self.create(spec)
        self.start(handle)
        return handle

    def inspect(self, handle: ContainerHandle) -> Dict[str, Any]:
        try:
            result = self.run_cmd(["docker", "inspect", handle.container_id], check=True, capture_output=True)
            parsed = json.loads(result.stdout or "[]")
        except (CommandError, ValueError) as exc:
            raise EndpointNotFoundError(f"Failed to inspect container {handle.name}: {exc}") from exc

        if not isinstance(parsed, list) or not parsed or not isinstance(parsed[0], dict):
            raise EndpointNotFoundError(f"Unexpected inspect output for container {handle.name}.")
        return parsed[0]

    def resolve_endpoint(self, handle: ContainerHandle, container_port: str, host: str = "localhost") -> ConnectionEndpoint:
        details = self.inspect(handle)

        state = details.get("State") or {}
        if not state.get("Running"):
            raise EndpointNotFoundError(actionable_error("container_not_running", name=handle.name))

        ports = (details.get("NetworkSettings") or {}).get("Ports") or {}
        bindings = ports.get(container_port) or []
        host_port = self._first_host_port(bindings)
        if host_port is None:
            raise EndpointNotFoundError(
                actionable_error("endpoint_not_found", name=handle.name, port=container_port)
            )

        endpoint = ConnectionEndpoint(host=host, port=host_port)
        self.logger.info("Container %s listens on %s", handle.name, endpoint.address)
        return endpoint

    @staticmethod
    def _first_host_port(bindings) -> Optional[int]:
        for binding in bindings:
            try:
                return int(binding.get("HostPort"))
            except (TypeError, ValueError, AttributeError):
                continue
        return None

    def exec_output(self, handle: ContainerHandle, cmd: List[str]) -> str:
        result = self.run_cmd(["docker", "exec", handle.container_id] + cmd, check=True, capture_output=True)
        output = result.stdout or ""
        if result.stderr:
            output = f"{output}{result.stderr}"
        return output

    def stop(self, handle: ContainerHandle, timeout_seconds: int):
        self.run_cmd(
            ["docker", "stop", "--time", str(timeout_seconds), handle.container_id],
            check=True,
            capture_output=True,
        )

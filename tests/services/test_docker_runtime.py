import json
import subprocess

import pytest

from ephemeraldb.errors import CommandError, EndpointNotFoundError, ProvisionError
from ephemeraldb.models import ContainerHandle, ContainerSpec
from ephemeraldb.services.docker_runtime import (
    DockerRuntimeService,
    generate_container_name,
    is_not_found,
)


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


def _spec() -> ContainerSpec:
    return ContainerSpec(
        image="mysql:8",
        environment={"MYSQL_DATABASE": "defaultdb", "MYSQL_ROOT_PASSWORD": "secret"},
        exposed_ports=("3306/tcp",),
        command=("--log-error=/var/lib/mysql/error.log",),
        tmpfs=("/var/lib/mysql",),
        name_prefix="mysql",
    )


def _inspect_output(running=True, ports=None):
    return json.dumps(
        [
            {
                "State": {"Running": running},
                "NetworkSettings": {"Ports": ports if ports is not None else {}},
            }
        ]
    )


def _service(run_cmd, name="mysql-TEST"):
    return DockerRuntimeService(
        logger=DummyLogger(),
        console=DummyConsole(),
        run_cmd=run_cmd,
        name_factory=lambda prefix: name,
    )


def _ok(cmd, stdout=""):
    return subprocess.CompletedProcess(cmd, 0, stdout=stdout, stderr="")


def test_build_create_command_publishes_ports_and_uses_tmpfs():
    cmd = DockerRuntimeService.build_create_command(_spec(), "mysql-abc")

    assert cmd[:6] == ["docker", "create", "--name", "mysql-abc", "--rm", "--publish-all"]
    assert ["--expose", "3306/tcp"] == cmd[6:8]
    assert "MYSQL_ROOT_PASSWORD=secret" in cmd
    assert cmd[cmd.index("--tmpfs") + 1] == "/var/lib/mysql"
    assert cmd[-2:] == ["mysql:8", "--log-error=/var/lib/mysql/error.log"]
    assert "-p" not in cmd


def test_provision_creates_then_starts():
    calls = []

    def fake_run_cmd(cmd, **_kwargs):
        calls.append(cmd)
        if cmd[1] == "create":
            return _ok(cmd, stdout="abc123\n")
        return _ok(cmd)

    handle = _service(fake_run_cmd).provision(_spec())

    assert handle == ContainerHandle(container_id="abc123", name="mysql-TEST")
    assert [cmd[1] for cmd in calls] == ["create", "start"]
    assert calls[1] == ["docker", "start", "abc123"]


def test_provision_create_failure_raises_provision_error():
    def fake_run_cmd(cmd, **_kwargs):
        raise CommandError("image platform does not match", returncode=125)

    with pytest.raises(ProvisionError, match="Failed to create container mysql-TEST"):
        _service(fake_run_cmd).provision(_spec())


def test_provision_start_failure_keeps_handle_for_cleanup():
    def fake_run_cmd(cmd, **_kwargs):
        if cmd[1] == "create":
            return _ok(cmd, stdout="abc123\n")
        raise CommandError("port is already allocated", returncode=1)

    with pytest.raises(ProvisionError, match="Failed to start container") as exc_info:
        _service(fake_run_cmd).provision(_spec())

    assert exc_info.value.handle.container_id == "abc123"


def test_resolve_endpoint_reads_published_port():
    ports = {"3306/tcp": [{"HostIp": "0.0.0.0", "HostPort": "49153"}, {"HostIp": "::", "HostPort": "49153"}]}

    def fake_run_cmd(cmd, **_kwargs):
        return _ok(cmd, stdout=_inspect_output(ports=ports))

    endpoint = _service(fake_run_cmd).resolve_endpoint(ContainerHandle("abc123", "mysql-TEST"), "3306/tcp")

    assert endpoint.host == "localhost"
    assert endpoint.port == 49153
    assert endpoint.address == "localhost:49153"


def test_resolve_endpoint_without_mapping_raises():
    def fake_run_cmd(cmd, **_kwargs):
        return _ok(cmd, stdout=_inspect_output(ports={"3306/tcp": None}))

    with pytest.raises(EndpointNotFoundError, match="no host port mapping for 3306/tcp"):
        _service(fake_run_cmd).resolve_endpoint(ContainerHandle("abc123", "mysql-TEST"), "3306/tcp")


def test_resolve_endpoint_requires_running_container():
    def fake_run_cmd(cmd, **_kwargs):
        return _ok(cmd, stdout=_inspect_output(running=False))

    with pytest.raises(EndpointNotFoundError, match="is not running"):
        _service(fake_run_cmd).resolve_endpoint(ContainerHandle("abc123", "mysql-TEST"), "3306/tcp")


def test_resolve_endpoint_rejects_garbage_inspect_output():
    def fake_run_cmd(cmd, **_kwargs):
        return _ok(cmd, stdout="not json")

    with pytest.raises(EndpointNotFoundError, match="Failed to inspect"):
        _service(fake_run_cmd).resolve_endpoint(ContainerHandle("abc123", "mysql-TEST"), "3306/tcp")


def test_generated_names_are_unique_and_time_sortable():
    names = [generate_container_name("mysql") for _ in range(50)]

    assert len(set(names)) == 50
    assert all(name.startswith("mysql-") for name in names)
    first_timestamp = names[0][len("mysql-"):][:10]
    last_timestamp = names[-1][len("mysql-"):][:10]
    assert first_timestamp <= last_timestamp


def test_is_not_found_matches_docker_message():
    exc = CommandError("Command failed (1): docker stop x", returncode=1, stderr="Error response from daemon: No such container: x")

    assert is_not_found(exc)
    assert not is_not_found(CommandError("permission denied", returncode=1))

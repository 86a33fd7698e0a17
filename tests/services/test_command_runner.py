import subprocess
import sys

import pytest

from ephemeraldb.errors import CommandError
from ephemeraldb.services.command_runner import CommandRunner


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None


def test_command_runner_raises_with_stderr():
    runner = CommandRunner(logger=DummyLogger())

    with pytest.raises(CommandError, match="boom") as exc_info:
        runner.run(
            [sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(3)"],
            check=True,
            capture_output=True,
        )

    assert exc_info.value.returncode == 3
    assert exc_info.value.stderr == "boom"


def test_command_runner_returns_when_check_disabled():
    runner = CommandRunner(logger=DummyLogger())

    result = runner.run(
        [sys.executable, "-c", "import sys; sys.exit(1)"],
        check=False,
        capture_output=True,
    )

    assert result.returncode == 1


def test_command_runner_is_callable_like_run_cmd():
    runner = CommandRunner(logger=DummyLogger())

    result = runner([sys.executable, "-c", "print('hello')"], check=True, capture_output=True)

    assert result.stdout.strip() == "hello"


def test_command_runner_timeout_raises_error():
    runner = CommandRunner(logger=DummyLogger())

    with pytest.raises(CommandError, match="timed out"):
        runner.run(
            [sys.executable, "-c", "import time; time.sleep(2)"],
            check=True,
            capture_output=True,
            timeout=0.1,
        )


def test_command_runner_uses_default_timeout():
    seen = {}

    class FakeSubprocess:
        def run(self, cmd, **kwargs):
            seen.update(kwargs)
            return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    runner = CommandRunner(logger=DummyLogger(), default_timeout=7, subprocess_module=FakeSubprocess())
    runner.run(["docker", "ps"])

    assert seen["timeout"] == 7
    assert seen["text"] is True
    assert seen["errors"] == "replace"


def test_command_runner_reports_missing_binary():
    runner = CommandRunner(logger=DummyLogger())

    with pytest.raises(CommandError, match="Required command not found: definitely-not-docker"):
        runner.run(["definitely-not-docker", "ps"])


def test_command_runner_replaces_undecodable_output():
    runner = CommandRunner(logger=DummyLogger())

    result = runner.run(
        [sys.executable, "-c", "import sys; sys.stdout.buffer.write(b'mysqld ready \\xff\\xfe bytes')"],
        check=True,
        capture_output=True,
    )

    assert result.stdout.startswith("mysqld ready ")
    assert result.stdout.endswith(" bytes")
    assert "\ufffd" in result.stdout

import subprocess
import sys

import pytest

from pgclone.errors import ContainerError
from pgclone.services.command_runner import CommandRunner


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


def test_command_runner_raises_with_stderr():
    runner = CommandRunner(logger=DummyLogger())

    with pytest.raises(ContainerError, match="boom"):
        runner.run(
            [sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(1)"],
            check=True,
            capture_output=True,
        )


def test_command_runner_returns_when_check_disabled():
    runner = CommandRunner(logger=DummyLogger())

    result = runner.run(
        [sys.executable, "-c", "import sys; sys.exit(1)"],
        check=False,
        capture_output=True,
    )

    assert result.returncode == 1


def test_command_runner_returns_stdout():
    runner = CommandRunner(logger=DummyLogger())

    result = runner.run([sys.executable, "-c", "print('abc123')"])

    assert result.stdout.strip() == "abc123"


def test_command_runner_timeout_raises_error():
    runner = CommandRunner(logger=DummyLogger())

    with pytest.raises(ContainerError, match="timed out"):
        runner.run(
            [sys.executable, "-c", "import time; time.sleep(2)"],
            check=True,
            capture_output=True,
            timeout=0.1,
        )


def test_command_runner_reports_missing_docker_binary():
    class MissingBinary:
        def run(self, *_args, **_kwargs):
            raise FileNotFoundError("docker")

    runner = CommandRunner(logger=DummyLogger(), subprocess_module=MissingBinary())

    with pytest.raises(ContainerError, match="Docker is not available"):
        runner.run(["docker", "ps"])


def test_command_runner_uses_default_timeout():
    seen = {}

    class RecordingSubprocess:
        def run(self, cmd, **kwargs):
            seen.update(kwargs)
            return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    runner = CommandRunner(logger=DummyLogger(), default_timeout=7.5, subprocess_module=RecordingSubprocess())
    runner.run(["docker", "ps"])

    assert seen["timeout"] == 7.5

import json
import subprocess

import pytest

from pgclone.errors import ContainerError
from pgclone.models import ContainerSpec
from pgclone.services.docker_runtime import DockerRuntimeService, parse_labels


class RecordingRunCmd:
    def __init__(self, stdout="", fail_on=None):
        self.calls = []
        self.stdout = stdout
        self.fail_on = fail_on

    def __call__(self, cmd, check=True, capture_output=True, timeout=None):
        self.calls.append((cmd, timeout))
        if self.fail_on and self.fail_on in cmd and check:
            raise ContainerError(f"Command failed (125): {' '.join(cmd)}")
        return subprocess.CompletedProcess(cmd, 0, stdout=self.stdout, stderr="")


def _spec():
    return ContainerSpec(
        image="postgis/postgis:14-3.2-alpine",
        name="pgclone_pg_abc",
        env={"POSTGRES_USER": "postgres", "POSTGRES_PASSWORD": "secret"},
        command=("postgres", "-c", "fsync=off"),
        ports=("15432:5432/tcp",),
        labels={"pgclone.type": "postgres"},
        extra_hosts=("host.docker.internal:host-gateway",),
    )


def test_build_run_command_contains_launch_contract(logger):
    service = DockerRuntimeService(logger=logger, run_cmd=RecordingRunCmd())

    cmd = service.build_run_command(_spec())

    assert cmd[:5] == ["docker", "run", "-d", "--name", "pgclone_pg_abc"]
    assert "pgclone.type=postgres" in cmd
    assert "POSTGRES_PASSWORD=secret" in cmd
    assert cmd[cmd.index("-p") + 1] == "15432:5432/tcp"
    assert cmd[cmd.index("--add-host") + 1] == "host.docker.internal:host-gateway"
    image_index = cmd.index("postgis/postgis:14-3.2-alpine")
    assert cmd[image_index + 1:] == ["postgres", "-c", "fsync=off"]


def test_run_returns_handle_and_terminate_removes_once(logger):
    run_cmd = RecordingRunCmd(stdout="Unable to find image locally\n0123456789abcdef\n")
    service = DockerRuntimeService(logger=logger, run_cmd=run_cmd)

    handle = service.run(_spec())
    handle.terminate(timeout=3.0)

    assert handle.id == "0123456789abcdef"
    assert handle.terminated is True
    assert run_cmd.calls[-1] == (["docker", "rm", "-f", "-v", "0123456789abcdef"], 3.0)

    with pytest.raises(ContainerError, match="already terminated"):
        handle.terminate()


def test_failed_launch_removes_partially_created_container(logger):
    run_cmd = RecordingRunCmd(fail_on="run")
    service = DockerRuntimeService(logger=logger, run_cmd=run_cmd)

    with pytest.raises(ContainerError):
        service.run(_spec())

    assert run_cmd.calls[-1][0] == ["docker", "rm", "-f", "-v", "pgclone_pg_abc"]


def test_list_keeps_only_containers_with_reserved_label(logger):
    rows = [
        {"ID": "aaa", "Names": "pgclone_pg_1", "Labels": "pgclone.type=postgres,other=x", "State": "running"},
        {"ID": "bbb", "Names": "pgclone_pg_lookalike", "Labels": "maintainer=someone", "State": "running"},
        {"ID": "ccc", "Names": "pgclone_pgweb_1", "Labels": "pgclone.type=pgweb", "State": "running"},
    ]
    stdout = "\n".join(json.dumps(row) for row in rows)
    run_cmd = RecordingRunCmd(stdout=stdout)
    service = DockerRuntimeService(logger=logger, run_cmd=run_cmd)

    records = service.list({"pgclone.type": "postgres"})

    assert [record.id for record in records] == ["aaa"]
    assert records[0].labels["other"] == "x"
    assert "label=pgclone.type=postgres" in run_cmd.calls[0][0]


def test_parse_labels_ignores_malformed_items():
    assert parse_labels("a=1,broken,,b=two=2") == {"a": "1", "b": "two=2"}

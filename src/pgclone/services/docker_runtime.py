"""Docker runtime services for pgclone."""

import json
from typing import Callable, Dict, List, Optional

from pgclone.errors import ContainerError
from pgclone.models import ContainerRecord, ContainerSpec


def parse_labels(raw: str) -> Dict[str, str]:
    labels: Dict[str, str] = {}
    for item in (raw or "").split(","):
        key, sep, value = item.partition("=")
        if sep and key.strip():
            labels[key.strip()] = value.strip()
    return labels


class ContainerHandle:
    """A launched container and the capability to terminate it exactly once."""

    def __init__(self, container_id: str, name: str, runtime: "DockerRuntimeService"):
        self.id = container_id
        self.name = name
        self._runtime = runtime
        self.terminated = False

    def terminate(self, timeout: Optional[float] = None):
        if self.terminated:
            raise ContainerError(f"Container {self.name} ({self.id[:12]}) was already terminated.")
        self._runtime.remove(self.id, timeout=timeout)
        self.terminated = True

    def __repr__(self):
        return f"ContainerHandle(id={self.id[:12]!r}, name={self.name!r})"


class DockerRuntimeService:
    """Launches, lists and removes containers through the docker CLI."""

    def __init__(self, logger, run_cmd: Callable, docker_bin: str = "docker"):
        self.logger = logger
        self.run_cmd = run_cmd
        self.docker_bin = docker_bin

    def build_run_command(self, spec: ContainerSpec) -> List[str]:
        cmd = [self.docker_bin, "run", "-d", "--name", spec.name]
        for key, value in sorted(spec.labels.items()):
            cmd += ["--label", f"{key}={value}"]
        for key, value in sorted(spec.env.items()):
            cmd += ["-e", f"{key}={value}"]
        for port in spec.ports:
            cmd += ["-p", port]
        for host in spec.extra_hosts:
            cmd += ["--add-host", host]
        cmd.append(spec.image)
        cmd.extend(spec.command)
        return cmd

    def run(self, spec: ContainerSpec) -> ContainerHandle:
        self.logger.info("Launching container %s from image %s", spec.name, spec.image)
        try:
            result = self.run_cmd(self.build_run_command(spec), check=True, capture_output=True)
        except ContainerError:
            # docker run may leave a created-but-not-started container behind
            self.run_cmd(
                [self.docker_bin, "rm", "-f", "-v", spec.name],
                check=False,
                capture_output=True,
            )
            raise

        lines = (result.stdout or "").strip().splitlines()
        container_id = lines[-1].strip() if lines else ""
        if not container_id:
            raise ContainerError(f"Docker did not report an id for container {spec.name}.")
        self.logger.debug("Container %s started with id %s", spec.name, container_id)
        return ContainerHandle(container_id, spec.name, self)

    def remove(self, container_id: str, timeout: Optional[float] = None):
        self.logger.info("Removing container %s", container_id[:12])
        self.run_cmd(
            [self.docker_bin, "rm", "-f", "-v", container_id],
            check=True,
            capture_output=True,
            timeout=timeout,
        )

    def list(self, labels: Dict[str, str]) -> List[ContainerRecord]:
        cmd = [self.docker_bin, "ps", "--no-trunc", "--format", "{{json .}}"]
        for key, value in sorted(labels.items()):
            cmd += ["--filter", f"label={key}={value}"]

        result = self.run_cmd(cmd, check=True, capture_output=True)

        records: List[ContainerRecord] = []
        for line in (result.stdout or "").splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                row = json.loads(line)
            except json.JSONDecodeError as exc:
                raise ContainerError(f"Unexpected docker ps output: {line}") from exc

            record = ContainerRecord(
                id=row.get("ID", ""),
                name=row.get("Names", ""),
                labels=parse_labels(row.get("Labels", "")),
                state=row.get("State", ""),
            )
            if all(record.labels.get(key) == value for key, value in labels.items()):
                records.append(record)
        return records

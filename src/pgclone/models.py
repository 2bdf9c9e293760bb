"""Shared domain models for pgclone."""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from pgclone.constants import (
    DEFAULT_NAME,
    DEFAULT_PASSWORD,
    DEFAULT_PORT,
    DEFAULT_UI_PORT,
    DEFAULT_USER,
)


@dataclass(frozen=True)
class InstanceConfig:
    """Settings of one database instance, fixed once an orchestrator is built."""

    user: str = DEFAULT_USER
    password: str = DEFAULT_PASSWORD
    name: str = DEFAULT_NAME
    port: int = DEFAULT_PORT
    version: str = ""
    migrations: Tuple[str, ...] = ()
    fixtures: Tuple[str, ...] = ()
    with_ui: bool = False
    detached: bool = False
    ui_port: int = DEFAULT_UI_PORT


@dataclass(frozen=True)
class ContainerSpec:
    """Everything the container runtime needs to launch one process."""

    image: str
    name: str
    env: Dict[str, str] = field(default_factory=dict)
    command: Tuple[str, ...] = ()
    ports: Tuple[str, ...] = ()
    labels: Dict[str, str] = field(default_factory=dict)
    extra_hosts: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ContainerRecord:
    """One row of the runtime's container listing."""

    id: str
    name: str
    labels: Dict[str, str]
    state: str = ""


@dataclass(frozen=True)
class InstanceInfo:
    id: str
    type: str
    status: str


@dataclass(frozen=True)
class CreateDBRequest:
    migrations: Tuple[str, ...] = ()
    fixtures: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CreateDBResponse:
    uri: str
    name: Optional[str] = None

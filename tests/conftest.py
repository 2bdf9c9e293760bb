import re

import pytest

from pgclone.constants import LABEL_TYPE
from pgclone.errors import (
    ConnectionFailedError,
    ContainerError,
    DatabaseNotFoundError,
    SqlExecutionError,
)
from pgclone.services.connection import database_from_uri
from pgclone.services.docker_runtime import ContainerHandle

CREATE_DATABASE_RE = re.compile(r'^CREATE DATABASE "(?P<name>[^"]+)"(?: WITH TEMPLATE "(?P<template>[^"]+)")?$')
DROP_DATABASE_RE = re.compile(r'^DROP DATABASE "(?P<name>[^"]+)"$')
CREATE_TABLE_RE = re.compile(r"CREATE TABLE (\w+)", re.IGNORECASE)


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None

    def error(self, *_args, **_kwargs):
        return None


class FakeServer:
    """In-memory stand-in for a PostgreSQL server: databases, tables and sessions."""

    def __init__(self):
        self.databases = {"postgres": set(), "template1": set()}
        self.sessions = []
        self.executed = []
        self.refuse_connections = 0

    def statements_matching(self, pattern):
        return [statement for _database, statement in self.executed if pattern in statement]

    def sessions_on(self, database):
        return [session for session in self.sessions if session.database == database]


class FakeConnection:
    def __init__(self, server, database):
        self.server = server
        self.database = database
        self.closed = False

    def execute(self, statement, params=None):
        self.server.executed.append((self.database, statement))

        if statement.startswith("SELECT pg_terminate_backend"):
            for session in self.server.sessions_on(params[0]):
                if session is not self:
                    session.close()
            return

        match = CREATE_DATABASE_RE.match(statement)
        if match:
            self._create_database(match.group("name"), match.group("template") or "template1")
            return

        match = DROP_DATABASE_RE.match(statement)
        if match:
            self._drop_database(match.group("name"))
            return

        if "FAIL" in statement:
            raise SqlExecutionError('syntax error at or near "FAIL"', pgcode="42601")

        for table in CREATE_TABLE_RE.findall(statement):
            self.server.databases[self.database].add(table)

    def _create_database(self, name, template):
        if template not in self.server.databases:
            raise DatabaseNotFoundError(f'template database "{template}" does not exist', pgcode="3D000")
        if self.server.sessions_on(template):
            raise SqlExecutionError(
                f'source database "{template}" is being accessed by other users', pgcode="55006"
            )
        if name in self.server.databases:
            raise SqlExecutionError(f'database "{name}" already exists', pgcode="42P04")
        self.server.databases[name] = set(self.server.databases[template])

    def _drop_database(self, name):
        if name not in self.server.databases:
            raise DatabaseNotFoundError(f'database "{name}" does not exist', pgcode="3D000")
        if self.server.sessions_on(name):
            raise SqlExecutionError(f'database "{name}" is being accessed by other users', pgcode="55006")
        del self.server.databases[name]

    def close(self):
        if not self.closed:
            self.closed = True
            self.server.sessions.remove(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class FakeConnectionFactory:
    def __init__(self, server):
        self.server = server
        self.opened = []

    def open(self, uri, timeout=None):
        if self.server.refuse_connections:
            self.server.refuse_connections -= 1
            raise ConnectionFailedError("connection refused")

        database = database_from_uri(uri)
        if database not in self.server.databases:
            raise ConnectionFailedError(f'database "{database}" does not exist')

        connection = FakeConnection(self.server, database)
        self.server.sessions.append(connection)
        self.opened.append(database)
        return connection

    def check_reachable(self, uri, timeout=None):
        self.open(uri, timeout=timeout).close()


class FakeRuntime:
    """Container runtime double that records launches and removals in order."""

    def __init__(self, fail_images=(), fail_remove=(), records=()):
        self.specs = []
        self.events = []
        self.fail_images = set(fail_images)
        self.fail_remove = set(fail_remove)
        self.records = list(records)

    def run(self, spec):
        kind = spec.labels[LABEL_TYPE]
        if spec.image in self.fail_images:
            self.events.append(("run_failed", kind))
            raise ContainerError("Bind for 0.0.0.0:8081 failed: port is already allocated")

        container_id = f"{kind}-{len(self.specs)}"
        self.specs.append(spec)
        self.events.append(("run", container_id))
        return ContainerHandle(container_id, spec.name, self)

    def remove(self, container_id, timeout=None):
        if container_id in self.fail_remove:
            raise ContainerError(f"Error response from daemon: cannot remove {container_id}")
        self.events.append(("remove", container_id))

    def list(self, labels):
        return [
            record
            for record in self.records
            if all(record.labels.get(key) == value for key, value in labels.items())
        ]


@pytest.fixture
def logger():
    return DummyLogger()


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def connection_factory(server):
    return FakeConnectionFactory(server)


@pytest.fixture
def runtime():
    return FakeRuntime()

"""PostgreSQL connection factory and URI helpers for pgclone."""

import math
import select
import time
from typing import Any, Optional, Sequence
from urllib.parse import quote, unquote, urlparse, urlunparse

import psycopg2
from psycopg2 import errorcodes, extensions

from pgclone.errors import (
    ConnectionFailedError,
    DatabaseNotFoundError,
    PgCloneError,
    SqlExecutionError,
)


def build_uri(user: str, password: str, port: int, name: str, host: str = "localhost") -> str:
    credentials = f"{quote(user, safe='')}:{quote(password, safe='')}"
    return f"postgres://{credentials}@{host}:{port}/{quote(name, safe='')}?sslmode=disable"


def database_from_uri(uri: str) -> str:
    try:
        path = urlparse(uri).path
    except ValueError as exc:
        raise PgCloneError(f"Invalid database URI: {exc}") from exc

    name = unquote(path.lstrip("/"))
    if not name:
        raise PgCloneError("Database URI does not name a database.")
    return name


def redact_uri(uri: str) -> str:
    parsed = urlparse(uri)
    if parsed.password is None:
        return uri
    netloc = parsed.netloc.replace(f":{parsed.password}@", ":***@", 1)
    return urlunparse(parsed._replace(netloc=netloc))


def quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def classify_error(exc: Exception) -> SqlExecutionError:
    pgcode = getattr(exc, "pgcode", None) or ""
    message = (getattr(exc, "pgerror", None) or str(exc)).strip()
    if pgcode == errorcodes.INVALID_CATALOG_NAME:
        return DatabaseNotFoundError(message, pgcode=pgcode)
    return SqlExecutionError(message, pgcode=pgcode)


class Connection:
    """An autocommit database session that raises pgclone error kinds."""

    def __init__(self, raw, uri: str):
        self.raw = raw
        self.uri = uri

    def execute(self, statement: str, params: Optional[Sequence[Any]] = None):
        try:
            with self.raw.cursor() as cursor:
                cursor.execute(statement, params)
        except psycopg2.Error as exc:
            raise classify_error(exc) from exc

    def close(self):
        try:
            self.raw.close()
        except psycopg2.Error:
            pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class ConnectionFactory:
    """Opens connections by URI."""

    def __init__(
        self,
        logger,
        connect_timeout: float = 5.0,
        driver=psycopg2,
        select_module=select,
        clock=time.monotonic,
    ):
        self.logger = logger
        self.connect_timeout = connect_timeout
        self.driver = driver
        self.select = select_module
        self.clock = clock

    def open(self, uri: str, timeout: Optional[float] = None) -> Connection:
        effective_timeout = timeout if timeout is not None else self.connect_timeout
        # libpq only honours whole seconds and treats values below 2 as 2
        connect_timeout = max(1, math.ceil(effective_timeout))

        try:
            raw = self.driver.connect(uri, connect_timeout=connect_timeout)
        except self.driver.Error as exc:
            raise ConnectionFailedError(
                f"Unable to connect to {redact_uri(uri)}: {str(exc).strip()}"
            ) from exc

        raw.autocommit = True
        return Connection(raw, uri)

    def check_reachable(self, uri: str, timeout: float):
        """Complete one connection handshake and close it, giving up after ``timeout`` seconds.

        The handshake runs non-blocking and is polled with ``select`` so the
        wait never outlasts ``timeout``.
        """
        deadline = self.clock() + timeout
        try:
            raw = self.driver.connect(uri, async_=True)
        except self.driver.Error as exc:
            raise ConnectionFailedError(
                f"Unable to connect to {redact_uri(uri)}: {str(exc).strip()}"
            ) from exc

        try:
            while True:
                state = raw.poll()
                if state == extensions.POLL_OK:
                    return

                remaining = deadline - self.clock()
                if remaining <= 0:
                    raise ConnectionFailedError(
                        f"Connecting to {redact_uri(uri)} timed out after {timeout}s"
                    )

                if state == extensions.POLL_READ:
                    self.select.select([raw.fileno()], [], [], remaining)
                elif state == extensions.POLL_WRITE:
                    self.select.select([], [raw.fileno()], [], remaining)
                else:
                    raise ConnectionFailedError(f"Unexpected connection state {state!r}")
        except self.driver.Error as exc:
            raise ConnectionFailedError(
                f"Unable to connect to {redact_uri(uri)}: {str(exc).strip()}"
            ) from exc
        finally:
            try:
                raw.close()
            except self.driver.Error:
                pass

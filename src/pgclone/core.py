import logging
import threading
import time
import uuid
from typing import Iterable, List, Optional

import requests
from rich.console import Console

from .constants import (
    CONTAINER_NAME_PREFIX,
    DATABASE_NAME_PREFIX,
    DOCKER_HOST_ALIAS,
    LABEL_PGWEB,
    LABEL_POSTGRES,
    LABEL_TYPE,
    PGWEB_CONTAINER_PORT,
    PGWEB_IMAGE,
    POSTGRES_COMMAND,
    POSTGRES_CONTAINER_PORT,
    READINESS_TIMEOUT_SECONDS,
    SHUTDOWN_TIMEOUT_SECONDS,
    STATUS_RUNNING,
    UI_WAIT_TIMEOUT_SECONDS,
)
from .errors import ContainerError, DatabaseNotFoundError, PgCloneError, SqlExecutionError
from .errors_catalog import actionable_error
from .models import ContainerSpec, CreateDBRequest, CreateDBResponse, InstanceConfig, InstanceInfo
from .services.command_runner import CommandRunner
from .services.connection import ConnectionFactory, build_uri, database_from_uri, quote_ident
from .services.docker_runtime import ContainerHandle, DockerRuntimeService
from .services.filesystem import FileSystemService
from .services.readiness import ReadinessPoller
from .services.statement_runner import StatementRunner
from .services.template import TemplateManager
from .services.validation import ensure_valid_config
from .versions import REGISTRY, ImageRegistry

console = Console()
logger = logging.getLogger("pgclone")

TERMINATE_SESSIONS_SQL = (
    "SELECT pg_terminate_backend(pid) FROM pg_stat_activity "
    "WHERE datname = %s AND pid <> pg_backend_pid()"
)


def _default_runtime() -> DockerRuntimeService:
    return DockerRuntimeService(logger=logger, run_cmd=CommandRunner(logger=logger).run)


class PostgresInstance:
    """Runs one disposable PostgreSQL server and hands out databases cloned from it."""

    def __init__(
        self,
        config: InstanceConfig,
        runtime: Optional[DockerRuntimeService] = None,
        connection_factory: Optional[ConnectionFactory] = None,
        registry: ImageRegistry = REGISTRY,
        requests_module=requests,
        sleep=time.sleep,
    ):
        self.config = ensure_valid_config(config, registry)
        self.version = registry.normalize(config.version)
        self.image = registry.image_for(config.version)
        if not registry.is_supported(config.version):
            logger.warning(
                "Postgres version %s has no dedicated image, falling back to %s",
                self.version,
                self.image,
            )

        self.runtime = runtime or _default_runtime()
        self.connection_factory = connection_factory or ConnectionFactory(logger=logger)
        self.filesystem_service = FileSystemService(logger=logger)
        self.statement_runner = StatementRunner(logger=logger, connection_factory=self.connection_factory)
        self.template_manager = TemplateManager(logger=logger, statement_runner=self.statement_runner)
        self.readiness_poller = ReadinessPoller(
            logger=logger,
            connection_factory=self.connection_factory,
            sleep=sleep,
        )
        self.requests = requests_module
        self.sleep = sleep

        self.run_id = uuid.uuid4().hex[:10]
        self.container: Optional[ContainerHandle] = None
        self.ui_container: Optional[ContainerHandle] = None
        self.container_id = ""

    @property
    def uri(self) -> str:
        return build_uri(self.config.user, self.config.password, self.config.port, self.config.name)

    @property
    def maintenance_uri(self) -> str:
        # a database cannot be used as a template while something is connected to it
        name = "template1" if self.config.name == "postgres" else "postgres"
        return build_uri(self.config.user, self.config.password, self.config.port, name)

    @property
    def ui_url(self) -> str:
        return f"http://localhost:{self.config.ui_port}"

    def start(self, cancel_event: Optional[threading.Event] = None):
        """Launch and seed the database, then block until ``cancel_event`` is set.

        Returns right after seeding when the instance is detached. Any failure
        before that point removes the containers launched so far.
        """
        console.print(
            f"[blue]Starting postgres version {self.version} on port {self.config.port} ...[/blue]"
        )
        logger.info("Starting postgres version %s on port %s", self.version, self.config.port)

        self.container = self._start_database()
        try:
            self.wait_for_start(READINESS_TIMEOUT_SECONDS)
            console.print("[green]Postgres is up and running.[/green]")

            self.statement_runner.run_migrations(self.config.migrations, self.uri)
            if self.config.migrations:
                self._snapshot_template()
            self.statement_runner.apply_fixtures(self.config.fixtures, self.uri)

            console.print(f"[bold]Database uri is:[/bold] {self.uri}")
            logger.info("Database uri is: %s", self.uri)

            if self.config.with_ui:
                self.ui_container = self._start_ui()
        except BaseException:
            self._abort_start()
            raise

        if self.config.detached:
            return

        cancel_event = cancel_event or threading.Event()
        try:
            cancel_event.wait()
        except KeyboardInterrupt:
            pass

        console.print("[yellow]Shutdown signal received, stopping database...[/yellow]")
        logger.info("Shutdown signal received, stopping database")
        self.stop(timeout=SHUTDOWN_TIMEOUT_SECONDS)

    def stop(self, timeout: float = SHUTDOWN_TIMEOUT_SECONDS):
        """Remove the UI container, then the database container, within ``timeout`` seconds.

        A failed UI removal is raised before the database container is touched.
        """
        deadline = time.monotonic() + timeout

        if self.ui_container is not None:
            self.ui_container.terminate(timeout=self._remaining(deadline, self.ui_container))
            self.ui_container = None

        if self.container is not None:
            self.container.terminate(timeout=self._remaining(deadline, self.container))
            self.container = None
        elif self.container_id:
            self.runtime.remove(self.container_id, timeout=max(deadline - time.monotonic(), 0.1))

        self.container_id = ""
        console.print("[green]Database stopped.[/green]")

    def wait_for_start(self, timeout: float):
        self.readiness_poller.wait(
            self.uri,
            timeout,
            message=actionable_error(
                "readiness_timeout",
                port=str(self.config.port),
                timeout=str(timeout),
                container=self.container.name if self.container else CONTAINER_NAME_PREFIX,
            ),
        )

    def create_db(self, request: Optional[CreateDBRequest] = None) -> CreateDBResponse:
        """Provision a new database on the running server and return its URI."""
        request = request or CreateDBRequest()
        migrations = self.filesystem_service.collect_migrations(request.migrations)
        fixtures = self.filesystem_service.collect_fixtures(request.fixtures)

        name = f"{DATABASE_NAME_PREFIX}{time.time_ns()}"
        new_uri = build_uri(self.config.user, self.config.password, self.config.port, name)

        started = time.monotonic()
        with self.connection_factory.open(self.uri) as connection:
            uri = self.template_manager.create_database(connection, name, new_uri, migrations, fixtures)
        logger.debug("Database %s ready in %.3fs", name, time.monotonic() - started)

        return CreateDBResponse(uri=uri, name=name)

    def remove_db(self, uri: str):
        name = database_from_uri(uri)
        if name == self.config.name:
            raise PgCloneError(f"Refusing to remove the primary database {name}.")

        with self.connection_factory.open(self.uri) as connection:
            connection.execute(TERMINATE_SESSIONS_SQL, (name,))
            try:
                connection.execute(f"DROP DATABASE {quote_ident(name)}")
            except DatabaseNotFoundError as exc:
                raise DatabaseNotFoundError(
                    f"Database {name} does not exist: {exc}", pgcode=exc.pgcode
                ) from exc
            except SqlExecutionError as exc:
                raise SqlExecutionError(
                    actionable_error("drop_failed", database=name, detail=str(exc)),
                    pgcode=exc.pgcode,
                ) from exc

        logger.info("Database %s removed", name)

    def _remaining(self, deadline: float, handle: ContainerHandle) -> float:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise ContainerError(f"Shutdown timed out before container {handle.name} was removed.")
        return remaining

    def _start_database(self) -> ContainerHandle:
        spec = ContainerSpec(
            image=self.image,
            name=f"{CONTAINER_NAME_PREFIX}_pg_{self.run_id}",
            env={
                "POSTGRES_PASSWORD": self.config.password,
                "POSTGRES_USER": self.config.user,
                "POSTGRES_DB": self.config.name,
            },
            command=POSTGRES_COMMAND,
            ports=(f"{self.config.port}:{POSTGRES_CONTAINER_PORT}/tcp",),
            labels={LABEL_TYPE: LABEL_POSTGRES},
        )
        handle = self.runtime.run(spec)
        self.container_id = handle.id
        return handle

    def _snapshot_template(self) -> bool:
        try:
            connection = self.connection_factory.open(self.maintenance_uri)
        except PgCloneError as exc:
            logger.warning("Skipping template creation: %s", exc)
            return False

        with connection:
            return self.template_manager.snapshot(connection, self.config.name)

    def _start_ui(self) -> ContainerHandle:
        console.print("[blue]Starting postgres ui using pgweb (https://github.com/sosedoff/pgweb)[/blue]")

        spec = ContainerSpec(
            image=PGWEB_IMAGE,
            name=f"{CONTAINER_NAME_PREFIX}_pgweb_{self.run_id}",
            env={"PGWEB_DATABASE_URL": self.uri.replace("localhost", DOCKER_HOST_ALIAS)},
            ports=(f"{self.config.ui_port}:{PGWEB_CONTAINER_PORT}",),
            labels={LABEL_TYPE: LABEL_PGWEB},
            extra_hosts=(f"{DOCKER_HOST_ALIAS}:host-gateway",),
        )
        try:
            handle = self.runtime.run(spec)
        except ContainerError as exc:
            raise ContainerError(
                actionable_error("ui_start_failed", detail=str(exc), port=str(self.config.ui_port))
            ) from exc

        if self._await_ui(UI_WAIT_TIMEOUT_SECONDS):
            console.print(f"[green]Database UI is running on: {self.ui_url}[/green]")
        else:
            logger.warning("Database UI did not answer yet, it should soon be available on %s", self.ui_url)
        return handle

    def _await_ui(self, timeout: float) -> bool:
        deadline = time.monotonic() + timeout
        while True:
            try:
                response = self.requests.get(self.ui_url, timeout=1)
                response.close()
                return True
            except self.requests.RequestException as exc:
                logger.debug("Database UI not reachable yet: %s", exc)

            if time.monotonic() >= deadline:
                return False
            self.sleep(0.5)

    def _abort_start(self):
        for handle in (self.ui_container, self.container):
            if handle is None or handle.terminated:
                continue
            try:
                handle.terminate(timeout=SHUTDOWN_TIMEOUT_SECONDS)
            except PgCloneError as exc:
                logger.error("Could not remove container %s: %s", handle.name, exc)

        self.ui_container = None
        self.container = None
        self.container_id = ""


def instances(runtime: Optional[DockerRuntimeService] = None) -> List[InstanceInfo]:
    """List the managed database containers known to the runtime."""
    runtime = runtime or _default_runtime()
    records = runtime.list({LABEL_TYPE: LABEL_POSTGRES})
    return [
        InstanceInfo(
            id=record.id,
            type=record.labels.get(LABEL_TYPE, LABEL_POSTGRES),
            status=record.state or STATUS_RUNNING,
        )
        for record in records
    ]


def stop_instances(
    ids: Iterable[str] = (),
    runtime: Optional[DockerRuntimeService] = None,
    timeout: float = SHUTDOWN_TIMEOUT_SECONDS,
) -> List[str]:
    """Remove the given containers, or every managed container when none are given.

    UI containers are removed before database containers.
    """
    runtime = runtime or _default_runtime()
    targets = list(ids)
    if not targets:
        ui_records = runtime.list({LABEL_TYPE: LABEL_PGWEB})
        db_records = runtime.list({LABEL_TYPE: LABEL_POSTGRES})
        targets = [record.id for record in ui_records + db_records]

    for container_id in targets:
        runtime.remove(container_id, timeout=timeout)
    return targets

import logging
import signal
import threading

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .constants import DEFAULT_NAME, DEFAULT_PASSWORD, DEFAULT_PORT, DEFAULT_UI_PORT, DEFAULT_USER
from .core import PostgresInstance, instances, stop_instances
from .errors import PgCloneError
from .models import CreateDBRequest, InstanceConfig
from .services.config_loader import DEFAULT_CONFIG_FILE, ConfigLoader
from .services.filesystem import FileSystemService

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)

logger = logging.getLogger("pgclone")
console = Console()


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def _load_config(config_path):
    try:
        return ConfigLoader().load(config_path)
    except PgCloneError as exc:
        raise click.ClickException(str(exc)) from exc


def _configure_logging(verbose: bool, log_file):
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)


def _as_paths(value):
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        return tuple(str(item) for item in value)
    return (str(value),)


def _build_config(cli_values, config_values, **extra) -> InstanceConfig:
    return InstanceConfig(
        user=str(_resolve_option(cli_values["user"], config_values, "user", default=DEFAULT_USER)),
        password=str(
            _resolve_option(cli_values["password"], config_values, "password", default=DEFAULT_PASSWORD)
        ),
        name=str(_resolve_option(cli_values["name"], config_values, "name", default=DEFAULT_NAME)),
        port=int(_resolve_option(cli_values["port"], config_values, "port", default=DEFAULT_PORT)),
        **extra,
    )


def connection_options(func):
    func = click.option("--port", type=int, default=None, help=f"Host port of the database (default: {DEFAULT_PORT})")(func)
    func = click.option("--name", default=None, help="Database name (default: postgres)")(func)
    func = click.option("--password", default=None, help="Database password (default: postgres)")(func)
    func = click.option("--user", default=None, help="Database user (default: postgres)")(func)
    func = click.option(
        "--config",
        required=False,
        type=click.Path(),
        help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
    )(func)
    func = click.option("--log-file", type=click.Path(), help="Path to log file")(func)
    func = click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")(func)
    return func


@click.group()
def main():
    """Disposable PostgreSQL instances with template-cloned test databases."""


@main.command()
@connection_options
@click.option("--version", "pg_version", default=None, help="Postgres/PostGIS version (default: 13-3.1)")
@click.option(
    "--migrations",
    type=click.Path(),
    multiple=True,
    help="Migration file or directory; files ending in down.sql are skipped. Repeatable.",
)
@click.option("--fixtures", type=click.Path(), multiple=True, help="Fixture file or directory. Repeatable.")
@click.option("--ui", is_flag=True, default=None, help="Also run pgweb pointed at the database")
@click.option("--ui-port", type=int, default=None, help=f"Host port of the UI (default: {DEFAULT_UI_PORT})")
@click.option("--detach", is_flag=True, default=None, help="Leave the containers running and exit")
def start(user, password, name, port, config, log_file, verbose, pg_version, migrations, fixtures, ui, ui_port, detach):
    """Start a database and block until interrupted."""
    config_values = _load_config(config)
    cli_values = {"user": user, "password": password, "name": name, "port": port}

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")
    _configure_logging(verbose, log_file)

    filesystem_service = FileSystemService(logger=logger)
    try:
        migration_files = filesystem_service.collect_migrations(
            _as_paths(migrations or config_values.get("migrations"))
        )
        fixture_files = filesystem_service.collect_fixtures(
            _as_paths(fixtures or config_values.get("fixtures"))
        )
        instance_config = _build_config(
            cli_values,
            config_values,
            version=str(_resolve_option(pg_version, config_values, "version", default="")),
            migrations=tuple(migration_files),
            fixtures=tuple(fixture_files),
            with_ui=bool(_resolve_option(ui, config_values, "ui", default=False)),
            ui_port=int(_resolve_option(ui_port, config_values, "ui_port", default=DEFAULT_UI_PORT)),
            detached=bool(_resolve_option(detach, config_values, "detach", default=False)),
        )
        instance = PostgresInstance(instance_config)
    except PgCloneError as exc:
        raise click.ClickException(str(exc)) from exc

    cancel_event = threading.Event()
    for signum in (signal.SIGINT, signal.SIGTERM):
        signal.signal(signum, lambda *_args: cancel_event.set())

    try:
        instance.start(cancel_event)
    except PgCloneError as exc:
        raise click.ClickException(str(exc)) from exc


@main.command(name="list")
def list_instances():
    """List running database instances."""
    try:
        rows = instances()
    except PgCloneError as exc:
        raise click.ClickException(str(exc)) from exc

    table = Table("ID", "Type", "Status")
    for info in rows:
        table.add_row(info.id[:12], info.type, info.status)
    console.print(table)


@main.command()
@click.argument("ids", nargs=-1)
def stop(ids):
    """Stop the given containers, or every managed container when none are given."""
    try:
        removed = stop_instances(ids)
    except PgCloneError as exc:
        raise click.ClickException(str(exc)) from exc

    if not removed:
        console.print("[yellow]No running instances found.[/yellow]")
    for container_id in removed:
        console.print(f"[green]Removed {container_id[:12]}[/green]")


@main.command()
@connection_options
@click.option("--migrations", type=click.Path(), multiple=True, help="Migration file or directory. Repeatable.")
@click.option("--fixtures", type=click.Path(), multiple=True, help="Fixture file or directory. Repeatable.")
def createdb(user, password, name, port, config, log_file, verbose, migrations, fixtures):
    """Create a database on a running instance and print its URI."""
    config_values = _load_config(config)
    _configure_logging(
        bool(_resolve_option(verbose, config_values, "verbose", default=False)),
        _resolve_option(log_file, config_values, "log_file"),
    )

    request = CreateDBRequest(
        migrations=_as_paths(migrations or config_values.get("migrations")),
        fixtures=_as_paths(fixtures or config_values.get("fixtures")),
    )
    try:
        instance = PostgresInstance(
            _build_config({"user": user, "password": password, "name": name, "port": port}, config_values)
        )
        response = instance.create_db(request)
    except PgCloneError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(response.uri)


@main.command()
@connection_options
@click.argument("uri")
def removedb(user, password, name, port, config, log_file, verbose, uri):
    """Drop a database created with createdb."""
    config_values = _load_config(config)
    _configure_logging(
        bool(_resolve_option(verbose, config_values, "verbose", default=False)),
        _resolve_option(log_file, config_values, "log_file"),
    )

    try:
        instance = PostgresInstance(
            _build_config({"user": user, "password": password, "name": name, "port": port}, config_values)
        )
        instance.remove_db(uri)
    except PgCloneError as exc:
        raise click.ClickException(str(exc)) from exc

    console.print("[green]Database removed.[/green]")


if __name__ == "__main__":
    main()

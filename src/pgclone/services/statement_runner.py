"""Ordered SQL file application for pgclone."""

from typing import Sequence

from pgclone.errors import PgCloneError, StatementFileError
from pgclone.errors_catalog import actionable_error
from pgclone.services.connection import redact_uri


class StatementRunner:
    """Executes SQL files in order over one connection, stopping at the first failure."""

    def __init__(self, logger, connection_factory):
        self.logger = logger
        self.connection_factory = connection_factory

    def run_migrations(self, files: Sequence[str], uri: str):
        if not files:
            return
        self.logger.info("Applying migrations ...")
        self.apply(files, uri)

    def apply_fixtures(self, files: Sequence[str], uri: str):
        if not files:
            return
        self.logger.info("Applying fixtures ...")
        self.apply(files, uri)

    def apply(self, files: Sequence[str], uri: str):
        try:
            connection = self.connection_factory.open(uri)
        except PgCloneError as exc:
            raise PgCloneError(f"Unable to connect to database {redact_uri(uri)}: {exc}") from exc

        with connection:
            for file_path in files:
                try:
                    with open(file_path, "r", encoding="utf-8") as file_obj:
                        statement = file_obj.read()
                except OSError as exc:
                    raise StatementFileError(f"Read file ({file_path}) failed: {exc}", file_path) from exc

                self.logger.debug("Applying %s", file_path)
                try:
                    connection.execute(statement)
                except PgCloneError as exc:
                    raise StatementFileError(
                        actionable_error("apply_file_failed", path=file_path, detail=str(exc)),
                        file_path,
                    ) from exc

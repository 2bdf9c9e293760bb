"""Template based database creation for pgclone."""

from typing import Sequence

from pgclone.constants import DEFAULT_TEMPLATE
from pgclone.errors import DatabaseNotFoundError, PgCloneError
from pgclone.services.connection import quote_ident


class TemplateManager:
    """Creates databases by cloning a template, initializing from scratch when none exists yet.

    The template is claimed opportunistically: two callers that both miss the
    template will both run the slow path, and only the first snapshot wins.
    """

    def __init__(self, logger, statement_runner, template_name: str = DEFAULT_TEMPLATE):
        self.logger = logger
        self.statement_runner = statement_runner
        self.template_name = template_name

    def clone(self, connection, name: str, template: str):
        """Create ``name`` as a copy of ``template``.

        Raises DatabaseNotFoundError when the template does not exist.
        """
        connection.execute(f"CREATE DATABASE {quote_ident(name)} WITH TEMPLATE {quote_ident(template)}")

    def snapshot(self, connection, source: str) -> bool:
        try:
            self.clone(connection, self.template_name, source)
        except PgCloneError as exc:
            self.logger.warning(
                "Could not create template database %s from %s: %s",
                self.template_name,
                source,
                exc,
            )
            return False

        self.logger.info("Template database %s created from %s", self.template_name, source)
        return True

    def create_database(
        self,
        connection,
        name: str,
        uri: str,
        migrations: Sequence[str] = (),
        fixtures: Sequence[str] = (),
    ) -> str:
        try:
            self.clone(connection, name, self.template_name)
        except DatabaseNotFoundError:
            self.logger.debug("Template %s does not exist yet, creating %s from scratch", self.template_name, name)
        else:
            self.logger.info("Database %s created using template", name)
            return uri

        connection.execute(f"CREATE DATABASE {quote_ident(name)}")
        self.statement_runner.run_migrations(migrations, uri)
        self.snapshot(connection, name)
        self.statement_runner.apply_fixtures(fixtures, uri)

        self.logger.info("Database %s created", name)
        return uri

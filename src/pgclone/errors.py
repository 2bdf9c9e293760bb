"""Domain errors for pgclone."""

from typing import Iterable, List


class PgCloneError(RuntimeError):
    """Raised when an instance cannot be provisioned or managed safely."""


class ConfigurationError(PgCloneError):
    """Raised when an instance configuration violates one or more constraints."""

    def __init__(self, violations: Iterable[str]):
        self.violations: List[str] = list(violations)
        lines = "\n".join(f"  - {violation}" for violation in self.violations)
        super().__init__(f"Invalid instance configuration:\n{lines}")


class ContainerError(PgCloneError):
    """Raised when the container runtime cannot launch, list or remove a container."""


class ConnectionFailedError(PgCloneError):
    """Raised when a database connection cannot be opened."""


class SqlExecutionError(PgCloneError):
    """Raised when a statement is rejected by the database engine."""

    def __init__(self, message: str, pgcode: str = ""):
        super().__init__(message)
        self.pgcode = pgcode


class DatabaseNotFoundError(SqlExecutionError):
    """The statement referenced a database that does not exist."""


class StatementFileError(PgCloneError):
    """Raised when a SQL file cannot be read or applied."""

    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path


class ReadinessTimeoutError(PgCloneError):
    """Raised when a database does not accept connections before the deadline."""

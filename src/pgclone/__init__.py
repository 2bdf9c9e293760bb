"""
pgclone - disposable PostgreSQL instances with template-cloned test databases
"""

__version__ = "0.3.0"

from .core import PostgresInstance, instances, stop_instances
from .errors import PgCloneError
from .models import CreateDBRequest, CreateDBResponse, InstanceConfig

__all__ = [
    "CreateDBRequest",
    "CreateDBResponse",
    "InstanceConfig",
    "PgCloneError",
    "PostgresInstance",
    "instances",
    "stop_instances",
]

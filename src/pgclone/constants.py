"""Shared constants for pgclone."""

DEFAULT_PORT = 15432
DEFAULT_USER = "postgres"
DEFAULT_PASSWORD = "postgres"
DEFAULT_NAME = "postgres"
DEFAULT_UI_PORT = 8081

DEFAULT_TEMPLATE = "pgclone_template"
DATABASE_NAME_PREFIX = "pgclone_"
CONTAINER_NAME_PREFIX = "pgclone"

LABEL_TYPE = "pgclone.type"
LABEL_POSTGRES = "postgres"
LABEL_PGWEB = "pgweb"

STATUS_RUNNING = "running"

MIGRATION_DOWN_SUFFIX = "down.sql"

POSTGRES_CONTAINER_PORT = 5432
POSTGRES_COMMAND = (
    "postgres",
    "-c",
    "fsync=off",
    "-c",
    "synchronous_commit=off",
    "-c",
    "full_page_writes=off",
)

PGWEB_IMAGE = "sosedoff/pgweb:latest"
PGWEB_CONTAINER_PORT = 8081
DOCKER_HOST_ALIAS = "host.docker.internal"

READINESS_TIMEOUT_SECONDS = 20.0
READINESS_INTERVAL_SECONDS = 0.1
SHUTDOWN_TIMEOUT_SECONDS = 5.0
UI_WAIT_TIMEOUT_SECONDS = 5.0

"""Actionable error catalog for pgclone."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "unsupported_version": {
        "what": "Selected postgres version ({version}) is not supported.",
        "next": "Select one of: {supported}.",
    },
    "sql_path_not_found": {
        "what": "{label} path not found: {path}",
        "next": "Provide an existing `.sql` file or a directory of `.sql` files.",
    },
    "docker_unavailable": {
        "what": "Docker is not available: {detail}",
        "next": "Install Docker and make sure the daemon is running for the current user.",
    },
    "readiness_timeout": {
        "what": "Database on port {port} did not accept connections within {timeout}s.",
        "next": "Check `docker logs {container}` and make sure port {port} is free.",
    },
    "apply_file_failed": {
        "what": "Applying file ({path}) failed: {detail}",
        "next": "Fix the SQL in the file and start the instance again.",
    },
    "drop_failed": {
        "what": "Drop database {database} failed: {detail}",
        "next": "Make sure no client reconnects to the database while it is being removed.",
    },
    "ui_start_failed": {
        "what": "Database UI failed to start: {detail}",
        "next": "Make sure port {port} is free or start without `--ui`.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"

"""Instance configuration validation for pgclone."""

import os
from typing import List

from pgclone.constants import MIGRATION_DOWN_SUFFIX
from pgclone.errors import ConfigurationError
from pgclone.errors_catalog import actionable_error
from pgclone.models import InstanceConfig
from pgclone.versions import REGISTRY, ImageRegistry


def _valid_port(port) -> bool:
    return isinstance(port, int) and not isinstance(port, bool) and 0 < port < 65536


def validate_config(config: InstanceConfig, registry: ImageRegistry = REGISTRY) -> List[str]:
    """Return every constraint ``config`` violates; an empty list means it is valid."""
    violations: List[str] = []

    for field_name in ("user", "password", "name"):
        value = getattr(config, field_name)
        if not isinstance(value, str) or not value.strip():
            violations.append(f"'{field_name}' must be a non-empty string.")

    if not _valid_port(config.port):
        violations.append(f"'port' must be between 1 and 65535, got {config.port!r}.")

    if config.with_ui:
        if not _valid_port(config.ui_port):
            violations.append(f"'ui_port' must be between 1 and 65535, got {config.ui_port!r}.")
        elif config.ui_port == config.port:
            violations.append(f"'ui_port' must differ from the database port {config.port}.")

    if not registry.is_well_formed(config.version):
        violations.append(
            actionable_error(
                "unsupported_version",
                version=config.version.strip(),
                supported=", ".join(registry.versions),
            )
        )

    for label, files in (("Migrations", config.migrations), ("Fixtures", config.fixtures)):
        for file_path in files:
            if not os.path.isfile(file_path):
                violations.append(actionable_error("sql_path_not_found", label=label, path=file_path))

    for file_path in config.migrations:
        if file_path.endswith(MIGRATION_DOWN_SUFFIX):
            violations.append(f"Rollback migration ({file_path}) must not be applied on start.")

    return violations


def ensure_valid_config(config: InstanceConfig, registry: ImageRegistry = REGISTRY) -> InstanceConfig:
    violations = validate_config(config, registry)
    if violations:
        raise ConfigurationError(violations)
    return config

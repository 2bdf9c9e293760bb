"""YAML defaults for the pgclone CLI.

An explicit ``--config`` path must exist. Without one, ``.pgclone.yml`` in the
working directory is used when present. Every key is type checked up front so a
bad file is reported in full before any container is launched.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from pgclone.errors import ConfigurationError

DEFAULT_CONFIG_FILE = ".pgclone.yml"

_STRING_KEYS = ("user", "password", "name", "version", "log_file")
_PORT_KEYS = ("port", "ui_port")
_FLAG_KEYS = ("ui", "detach", "verbose")
_PATH_LIST_KEYS = ("migrations", "fixtures")


class ConfigLoader:
    """Reads instance defaults from a YAML mapping."""

    SUPPORTED_KEYS = frozenset(_STRING_KEYS + _PORT_KEYS + _FLAG_KEYS + _PATH_LIST_KEYS)

    def __init__(self, cwd: Optional[str] = None):
        self.cwd = cwd

    def resolve_path(self, config_path: Optional[str]) -> Optional[str]:
        if config_path:
            return config_path
        candidate = os.path.join(self.cwd or os.getcwd(), DEFAULT_CONFIG_FILE)
        if os.path.isfile(candidate):
            return candidate
        return None

    def load(self, config_path: Optional[str] = None) -> Dict[str, Any]:
        resolved = self.resolve_path(config_path)
        if resolved is None:
            return {}

        path = Path(resolved)
        if not path.exists():
            raise ConfigurationError([f"Config file not found: {resolved}"])

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigurationError([f"Invalid config file '{resolved}': {exc}"]) from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ConfigurationError([f"Config file '{resolved}' must contain a YAML mapping at the root."])

        violations = self._violations(parsed)
        if violations:
            raise ConfigurationError(violations)

        return self._normalize(parsed)

    def _violations(self, parsed: Dict[str, Any]) -> List[str]:
        violations: List[str] = []
        unknown = sorted(str(key) for key in set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            violations.append(f"Unknown configuration keys: {', '.join(unknown)}")

        for key, value in parsed.items():
            if key in _STRING_KEYS and not isinstance(value, (str, int, float)):
                violations.append(f"'{key}' must be a string, got {type(value).__name__}.")
            elif key in _PORT_KEYS and (not isinstance(value, int) or isinstance(value, bool)):
                violations.append(f"'{key}' must be an integer, got {value!r}.")
            elif key in _FLAG_KEYS and not isinstance(value, bool):
                violations.append(f"'{key}' must be true or false, got {value!r}.")
            elif key in _PATH_LIST_KEYS and not _is_path_list(value):
                violations.append(f"'{key}' must be a path or a list of paths.")
        return violations

    @staticmethod
    def _normalize(parsed: Dict[str, Any]) -> Dict[str, Any]:
        values = dict(parsed)
        for key in _STRING_KEYS:
            if key in values:
                # YAML reads versions such as 14.3 as numbers
                values[key] = str(values[key])
        for key in _PATH_LIST_KEYS:
            if isinstance(values.get(key), str):
                values[key] = [values[key]]
        return values


def _is_path_list(value) -> bool:
    if isinstance(value, str):
        return True
    return isinstance(value, list) and all(isinstance(item, str) for item in value)

"""SQL file discovery helpers for pgclone."""

import os
from typing import Iterable, List, Optional

from pgclone.constants import MIGRATION_DOWN_SUFFIX
from pgclone.errors import ConfigurationError
from pgclone.errors_catalog import actionable_error


class FileSystemService:
    """Expands file and directory arguments into ordered SQL file lists."""

    def __init__(self, logger):
        self.logger = logger

    def list_files(self, path: Optional[str], label: str = "SQL") -> List[str]:
        """Return ``path`` itself for a file, or every entry of a directory sorted by name."""
        if not path:
            return []

        if not os.path.exists(path):
            raise ConfigurationError([actionable_error("sql_path_not_found", label=label, path=path)])

        if not os.path.isdir(path):
            return [path]

        root = os.path.abspath(path)
        files = [
            os.path.join(root, entry)
            for entry in os.listdir(root)
            if os.path.isfile(os.path.join(root, entry))
        ]
        return sorted(files)

    def collect(self, paths: Iterable[str], label: str = "SQL") -> List[str]:
        collected: List[str] = []
        for path in paths:
            collected.extend(self.list_files(path, label=label))
        return collected

    def collect_migrations(self, paths: Iterable[str]) -> List[str]:
        files = []
        for file_path in self.collect(paths, label="Migrations"):
            if file_path.endswith(MIGRATION_DOWN_SUFFIX):
                self.logger.debug("Skipping rollback migration: %s", file_path)
                continue
            files.append(file_path)
        return files

    def collect_fixtures(self, paths: Iterable[str]) -> List[str]:
        return self.collect(paths, label="Fixtures")

"""YAML and JSON file access."""

import json
from pathlib import Path
from typing import Any

import yaml

from .interfaces import IFileRepository


class ConfigRepository:
    """Implements IConfigRepository on top of a file repository.

    YAML errors propagate as ``yaml.YAMLError`` and JSON errors as
    ``json.JSONDecodeError`` so callers can map them to domain errors.
    """

    def __init__(self, file_repo: IFileRepository) -> None:
        """Initialize the config repository.

        Args:
            file_repo: Repository for file system operations.
        """
        self._file_repo = file_repo

    def load_yaml(self, path: Path) -> Any:
        """Parse a YAML file with the safe loader."""
        return yaml.safe_load(self._file_repo.read_text(path))

    def load_json(self, path: Path) -> Any:
        """Parse a JSON file."""
        return json.loads(self._file_repo.read_text(path))

    def save_json(self, path: Path, data: Any) -> None:
        """Write data as stable, indented JSON with a trailing newline."""
        content = json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False)
        self._file_repo.write_text(path, content + "\n")

"""Repository interfaces.

Services depend on these protocols rather than on the filesystem
directly, so tests can substitute mocks.
"""

from pathlib import Path
from typing import Any, Protocol


class IFileRepository(Protocol):
    """File system operations."""

    def exists(self, path: Path) -> bool: ...

    def is_file(self, path: Path) -> bool: ...

    def read_bytes(self, path: Path) -> bytes: ...

    def read_text(self, path: Path) -> str: ...

    def write_text(self, path: Path, content: str) -> bool: ...

    def copy_file(self, source: Path, target: Path) -> None: ...

    def mkdir(self, path: Path, parents: bool = False, exist_ok: bool = False) -> None: ...

    def remove_tree(self, path: Path) -> None: ...


class IConfigRepository(Protocol):
    """Structured configuration and cache files."""

    def load_yaml(self, path: Path) -> Any: ...

    def load_json(self, path: Path) -> Any: ...

    def save_json(self, path: Path, data: Any) -> None: ...

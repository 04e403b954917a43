"""Filesystem-backed file repository."""

import shutil
from pathlib import Path


class FileRepository:
    """Implements IFileRepository on the local filesystem."""

    def exists(self, path: Path) -> bool:
        return Path(path).exists()

    def is_file(self, path: Path) -> bool:
        return Path(path).is_file()

    def read_bytes(self, path: Path) -> bytes:
        return Path(path).read_bytes()

    def read_text(self, path: Path) -> str:
        return Path(path).read_text(encoding="utf-8")

    def write_text(self, path: Path, content: str) -> bool:
        """Write UTF-8 text with LF line endings.

        The file is left untouched when it already holds exactly this
        content, so rebuilding an unchanged book keeps file timestamps.

        Returns:
            True if the file was written.
        """
        path = Path(path)
        data = content.encode("utf-8")
        if path.is_file() and path.read_bytes() == data:
            return False
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return True

    def copy_file(self, source: Path, target: Path) -> None:
        target = Path(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)

    def mkdir(self, path: Path, parents: bool = False, exist_ok: bool = False) -> None:
        Path(path).mkdir(parents=parents, exist_ok=exist_ok)

    def remove_tree(self, path: Path) -> None:
        shutil.rmtree(path)

"""Error taxonomy for book builds.

Manifest-level errors are fatal and abort the build before any chapter is
rendered. Render errors are raised per document and collected by the site
builder so the remaining chapters can still be written.
"""

from pathlib import Path
from typing import Iterable, Optional, Union

PathLike = Union[str, Path]


class BookSiteError(Exception):
    """Base class for all book build errors."""


class ManifestParseError(BookSiteError):
    """The manifest is malformed or structurally invalid."""

    def __init__(self, message: str, path: Optional[PathLike] = None) -> None:
        self.message = message
        self.path = str(path) if path is not None else None
        if self.path:
            super().__init__(f"{self.path}: {message}")
        else:
            super().__init__(message)


class ManifestReferenceError(BookSiteError):
    """One or more paths listed in the manifest do not exist.

    Attributes:
        paths: The offending paths, exactly as written in the manifest.
        manifest_path: The manifest that references them.
    """

    def __init__(
        self, paths: Iterable[str], manifest_path: Optional[PathLike] = None
    ) -> None:
        self.paths = list(paths)
        self.manifest_path = str(manifest_path) if manifest_path else None
        listed = ", ".join(self.paths)
        super().__init__(f"Referenced file(s) not found: {listed}")

    @property
    def path(self) -> str:
        """The first missing path."""
        return self.paths[0] if self.paths else ""


class RenderError(BookSiteError):
    """A single document could not be converted to HTML."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class SiteIOError(BookSiteError):
    """A filesystem read or write failed during the build."""

    def __init__(self, path: PathLike, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")

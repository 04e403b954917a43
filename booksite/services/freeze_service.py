"""Freeze service implementation.

Caches rendered chapter fragments under the project's ``_freeze``
directory so unchanged chapters are not re-rendered.
"""

import hashlib
import logging
from pathlib import Path
from typing import Optional

from ..config import BuildConfig
from ..domain import ChapterDocument, FreezeMode, RenderedChapter, SiteIOError
from ..repositories.interfaces import IConfigRepository, IFileRepository

logger = logging.getLogger(__name__)


class FreezeService:
    """Service for reading and writing frozen chapter renders."""

    # Bump when the cached format or rendering output changes
    FREEZE_VERSION = 1

    def __init__(
        self,
        file_repo: IFileRepository,
        config_repo: IConfigRepository,
        freeze_dir: str = BuildConfig.FREEZE_DIR,
    ) -> None:
        """Initialize the freeze service with required dependencies.

        Args:
            file_repo: Repository for file system operations.
            config_repo: Repository for JSON cache files.
            freeze_dir: Cache directory name inside the project root.
        """
        self._file_repo = file_repo
        self._config_repo = config_repo
        self._freeze_dir = freeze_dir

    def fingerprint(self, document: ChapterDocument, settings: str) -> str:
        """Hash a chapter's source together with the render settings."""
        digest = hashlib.sha256()
        digest.update(f"{self.FREEZE_VERSION}\0{settings}\0".encode("utf-8"))
        digest.update(document.raw.encode("utf-8"))
        return digest.hexdigest()

    def freeze_path(self, root: Path, path: str) -> Path:
        """Location of the cache file for a chapter."""
        return root / self._freeze_dir / f"{path}.json"

    def load(
        self, root: Path, path: str, digest: str, mode: FreezeMode
    ) -> Optional[RenderedChapter]:
        """Load a frozen render if the freeze mode allows reusing it.

        Returns:
            The cached chapter, or None when it must be rendered.
        """
        if mode == FreezeMode.NEVER:
            return None

        freeze_path = self.freeze_path(root, path)
        if not self._file_repo.exists(freeze_path):
            return None

        try:
            data = self._config_repo.load_json(freeze_path)
        except (ValueError, OSError) as e:
            logger.warning("Ignoring unreadable freeze file %s: %s", freeze_path, e)
            return None

        if not isinstance(data, dict) or data.get("version") != self.FREEZE_VERSION:
            return None
        if mode == FreezeMode.AUTO and data.get("digest") != digest:
            return None

        try:
            return RenderedChapter.from_dict(data["chapter"])
        except (KeyError, TypeError):
            logger.warning("Ignoring malformed freeze file %s", freeze_path)
            return None

    def store(
        self, root: Path, digest: str, rendered: RenderedChapter, mode: FreezeMode
    ) -> None:
        """Freeze a rendered chapter.

        Raises:
            SiteIOError: If the cache file cannot be written.
        """
        if mode == FreezeMode.NEVER:
            return

        freeze_path = self.freeze_path(root, rendered.path)
        data = {
            "version": self.FREEZE_VERSION,
            "digest": digest,
            "chapter": rendered.to_dict(),
        }
        try:
            self._config_repo.save_json(freeze_path, data)
        except OSError as e:
            raise SiteIOError(freeze_path, e.strerror or str(e)) from e

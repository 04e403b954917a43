"""Reader service implementation.

Reads chapter files referenced by the manifest into ChapterDocument
objects. Decoding problems are per-document RenderErrors; filesystem
failures are fatal SiteIOErrors.
"""

from ..config import BuildConfig
from ..domain import ChapterDocument, ChapterRef, DocumentKind, RenderError, SiteIOError
from ..repositories.interfaces import IFileRepository


class ReaderService:
    """Service for reading chapter sources."""

    def __init__(self, file_repo: IFileRepository) -> None:
        """Initialize the reader service with required dependencies.

        Args:
            file_repo: Repository for file system operations.
        """
        self._file_repo = file_repo

    def read_chapter(self, ref: ChapterRef) -> ChapterDocument:
        """Read a chapter's source file.

        Args:
            ref: The chapter reference from the manifest.

        Returns:
            The chapter document with its raw text.

        Raises:
            RenderError: If the file type is unsupported or not UTF-8.
            SiteIOError: If the file cannot be read.
        """
        kind = self.document_kind(ref)

        try:
            data = self._file_repo.read_bytes(ref.source)
        except OSError as e:
            raise SiteIOError(ref.source, e.strerror or str(e)) from e

        try:
            raw = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise RenderError(ref.path, f"not valid UTF-8 text ({e.reason})") from e

        return ChapterDocument(ref=ref, raw=raw.replace("\r\n", "\n"), kind=kind)

    def document_kind(self, ref: ChapterRef) -> DocumentKind:
        """Determine the source format from the file extension."""
        if ref.suffix in BuildConfig.NOTEBOOK_SUFFIXES:
            return DocumentKind.NOTEBOOK
        if ref.suffix in BuildConfig.MARKDOWN_SUFFIXES:
            return DocumentKind.MARKDOWN
        raise RenderError(ref.path, f"unsupported document type '{ref.suffix}'")

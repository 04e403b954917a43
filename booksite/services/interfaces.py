"""Service interfaces (protocols) for the site builder."""

from pathlib import Path
from typing import Optional, Protocol

from ..domain import (
    BookManifest,
    BuildContext,
    ChapterDocument,
    ChapterRef,
    FormatOptions,
    FreezeMode,
    RenderedChapter,
    Site,
)


class IManifestService(Protocol):
    """Loads and validates book manifests."""

    def load_manifest(self, path: Path) -> BookManifest: ...


class IReaderService(Protocol):
    """Reads chapter sources from disk."""

    def read_chapter(self, ref: ChapterRef) -> ChapterDocument: ...


class IRenderService(Protocol):
    """Converts chapter documents to HTML."""

    def render_chapter(
        self, document: ChapterDocument, options: Optional[FormatOptions] = None
    ) -> str: ...

    def render_document(
        self, document: ChapterDocument, options: Optional[FormatOptions] = None
    ) -> RenderedChapter: ...


class IFreezeService(Protocol):
    """Caches rendered chapters between builds."""

    def fingerprint(self, document: ChapterDocument, settings: str) -> str: ...

    def load(
        self, root: Path, path: str, digest: str, mode: FreezeMode
    ) -> Optional[RenderedChapter]: ...

    def store(
        self, root: Path, digest: str, rendered: RenderedChapter, mode: FreezeMode
    ) -> None: ...


class ISiteService(Protocol):
    """Builds the complete site."""

    def build_site(
        self,
        manifest: BookManifest,
        context: Optional[BuildContext] = None,
        output_dir: Optional[Path] = None,
        clean: bool = False,
    ) -> Site: ...

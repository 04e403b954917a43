"""Domain layer for book manifests, content and built sites."""

from .manifest import BookManifest, BuildContext, ChapterRef, FormatOptions, FreezeMode, Part
from .content import (
    Cell,
    ChapterDocument,
    DocumentKind,
    NavNode,
    NavTree,
    Page,
    RenderedChapter,
    RenderFailure,
    Site,
    TocEntry,
    path_to_title,
    slugify,
)
from .errors import (
    BookSiteError,
    ManifestParseError,
    ManifestReferenceError,
    RenderError,
    SiteIOError,
)

__all__ = [
    "BookManifest",
    "BuildContext",
    "ChapterRef",
    "FormatOptions",
    "FreezeMode",
    "Part",
    "Cell",
    "ChapterDocument",
    "DocumentKind",
    "NavNode",
    "NavTree",
    "Page",
    "RenderedChapter",
    "RenderFailure",
    "Site",
    "TocEntry",
    "path_to_title",
    "slugify",
    "BookSiteError",
    "ManifestParseError",
    "ManifestReferenceError",
    "RenderError",
    "SiteIOError",
]

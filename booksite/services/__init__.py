"""Service layer for building book sites.

Provides service interfaces (protocols) and implementations for
manifest loading, reading, rendering, navigation, freezing, and
site assembly.
"""

from .interfaces import (
    IManifestService,
    IReaderService,
    IRenderService,
    IFreezeService,
    ISiteService,
)
from .manifest_service import ManifestService
from .reader_service import ReaderService
from .render_service import RenderService
from .toc_service import TocService
from .freeze_service import FreezeService
from .site_service import SiteService

__all__ = [
    "IManifestService",
    "IReaderService",
    "IRenderService",
    "IFreezeService",
    "ISiteService",
    "ManifestService",
    "ReaderService",
    "RenderService",
    "TocService",
    "FreezeService",
    "SiteService",
]

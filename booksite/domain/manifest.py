"""Domain models for the book manifest.

The manifest is validated once at load time into these frozen dataclasses.
Part and chapter order is preserved exactly as declared.
"""

import posixpath
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Optional


class FreezeMode(str, Enum):
    """Policy for reusing previously rendered chapters."""

    AUTO = "auto"  # Reuse when the source is unchanged
    ALWAYS = "true"  # Reuse any cached render
    NEVER = "false"  # Always render

    @classmethod
    def parse(cls, value: Any) -> "FreezeMode":
        """Convert a manifest value (bool, string or None) to a FreezeMode.

        Raises:
            ValueError: If the value is not a recognised freeze setting.
        """
        if value is None or value is False:
            return cls.NEVER
        if value is True:
            return cls.ALWAYS
        if isinstance(value, str):
            normalized = value.strip().lower()
            for mode in cls:
                if mode.value == normalized:
                    return mode
        raise ValueError(f"Invalid freeze setting: {value!r}")


@dataclass(frozen=True)
class ChapterRef:
    """A chapter listed in the manifest.

    The manifest path is the chapter's unique key; the file itself belongs
    to the filesystem.
    """

    path: str  # POSIX path relative to the project root
    source: Path  # Resolved location on disk

    @property
    def suffix(self) -> str:
        """Lower-cased file extension."""
        return posixpath.splitext(self.path)[1].lower()

    @property
    def output_path(self) -> str:
        """Output page path relative to the site root."""
        return posixpath.splitext(self.path)[0] + ".html"


@dataclass(frozen=True)
class Part:
    """A named group of chapters, or an unnamed run of top-level chapters."""

    title: Optional[str]
    chapters: tuple[ChapterRef, ...] = ()

    @property
    def is_named(self) -> bool:
        """True for an explicit ``part:`` entry."""
        return self.title is not None


@dataclass(frozen=True)
class FormatOptions:
    """Options for one output format."""

    theme: tuple[str, ...] = ("default",)
    toc: bool = True
    highlight_style: str = "default"
    css: tuple[str, ...] = ()
    options: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BookManifest:
    """A validated book manifest."""

    title: str
    root: Path
    manifest_path: Path
    author: Optional[str] = None
    subtitle: Optional[str] = None
    description: Optional[str] = None
    date: Optional[str] = None
    repo_url: Optional[str] = None
    site_url: Optional[str] = None
    bibliography: Optional[str] = None
    parts: tuple[Part, ...] = ()
    formats: dict[str, FormatOptions] = field(default_factory=dict)
    freeze: FreezeMode = FreezeMode.NEVER
    output_dir: str = "_book"

    @property
    def chapters(self) -> list[ChapterRef]:
        """All chapters in navigation order."""
        return [chapter for part in self.parts for chapter in part.chapters]

    @property
    def html_format(self) -> Optional[FormatOptions]:
        """Options for the HTML output format, if declared."""
        return self.formats.get("html")

    @property
    def output_root(self) -> Path:
        """Default output directory for the rendered site."""
        return self.root / self.output_dir


@dataclass(frozen=True)
class BuildContext:
    """Values computed once at build start and threaded through rendering."""

    today: date

    @classmethod
    def create(cls, today: Optional[date] = None) -> "BuildContext":
        """Create a context, defaulting to the current date."""
        return cls(today=today or date.today())

    def resolve_date(self, value: Optional[str]) -> Optional[str]:
        """Resolve the ``today`` placeholder in a manifest date."""
        if value is None:
            return None
        if value.strip().lower() == "today":
            return self.today.isoformat()
        return value

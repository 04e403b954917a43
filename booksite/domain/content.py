"""Domain models for chapter content and the rendered site.

Provides dataclasses for source documents, rendered chapters, the
navigation tree, and the result of a site build.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Optional

from .manifest import ChapterRef


class DocumentKind(str, Enum):
    """Source format of a chapter."""

    MARKDOWN = "markdown"
    NOTEBOOK = "notebook"


@dataclass(frozen=True)
class ChapterDocument:
    """A chapter's source file, read once per build."""

    ref: ChapterRef
    raw: str
    kind: DocumentKind

    @property
    def path(self) -> str:
        """Manifest path of the chapter."""
        return self.ref.path

    @property
    def source(self) -> Path:
        """Location of the chapter on disk."""
        return self.ref.source


@dataclass
class Cell:
    """A notebook cell reduced to what rendering needs."""

    cell_type: str  # markdown, code or raw
    source: str
    outputs: list[dict] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)


@dataclass
class TocEntry:
    """A heading in a chapter's in-page table of contents."""

    title: str
    level: int  # 2 for ##, 3 for ###, 4 for ####
    anchor: str
    children: list["TocEntry"] = field(default_factory=list)


@dataclass
class RenderedChapter:
    """The HTML produced for one chapter."""

    path: str
    title: str
    html: str

    def to_dict(self) -> dict:
        """Convert to a dictionary for JSON serialization."""
        return {"path": self.path, "title": self.title, "html": self.html}

    @classmethod
    def from_dict(cls, data: dict) -> "RenderedChapter":
        """Rebuild a rendered chapter from :meth:`to_dict` output."""
        return cls(path=data["path"], title=data["title"], html=data["html"])


@dataclass
class NavNode:
    """A node of the navigation tree.

    Group nodes (named parts) have children and no href; leaf nodes
    point at a chapter page.
    """

    title: str
    href: Optional[str] = None
    path: Optional[str] = None
    children: list["NavNode"] = field(default_factory=list)

    @property
    def is_group(self) -> bool:
        """True for a part heading."""
        return self.href is None


@dataclass
class NavTree:
    """Navigation for the whole book, in manifest order."""

    title: str
    nodes: list[NavNode] = field(default_factory=list)

    def leaves(self) -> list[NavNode]:
        """All chapter nodes in reading order."""
        result: list[NavNode] = []

        def collect(nodes: list[NavNode]) -> None:
            for node in nodes:
                if node.is_group:
                    collect(node.children)
                else:
                    result.append(node)

        collect(self.nodes)
        return result

    def to_markdown(self) -> str:
        """Render the navigation as a markdown list."""
        lines = [f"# {self.title}", ""]
        for node in self.nodes:
            if node.is_group:
                lines.append(f"- **{node.title}**")
                for child in node.children:
                    lines.append(f"  - [{child.title}]({child.href})")
            else:
                lines.append(f"- [{node.title}]({node.href})")
        return "\n".join(lines)


@dataclass
class Page:
    """An output page written for a chapter."""

    path: str  # Manifest path of the chapter
    output_path: str  # Relative to the site root
    title: str


@dataclass
class RenderFailure:
    """A chapter that could not be rendered."""

    path: str
    reason: str


@dataclass
class Site:
    """Result of a site build."""

    output_dir: Path
    navigation: NavTree
    pages: list[Page] = field(default_factory=list)
    failures: list[RenderFailure] = field(default_factory=list)
    files: list[str] = field(default_factory=list)  # Written, relative POSIX

    @property
    def ok(self) -> bool:
        """True when every chapter rendered."""
        return not self.failures

    @property
    def index_path(self) -> Path:
        """Location of the site's landing page."""
        return self.output_dir / "index.html"


def slugify(text: str, separator: str = "-") -> str:
    """Convert text to URL-friendly slug."""
    text = text.lower().strip()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[\s_-]+", separator, text)
    return text.strip(separator)


def path_to_title(path: str) -> str:
    """Convert a file path to a readable title."""
    name = PurePosixPath(path).stem

    # Remove common prefixes like ch01-, chapter-01-, etc.
    name = re.sub(r"^(ch(apter)?[-_]?)?\d+[-_]?", "", name, flags=re.IGNORECASE)

    # Convert kebab-case and snake_case to title case
    name = re.sub(r"[-_]", " ", name).strip()

    if name:
        return name.title()

    # Fallback to filename
    return PurePosixPath(path).stem.title()

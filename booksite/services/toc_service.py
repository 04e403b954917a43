"""TOC (Table of Contents) service implementation.

Builds the book's navigation tree from the manifest. Parts and chapters
appear exactly in manifest order; nothing is sorted or deduplicated.
"""

import posixpath
from typing import Iterable, Optional

from ..domain import BookManifest, NavNode, NavTree, path_to_title


class TocService:
    """Service for building book navigation.

    Named parts become group nodes; chapters listed outside any part
    become top-level leaves.
    """

    def build_navigation(
        self,
        manifest: BookManifest,
        titles: Optional[dict[str, str]] = None,
        skip: Iterable[str] = (),
    ) -> NavTree:
        """Build the navigation tree for a book.

        Args:
            manifest: The book manifest.
            titles: Chapter titles keyed by manifest path. Chapters without
                a title fall back to one derived from the file name.
            skip: Chapter paths to leave out (e.g. chapters that failed
                to render). Parts left empty are dropped.

        Returns:
            NavTree mirroring the manifest order.
        """
        titles = titles or {}
        skipped = set(skip)
        nodes: list[NavNode] = []

        for part in manifest.parts:
            leaves = [
                NavNode(
                    title=titles.get(chapter.path) or path_to_title(chapter.path),
                    href=chapter.output_path,
                    path=chapter.path,
                )
                for chapter in part.chapters
                if chapter.path not in skipped
            ]

            if not part.is_named:
                nodes.extend(leaves)
            elif leaves:
                nodes.append(NavNode(title=part.title, children=leaves))

        return NavTree(title=manifest.title, nodes=nodes)

    def neighbours(
        self, tree: NavTree, position: int
    ) -> tuple[Optional[NavNode], Optional[NavNode]]:
        """Get the previous and next chapters around a reading position.

        Args:
            tree: The navigation tree.
            position: Index into ``tree.leaves()``.

        Returns:
            (previous, next), either of which may be None.
        """
        leaves = tree.leaves()
        previous = leaves[position - 1] if position > 0 else None
        following = leaves[position + 1] if position + 1 < len(leaves) else None
        return previous, following

    def relative_href(self, target: str, current: str) -> str:
        """Link from the page at ``current`` to ``target``.

        Both paths are relative to the site root.
        """
        start = posixpath.dirname(current) or "."
        return posixpath.relpath(target, start)

    def generate_toc_markdown(self, manifest: BookManifest) -> str:
        """Generate a markdown TOC for the book from file-derived titles."""
        return self.build_navigation(manifest).to_markdown()

"""
Tests for book navigation

Tests:
- Navigation tree built in manifest order
- Loose chapters as top-level entries
- Skipped chapters and empty parts
- Relative links between pages
- Markdown TOC output
"""

from pathlib import Path

import pytest

from booksite.domain import BookManifest, ChapterRef, NavNode, NavTree, Part, path_to_title
from booksite.services import TocService


def chapter(path: str) -> ChapterRef:
    return ChapterRef(path=path, source=Path("/book") / path)


def make_manifest(*parts: Part) -> BookManifest:
    return BookManifest(
        title="My Book",
        root=Path("/book"),
        manifest_path=Path("/book/_quarto.yml"),
        parts=parts,
    )


@pytest.fixture
def toc_service():
    """Create a TocService."""
    return TocService()


@pytest.fixture
def manifest():
    """A book with a loose chapter followed by two parts."""
    return make_manifest(
        Part(title=None, chapters=(chapter("index.qmd"),)),
        Part(
            title="Part II",
            chapters=(chapter("zeta/b.qmd"), chapter("alpha/a.qmd")),
        ),
        Part(title="Part I", chapters=(chapter("ch01-getting-started.md"),)),
    )


class TestBuildNavigation:
    """Test building the navigation tree."""

    def test_manifest_order_is_kept(self, toc_service, manifest):
        """Parts and chapters should not be sorted."""
        tree = toc_service.build_navigation(manifest)

        assert tree.title == "My Book"
        assert [node.title for node in tree.nodes] == ["Index", "Part II", "Part I"]
        assert [node.path for node in tree.nodes[1].children] == [
            "zeta/b.qmd",
            "alpha/a.qmd",
        ]

    def test_parts_are_groups(self, toc_service, manifest):
        """Named parts should be group nodes without links."""
        tree = toc_service.build_navigation(manifest)

        assert not tree.nodes[0].is_group
        assert tree.nodes[1].is_group
        assert tree.nodes[1].href is None

    def test_leaf_hrefs(self, toc_service, manifest):
        """Leaves should link to the chapter's html page."""
        tree = toc_service.build_navigation(manifest)

        assert [leaf.href for leaf in tree.leaves()] == [
            "index.html",
            "zeta/b.html",
            "alpha/a.html",
            "ch01-getting-started.html",
        ]

    def test_titles_override_file_names(self, toc_service, manifest):
        """Rendered titles should be used where given."""
        tree = toc_service.build_navigation(manifest, titles={"zeta/b.qmd": "Bee"})

        assert tree.leaves()[1].title == "Bee"
        assert tree.leaves()[3].title == "Getting Started"

    def test_skipped_chapters_are_left_out(self, toc_service, manifest):
        """Skipped chapters vanish and empty parts are dropped."""
        tree = toc_service.build_navigation(
            manifest, skip=["ch01-getting-started.md", "alpha/a.qmd"]
        )

        assert [node.title for node in tree.nodes] == ["Index", "Part II"]
        assert [leaf.path for leaf in tree.leaves()] == ["index.qmd", "zeta/b.qmd"]

    def test_loose_chapters_between_parts(self, toc_service):
        """Unnamed parts should contribute top-level leaves."""
        book = make_manifest(
            Part(title="One", chapters=(chapter("a.md"),)),
            Part(title=None, chapters=(chapter("b.md"), chapter("c.md"))),
        )

        tree = toc_service.build_navigation(book)

        assert [node.title for node in tree.nodes] == ["One", "B", "C"]
        assert [node.is_group for node in tree.nodes] == [True, False, False]


class TestNeighbours:
    """Test previous/next lookup."""

    def test_middle(self, toc_service, manifest):
        tree = toc_service.build_navigation(manifest)

        previous, following = toc_service.neighbours(tree, 1)

        assert previous.path == "index.qmd"
        assert following.path == "alpha/a.qmd"

    def test_ends(self, toc_service, manifest):
        tree = toc_service.build_navigation(manifest)

        assert toc_service.neighbours(tree, 0)[0] is None
        assert toc_service.neighbours(tree, 3)[1] is None


class TestRelativeHref:
    """Test links between pages."""

    @pytest.mark.parametrize(
        "target, current, expected",
        [
            ("b.html", "a.html", "b.html"),
            ("index.html", "content/design/dao.html", "../../index.html"),
            ("content/fs/x.html", "content/design/dao.html", "../fs/x.html"),
            ("content/design/y.html", "index.html", "content/design/y.html"),
            ("assets/pygments.css", "part/page.html", "../assets/pygments.css"),
        ],
    )
    def test_relative_href(self, toc_service, target, current, expected):
        assert toc_service.relative_href(target, current) == expected


class TestTocMarkdown:
    """Test markdown TOC generation."""

    def test_generate_toc_markdown(self, toc_service, manifest):
        """Should list parts in bold and chapters as links."""
        result = toc_service.generate_toc_markdown(manifest)

        assert result == (
            "# My Book\n"
            "\n"
            "- [Index](index.html)\n"
            "- **Part II**\n"
            "  - [B](zeta/b.html)\n"
            "  - [A](alpha/a.html)\n"
            "- **Part I**\n"
            "  - [Getting Started](ch01-getting-started.html)"
        )

    def test_to_markdown_empty_tree(self):
        assert NavTree(title="Empty").to_markdown() == "# Empty\n"

    def test_group_node(self):
        node = NavNode(title="Part", children=[NavNode(title="A", href="a.html")])

        assert node.is_group
        assert not node.children[0].is_group


class TestPathToTitle:
    """Test title derivation from file names."""

    @pytest.mark.parametrize(
        "path, expected",
        [
            ("chapter-01-introduction.md", "Introduction"),
            ("ch02_getting_started.md", "Getting Started"),
            ("01-basics.md", "Basics"),
            ("content/design/design_platform-abs-layer.qmd", "Design Platform Abs Layer"),
            ("content/fs/download-file.ipynb", "Download File"),
            ("index.qmd", "Index"),
        ],
    )
    def test_path_to_title(self, path, expected):
        assert path_to_title(path) == expected

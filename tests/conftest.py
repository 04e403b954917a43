"""Shared fixtures for booksite tests."""

import textwrap
from pathlib import Path
from typing import Callable

import nbformat
import pytest
from nbformat.v4 import (
    new_code_cell,
    new_markdown_cell,
    new_notebook,
    new_output,
)

from booksite.domain import ChapterDocument, ChapterRef, DocumentKind
from booksite.infrastructure import configure_services
from booksite.services import IManifestService, ISiteService


@pytest.fixture
def container():
    """Create a container with the default service wiring."""
    return configure_services()


@pytest.fixture
def manifest_service(container):
    """The real manifest service."""
    return container.resolve(IManifestService)


@pytest.fixture
def site_service(container):
    """The real site service."""
    return container.resolve(ISiteService)


@pytest.fixture
def make_project(tmp_path) -> Callable[..., Path]:
    """Create a book project on disk.

    Returns a function taking the manifest YAML and a mapping of
    relative paths to file contents.
    """

    def _make(manifest: str, files: dict[str, str], root: Path | None = None) -> Path:
        root = root or tmp_path / "book"
        root.mkdir(parents=True, exist_ok=True)
        for relative, content in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        (root / "_quarto.yml").write_text(textwrap.dedent(manifest), encoding="utf-8")
        return root

    return _make


def make_document(path: str, raw: str, kind: DocumentKind | None = None) -> ChapterDocument:
    """Build a ChapterDocument without touching the filesystem."""
    if kind is None:
        kind = DocumentKind.NOTEBOOK if path.endswith(".ipynb") else DocumentKind.MARKDOWN
    return ChapterDocument(
        ref=ChapterRef(path=path, source=Path("/book") / path),
        raw=raw,
        kind=kind,
    )


def sample_notebook() -> str:
    """A small notebook with prose, code and a recorded output."""
    notebook = new_notebook(
        cells=[
            new_markdown_cell("# Downloading Files\n\nIntro prose."),
            new_code_cell(
                "print('hello')",
                execution_count=1,
                outputs=[new_output("stream", name="stdout", text="hello\n")],
            ),
            new_markdown_cell("After the code."),
        ],
        metadata={"kernelspec": {"name": "python3", "language": "python", "display_name": "Python 3"}},
    )
    return nbformat.writes(notebook)


def read_tree(root: Path) -> dict[str, bytes]:
    """Snapshot every file under a directory."""
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }

"""Manifest loading service implementation.

Parses a Quarto-style book manifest (``_quarto.yml``) into a validated
BookManifest. Structural problems fail fast with ManifestParseError and
missing chapter files with ManifestReferenceError.
"""

import logging
import posixpath
from datetime import date, datetime
from pathlib import Path
from typing import Any, NoReturn, Optional

import yaml

from ..config import BuildConfig
from ..domain import (
    BookManifest,
    ChapterRef,
    FormatOptions,
    FreezeMode,
    ManifestParseError,
    ManifestReferenceError,
    Part,
    SiteIOError,
)
from ..repositories.interfaces import IConfigRepository, IFileRepository

logger = logging.getLogger(__name__)


TOP_LEVEL_KEYS = {"project", "book", "bibliography", "format", "freeze", "execute"}
PROJECT_KEYS = {"type", "output-dir"}
BOOK_KEYS = {
    "title",
    "subtitle",
    "description",
    "author",
    "date",
    "repo-url",
    "site-url",
    "chapters",
}
EXECUTE_KEYS = {"freeze", "echo", "eval", "warning"}
PART_KEYS = {"part", "chapters"}


class ManifestService:
    """Service for loading book manifests.

    Validates the loosely-typed YAML structure into frozen dataclasses,
    rejecting unknown or missing keys.
    """

    def __init__(
        self,
        file_repo: IFileRepository,
        config_repo: IConfigRepository,
    ) -> None:
        """Initialize the manifest service with required dependencies.

        Args:
            file_repo: Repository for file system operations.
            config_repo: Repository for YAML parsing.
        """
        self._file_repo = file_repo
        self._config_repo = config_repo

    def load_manifest(self, path: Path) -> BookManifest:
        """Load and validate a manifest.

        Args:
            path: The manifest file, or a project directory containing one.

        Returns:
            The validated BookManifest.

        Raises:
            SiteIOError: If the manifest cannot be read.
            ManifestParseError: If the manifest is malformed.
            ManifestReferenceError: If a referenced file does not exist.
        """
        manifest_path = BuildConfig.manifest_path(Path(path)).resolve()
        if not self._file_repo.is_file(manifest_path):
            raise SiteIOError(manifest_path, "manifest not found")

        try:
            data = self._config_repo.load_yaml(manifest_path)
        except yaml.YAMLError as e:
            raise ManifestParseError(f"invalid YAML: {e}", manifest_path) from e
        except UnicodeDecodeError as e:
            raise ManifestParseError(f"not valid UTF-8: {e}", manifest_path) from e
        except OSError as e:
            raise SiteIOError(manifest_path, str(e)) from e

        manifest = self.parse_manifest(data, manifest_path)
        self._check_references(manifest)

        logger.debug(
            "Loaded manifest %s with %d part(s) and %d chapter(s)",
            manifest_path,
            len(manifest.parts),
            len(manifest.chapters),
        )
        return manifest

    def parse_manifest(self, data: Any, manifest_path: Path) -> BookManifest:
        """Validate parsed YAML data into a BookManifest.

        References are resolved against the manifest's directory but
        not checked for existence.
        """
        root = manifest_path.parent
        errors = _Errors(manifest_path)

        if not isinstance(data, dict):
            errors.fail("manifest must be a mapping")
        errors.check_keys(data, TOP_LEVEL_KEYS, "top level")

        project = data.get("project") or {}
        if not isinstance(project, dict):
            errors.fail("'project' must be a mapping")
        errors.check_keys(project, PROJECT_KEYS, "project")
        project_type = project.get("type", "book")
        if project_type != "book":
            errors.fail(f"unsupported project type {project_type!r}, expected 'book'")
        output_dir = _optional_str(
            project.get("output-dir"), "project.output-dir", errors
        )
        if output_dir is not None:
            _check_relative(output_dir, "project.output-dir", errors)
            if posixpath.normpath(output_dir.replace("\\", "/")) == ".":
                errors.fail("'project.output-dir' must not be the project directory")

        if "book" not in data:
            errors.fail("missing required key 'book'")
        book = data["book"]
        if not isinstance(book, dict):
            errors.fail("'book' must be a mapping")
        errors.check_keys(book, BOOK_KEYS, "book")
        for required in ("title", "chapters"):
            if required not in book:
                errors.fail(f"missing required key 'book.{required}'")

        title = _optional_str(book.get("title"), "book.title", errors)
        if not title:
            errors.fail("'book.title' must not be empty")

        bibliography = _optional_str(data.get("bibliography"), "bibliography", errors)
        if bibliography is not None:
            _check_relative(bibliography, "bibliography", errors)

        return BookManifest(
            title=title,
            root=root,
            manifest_path=manifest_path,
            author=_parse_author(book.get("author"), errors),
            subtitle=_optional_str(book.get("subtitle"), "book.subtitle", errors),
            description=_optional_str(
                book.get("description"), "book.description", errors
            ),
            date=_parse_date(book.get("date"), errors),
            repo_url=_optional_str(book.get("repo-url"), "book.repo-url", errors),
            site_url=_optional_str(book.get("site-url"), "book.site-url", errors),
            bibliography=bibliography,
            parts=self._parse_parts(book["chapters"], root, errors),
            formats=_parse_formats(data.get("format"), errors),
            freeze=_parse_freeze(data, errors),
            output_dir=output_dir or BuildConfig.DEFAULT_OUTPUT_DIR,
        )

    def _parse_parts(self, entries: Any, root: Path, errors: "_Errors") -> tuple:
        """Group chapter entries into parts, preserving order.

        Adjacent bare chapter paths form one unnamed part.
        """
        if not isinstance(entries, list) or not entries:
            errors.fail("'book.chapters' must be a non-empty list")

        parts: list[Part] = []
        loose: list[ChapterRef] = []

        for position, entry in enumerate(entries, start=1):
            if isinstance(entry, str):
                loose.append(self._chapter_ref(entry, root, errors))
                continue

            if not isinstance(entry, dict) or "part" not in entry:
                errors.fail(
                    f"chapter entry {position} must be a path or a mapping with 'part'"
                )
            errors.check_keys(entry, PART_KEYS, f"part entry {position}")

            if loose:
                parts.append(Part(title=None, chapters=tuple(loose)))
                loose = []

            part_title = entry["part"]
            if not isinstance(part_title, str) or not part_title.strip():
                errors.fail(f"part entry {position} needs a non-empty title")
            chapters = entry.get("chapters")
            if not isinstance(chapters, list) or not chapters:
                errors.fail(f"part {part_title!r} must list at least one chapter")
            refs = []
            for chapter in chapters:
                if not isinstance(chapter, str):
                    errors.fail(f"part {part_title!r} has a non-string chapter entry")
                refs.append(self._chapter_ref(chapter, root, errors))
            parts.append(Part(title=part_title, chapters=tuple(refs)))

        if loose:
            parts.append(Part(title=None, chapters=tuple(loose)))

        _check_unique([chapter for part in parts for chapter in part.chapters], errors)
        return tuple(parts)

    def _chapter_ref(self, path: str, root: Path, errors: "_Errors") -> ChapterRef:
        normalized = path.strip().replace("\\", "/")
        if not normalized:
            errors.fail("chapter path must not be empty")
        _check_relative(normalized, f"chapter {path!r}", errors)
        if normalized.startswith("./"):
            normalized = normalized[2:]
        return ChapterRef(path=normalized, source=root / normalized)

    def _check_references(self, manifest: BookManifest) -> None:
        """Raise ManifestReferenceError listing every missing file."""
        missing = [
            chapter.path
            for chapter in manifest.chapters
            if not self._file_repo.is_file(chapter.source)
        ]
        if manifest.bibliography and not self._file_repo.is_file(
            manifest.root / manifest.bibliography
        ):
            missing.append(manifest.bibliography)

        if missing:
            raise ManifestReferenceError(missing, manifest.manifest_path)


class _Errors:
    """Raises ManifestParseError bound to the manifest path."""

    def __init__(self, manifest_path: Path) -> None:
        self._manifest_path = manifest_path

    def fail(self, message: str) -> NoReturn:
        raise ManifestParseError(message, self._manifest_path)

    def check_keys(self, mapping: dict, allowed: set[str], where: str) -> None:
        unknown = sorted(str(key) for key in mapping if key not in allowed)
        if unknown:
            self.fail(f"unknown key(s) at {where}: {', '.join(unknown)}")


def _optional_str(value: Any, name: str, errors: _Errors) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        errors.fail(f"'{name}' must be a string")
    return str(value)


def _check_relative(path: str, name: str, errors: _Errors) -> None:
    """Reject absolute paths and paths that leave the project."""
    normalized = posixpath.normpath(path)
    if posixpath.isabs(normalized) or normalized.split("/")[0] == "..":
        errors.fail(f"{name} must stay inside the project directory")


def _check_unique(chapters: list[ChapterRef], errors: _Errors) -> None:
    """Each chapter is listed once and gets a page of its own."""
    pages: dict[str, str] = {}
    for chapter in chapters:
        other = pages.get(chapter.output_path)
        if other == chapter.path:
            errors.fail(f"chapter {chapter.path!r} is listed more than once")
        if other is not None:
            errors.fail(
                f"chapters {other!r} and {chapter.path!r} would both be "
                f"written to {chapter.output_path!r}"
            )
        pages[chapter.output_path] = chapter.path


def _parse_author(value: Any, errors: _Errors) -> Optional[str]:
    if isinstance(value, list):
        names = [_optional_str(item, "book.author", errors) for item in value]
        return ", ".join(name for name in names if name) or None
    return _optional_str(value, "book.author", errors)


def _parse_date(value: Any, errors: _Errors) -> Optional[str]:
    # Unquoted YAML dates arrive as date objects
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return _optional_str(value, "book.date", errors)


def _parse_freeze(data: dict, errors: _Errors) -> FreezeMode:
    execute = data.get("execute") or {}
    if not isinstance(execute, dict):
        errors.fail("'execute' must be a mapping")
    errors.check_keys(execute, EXECUTE_KEYS, "execute")

    value = data["freeze"] if "freeze" in data else execute.get("freeze")
    try:
        return FreezeMode.parse(value)
    except ValueError as e:
        errors.fail(str(e))


def _parse_formats(value: Any, errors: _Errors) -> dict[str, FormatOptions]:
    if value is None:
        return {"html": FormatOptions()}
    if not isinstance(value, dict):
        errors.fail("'format' must be a mapping of format names to options")

    formats: dict[str, FormatOptions] = {}
    for name, options in value.items():
        if options is None or options == "default":
            options = {}
        if not isinstance(options, dict):
            errors.fail(f"options for format {name!r} must be a mapping")
        formats[str(name)] = _parse_format_options(str(name), options, errors)
    return formats


def _parse_format_options(name: str, options: dict, errors: _Errors) -> FormatOptions:
    extra = dict(options)

    theme = _string_list(extra.pop("theme", None), f"format.{name}.theme", errors)
    css = _string_list(extra.pop("css", None), f"format.{name}.css", errors)

    toc = extra.pop("toc", True)
    if not isinstance(toc, bool):
        errors.fail(f"'format.{name}.toc' must be true or false")

    highlight_style = extra.pop("highlight-style", BuildConfig.DEFAULT_HIGHLIGHT_STYLE)
    if not isinstance(highlight_style, str):
        errors.fail(f"'format.{name}.highlight-style' must be a string")

    return FormatOptions(
        theme=theme or ("default",),
        toc=toc,
        highlight_style=highlight_style,
        css=css,
        options=extra,
    )


def _string_list(value: Any, name: str, errors: _Errors) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return tuple(value)
    errors.fail(f"'{name}' must be a string or a list of strings")

"""Site service implementation.

Builds the static HTML site: renders every chapter in manifest order,
assembles the navigation tree, and writes one page per chapter plus the
landing page, stylesheets, search index and sitemap. Chapters that fail
to render are reported and skipped; the rest of the book is still built.
"""

import html
import json
import logging
import re
from pathlib import Path
from typing import Optional

from pygments.formatters import HtmlFormatter
from pygments.util import ClassNotFound

from ..config import BuildConfig
from ..domain import (
    BookManifest,
    BuildContext,
    ChapterRef,
    FormatOptions,
    NavNode,
    NavTree,
    Page,
    RenderedChapter,
    RenderError,
    RenderFailure,
    Site,
    SiteIOError,
)
from ..repositories.interfaces import IFileRepository
from .interfaces import IFreezeService, IReaderService, IRenderService
from .toc_service import TocService

logger = logging.getLogger(__name__)


# HTML template for every page of the book
HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="{lang}">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <meta name="generator" content="booksite">
    {meta}
    <title>{title}</title>
    {stylesheets}
    <style>
        body {{
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            line-height: 1.6;
            color: #333;
            margin: 0;
        }}
        .book {{ display: flex; min-height: 100vh; }}
        .sidebar {{ flex: 0 0 260px; padding: 1.5rem 1rem; border-right: 1px solid #eee; background: #fafafa; }}
        .sidebar ul {{ list-style: none; padding-left: 0; margin: 0; }}
        .sidebar ul ul {{ padding-left: 1rem; }}
        .sidebar li {{ margin: 0.25rem 0; }}
        .sidebar a {{ text-decoration: none; }}
        .sidebar a.active {{ font-weight: bold; }}
        .sidebar .sidebar-title {{ font-size: 1.2rem; font-weight: bold; margin-bottom: 1rem; }}
        .sidebar .sidebar-part > span {{ display: block; margin-top: 0.75rem; font-weight: 600; color: #666; }}
        main {{ flex: 1; max-width: 800px; margin: 0 auto; padding: 2rem; }}
        h1, h2, h3, h4 {{ color: #2c3e50; }}
        pre {{ background: #f5f5f5; padding: 1rem; overflow-x: auto; border-radius: 4px; }}
        code {{ background: #f5f5f5; padding: 0.2em 0.4em; border-radius: 3px; }}
        pre code {{ background: none; padding: 0; }}
        table {{ border-collapse: collapse; width: 100%; margin: 1rem 0; }}
        th, td {{ border: 1px solid #ddd; padding: 0.75rem; text-align: left; }}
        blockquote {{ border-left: 4px solid #ddd; margin: 0; padding-left: 1rem; color: #666; }}
        .task-list {{ list-style: none; padding-left: 0; }}
        .mermaid {{ background: #fff; padding: 1rem; margin: 1rem 0; }}
        .toc {{ background: #f9f9f9; padding: 1rem; border-radius: 4px; margin-bottom: 2rem; }}
        .toc ul {{ margin: 0.5rem 0; padding-left: 1.5rem; }}
        .cell {{ margin: 1rem 0; }}
        .cell-output {{ border-left: 3px solid #ddd; }}
        .cell-output-error {{ color: #a00; }}
        [class^="callout"] {{ border-left: 4px solid #0d6efd; padding: 0.5rem 1rem; margin: 1rem 0; background: #f4f8ff; }}
        .title-block {{ margin-bottom: 2rem; }}
        .page-navigation {{ display: flex; justify-content: space-between; margin-top: 3rem; padding-top: 1rem; border-top: 1px solid #eee; }}
        footer {{ margin-top: 2rem; font-size: 0.9em; color: #666; }}
        img {{ max-width: 100%; height: auto; }}
    </style>
</head>
<body>
<div class="book">
    <nav class="sidebar" id="sidebar">
{sidebar}
    </nav>
    <main class="content">
{content}
{pager}
{footer}
    </main>
</div>
{scripts}
</body>
</html>
"""

# Mermaid initialization script
MERMAID_SCRIPT = """<script type="module">
    import mermaid from '{mermaid_cdn}';
    mermaid.initialize({{ startOnLoad: true, theme: 'default' }});
</script>"""

SITEMAP_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
{urls}
</urlset>
"""

INDEX_PAGE = "index.html"
SEARCH_INDEX = "search.json"
SITEMAP = "sitemap.xml"


class SiteService:
    """Service for building a complete static site from a manifest.

    Output is deterministic: the same manifest, sources and build
    context always produce byte-identical files.
    """

    TAG_PATTERN = re.compile(r"<[^>]+>")
    WHITESPACE_PATTERN = re.compile(r"\s+")

    def __init__(
        self,
        file_repo: IFileRepository,
        reader_service: IReaderService,
        render_service: IRenderService,
        toc_service: TocService,
        freeze_service: IFreezeService,
    ) -> None:
        """Initialize the site service with required dependencies.

        Args:
            file_repo: Repository for file system operations.
            reader_service: Service for reading chapter sources.
            render_service: Service for converting chapters to HTML.
            toc_service: Service for building navigation.
            freeze_service: Service for caching rendered chapters.
        """
        self._file_repo = file_repo
        self._reader_service = reader_service
        self._render_service = render_service
        self._toc_service = toc_service
        self._freeze_service = freeze_service

    def build_site(
        self,
        manifest: BookManifest,
        context: Optional[BuildContext] = None,
        output_dir: Optional[Path] = None,
        clean: bool = False,
    ) -> Site:
        """Build the book into a static HTML site.

        Args:
            manifest: The validated book manifest.
            context: Build-wide values such as today's date.
            output_dir: Output directory (default: the manifest's).
            clean: Remove the output directory before writing.

        Returns:
            The built Site, including any per-chapter failures.

        Raises:
            SiteIOError: If reading a source or writing output fails, or if
                the output directory would overwrite the project.
        """
        context = context or BuildContext.create()
        options = self._html_options(manifest)
        output_dir = Path(output_dir) if output_dir else manifest.output_root
        self._check_output_dir(manifest, output_dir)

        if clean and self._file_repo.exists(output_dir):
            logger.info("Removing previous output in %s", output_dir)
            try:
                self._file_repo.remove_tree(output_dir)
            except OSError as e:
                raise SiteIOError(output_dir, e.strerror or str(e)) from e

        logger.info("Building '%s' into %s", manifest.title, output_dir)

        rendered: dict[str, RenderedChapter] = {}
        failures: list[RenderFailure] = []

        for chapter in manifest.chapters:
            try:
                rendered[chapter.path] = self._render(manifest, chapter, options)
            except RenderError as e:
                failures.append(RenderFailure(path=e.path, reason=e.reason))
                logger.warning(
                    "Skipping chapter: %s", e.reason, extra={"chapter": e.path}
                )

        navigation = self._toc_service.build_navigation(
            manifest,
            titles={path: chapter.title for path, chapter in rendered.items()},
            skip=[failure.path for failure in failures],
        )

        writer = _SiteWriter(self._file_repo, output_dir)
        stylesheets = self._write_assets(writer, manifest, options)

        pages: list[Page] = []
        leaves = navigation.leaves()
        has_landing = any(leaf.href == INDEX_PAGE for leaf in leaves)

        for position, leaf in enumerate(leaves):
            chapter = rendered[leaf.path]
            previous, following = self._toc_service.neighbours(navigation, position)
            content = chapter.html
            if leaf.href == INDEX_PAGE:
                content = self._title_block(manifest, context) + content
            page_html = self._page(
                manifest,
                options,
                navigation,
                current=leaf.href,
                title=chapter.title,
                content=content,
                stylesheets=stylesheets,
                previous=previous,
                following=following,
            )
            writer.write(leaf.href, page_html)
            pages.append(Page(path=leaf.path, output_path=leaf.href, title=chapter.title))

        if not has_landing:
            writer.write(
                INDEX_PAGE,
                self._index_page(manifest, context, options, navigation, stylesheets),
            )

        writer.write(SEARCH_INDEX, self._search_index(navigation, rendered))
        if manifest.site_url:
            writer.write(SITEMAP, self._sitemap(manifest, navigation, has_landing))

        logger.info(
            "Built %d page(s) with %d failure(s)", len(pages), len(failures)
        )
        return Site(
            output_dir=output_dir,
            navigation=navigation,
            pages=pages,
            failures=failures,
            files=writer.files,
        )

    def _check_output_dir(self, manifest: BookManifest, output_dir: Path) -> None:
        """Refuse to write over the project's sources.

        Raises:
            SiteIOError: If the output directory is, or contains, the
                project root.
        """
        target = output_dir.resolve()
        root = manifest.root.resolve()
        if target == root or target in root.parents:
            raise SiteIOError(
                output_dir, "output directory must not contain the project directory"
            )

    def _html_options(self, manifest: BookManifest) -> FormatOptions:
        """Pick the HTML format options, noting formats that are skipped."""
        for name in manifest.formats:
            if name not in BuildConfig.SUPPORTED_FORMATS:
                logger.info("Skipping unsupported output format '%s'", name)
        return manifest.html_format or FormatOptions()

    def _render(
        self, manifest: BookManifest, chapter: ChapterRef, options: FormatOptions
    ) -> RenderedChapter:
        """Render one chapter, reusing a frozen render when allowed."""
        document = self._reader_service.read_chapter(chapter)
        digest = self._freeze_service.fingerprint(document, f"toc={options.toc}")

        frozen = self._freeze_service.load(
            manifest.root, chapter.path, digest, manifest.freeze
        )
        if frozen is not None:
            logger.debug("Using frozen render", extra={"chapter": chapter.path})
            return frozen

        result = self._render_service.render_document(document, options)
        self._freeze_service.store(manifest.root, digest, result, manifest.freeze)
        return result

    def _write_assets(
        self, writer: "_SiteWriter", manifest: BookManifest, options: FormatOptions
    ) -> list[str]:
        """Write stylesheets and return their site-relative hrefs, in order.

        Absolute URLs are returned as-is.
        """
        stylesheets: list[str] = []

        for theme in options.theme:
            url = BuildConfig.theme_stylesheet(theme)
            if url is None:
                logger.warning("Unknown theme '%s' was skipped", theme)
                continue
            stylesheets.append(url)

        try:
            formatter = HtmlFormatter(style=options.highlight_style)
        except ClassNotFound:
            logger.warning(
                "Unknown highlight style '%s', using default", options.highlight_style
            )
            formatter = HtmlFormatter(style=BuildConfig.DEFAULT_HIGHLIGHT_STYLE)
        pygments_css = f"{BuildConfig.ASSETS_DIR}/pygments.css"
        writer.write(pygments_css, formatter.get_style_defs(".highlight") + "\n")
        stylesheets.append(pygments_css)

        for css in options.css:
            if css.startswith(("http://", "https://", "//")):
                stylesheets.append(css)
                continue
            source = manifest.root / css
            if not self._file_repo.is_file(source):
                logger.warning("Stylesheet '%s' not found, skipped", css)
                continue
            writer.copy(source, css)
            stylesheets.append(css)

        return stylesheets

    def _page(
        self,
        manifest: BookManifest,
        options: FormatOptions,
        navigation: NavTree,
        current: str,
        title: str,
        content: str,
        stylesheets: list[str],
        previous: Optional[NavNode] = None,
        following: Optional[NavNode] = None,
    ) -> str:
        """Assemble a complete HTML page."""
        rel = self._toc_service.relative_href

        meta: list[str] = []
        if manifest.author:
            meta.append(f'<meta name="author" content="{html.escape(manifest.author)}">')
        if manifest.description:
            meta.append(
                f'<meta name="description" content="{html.escape(manifest.description)}">'
            )
        if manifest.site_url:
            meta.append(
                f'<link rel="canonical" href="{html.escape(_site_link(manifest.site_url, current))}">'
            )

        links = [
            f'<link rel="stylesheet" href="{html.escape(_href(sheet, current, rel))}">'
            for sheet in stylesheets
        ]

        pager: list[str] = []
        if previous is not None:
            pager.append(
                f'<a class="previous" href="{html.escape(rel(previous.href, current))}">'
                f"&larr; {html.escape(previous.title)}</a>"
            )
        if following is not None:
            pager.append(
                f'<a class="next" href="{html.escape(rel(following.href, current))}">'
                f"{html.escape(following.title)} &rarr;</a>"
            )
        pager_html = (
            f'<nav class="page-navigation">{"".join(pager)}</nav>' if pager else ""
        )

        footer = ""
        if manifest.repo_url:
            footer = (
                f'<footer><a href="{html.escape(manifest.repo_url)}">'
                "View source</a></footer>"
            )

        scripts = ""
        if 'class="mermaid"' in content:
            scripts = MERMAID_SCRIPT.format(mermaid_cdn=BuildConfig.MERMAID_CDN)

        page_title = title if title == manifest.title else f"{title} - {manifest.title}"

        return HTML_TEMPLATE.format(
            lang=html.escape(str(options.options.get("lang", "en"))),
            meta="\n    ".join(meta),
            title=html.escape(page_title),
            stylesheets="\n    ".join(links),
            sidebar=self._sidebar(manifest, navigation, current),
            content=content,
            pager=pager_html,
            footer=footer,
            scripts=scripts,
        )

    def _sidebar(self, manifest: BookManifest, navigation: NavTree, current: str) -> str:
        """Render the navigation tree with the current page marked."""
        rel = self._toc_service.relative_href

        def item(node: NavNode) -> str:
            css = ' class="active"' if node.href == current else ""
            return (
                f'<li><a{css} href="{html.escape(rel(node.href, current))}">'
                f"{html.escape(node.title)}</a></li>"
            )

        lines = [
            f'<div class="sidebar-title"><a href="{rel(INDEX_PAGE, current)}">'
            f"{html.escape(manifest.title)}</a></div>",
            '<ul class="sidebar-nav">',
        ]
        for node in navigation.nodes:
            if node.is_group:
                lines.append(
                    f'<li class="sidebar-part"><span>{html.escape(node.title)}</span><ul>'
                )
                lines.extend(item(child) for child in node.children)
                lines.append("</ul></li>")
            else:
                lines.append(item(node))
        lines.append("</ul>")
        return "\n".join(lines)

    def _title_block(self, manifest: BookManifest, context: BuildContext) -> str:
        """Render the book's title, author and resolved date."""
        lines = [
            '<header class="title-block">',
            f'<h1 class="title">{html.escape(manifest.title)}</h1>',
        ]
        if manifest.subtitle:
            lines.append(f'<p class="subtitle">{html.escape(manifest.subtitle)}</p>')
        if manifest.author:
            lines.append(f'<p class="author">{html.escape(manifest.author)}</p>')
        resolved_date = context.resolve_date(manifest.date)
        if resolved_date:
            lines.append(f'<p class="date">{html.escape(resolved_date)}</p>')
        lines.append("</header>\n")
        return "\n".join(lines)

    def _index_page(
        self,
        manifest: BookManifest,
        context: BuildContext,
        options: FormatOptions,
        navigation: NavTree,
        stylesheets: list[str],
    ) -> str:
        """Generate a landing page listing all chapters."""
        content = [self._title_block(manifest, context)]
        if manifest.description:
            content.append(f"<p>{html.escape(manifest.description)}</p>")
        content.append("<h2>Chapters</h2>")
        content.append(_nav_list(navigation.nodes))

        leaves = navigation.leaves()
        return self._page(
            manifest,
            options,
            navigation,
            current=INDEX_PAGE,
            title=manifest.title,
            content="\n".join(content),
            stylesheets=stylesheets,
            following=leaves[0] if leaves else None,
        )

    def _search_index(
        self, navigation: NavTree, rendered: dict[str, RenderedChapter]
    ) -> str:
        """Build the search index: one entry per page, in reading order."""
        entries = []
        for section, leaf in _leaves_with_sections(navigation):
            chapter = rendered[leaf.path]
            entries.append(
                {
                    "objectID": leaf.href,
                    "href": leaf.href,
                    "title": chapter.title,
                    "section": section,
                    "text": self._plain_text(chapter.html),
                }
            )
        return json.dumps(entries, indent=2, ensure_ascii=False) + "\n"

    def _sitemap(
        self, manifest: BookManifest, navigation: NavTree, has_landing: bool
    ) -> str:
        hrefs = [] if has_landing else [INDEX_PAGE]
        for leaf in navigation.leaves():
            if leaf.href not in hrefs:
                hrefs.append(leaf.href)
        urls = "\n".join(
            f"  <url><loc>{html.escape(_site_link(manifest.site_url, href))}</loc></url>"
            for href in hrefs
        )
        return SITEMAP_TEMPLATE.format(urls=urls)

    def _plain_text(self, fragment: str) -> str:
        text = html.unescape(self.TAG_PATTERN.sub(" ", fragment)).replace("¶", "")
        return self.WHITESPACE_PATTERN.sub(" ", text).strip()


class _SiteWriter:
    """Writes files under the output directory and records them."""

    def __init__(self, file_repo: IFileRepository, output_dir: Path) -> None:
        self._file_repo = file_repo
        self._output_dir = output_dir
        self.files: list[str] = []

    def write(self, relative: str, content: str) -> None:
        target = self._output_dir / relative
        try:
            self._file_repo.write_text(target, content)
        except OSError as e:
            raise SiteIOError(target, e.strerror or str(e)) from e
        self._record(relative)

    def copy(self, source: Path, relative: str) -> None:
        target = self._output_dir / relative
        try:
            self._file_repo.copy_file(source, target)
        except OSError as e:
            raise SiteIOError(target, e.strerror or str(e)) from e
        self._record(relative)

    def _record(self, relative: str) -> None:
        if relative not in self.files:
            self.files.append(relative)


def _leaves_with_sections(navigation: NavTree) -> list[tuple[str, NavNode]]:
    """Pair every chapter with the title of its part ("" outside parts)."""
    result: list[tuple[str, NavNode]] = []
    for node in navigation.nodes:
        if node.is_group:
            result.extend((node.title, child) for child in node.children)
        else:
            result.append(("", node))
    return result


def _nav_list(nodes: list[NavNode]) -> str:
    lines = ["<ul>"]
    for node in nodes:
        if node.is_group:
            lines.append(f"<li>{html.escape(node.title)}")
            lines.append(_nav_list(node.children))
            lines.append("</li>")
        else:
            lines.append(
                f'<li><a href="{html.escape(node.href)}">{html.escape(node.title)}</a></li>'
            )
    lines.append("</ul>")
    return "\n".join(lines)


def _href(target: str, current: str, rel) -> str:
    if target.startswith(("http://", "https://", "//")):
        return target
    return rel(target, current)


def _site_link(site_url: str, href: str) -> str:
    return f"{site_url.rstrip('/')}/{href}"

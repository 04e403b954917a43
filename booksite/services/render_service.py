"""Render service implementation.

Provides markdown to HTML rendering using the markdown library with
pymdown-extensions for enhanced features like tables, footnotes,
task lists, and code highlighting. Jupyter notebooks are read with
nbformat and rendered cell by cell, keeping prose, code and recorded
outputs in source order.
"""

import html
import re
from typing import Optional

import markdown
import nbformat
import yaml
from markdown.extensions.toc import TocExtension
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.util import ClassNotFound
from pymdownx.superfences import fence_div_format

from ..config import BuildConfig
from ..domain import (
    Cell,
    ChapterDocument,
    DocumentKind,
    FormatOptions,
    RenderedChapter,
    RenderError,
    TocEntry,
    path_to_title,
    slugify,
)


class RenderService:
    """Service for rendering chapters to HTML fragments.

    Handles Quarto markdown conventions on top of plain markdown:
    - YAML front matter (title, toc)
    - Executable fences such as ```{python} with #| option lines
    - Pandoc fenced divs (::: {.callout-note})
    - Mermaid diagram fences
    """

    FRONTMATTER_PATTERN = re.compile(
        r"\A---[ \t]*\n(.*?)^---[ \t]*$\n?", re.DOTALL | re.MULTILINE
    )
    CODE_FENCE_PATTERN = re.compile(r"^(\s*)(`{3,}|~{3,})(.*)$")
    EXECUTABLE_FENCE_PATTERN = re.compile(r"^\{\.?([\w+#.-]+)[^}]*\}$")
    DIV_OPEN_PATTERN = re.compile(r"^:{3,}\s*(\{[^}]*\}|[\w-]+)\s*$")
    DIV_CLOSE_PATTERN = re.compile(r"^:{3,}\s*$")
    DIV_ATTRIBUTE_PATTERN = re.compile(r'([.#])([\w:-]+)|([\w-]+)=("[^"]*"|\S+)')
    TITLE_HEADING_PATTERN = re.compile(r"^#\s+(.+?)(?:\s+\{[^}]*\})?\s*#*\s*$")
    CELL_OPTION_PREFIX = "#|"
    CELL_PLACEHOLDER = "BOOKSITENOTEBOOKCELL"
    ANSI_PATTERN = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")

    # Display data in order of preference
    DISPLAY_MIME_TYPES = [
        "text/html",
        "image/svg+xml",
        "image/png",
        "image/jpeg",
        "text/markdown",
        "text/plain",
    ]

    def __init__(self) -> None:
        """Initialize the render service."""
        self._md = self._create_markdown_processor()

    def _create_markdown_processor(self) -> markdown.Markdown:
        """Create configured markdown processor with extensions."""
        extensions = list(BuildConfig.MARKDOWN_EXTENSIONS) + [
            TocExtension(
                permalink=True,
                slugify=slugify,
                toc_depth=BuildConfig.TOC_DEPTH,
            ),
        ]
        extension_configs = {
            "pymdownx.highlight": {
                "css_class": "highlight",
                "guess_lang": False,
                "use_pygments": True,
            },
            "pymdownx.tasklist": {"custom_checkbox": True},
            "pymdownx.superfences": {
                "custom_fences": [
                    {
                        "name": "mermaid",
                        "class": "mermaid",
                        "format": fence_div_format,
                    }
                ]
            },
        }
        return markdown.Markdown(
            extensions=extensions,
            extension_configs=extension_configs,
            output_format="html5",
        )

    def render_chapter(
        self, document: ChapterDocument, options: Optional[FormatOptions] = None
    ) -> str:
        """Render a chapter to an HTML fragment.

        Args:
            document: The chapter to render.
            options: HTML format options (in-page TOC on by default).

        Returns:
            The rendered HTML content (body only, not full document).

        Raises:
            RenderError: If the document cannot be parsed.
        """
        return self.render_document(document, options).html

    def render_document(
        self, document: ChapterDocument, options: Optional[FormatOptions] = None
    ) -> RenderedChapter:
        """Render a chapter and derive its title.

        The title comes from front matter, then the first level-one
        heading, then the file name.
        """
        options = options or FormatOptions()

        if document.kind == DocumentKind.NOTEBOOK:
            frontmatter, body, heading, toc = self._render_notebook(document)
        else:
            frontmatter, text = self._split_frontmatter(document.path, document.raw)
            body, heading, toc = self._convert_markdown(document.path, text)

        title = _frontmatter_str(frontmatter, "title") or heading
        parts: list[str] = []
        if _frontmatter_str(frontmatter, "title"):
            parts.append(f'<h1 class="title">{html.escape(title)}</h1>')
        subtitle = _frontmatter_str(frontmatter, "subtitle")
        if subtitle:
            parts.append(f'<p class="subtitle">{html.escape(subtitle)}</p>')

        show_toc = frontmatter.get("toc", options.toc)
        if show_toc is True and toc:
            parts.append(self._toc_html(toc))
        parts.append(body)

        return RenderedChapter(
            path=document.path,
            title=title or path_to_title(document.path),
            html="\n".join(part for part in parts if part) + "\n",
        )

    # Markdown

    def _split_frontmatter(self, path: str, content: str) -> tuple[dict, str]:
        """Split YAML front matter from markdown content."""
        match = self.FRONTMATTER_PATTERN.match(content)
        if not match:
            return {}, content

        try:
            data = yaml.safe_load(match.group(1)) or {}
        except yaml.YAMLError as e:
            raise RenderError(path, f"invalid front matter: {e}") from e
        if not isinstance(data, dict):
            raise RenderError(path, "front matter must be a mapping")
        return data, content[match.end() :]

    def _convert_markdown(
        self, path: str, content: str
    ) -> tuple[str, Optional[str], list[TocEntry]]:
        """Convert markdown to HTML.

        Returns:
            The HTML, the first level-one heading (if any), and the
            heading entries for the in-page table of contents.
        """
        text, heading = self._preprocess(path, content)

        self._md.reset()
        body = self._md.convert(text)
        toc = _toc_entries(getattr(self._md, "toc_tokens", []))

        return body, heading, toc

    def _preprocess(self, path: str, content: str) -> tuple[str, Optional[str]]:
        """Rewrite Quarto constructs into plain markdown.

        Executable fences become plain language fences without their
        option lines, and fenced divs become ``<div markdown="1">``
        blocks. Code fence contents are never rewritten.

        Raises:
            RenderError: If fenced divs are unbalanced.
        """
        output: list[str] = []
        heading: Optional[str] = None
        fence_char = ""
        fence_len = 0
        strip_options = False
        div_depth = 0

        for line_num, line in enumerate(content.split("\n"), start=1):
            stripped = line.strip()

            if fence_char:
                if (
                    stripped
                    and set(stripped) == {fence_char}
                    and len(stripped) >= fence_len
                ):
                    fence_char = ""
                    strip_options = False
                elif strip_options and stripped.startswith(self.CELL_OPTION_PREFIX):
                    continue
                else:
                    strip_options = False
                output.append(line)
                continue

            fence = self.CODE_FENCE_PATTERN.match(line)
            if fence:
                indent, marker, info = fence.groups()
                fence_char = marker[0]
                fence_len = len(marker)
                executable = self.EXECUTABLE_FENCE_PATTERN.match(info.strip())
                if executable:
                    line = f"{indent}{marker}{executable.group(1)}"
                    strip_options = True
                output.append(line)
                continue

            div_open = self.DIV_OPEN_PATTERN.match(line)
            if div_open:
                div_depth += 1
                attributes = self._div_attributes(div_open.group(1))
                output.extend(["", f'<div{attributes} markdown="1">', ""])
                continue

            if self.DIV_CLOSE_PATTERN.match(line):
                if div_depth == 0:
                    raise RenderError(
                        path, f"line {line_num}: closing ':::' without an open div"
                    )
                div_depth -= 1
                output.extend(["", "</div>", ""])
                continue

            if heading is None:
                title = self.TITLE_HEADING_PATTERN.match(line)
                if title:
                    heading = title.group(1).strip()

            output.append(line)

        if div_depth:
            raise RenderError(path, f"{div_depth} fenced div(s) not closed")

        return "\n".join(output), heading

    def _div_attributes(self, spec: str) -> str:
        """Convert a pandoc attribute block to HTML attributes."""
        if not spec.startswith("{"):
            return f' class="{html.escape(spec)}"'

        classes: list[str] = []
        element_id = ""
        others: list[str] = []
        for match in self.DIV_ATTRIBUTE_PATTERN.finditer(spec[1:-1]):
            marker, name, key, value = match.groups()
            if marker == ".":
                classes.append(name)
            elif marker == "#":
                element_id = name
            elif key and key != "markdown":
                others.append(f'{key}="{html.escape(value.strip(chr(34)))}"')

        attributes = ""
        if element_id:
            attributes += f' id="{html.escape(element_id)}"'
        if classes:
            attributes += f' class="{html.escape(" ".join(classes))}"'
        for other in others:
            attributes += f" {other}"
        return attributes

    # Notebooks

    def _render_notebook(
        self, document: ChapterDocument
    ) -> tuple[dict, str, Optional[str], list[TocEntry]]:
        """Render notebook cells in order.

        A leading raw cell holding YAML front matter is treated like
        markdown front matter.
        """
        try:
            notebook = nbformat.reads(document.raw, as_version=4)
            nbformat.validate(notebook)
        except (
            ValueError,
            KeyError,
            TypeError,
            AttributeError,
            nbformat.ValidationError,
        ) as e:
            raise RenderError(document.path, f"invalid notebook: {e}") from e

        cells = [
            Cell(
                cell_type=cell.cell_type,
                source=cell.source,
                outputs=list(cell.get("outputs", [])),
                metadata=dict(cell.get("metadata", {})),
            )
            for cell in notebook.cells
        ]

        frontmatter: dict = {}
        if cells and cells[0].cell_type == "raw" and cells[0].source.startswith("---"):
            frontmatter, _ = self._split_frontmatter(
                document.path, cells[0].source.rstrip() + "\n"
            )
            cells = cells[1:]

        metadata = notebook.metadata
        language = (
            metadata.get("kernelspec", {}).get("language")
            or metadata.get("language_info", {}).get("name")
            or BuildConfig.DEFAULT_CODE_LANGUAGE
        )

        # Markdown cells are converted together so heading and footnote ids
        # are unique across the notebook; other cells are spliced back in.
        chunks: list[str] = []
        stashed: dict[str, str] = {}

        for index, cell in enumerate(cells, start=1):
            if cell.cell_type == "markdown":
                chunks.append(cell.source)
                continue
            if cell.cell_type == "code":
                rendered = self._render_code_cell(document.path, index, cell, language)
            elif cell.cell_type == "raw":
                rendered = self._render_raw_cell(cell)
            else:
                continue
            if rendered:
                placeholder = f"{self.CELL_PLACEHOLDER}{index}"
                stashed[placeholder] = rendered
                chunks.append(placeholder)

        body, heading, toc = self._convert_markdown(document.path, "\n\n".join(chunks))
        for placeholder, rendered in stashed.items():
            body = body.replace(f"<p>{placeholder}</p>", rendered)

        return frontmatter, body, heading, toc

    def _render_code_cell(
        self, path: str, index: int, cell: Cell, language: str
    ) -> str:
        """Render a code cell's source and recorded outputs."""
        options, code = self._split_cell_options(path, index, cell.source)
        if options.get("include") is False:
            return ""

        parts = ['<div class="cell">']
        if options.get("echo", True) is not False and code.strip():
            parts.append(
                f'<div class="cell-code">{self._highlight(code, language)}</div>'
            )
        if options.get("output", True) is not False:
            for output in cell.outputs:
                rendered = self._render_output(path, output)
                if rendered:
                    parts.append(rendered)
        parts.append("</div>")

        if len(parts) == 2:
            return ""
        return "\n".join(parts)

    def _split_cell_options(
        self, path: str, index: int, source: str
    ) -> tuple[dict, str]:
        """Split leading ``#|`` option lines from a code cell."""
        lines = source.split("\n")
        option_lines: list[str] = []
        while lines and lines[0].startswith(self.CELL_OPTION_PREFIX):
            option_lines.append(lines.pop(0)[len(self.CELL_OPTION_PREFIX) :])

        if not option_lines:
            return {}, source

        try:
            options = yaml.safe_load("\n".join(option_lines)) or {}
        except yaml.YAMLError as e:
            raise RenderError(path, f"cell {index}: invalid cell options: {e}") from e
        if not isinstance(options, dict):
            raise RenderError(path, f"cell {index}: cell options must be a mapping")
        return options, "\n".join(lines)

    def _render_raw_cell(self, cell: Cell) -> str:
        """Pass through raw cells targeted at HTML."""
        target = cell.metadata.get("format") or cell.metadata.get("raw_mimetype", "")
        if target in ("text/html", "html"):
            return cell.source
        return ""

    def _render_output(self, path: str, output: dict) -> str:
        """Render one recorded output of a code cell."""
        output_type = output.get("output_type")

        if output_type == "stream":
            name = output.get("name", "stdout")
            text = _join_text(output.get("text", ""))
            return (
                f'<pre class="cell-output cell-output-{html.escape(name)}">'
                f"<code>{html.escape(text)}</code></pre>"
            )

        if output_type == "error":
            traceback = "\n".join(output.get("traceback", [])) or (
                f"{output.get('ename', 'Error')}: {output.get('evalue', '')}"
            )
            text = self.ANSI_PATTERN.sub("", traceback)
            return (
                '<pre class="cell-output cell-output-error">'
                f"<code>{html.escape(text)}</code></pre>"
            )

        if output_type in ("execute_result", "display_data"):
            data = output.get("data", {})
            for mime in self.DISPLAY_MIME_TYPES:
                if mime in data:
                    return self._render_display(path, mime, data[mime])

        return ""

    def _render_display(self, path: str, mime: str, value) -> str:
        content = _join_text(value)
        if mime in ("text/html", "image/svg+xml"):
            return f'<div class="cell-output cell-output-display">\n{content}\n</div>'
        if mime in ("image/png", "image/jpeg"):
            data = "".join(content.split())
            return (
                '<div class="cell-output cell-output-display">'
                f'<img src="data:{mime};base64,{data}" alt=""></div>'
            )
        if mime == "text/markdown":
            body, _, _ = self._convert_markdown(path, content)
            return f'<div class="cell-output cell-output-display">\n{body}\n</div>'
        return (
            '<pre class="cell-output cell-output-display">'
            f"<code>{html.escape(content)}</code></pre>"
        )

    def _highlight(self, code: str, language: str) -> str:
        """Highlight code with Pygments."""
        try:
            lexer = get_lexer_by_name(language)
        except ClassNotFound:
            lexer = TextLexer()
        return highlight(code, lexer, HtmlFormatter(cssclass="highlight"))

    def _toc_html(self, entries: list[TocEntry]) -> str:
        """Render the in-page table of contents."""
        return (
            '<nav class="toc" id="TOC">\n<h2>On this page</h2>\n'
            f"{_toc_list(entries)}\n</nav>"
        )


def _toc_entries(tokens: list[dict]) -> list[TocEntry]:
    """Convert markdown toc tokens to TocEntry objects.

    Level-one headings are the chapter title and are skipped, with
    their children lifted up a level.
    """
    entries: list[TocEntry] = []
    for token in tokens:
        children = _toc_entries(token.get("children", []))
        if token["level"] < 2:
            entries.extend(children)
            continue
        entries.append(
            TocEntry(
                title=html.unescape(token["name"]),
                level=token["level"],
                anchor=token["id"],
                children=children,
            )
        )
    return entries


def _toc_list(entries: list[TocEntry]) -> str:
    items = []
    for entry in entries:
        children = _toc_list(entry.children) if entry.children else ""
        items.append(
            f'<li><a href="#{html.escape(entry.anchor)}">'
            f"{html.escape(entry.title)}</a>{children}</li>"
        )
    return f"<ul>{''.join(items)}</ul>"


def _frontmatter_str(frontmatter: dict, key: str) -> Optional[str]:
    value = frontmatter.get(key)
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def _join_text(value) -> str:
    if isinstance(value, list):
        return "".join(value)
    return str(value)

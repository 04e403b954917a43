"""Tests for chapter rendering.

Tests markdown and Quarto markdown conversion, title derivation,
notebook cell rendering, and per-document RenderErrors.
"""

import html
import re

import nbformat
import pytest
from nbformat.v4 import (
    new_code_cell,
    new_markdown_cell,
    new_notebook,
    new_output,
    new_raw_cell,
)

from booksite.domain import FormatOptions, RenderError
from booksite.services.render_service import RenderService

from conftest import make_document, sample_notebook


@pytest.fixture
def render_service():
    """Create a RenderService."""
    return RenderService()


def plain_text(fragment: str) -> str:
    """Strip tags and entities from rendered HTML."""
    return html.unescape(re.sub(r"<[^>]+>", "", fragment))


class TestMarkdownRendering:
    """Tests for markdown documents."""

    def test_paragraph_then_code_block(self, render_service):
        """Prose and fenced code both appear, in source order."""
        document = make_document(
            "chapter.md",
            'Some prose here.\n\n```python\nprint("hi")\n```\n',
        )

        text = plain_text(render_service.render_chapter(document))

        assert "Some prose here." in text
        assert 'print("hi")' in text
        assert text.index("Some prose here.") < text.index('print("hi")')

    def test_code_is_highlighted(self, render_service):
        """Fenced code should go through Pygments."""
        document = make_document("chapter.md", "```python\nx = 1\n```\n")

        result = render_service.render_chapter(document)

        assert 'class="highlight"' in result

    def test_tables_and_footnotes(self, render_service):
        """Tables and footnotes extensions are enabled."""
        document = make_document(
            "chapter.md",
            "| Code | Meaning |\n|---|---|\n| 404 | Not Found |\n\nText[^1]\n\n[^1]: Note.\n",
        )

        result = render_service.render_chapter(document)

        assert "<table>" in result
        assert "<td>404</td>" in result
        assert 'class="footnote' in result

    def test_mermaid_block(self, render_service):
        """Mermaid fences become diagram divs."""
        document = make_document("chapter.md", "```mermaid\ngraph TD\n  A-->B\n```\n")

        result = render_service.render_chapter(document)

        assert 'class="mermaid"' in result


class TestTitles:
    """Tests for chapter title derivation."""

    def test_title_from_front_matter(self, render_service):
        """Front matter title wins and is rendered as a heading."""
        document = make_document(
            "chapter.qmd", "---\ntitle: My Chapter\n---\n\n# Other\n\nBody text.\n"
        )

        rendered = render_service.render_document(document)

        assert rendered.title == "My Chapter"
        assert '<h1 class="title">My Chapter</h1>' in rendered.html
        assert "title:" not in rendered.html

    def test_title_from_first_heading(self, render_service):
        """The first level-one heading is the title."""
        document = make_document("chapter.md", "# HTTP Status Codes {#sec-http}\n\nBody.\n")

        rendered = render_service.render_document(document)

        assert rendered.title == "HTTP Status Codes"

    def test_code_comments_are_not_titles(self, render_service):
        """A '#' comment inside a code fence is not a heading."""
        document = make_document(
            "content/design/design_dao.qmd",
            "```python\n# not a title\nx = 1\n```\n\nText.\n",
        )

        rendered = render_service.render_document(document)

        assert rendered.title == "Design Dao"

    def test_title_from_file_name(self, render_service):
        """Without a heading the title comes from the file name."""
        document = make_document("content/backend/ssh-overview.qmd", "Just text.\n")

        rendered = render_service.render_document(document)

        assert rendered.title == "Ssh Overview"


class TestQuartoMarkdown:
    """Tests for Quarto markdown conventions."""

    def test_executable_fence_is_plain_code(self, render_service):
        """```{python} fences render as python code without option lines."""
        document = make_document(
            "chapter.qmd",
            "```{python}\n#| echo: true\n#| label: setup\nimport os\n```\n",
        )

        result = render_service.render_chapter(document)
        text = plain_text(result)

        assert "import os" in text
        assert "#|" not in text
        assert "{python}" not in text

    def test_fenced_div(self, render_service):
        """Pandoc fenced divs become divs with rendered markdown inside."""
        document = make_document(
            "chapter.qmd",
            "::: {.callout-note #tip}\nRemember **this**.\n:::\n",
        )

        result = render_service.render_chapter(document)

        assert 'class="callout-note"' in result
        assert 'id="tip"' in result
        assert "<strong>this</strong>" in result

    def test_nested_fenced_divs(self, render_service):
        """Nested divs are balanced."""
        document = make_document(
            "chapter.qmd",
            "::: outer\n\n:::: {.inner}\nInside.\n::::\n\n:::\n",
        )

        result = render_service.render_chapter(document)

        assert 'class="outer"' in result
        assert 'class="inner"' in result

    def test_fence_markers_inside_code_are_left_alone(self, render_service):
        """A ':::' line inside a code block is code, not a div."""
        document = make_document("chapter.md", "```text\n:::\n```\n")

        result = render_service.render_chapter(document)

        assert ":::" in plain_text(result)

    def test_in_page_toc(self, render_service):
        """Second to fourth level headings are listed in the page TOC."""
        document = make_document(
            "chapter.md", "# Title\n\n## Alpha\n\n### Beta\n\n## Gamma\n"
        )

        result = render_service.render_chapter(document)

        assert 'id="TOC"' in result
        assert 'href="#alpha"' in result
        assert 'href="#beta"' in result
        assert result.index('href="#alpha"') < result.index('href="#gamma"')

    def test_toc_can_be_disabled(self, render_service):
        """The format's toc option turns the page TOC off."""
        document = make_document("chapter.md", "# Title\n\n## Alpha\n")

        result = render_service.render_chapter(document, FormatOptions(toc=False))

        assert 'id="TOC"' not in result

    def test_front_matter_toc_overrides_format(self, render_service):
        """A document can turn its own TOC off."""
        document = make_document("chapter.md", "---\ntoc: false\n---\n## Alpha\n")

        result = render_service.render_chapter(document)

        assert 'id="TOC"' not in result


class TestMarkdownRenderErrors:
    """Tests for malformed markdown documents."""

    def test_unclosed_fenced_div(self, render_service):
        document = make_document("broken.qmd", "::: {.callout-warning}\nNever closed.\n")

        with pytest.raises(RenderError) as exc_info:
            render_service.render_chapter(document)

        assert exc_info.value.path == "broken.qmd"
        assert "not closed" in exc_info.value.reason

    def test_stray_closing_div(self, render_service):
        document = make_document("broken.qmd", "Text.\n\n:::\n")

        with pytest.raises(RenderError) as exc_info:
            render_service.render_chapter(document)

        assert "line 3" in exc_info.value.reason

    def test_invalid_front_matter(self, render_service):
        document = make_document("broken.qmd", "---\ntitle: [unclosed\n---\nBody.\n")

        with pytest.raises(RenderError) as exc_info:
            render_service.render_chapter(document)

        assert "front matter" in exc_info.value.reason


class TestNotebookRendering:
    """Tests for Jupyter notebook documents."""

    def test_cells_render_in_order(self, render_service):
        """Prose, code and output keep their notebook order."""
        document = make_document("content/fs/download-file.ipynb", sample_notebook())

        rendered = render_service.render_document(document)
        text = plain_text(rendered.html)

        assert rendered.title == "Downloading Files"
        assert text.index("Intro prose.") < text.index("print('hello')")
        assert text.index("print('hello')") < text.index("After the code.")
        assert rendered.html.index("cell-code") < rendered.html.index("cell-output-stdout")
        assert rendered.html.index("cell-output-stdout") < rendered.html.index("After the code.")

    def test_rich_outputs(self, render_service):
        """Images and plain-text results are rendered."""
        notebook = new_notebook(
            cells=[
                new_code_cell(
                    "plot()",
                    execution_count=1,
                    outputs=[
                        new_output(
                            "display_data",
                            data={"image/png": "iVBORw0KGgo=", "text/plain": "<Figure>"},
                        ),
                        new_output(
                            "execute_result",
                            data={"text/plain": "42"},
                            execution_count=1,
                        ),
                    ],
                )
            ]
        )
        document = make_document("plot.ipynb", nbformat.writes(notebook))

        result = render_service.render_chapter(document)

        assert 'src="data:image/png;base64,iVBORw0KGgo="' in result
        assert "&lt;Figure&gt;" not in result
        assert "<code>42</code>" in result

    def test_error_output_strips_ansi(self, render_service):
        """Tracebacks are shown without terminal colour codes."""
        notebook = new_notebook(
            cells=[
                new_code_cell(
                    "raise ValueError('bad')",
                    execution_count=1,
                    outputs=[
                        new_output(
                            "error",
                            ename="ValueError",
                            evalue="bad",
                            traceback=["\x1b[0;31mValueError\x1b[0m: bad"],
                        )
                    ],
                )
            ]
        )
        document = make_document("error.ipynb", nbformat.writes(notebook))

        result = render_service.render_chapter(document)

        assert "cell-output-error" in result
        assert "ValueError: bad" in result
        assert "\x1b" not in result

    def test_echo_false_hides_code(self, render_service):
        """#| echo: false keeps the output but hides the source."""
        notebook = new_notebook(
            cells=[
                new_code_cell(
                    "#| echo: false\nprint(1)",
                    execution_count=1,
                    outputs=[new_output("stream", name="stdout", text="1\n")],
                )
            ]
        )
        document = make_document("hidden.ipynb", nbformat.writes(notebook))

        result = render_service.render_chapter(document)

        assert "cell-code" not in result
        assert "cell-output-stdout" in result

    def test_raw_front_matter_cell(self, render_service):
        """A leading raw YAML cell provides the title."""
        notebook = new_notebook(
            cells=[
                new_raw_cell("---\ntitle: From Raw\n---"),
                new_markdown_cell("Body."),
            ]
        )
        document = make_document("raw.ipynb", nbformat.writes(notebook))

        rendered = render_service.render_document(document)

        assert rendered.title == "From Raw"
        assert "---" not in plain_text(rendered.html)

    def test_heading_ids_are_unique_across_cells(self, render_service):
        """Repeated headings in separate cells get distinct anchors."""
        notebook = new_notebook(
            cells=[
                new_markdown_cell("## Setup\n\nFirst."),
                new_code_cell("x = 1"),
                new_markdown_cell("## Setup\n\nSecond."),
            ]
        )
        document = make_document("repeat.ipynb", nbformat.writes(notebook))

        result = render_service.render_chapter(document)

        assert result.count('id="setup"') == 1
        assert 'id="setup_1"' in result
        assert 'href="#setup_1"' in result
        assert result.index("First.") < result.index("cell-code")
        assert result.index("cell-code") < result.index("Second.")

    def test_footnote_ids_are_unique_across_cells(self, render_service):
        notebook = new_notebook(
            cells=[
                new_markdown_cell("One[^a]\n\n[^a]: Note one."),
                new_markdown_cell("Two[^b]\n\n[^b]: Note two."),
            ]
        )
        document = make_document("notes.ipynb", nbformat.writes(notebook))

        result = render_service.render_chapter(document)

        assert result.count('id="fnref:a"') == 1
        assert result.count('id="fnref:b"') == 1
        assert result.count('class="footnote"') == 1

    def test_invalid_notebook(self, render_service):
        """Unparseable notebook JSON is a RenderError for that document."""
        document = make_document("broken.ipynb", "{not json")

        with pytest.raises(RenderError) as exc_info:
            render_service.render_chapter(document)

        assert exc_info.value.path == "broken.ipynb"
        assert "invalid notebook" in exc_info.value.reason

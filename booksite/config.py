"""
Configuration settings for the book site builder
"""

import logging
import os
from pathlib import Path
from typing import Optional


class BuildConfig:
    """Configuration class for build settings."""

    # Project layout
    MANIFEST_NAME = "_quarto.yml"
    DEFAULT_OUTPUT_DIR = "_book"
    FREEZE_DIR = "_freeze"
    ASSETS_DIR = "assets"

    # Chapter sources
    MARKDOWN_SUFFIXES = {".md", ".qmd", ".markdown"}
    NOTEBOOK_SUFFIXES = {".ipynb"}

    # Output formats the builder can render
    SUPPORTED_FORMATS = {"html"}

    # Markdown rendering settings
    MARKDOWN_EXTENSIONS = [
        "tables",
        "footnotes",
        "attr_list",
        "def_list",
        "md_in_html",
        "pymdownx.highlight",
        "pymdownx.superfences",
        "pymdownx.tasklist",
    ]

    # In-page table of contents heading range
    TOC_DEPTH = "2-4"

    # Code highlighting
    DEFAULT_HIGHLIGHT_STYLE = "default"
    DEFAULT_CODE_LANGUAGE = "python"

    # Themes
    BOOTSTRAP_CSS = "https://cdn.jsdelivr.net/npm/bootstrap@5.3.3/dist/css/bootstrap.min.css"
    BOOTSWATCH_CSS = "https://cdn.jsdelivr.net/npm/bootswatch@5.3.3/dist/{theme}/bootstrap.min.css"
    BOOTSWATCH_THEMES = {
        "cerulean", "cosmo", "cyborg", "darkly", "flatly", "journal", "litera",
        "lumen", "lux", "materia", "minty", "morph", "pulse", "quartz",
        "sandstone", "simplex", "sketchy", "slate", "solar", "spacelab",
        "superhero", "united", "vapor", "yeti", "zephyr",
    }

    # Mermaid.js CDN URL
    MERMAID_CDN = "https://cdn.jsdelivr.net/npm/mermaid/dist/mermaid.esm.min.mjs"

    # Environment overrides
    OUTPUT_DIR_ENV = "BOOKSITE_OUTPUT_DIR"
    LOG_LEVEL_ENV = "BOOKSITE_LOG_LEVEL"

    @classmethod
    def get_output_dir(cls, override: Optional[str] = None) -> Optional[Path]:
        """Get an output directory override, checking environment variables."""
        if override:
            return Path(override)
        env_dir = os.environ.get(cls.OUTPUT_DIR_ENV)
        if env_dir:
            return Path(env_dir)
        return None

    @classmethod
    def get_log_level(cls, verbose: bool = False) -> int:
        """Get the log level, checking environment variables."""
        if verbose:
            return logging.DEBUG
        env_level = os.environ.get(cls.LOG_LEVEL_ENV, "")
        level = logging.getLevelName(env_level.upper()) if env_level else logging.INFO
        return level if isinstance(level, int) else logging.INFO

    @classmethod
    def theme_stylesheet(cls, theme: str) -> Optional[str]:
        """Map a theme name to a stylesheet URL, or None if unknown."""
        name = theme.strip().lower()
        if name == "default":
            return cls.BOOTSTRAP_CSS
        if name in cls.BOOTSWATCH_THEMES:
            return cls.BOOTSWATCH_CSS.format(theme=name)
        return None

    @classmethod
    def manifest_path(cls, project: Path) -> Path:
        """Resolve a project directory or manifest file to the manifest path."""
        project = Path(project)
        if project.is_dir():
            return project / cls.MANIFEST_NAME
        return project

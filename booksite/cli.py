"""Command-line interface for booksite.

Provides a Click-based CLI for validating book manifests and building
them into static HTML sites.
"""

import sys
from datetime import datetime
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from .config import BuildConfig
from .domain import (
    BookManifest,
    BuildContext,
    ManifestParseError,
    ManifestReferenceError,
    Site,
    SiteIOError,
)
from .infrastructure import ServiceContainer, configure_services
from .log import setup_logging
from .repositories import IFileRepository
from .services import IManifestService, ISiteService, TocService

try:
    __version__ = get_version("booksite")
except PackageNotFoundError:
    __version__ = "0.0.0"


# Context keys
CONTAINER_KEY = "container"

# Exit codes
EXIT_RENDER_FAILURES = 1
EXIT_MANIFEST_ERROR = 2


def get_container(ctx: click.Context) -> ServiceContainer:
    """Get the service container from click context."""
    return ctx.obj[CONTAINER_KEY]


def resolve_project_path(project: str | None) -> Path:
    """Resolve the project argument (directory or manifest file)."""
    if project is not None:
        return Path(project).resolve()
    return Path.cwd()


def load_manifest_or_exit(ctx: click.Context, project: str | None) -> BookManifest:
    """Load the manifest, reporting errors and exiting on failure."""
    manifest_service = get_container(ctx).resolve(IManifestService)
    project_path = resolve_project_path(project)

    try:
        return manifest_service.load_manifest(project_path)
    except ManifestReferenceError as e:
        click.echo("Error: The manifest references missing files:", err=True)
        for path in e.paths:
            click.echo(f"  {path}", err=True)
        sys.exit(EXIT_MANIFEST_ERROR)
    except ManifestParseError as e:
        click.echo(f"Error: Invalid manifest - {e}", err=True)
        sys.exit(EXIT_MANIFEST_ERROR)
    except SiteIOError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_MANIFEST_ERROR)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.version_option(version=__version__, prog_name="booksite")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """booksite - Build static HTML books from a Quarto-style manifest.

    PROJECT arguments accept a project directory containing _quarto.yml
    or the path of a manifest file (default: current directory).
    """
    ctx.ensure_object(dict)
    setup_logging(BuildConfig.get_log_level(verbose))
    ctx.obj[CONTAINER_KEY] = configure_services()


@cli.command()
@click.argument("project", type=click.Path(exists=True), default=None, required=False)
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    help="Output directory (default: project output-dir, or $BOOKSITE_OUTPUT_DIR).",
)
@click.option("--clean", is_flag=True, help="Remove the output directory first.")
@click.option(
    "--date",
    "build_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Date used for 'today' in the manifest (default: current date).",
)
@click.pass_context
def build(
    ctx: click.Context,
    project: str | None,
    output: str | None,
    clean: bool,
    build_date: datetime | None,
) -> None:
    """Build the book to HTML.

    Renders every chapter in manifest order. Chapters that fail to
    render are reported and skipped; the command then exits with
    status 1.
    """
    manifest = load_manifest_or_exit(ctx, project)
    site_service = get_container(ctx).resolve(ISiteService)
    context = BuildContext.create(build_date.date() if build_date else None)
    output_dir = BuildConfig.get_output_dir(output)

    click.echo(f"Building book: {manifest.title}")

    try:
        site = site_service.build_site(
            manifest,
            context,
            output_dir=output_dir.resolve() if output_dir else None,
            clean=clean,
        )
    except SiteIOError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_RENDER_FAILURES)

    click.echo(f"Generated {len(site.pages)} page(s) in {site.output_dir}")

    if not site.ok:
        _print_failures(site)
        sys.exit(EXIT_RENDER_FAILURES)

    click.echo(f"\nOpen {site.index_path} to view the book.")


def _print_failures(site: Site) -> None:
    """Print a table of chapters that failed to render."""
    table = Table(title=f"{len(site.failures)} chapter(s) failed to render")
    table.add_column("Chapter", style="red", no_wrap=True)
    table.add_column("Reason")
    for failure in site.failures:
        table.add_row(failure.path, failure.reason)
    Console().print(table)


@cli.command()
@click.argument("project", type=click.Path(exists=True), default=None, required=False)
@click.pass_context
def check(ctx: click.Context, project: str | None) -> None:
    """Validate the manifest without building.

    Checks the manifest structure and that every chapter exists.
    """
    manifest = load_manifest_or_exit(ctx, project)
    click.echo(
        f"Manifest OK: {len(manifest.parts)} part(s), "
        f"{len(manifest.chapters)} chapter(s)"
    )


@cli.command()
@click.argument("project", type=click.Path(exists=True), default=None, required=False)
@click.pass_context
def info(ctx: click.Context, project: str | None) -> None:
    """Show book information.

    Displays the book metadata and the parts and chapters in order.
    """
    manifest = load_manifest_or_exit(ctx, project)

    click.echo(f"\nTitle: {manifest.title}")
    if manifest.author:
        click.echo(f"Author: {manifest.author}")
    if manifest.date:
        click.echo(f"Date: {manifest.date}")
    if manifest.repo_url:
        click.echo(f"Repository: {manifest.repo_url}")
    if manifest.site_url:
        click.echo(f"Site: {manifest.site_url}")
    if manifest.bibliography:
        click.echo(f"Bibliography: {manifest.bibliography}")
    click.echo(f"Formats: {', '.join(manifest.formats) or 'html'}")
    click.echo(f"Freeze: {manifest.freeze.value}")
    click.echo(f"Location: {manifest.root}")

    click.echo(f"\nChapters ({len(manifest.chapters)}):")
    for part in manifest.parts:
        indent = "  "
        if part.is_named:
            click.echo(f"  {part.title}")
            indent = "    "
        for chapter in part.chapters:
            click.echo(f"{indent}{chapter.path}")


@cli.command()
@click.argument("project", type=click.Path(exists=True), default=None, required=False)
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    help="Output file for TOC (default: stdout).",
)
@click.pass_context
def toc(ctx: click.Context, project: str | None, output: str | None) -> None:
    """Print the navigation tree as markdown.

    Titles are derived from file names; chapters are not rendered.
    """
    manifest = load_manifest_or_exit(ctx, project)
    toc_service = get_container(ctx).resolve(TocService)

    toc_md = toc_service.generate_toc_markdown(manifest)

    if output:
        output_path = Path(output).resolve()
        file_repo = get_container(ctx).resolve(IFileRepository)
        try:
            file_repo.write_text(output_path, toc_md + "\n")
        except OSError as e:
            click.echo(f"Error: {output_path}: {e.strerror or e}", err=True)
            sys.exit(EXIT_RENDER_FAILURES)
        click.echo(f"TOC written to {output_path}")
    else:
        click.echo(toc_md)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()

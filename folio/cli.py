"""Command-line interface for Folio.

Commands:
- build: Build the site into the output directory.
- serve: Run the development server with live reload.
- post: Create a new dated post.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import click
import questionary

from . import __version__
from .config import DRAFTS, POSTS, load_config
from .errors import BuildError
from .frontmatter import dump_frontmatter
from .utils import slugify, split_date_token, strip_extensions


@click.group()
@click.version_option(version=__version__, prog_name="folio")
def cli():
    """Folio static site generator."""


@cli.command()
@click.argument(
    "source",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
)
@click.argument(
    "destination", type=click.Path(file_okay=False, path_type=Path), required=False
)
@click.option("--drafts", is_flag=True, help="Include the _drafts collection")
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Configuration file (defaults to SOURCE/_config.yml)",
)
def build(source: Path, destination: Path | None, drafts: bool, config_file: Path | None):
    """Build the site in SOURCE into DESTINATION."""
    from .build import SiteAssembler

    root = source.resolve()
    try:
        config = load_config(
            root,
            output_dir=destination.resolve() if destination else None,
            drafts=drafts,
            config_file=config_file,
        )
    except BuildError as exc:
        _report_failure(root, exc)
        raise SystemExit(1) from None

    assembler = SiteAssembler(config)
    try:
        result = assembler.build()
    except BuildError as exc:
        _report_summary(assembler.report)
        _report_failure(root, exc)
        raise SystemExit(1) from None
    _report_summary(result.report)
    click.echo(
        f"Built {len(result.entries)} pages into {result.output_dir}"
    )


@cli.command()
@click.argument(
    "source",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
)
@click.option("--drafts", is_flag=True, help="Include the _drafts collection")
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides _config.yml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides _config.yml ws_port)",
)
def serve(source: Path, drafts: bool, port: int | None, ws_port: int | None):
    """Run dev server with live reload."""
    from .server import DevServer

    server = DevServer(source.resolve(), http_port=port, ws_port=ws_port)
    server.start(include_drafts=drafts)


@cli.command()
@click.argument("title", required=False)
@click.option(
    "--source",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    help="Site source directory",
)
@click.option("--collection", default=POSTS, show_default=True, help="Target collection")
@click.option("--draft", is_flag=True, help="Create the post in _drafts without a date")
@click.option("--layout", default=None, help="Layout to record in the front matter")
def post(title: str | None, source: Path, collection: str, draft: bool, layout: str | None):
    """Create a new post with a front matter header."""
    root = source.resolve()
    try:
        config = load_config(root, drafts=draft)
    except BuildError as exc:
        raise click.ClickException(str(exc)) from None
    target_collection = DRAFTS if draft else collection
    try:
        spec = config.collection(target_collection)
    except KeyError:
        raise click.ClickException(f"Unknown collection: {target_collection}") from None
    if not spec.directory:
        raise click.ClickException(f"Collection '{spec.name}' has no directory")

    if title is None:
        title = questionary.text(
            "Post title:",
            validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
            style=_questionary_style(),
        ).ask()
        if title is None:
            raise click.Abort()
    title = title.strip()

    slug = slugify(title)
    now = datetime.now()
    if spec.date_ordered:
        filename = f"{now.strftime('%Y-%m-%d')}-{slug}.md"
    else:
        filename = f"{slug}.md"
    target_dir = root / spec.directory
    target_path = target_dir / filename

    existing = _existing_slugs(target_dir)
    if slug in existing:
        raise click.ClickException(
            f"A post with slug '{slug}' already exists: {existing[slug]}"
        )

    frontmatter: dict = {"title": title}
    if not draft:
        frontmatter["date"] = now.replace(microsecond=0)
    if layout:
        frontmatter["layout"] = layout
    target_dir.mkdir(parents=True, exist_ok=True)
    target_path.write_text(dump_frontmatter(frontmatter, "\n"), encoding="utf-8")
    click.echo(f"Created {target_path.relative_to(root)}")


def _existing_slugs(folder: Path) -> dict[str, str]:
    """Map slug to filename for the content files already in a folder."""
    slugs: dict[str, str] = {}
    if folder.exists():
        for f in sorted(folder.iterdir()):
            if f.is_file():
                _, rest = split_date_token(strip_extensions(f.name))
                slugs[slugify(rest)] = f.name
    return slugs


def _report_summary(report) -> None:
    for error in report.errors:
        click.echo(click.style(f"  error: {error}", fg="red"), err=True)
    for warning in report.warnings:
        click.echo(click.style(f"  warning: {warning}", fg="yellow"), err=True)
    if report.errors or report.warnings:
        click.echo(
            f"{len(report.errors)} error(s), {len(report.warnings)} warning(s)",
            err=True,
        )


def _report_failure(root: Path, exc: BuildError) -> None:
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    if exc.source_path is not None:
        path = Path(exc.source_path)
        if path.is_absolute() and root in path.parents:
            path = path.relative_to(root)
        click.echo(click.style(f"  File: {path}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()

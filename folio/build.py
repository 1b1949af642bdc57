"""Site building for Folio.

The SiteAssembler runs one batch build through a fixed sequence of stages:

    INIT -> DISCOVER -> PARSE -> INDEX -> ROUTE -> RENDER -> WRITE -> DONE

A build-fatal error (unreadable source, route collision, layout cycle,
template error) moves the build to FAILED before anything is written.
Per-entry errors and degraded-output warnings are collected on the
BuildReport and never stop the build.

Parsing and rendering run on a thread pool, and the stylesheet is compiled
on the same pool while content is processed.

Key functions:
- build_site: Load the configuration and build the site.
"""

from __future__ import annotations

import shutil
import threading
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path, PurePosixPath

from .assets import AssetBuilder, StylesheetResult
from .collections import Collection, CollectionIndexer
from .config import SiteConfig, load_config
from .content import ContentEntry, EntryParser, SourceTree, SourceWalker
from .errors import (
    BuildError,
    BuildWarning,
    ConfigError,
    EntryError,
    RenderError,
)
from .feeds import FeedRegistry, create_default_feed_registry
from .layouts import LayoutComposer, LayoutLibrary, site_context
from .renderers import RendererRegistry, default_renderer_registry
from .routes import RouteResolver, RouteTable, output_path
from .utils import ensure_clean_dir


class BuildStage(str, Enum):
    INIT = "init"
    DISCOVER = "discover"
    PARSE = "parse"
    INDEX = "index"
    ROUTE = "route"
    RENDER = "render"
    WRITE = "write"
    DONE = "done"
    FAILED = "failed"


class ErrorCollector:
    """Thread-safe store for per-entry errors and warnings."""

    def __init__(self) -> None:
        self._errors: list[EntryError] = []
        self._warnings: list[BuildWarning] = []
        self._lock = threading.Lock()

    def add_errors(self, errors: Iterable[EntryError]) -> None:
        with self._lock:
            self._errors.extend(errors)

    def add_warnings(self, warnings: Iterable[BuildWarning]) -> None:
        with self._lock:
            self._warnings.extend(warnings)

    @property
    def errors(self) -> list[EntryError]:
        with self._lock:
            return sorted(
                self._errors, key=lambda e: (e.source_path.as_posix(), e.kind, e.message)
            )

    @property
    def warnings(self) -> list[BuildWarning]:
        with self._lock:
            unique = set(self._warnings)
            return sorted(
                unique,
                key=lambda w: (
                    w.source_path.as_posix() if w.source_path else "",
                    w.kind,
                    w.message,
                ),
            )


@dataclass
class BuildReport:
    """Summary of a build, complete once the stage is DONE or FAILED.

    Attributes:
        stage: Last stage entered.
        routes: Route -> source path for every rendered entry.
        errors: Per-entry errors, sorted by source path.
        warnings: Degraded-output warnings, sorted by source path.
        written: Files written, relative to the output directory.
        stylesheet: Skin and output of the stylesheet build, if any.
        fatal: The error that failed the build, if any.
    """

    stage: BuildStage = BuildStage.INIT
    routes: dict[str, Path] = field(default_factory=dict)
    errors: list[EntryError] = field(default_factory=list)
    warnings: list[BuildWarning] = field(default_factory=list)
    written: list[PurePosixPath] = field(default_factory=list)
    stylesheet: StylesheetResult | None = None
    fatal: BuildError | None = None

    @property
    def ok(self) -> bool:
        return self.stage is BuildStage.DONE


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        entries: Every rendered entry, sorted by source path.
        collections: Collections by name.
        output_dir: Directory where the site was built.
        report: Stage, errors and warnings of the build.
    """

    entries: list[ContentEntry]
    collections: dict[str, Collection]
    output_dir: Path
    report: BuildReport


@dataclass
class _Rendered:
    entry: ContentEntry
    text: str


class SiteAssembler:
    """Builds a site from a SiteConfig.

    Attributes:
        config: Site configuration.
        report: Report of the current (or last) build.
        clean_output: Whether to wipe the output directory before writing.
    """

    def __init__(
        self,
        config: SiteConfig,
        clean_output: bool = True,
        renderers: RendererRegistry | None = None,
        feeds: FeedRegistry | None = None,
    ):
        self.config = config
        self.clean_output = clean_output
        self.renderers = renderers or default_renderer_registry
        self.feeds = feeds or create_default_feed_registry()
        self.report = BuildReport()
        self._collector = ErrorCollector()

    def build(self) -> BuildResult:
        """Run the build.

        Returns:
            BuildResult with the rendered entries and the report.

        Raises:
            BuildError: On any build-fatal error; ``report.stage`` is FAILED
                and ``report.fatal`` holds the error.
        """
        self.report = BuildReport()
        self._collector = ErrorCollector()
        try:
            return self._run()
        except BuildError as exc:
            self.report.fatal = exc
            self._enter(BuildStage.FAILED)
            raise
        finally:
            self.report.errors = self._collector.errors
            self.report.warnings = self._collector.warnings

    def _enter(self, stage: BuildStage) -> None:
        self.report.stage = stage

    def _run(self) -> BuildResult:
        config = self.config
        self._check_output_dir()
        with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
            stylesheet: Future[StylesheetResult | None] = executor.submit(
                AssetBuilder(config).build
            )

            self._enter(BuildStage.DISCOVER)
            tree = SourceWalker(config).walk()

            self._enter(BuildStage.PARSE)
            entries = list(executor.map(self._parse_entry, tree.content))
            library = LayoutLibrary.load(config.root / config.layouts_dir)

            self._enter(BuildStage.INDEX)
            indexer = CollectionIndexer(config)
            entries, errors = indexer.assign(entries)
            self._collector.add_errors(errors)

            self._enter(BuildStage.ROUTE)
            table = RouteTable()
            entries = self._route(entries, table)
            self._claim_static(tree, table)
            collections = indexer.collections(entries)

            self._enter(BuildStage.RENDER)
            site = site_context(config, collections, datetime.now())
            composer = LayoutComposer(config, library, site)
            rendered = list(
                executor.map(lambda e: self._render_entry(composer, e), entries)
            )

            self._enter(BuildStage.WRITE)
            sheet = stylesheet.result()
        self._write(rendered, tree, sheet, collections, table)
        self.report.routes = {r.entry.route: r.entry.source for r in rendered}
        self._enter(BuildStage.DONE)
        return BuildResult(
            entries=[r.entry for r in rendered],
            collections=collections,
            output_dir=config.output_dir,
            report=self.report,
        )

    def _check_output_dir(self) -> None:
        root = self.config.root.resolve()
        out = self.config.output_dir.resolve()
        if out == root or out in root.parents:
            raise ConfigError(
                self.config.output_dir,
                "Output directory must not be the site root or one of its parents",
            )

    def _parse_entry(self, rel: Path) -> ContentEntry:
        try:
            entry, errors = EntryParser(self.config.root).parse(rel)
        except (OSError, UnicodeDecodeError) as exc:
            raise BuildError(rel, f"Unable to read source: {exc}", exc) from exc
        self._collector.add_errors(errors)
        return entry

    def _route(
        self, entries: list[ContentEntry], table: RouteTable
    ) -> list[ContentEntry]:
        resolver = RouteResolver(self.config)
        routed: list[ContentEntry] = []
        # Sorted so the reported collision is the same on every run.
        for entry in sorted(entries, key=lambda e: e.source.as_posix()):
            route, errors = resolver.resolve(entry)
            self._collector.add_errors(errors)
            table.claim(route, entry.source)
            routed.append(replace(entry, route=route))
        return routed

    def _claim_static(self, tree: SourceTree, table: RouteTable) -> None:
        for rel in tree.static:
            table.claim("/" + rel.as_posix(), rel)
        entry = self.config.root / self.config.sass.entry
        if entry.is_file():
            table.claim("/" + self.config.sass.output, Path(self.config.sass.entry))

    def _render_entry(
        self, composer: LayoutComposer, entry: ContentEntry
    ) -> _Rendered:
        chain, warnings = composer.chain_for(entry)
        self._collector.add_warnings(warnings)
        entry = replace(entry, layout_chain=chain)
        renderer = self.renderers.get_renderer(entry.source)
        try:
            body = renderer.render(entry.body) if renderer else entry.body
        except Exception as exc:
            raise RenderError(
                entry.source, f"{type(exc).__name__}: {exc}", exc
            ) from exc
        return _Rendered(entry, composer.render(entry, body))

    def _write(
        self,
        rendered: list[_Rendered],
        tree: SourceTree,
        sheet: StylesheetResult | None,
        collections: dict[str, Collection],
        table: RouteTable,
    ) -> None:
        out = self.config.output_dir
        if self.clean_output:
            ensure_clean_dir(out)
        else:
            out.mkdir(parents=True, exist_ok=True)
        written: list[PurePosixPath] = []

        for item in sorted(rendered, key=lambda r: r.entry.source.as_posix()):
            target = output_path(item.entry.route)
            _write_text(out / target, item.text)
            written.append(target)

        for rel in tree.static:
            target = out / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(self.config.root / rel, target)
            written.append(PurePosixPath(rel.as_posix()))

        if sheet is not None:
            self._collector.add_warnings(sheet.warnings)
            self.report.stylesheet = sheet
            if sheet.css is not None:
                _write_text(out / sheet.output, sheet.css)
                written.append(sheet.output)

        feeds = self.feeds.generate_all(
            [r.entry for r in rendered], collections, self.config
        )
        for filename, text in feeds.items():
            # A page that already produces this file takes precedence.
            if "/" + filename in table:
                continue
            _write_text(out / filename, text)
            written.append(PurePosixPath(filename))

        self.report.written = sorted(written)


def _write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)


def build_site(
    project_root: Path,
    output_dir: Path | None = None,
    include_drafts: bool = False,
    root_url: str | None = None,
    clean_output: bool = True,
    config_file: Path | None = None,
) -> BuildResult:
    """Build the entire static site.

    Args:
        project_root: Site source directory.
        output_dir: Optional override for the configured output directory.
        include_drafts: Whether to build the _drafts collection.
        root_url: Optional override for the configured site URL.
        clean_output: Whether to wipe the output directory before building.
        config_file: Optional configuration file path.

    Returns:
        BuildResult containing entries, collections and the build report.

    Raises:
        BuildError: On any build-fatal error.
    """
    config = load_config(
        project_root,
        output_dir=output_dir,
        drafts=include_drafts,
        config_file=config_file,
    )
    if root_url is not None:
        config = replace(config, url=root_url.rstrip("/"))
    return SiteAssembler(config, clean_output=clean_output).build()

"""Content discovery and parsing for Folio.

Key classes:
- ContentEntry: Immutable record of one content file as it moves through
  the build.
- SourceTree: The content and static files found under the site root.
- SourceWalker: Walks the site root and classifies files.
- EntryParser: Reads a content file and splits off its front matter.
"""

from __future__ import annotations

import fnmatch
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import Any

from .config import CONFIG_FILENAME, SiteConfig
from .errors import EntryError, MalformedFrontMatter
from .frontmatter import parse_frontmatter
from .utils import (
    first_paragraph,
    is_content,
    is_html,
    is_internal_path,
    is_markdown,
    is_template,
    strip_extensions,
    title_slug,
    titleize,
)


@dataclass(frozen=True)
class ContentEntry:
    """A content file and everything the build learns about it.

    Instances are never mutated; each stage derives a new one with
    ``dataclasses.replace``.

    Attributes:
        source: Path relative to the site root. This is the entry's identity.
        frontmatter: Parsed header mapping (read-only view).
        body: Body text with the header removed.
        mtime: Source modification time, used as a last-resort date.
        collection: Owning collection name, set by the indexer.
        date: Entry date, set by the indexer.
        dated_filename: Whether the date came from a YYYY-MM-DD- token.
        route: Output route, set by the route resolver.
        layout_chain: Layout names innermost first, set by the composer.
    """

    source: Path
    frontmatter: Mapping[str, Any] = field(default_factory=dict)
    body: str = ""
    mtime: datetime | None = None
    collection: str = ""
    date: datetime | None = None
    dated_filename: bool = False
    route: str | None = None
    layout_chain: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.frontmatter, MappingProxyType):
            object.__setattr__(
                self, "frontmatter", MappingProxyType(dict(self.frontmatter))
            )

    @property
    def filename(self) -> str:
        return self.source.name

    @property
    def slug(self) -> str:
        return title_slug(self.source.name)

    @property
    def title(self) -> str:
        return str(self.frontmatter.get("title") or titleize(self.source.name))

    @property
    def source_type(self) -> str:
        if is_markdown(self.source):
            return "markdown"
        if is_template(self.source):
            return "jinja"
        if is_html(self.source):
            return "html"
        return "unknown"

    @property
    def output_extension(self) -> str:
        """Extension of the rendered file when the route names a file."""
        if is_template(self.source) and len(self.source.suffixes) > 1:
            return self.source.suffixes[-2]
        return ".html"

    @property
    def tags(self) -> list[str]:
        tags = self.frontmatter.get("tags") or []
        if isinstance(tags, str):
            return tags.split()
        return [str(t) for t in tags]

    def page_variables(self) -> dict[str, Any]:
        """Return the values templates see under ``page``."""
        return {
            **self.frontmatter,
            "title": self.title,
            "date": self.date,
            "url": self.route,
            "slug": self.slug,
            "collection": self.collection,
            "path": self.source.as_posix(),
            "tags": self.tags,
            "excerpt": self.frontmatter.get("excerpt") or first_paragraph(self.body),
        }


@dataclass
class SourceTree:
    """Files discovered under the site root, relative and sorted."""

    content: list[Path] = field(default_factory=list)
    static: list[Path] = field(default_factory=list)


class SourceWalker:
    """Discovers content and static files under the site root.

    Underscore-prefixed and hidden directories are skipped unless they are a
    configured collection directory, and then only their content files are
    picked up. Other collection directories also publish their remaining
    files as static assets. The output directory, configuration file,
    layouts, Sass partials, the stylesheet entry and excluded patterns are
    never sources.

    Attributes:
        config: Site configuration.
    """

    def __init__(self, config: SiteConfig):
        self.config = config
        self.root = config.root
        self._collection_dirs = [
            PurePosixPath(spec.directory)
            for spec in config.collections
            if spec.directory
        ]

    def walk(self) -> SourceTree:
        tree = SourceTree()
        for path in sorted(self.root.rglob("*")):
            if path.is_dir():
                continue
            rel = path.relative_to(self.root)
            if self._is_skipped(path, rel):
                continue
            posix = PurePosixPath(rel.as_posix())
            in_collection = self._in_collection_dir(posix)
            if in_collection or not is_internal_path(posix.parent):
                if is_content(rel):
                    tree.content.append(rel)
                    continue
            if is_internal_path(posix):
                continue
            tree.static.append(rel)
        return tree

    def _in_collection_dir(self, posix: PurePosixPath) -> bool:
        return any(d in posix.parents for d in self._collection_dirs)

    def _is_skipped(self, path: Path, rel: Path) -> bool:
        output_dir = self.config.output_dir.resolve()
        resolved = path.resolve()
        if resolved == output_dir or output_dir in resolved.parents:
            return True
        posix = rel.as_posix()
        if posix == CONFIG_FILENAME:
            return True
        if self.config.config_file is not None and resolved == self.config.config_file.resolve():
            return True
        if posix == PurePosixPath(self.config.sass.entry).as_posix():
            return True
        for internal in (self.config.layouts_dir, self.config.sass.sass_dir):
            if posix.startswith(internal.rstrip("/") + "/"):
                return True
        return any(
            fnmatch.fnmatch(posix, pattern)
            or any(fnmatch.fnmatch(part, pattern) for part in rel.parts)
            for pattern in self.config.exclude
        )


class EntryParser:
    """Reads content files and splits their front matter from the body."""

    def __init__(self, root: Path):
        self.root = root

    def parse(self, rel: Path) -> tuple[ContentEntry, list[EntryError]]:
        """Parse one content file.

        A malformed header is reported and the whole file is kept as body
        with an empty front matter mapping.

        Args:
            rel: Path relative to the site root.

        Returns:
            Tuple of (entry, per-entry errors).
        """
        path = self.root / rel
        text = path.read_text(encoding="utf-8")
        mtime = datetime.fromtimestamp(path.stat().st_mtime)
        errors: list[EntryError] = []
        try:
            frontmatter, body = parse_frontmatter(text, rel)
        except MalformedFrontMatter as exc:
            errors.append(exc)
            frontmatter, body = {}, text
        entry = ContentEntry(
            source=rel, frontmatter=frontmatter, body=body, mtime=mtime
        )
        return entry, errors


def relative_stem(rel: PurePosixPath) -> str:
    """Return a relative path with its content extension removed."""
    return (rel.parent / strip_extensions(rel.name)).as_posix()

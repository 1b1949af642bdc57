"""Route resolution for Folio.

Routes are computed from an explicit ``permalink`` in the front matter, or
from the owning collection's pattern. Supported placeholders:

    :year :month :day   zero-padded, from the entry's date
    :title              filename without date token or extension,
                        lower-cased, spaces and underscores as hyphens
    :collection         the collection name
    :path               path inside the collection directory, no extension

Pages without a permalink mirror their source path: ``about.md`` routes to
``/about/`` and ``notes/index.md`` to ``/notes/``.
"""

from __future__ import annotations

import re
import threading
from pathlib import Path, PurePosixPath

from .config import PLACEHOLDER_RE, SiteConfig
from .content import ContentEntry, relative_stem
from .errors import EntryError, InvalidPermalink, RouteCollision
from .utils import is_template, strip_extensions

INDEX_DOCUMENT = "index.html"


def check_permalink(permalink: object) -> str | None:
    """Return why an explicit permalink is unusable, or None if it's fine."""
    if not isinstance(permalink, str) or not permalink:
        return "permalink must be a non-empty string"
    if not permalink.startswith("/"):
        return f"permalink '{permalink}' must start with '/'"
    tokens = PLACEHOLDER_RE.findall(permalink)
    if tokens:
        names = ", ".join(f":{t}" for t in tokens)
        return f"permalink '{permalink}' has unresolved placeholder(s) {names}"
    if ".." in PurePosixPath(permalink).parts:
        return f"permalink '{permalink}' escapes the output directory"
    return None


def normalize_route(route: str) -> str:
    return re.sub(r"/{2,}", "/", route)


def output_path(route: str) -> PurePosixPath:
    """Map a route to the file it is written to, relative to the output root.

    Routes ending in a slash, and routes whose last segment has no
    extension, become a directory holding an index document. A last
    segment with an extension is written as that flat file.
    """
    trimmed = route.strip("/")
    if not trimmed:
        return PurePosixPath(INDEX_DOCUMENT)
    path = PurePosixPath(trimmed)
    if route.endswith("/") or not path.suffix:
        return path / INDEX_DOCUMENT
    return path


def page_route(entry: ContentEntry) -> str:
    """Default route for an entry of the implicit pages collection."""
    rel = PurePosixPath(entry.source.as_posix())
    stem = strip_extensions(rel.name)
    if is_template(entry.source) and entry.output_extension != ".html":
        # feed.xml.jinja -> /feed.xml
        return "/" + (rel.parent / f"{stem}{entry.output_extension}").as_posix()
    parent = "" if rel.parent == PurePosixPath(".") else rel.parent.as_posix()
    if stem == "index":
        return normalize_route(f"/{parent}/")
    return normalize_route(f"/{parent}/{stem}/")


class RouteResolver:
    """Computes each entry's route.

    Attributes:
        config: Site configuration.
    """

    def __init__(self, config: SiteConfig):
        self.config = config

    def resolve(self, entry: ContentEntry) -> tuple[str, list[EntryError]]:
        """Return the entry's route and any per-entry problems.

        An explicit permalink that fails validation is reported with
        InvalidPermalink and the collection default is used instead.
        """
        errors: list[EntryError] = []
        permalink = entry.frontmatter.get("permalink")
        if permalink is not None:
            problem = check_permalink(permalink)
            if problem is None:
                return permalink, errors
            errors.append(InvalidPermalink(entry.source, problem))
        spec = self.config.collection(entry.collection)
        if spec.permalink is None:
            return page_route(entry), errors
        return self.expand(spec.permalink, entry), errors

    def expand(self, pattern: str, entry: ContentEntry) -> str:
        values = self.placeholder_values(entry)
        expanded = PLACEHOLDER_RE.sub(
            lambda m: values.get(m.group(1), m.group(0)), pattern
        )
        return normalize_route(expanded)

    def placeholder_values(self, entry: ContentEntry) -> dict[str, str]:
        spec = self.config.collection(entry.collection)
        rel = PurePosixPath(entry.source.as_posix())
        if spec.directory:
            rel = rel.relative_to(spec.directory)
        values = {
            "title": entry.slug,
            "collection": spec.name,
            "path": relative_stem(rel),
        }
        if entry.date is not None:
            values.update(
                year=f"{entry.date.year:04d}",
                month=f"{entry.date.month:02d}",
                day=f"{entry.date.day:02d}",
            )
        return values


class RouteTable:
    """Set of claimed routes, keyed by the output file they produce.

    Safe to share between worker threads. Two routes that write the same
    file (``/about`` and ``/about/``) collide just like identical routes.
    """

    def __init__(self) -> None:
        self._claims: dict[str, tuple[str, Path]] = {}
        self._lock = threading.Lock()

    def claim(self, route: str, source: Path) -> None:
        """Record a route for a source.

        Raises:
            RouteCollision: If another source already produces that file.
        """
        key = output_path(route).as_posix()
        with self._lock:
            if key in self._claims:
                _, owner = self._claims[key]
                raise RouteCollision(route, [owner, source])
            self._claims[key] = (route, source)

    def __contains__(self, route: str) -> bool:
        with self._lock:
            return output_path(route).as_posix() in self._claims

"""Layout composition for Folio.

Layouts live in ``_layouts/`` as Jinja templates with an optional front
matter header. A layout names its parent with the ``layout`` key, so a post
can be wrapped by ``post``, which is wrapped by ``default``::

    ---
    layout: default
    ---
    <article><h1>{{ page.title }}</h1>{{ content }}</article>

Rendering starts with the entry's rendered body as ``content`` and feeds
the output of each layout into the next one, innermost first.

Key classes:
- Layout: One named template and its parent reference.
- LayoutLibrary: The layouts of a site, with cycle-checked chain lookup.
- LayoutComposer: Renders entries through their layout chains with Jinja2.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any

from jinja2 import (
    ChoiceLoader,
    DictLoader,
    Environment,
    FileSystemLoader,
    TemplateError,
    TemplateSyntaxError,
    select_autoescape,
)
from markupsafe import Markup

from .collections import Collection
from .config import SiteConfig
from .content import ContentEntry
from .errors import (
    BuildWarning,
    LayoutCycle,
    MalformedFrontMatter,
    RenderError,
    unknown_layout,
)
from .frontmatter import parse_frontmatter
from .utils import coerce_datetime, is_content, join_root_url, strip_extensions

NO_LAYOUT = "none"


def is_no_layout(name: object) -> bool:
    """True for the values that mean "render without a layout"."""
    return name is None or name is False or str(name).strip().lower() in (NO_LAYOUT, "")


@dataclass(frozen=True)
class Layout:
    """A named template with an optional parent layout.

    Attributes:
        name: Layout name, its path under the layouts directory without
            extension ("default", "blog/post").
        source: Template source with the header removed.
        parent: Parent layout name, or None at the top of a chain.
        frontmatter: The layout's own header values.
        path: File the layout was read from.
    """

    name: str
    source: str
    parent: str | None = None
    frontmatter: Mapping[str, Any] = field(default_factory=dict)
    path: Path | None = None


class LayoutLibrary(Mapping[str, Layout]):
    """All layouts of a site, keyed by name."""

    def __init__(self, layouts: Mapping[str, Layout] | None = None):
        self._layouts = dict(layouts or {})

    @classmethod
    def load(cls, layouts_dir: Path) -> LayoutLibrary:
        """Read every layout under a directory.

        When two files share a name (``post.html`` and ``post.html.jinja``)
        the first in sorted order wins.

        Raises:
            RenderError: If a layout's header is malformed.
        """
        layouts: dict[str, Layout] = {}
        if not layouts_dir.is_dir():
            return cls(layouts)
        for path in sorted(layouts_dir.rglob("*")):
            if path.is_dir() or not is_content(path):
                continue
            rel = path.relative_to(layouts_dir)
            name = (rel.parent / strip_extensions(rel.name)).as_posix()
            if name in layouts:
                continue
            try:
                frontmatter, source = parse_frontmatter(
                    path.read_text(encoding="utf-8"), path
                )
            except MalformedFrontMatter as exc:
                raise RenderError(path, f"Layout '{name}': {exc.message}", exc) from exc
            parent = frontmatter.get("layout")
            layouts[name] = Layout(
                name=name,
                source=source,
                parent=None if is_no_layout(parent) else str(parent),
                frontmatter=MappingProxyType(dict(frontmatter)),
                path=path,
            )
        return cls(layouts)

    def __getitem__(self, name: str) -> Layout:
        return self._layouts[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._layouts)

    def __len__(self) -> int:
        return len(self._layouts)

    def chain(
        self, name: object, source: Path | None = None
    ) -> tuple[tuple[str, ...], list[BuildWarning]]:
        """Walk a layout and its parents, innermost first.

        Args:
            name: Starting layout name.
            source: Entry being rendered, used in errors and warnings.

        Returns:
            Tuple of (layout names, warnings). A missing layout is reported
            as a warning and ends the chain.

        Raises:
            LayoutCycle: If a parent reference loops back into the chain.
        """
        chain: list[str] = []
        warnings: list[BuildWarning] = []
        visited: set[str] = set()
        current = None if is_no_layout(name) else str(name)
        while current is not None:
            if current in visited:
                raise LayoutCycle([*chain, current], source)
            layout = self._layouts.get(current)
            if layout is None:
                warnings.append(unknown_layout(current, source))
                break
            visited.add(current)
            chain.append(current)
            current = layout.parent
        return tuple(chain), warnings


def site_context(
    config: SiteConfig, collections: Mapping[str, Collection], time: datetime
) -> Mapping[str, Any]:
    """Build the read-only ``site`` variable shared by every template.

    Each collection's listing is exposed under its own name (``site.posts``,
    ``site.notes``) and together under ``site.collections``.
    """
    listings = {
        name: tuple(
            MappingProxyType(entry.page_variables()) for entry in collection.listing()
        )
        for name, collection in collections.items()
    }
    return MappingProxyType(
        {
            **config.site_variables(),
            **listings,
            "collections": MappingProxyType(listings),
            "time": time,
        }
    )


class LayoutComposer:
    """Renders entries through their layout chains.

    Attributes:
        config: Site configuration.
        library: Available layouts.
        site: Read-only ``site`` variable for templates.
        env: Jinja2 environment holding the compiled layouts.
    """

    def __init__(
        self,
        config: SiteConfig,
        library: LayoutLibrary,
        site: Mapping[str, Any] | None = None,
    ):
        self.config = config
        self.library = library
        self.site = site if site is not None else MappingProxyType(config.site_variables())
        self.env = Environment(
            loader=ChoiceLoader(
                [
                    DictLoader({name: layout.source for name, layout in library.items()}),
                    FileSystemLoader(str(config.root / config.includes_dir)),
                ]
            ),
            autoescape=select_autoescape(
                ["html", "xml"], default_for_string=True, default=True
            ),
        )
        self.env.filters["absolute_url"] = self._absolute_url
        self.env.filters["relative_url"] = _relative_url
        self.env.filters["date_to_xmlschema"] = date_to_xmlschema
        self.env.filters["date"] = date_format

    def resolve_layout(self, entry: ContentEntry) -> object:
        """Layout named by the entry, else its collection's default."""
        if "layout" in entry.frontmatter:
            return entry.frontmatter["layout"]
        return self.config.collection(entry.collection).layout

    def chain_for(
        self, entry: ContentEntry
    ) -> tuple[tuple[str, ...], list[BuildWarning]]:
        return self.library.chain(self.resolve_layout(entry), entry.source)

    def render(self, entry: ContentEntry, body: str) -> str:
        """Render an entry's body through its layout chain.

        Args:
            entry: Entry with its route and layout chain resolved.
            body: The entry's rendered body.

        Returns:
            The final page text.

        Raises:
            RenderError: If any template fails.
        """
        page = MappingProxyType(entry.page_variables())
        context = {"page": page, "site": self.site}
        content = body
        try:
            if entry.source_type == "jinja":
                template = self.env.from_string(body)
                content = template.render(layout={}, content=Markup(""), **context)
            for name in entry.layout_chain:
                layout = self.library[name]
                template = self.env.get_template(name)
                content = template.render(
                    content=Markup(content), layout=layout.frontmatter, **context
                )
        except TemplateSyntaxError as exc:
            raise RenderError(
                entry.source,
                f"Template syntax error in {exc.name or 'page body'} "
                f"on line {exc.lineno}: {exc.message}",
                exc,
            ) from exc
        except TemplateError as exc:
            raise RenderError(entry.source, _format_error_message(exc), exc) from exc
        return content

    def _absolute_url(self, path: str) -> str:
        return join_root_url(self.config.url, _relative_url(path))


def _relative_url(path: object) -> str:
    text = str(path or "")
    if text.startswith(("http://", "https://", "//")):
        return text
    return text if text.startswith("/") else f"/{text}"


def date_to_xmlschema(value: date | datetime | str) -> str:
    moment = coerce_datetime(value)
    return moment.isoformat() if moment else ""


def date_format(value: date | datetime | str, fmt: str = "%b %d, %Y") -> str:
    moment = coerce_datetime(value)
    return moment.strftime(fmt) if moment else ""


def _format_error_message(exc: Exception) -> str:
    """Format a template exception into a user-friendly message."""
    error_type = type(exc).__name__
    if error_type == "UndefinedError":
        return f"Undefined variable: {exc}"
    if error_type == "TemplateNotFound":
        return f"Template not found: {exc}"
    return f"{error_type}: {exc}"

"""Feed generation for Folio.

Generators produce sitemap.xml and an Atom feed of the posts listing. Both
need the site ``url`` for absolute links and are skipped without it. They
only return text; the site assembler decides where and whether to write.

Classes:
    FeedGenerator: Base class for feed generators.
    SitemapGenerator: Lists every routed entry.
    AtomFeedGenerator: Newest posts as an Atom feed.
    FeedRegistry: Runs the registered generators.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone

from markupsafe import escape

from .collections import Collection
from .config import POSTS, SiteConfig
from .content import ContentEntry
from .utils import join_root_url

FEED_LIMIT = 20


class FeedGenerator(ABC):
    """Base class for feed generators."""

    @property
    @abstractmethod
    def filename(self) -> str:
        """Output filename, relative to the output root."""
        ...

    @abstractmethod
    def generate(
        self,
        entries: Sequence[ContentEntry],
        collections: Mapping[str, Collection],
        config: SiteConfig,
    ) -> str | None:
        """Return the feed text, or None if the feed can't be produced."""
        ...


class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml following the sitemaps.org protocol."""

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(self, entries, collections, config):
        if not config.url:
            return None
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for entry in sorted(entries, key=lambda e: e.route or ""):
            loc = escape(join_root_url(config.url, entry.route or "/"))
            lastmod = entry.date.strftime("%Y-%m-%d") if entry.date else ""
            lines.append(f"  <url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>")
        lines.append("</urlset>")
        return "\n".join(lines) + "\n"


class AtomFeedGenerator(FeedGenerator):
    """Generates an Atom feed of the newest posts."""

    def __init__(self, collection: str = POSTS, limit: int = FEED_LIMIT):
        self.collection = collection
        self.limit = limit

    @property
    def filename(self) -> str:
        return "feed.xml"

    def generate(self, entries, collections, config):
        if not config.url or self.collection not in collections:
            return None
        posts = collections[self.collection].listing()[: self.limit]
        feed_url = join_root_url(config.url, self.filename)
        updated = posts[0].date if posts else datetime.now(timezone.utc)
        lines = [
            '<?xml version="1.0" encoding="utf-8"?>',
            '<feed xmlns="http://www.w3.org/2005/Atom">',
            f"<title>{escape(config.title or config.url)}</title>",
            f'<link href="{escape(feed_url)}" rel="self"/>',
            f'<link href="{escape(config.url)}/"/>',
            f"<updated>{_timestamp(updated)}</updated>",
            f"<id>{escape(feed_url)}</id>",
        ]
        for post in posts:
            link = escape(join_root_url(config.url, post.route or "/"))
            summary = post.page_variables()["excerpt"]
            lines.extend(
                [
                    "<entry>",
                    f"<title>{escape(post.title)}</title>",
                    f'<link href="{link}"/>',
                    f"<id>{link}</id>",
                    f"<updated>{_timestamp(post.date)}</updated>",
                    f"<summary>{escape(summary)}</summary>",
                    "</entry>",
                ]
            )
        lines.append("</feed>")
        return "\n".join(lines) + "\n"


def _timestamp(moment: datetime | None) -> str:
    if moment is None:
        return ""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.isoformat()


class FeedRegistry:
    """Registry of feed generators."""

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    def generate_all(
        self,
        entries: Sequence[ContentEntry],
        collections: Mapping[str, Collection],
        config: SiteConfig,
    ) -> dict[str, str]:
        """Run every generator.

        Returns:
            Mapping of output filename to feed text for the feeds produced.
        """
        entries = list(entries)
        generated: dict[str, str] = {}
        for generator in self._generators:
            text = generator.generate(entries, collections, config)
            if text is not None:
                generated[generator.filename] = text
        return generated


def create_default_feed_registry() -> FeedRegistry:
    registry = FeedRegistry()
    registry.register(SitemapGenerator())
    registry.register(AtomFeedGenerator())
    return registry

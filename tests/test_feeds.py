from dataclasses import replace
from datetime import datetime
from pathlib import Path

from folio.collections import CollectionIndexer
from folio.config import load_config
from folio.content import ContentEntry
from folio.feeds import (
    AtomFeedGenerator,
    FeedRegistry,
    SitemapGenerator,
    create_default_feed_registry,
)


def make_site(tmp_path, url="https://example.com"):
    (tmp_path / "_config.yml").write_text(f"title: Feeds & Things\nurl: {url}\n", encoding="utf-8")
    config = load_config(tmp_path)
    indexer = CollectionIndexer(config)
    entries, _ = indexer.assign(
        [
            ContentEntry(
                source=Path(f"_posts/2024-0{i}-01-post-{i}.md"),
                frontmatter={"title": f"Post <{i}>"},
                body=f"Summary {i}.",
            )
            for i in range(1, 4)
        ]
        + [ContentEntry(source=Path("about.md"), mtime=datetime(2024, 5, 5))]
    )
    routed = [replace(e, route=f"/{e.slug}/") for e in entries]
    return config, routed, indexer.collections(routed)


def test_sitemap_lists_every_route(tmp_path):
    config, entries, collections = make_site(tmp_path)
    text = SitemapGenerator().generate(entries, collections, config)
    assert text.count("<url>") == 4
    assert "<loc>https://example.com/about/</loc><lastmod>2024-05-05</lastmod>" in text


def test_atom_feed_is_newest_first_and_limited(tmp_path):
    config, entries, collections = make_site(tmp_path)
    text = AtomFeedGenerator(limit=2).generate(entries, collections, config)
    assert "<title>Feeds &amp; Things</title>" in text
    assert text.count("<entry>") == 2
    assert text.index("Post &lt;3&gt;") < text.index("Post &lt;2&gt;")
    assert "Post &lt;1&gt;" not in text
    assert "<updated>2024-03-01T00:00:00+00:00</updated>" in text
    assert "<summary>Summary 3.</summary>" in text


def test_feeds_skipped_without_url(tmp_path):
    config, entries, collections = make_site(tmp_path, url="")
    assert create_default_feed_registry().generate_all(entries, collections, config) == {}


def test_registry_collects_outputs(tmp_path):
    config, entries, collections = make_site(tmp_path)
    registry = FeedRegistry()
    registry.register(SitemapGenerator())
    assert list(registry.generate_all(entries, collections, config)) == ["sitemap.xml"]

from datetime import date, datetime
from pathlib import Path

from folio.collections import Collection, CollectionIndexer
from folio.config import PAGES, POSTS, load_config
from folio.content import ContentEntry
from folio.errors import MissingDateToken

MTIME = datetime(2020, 5, 5, 12, 0)


def entry(path: str, **frontmatter) -> ContentEntry:
    return ContentEntry(source=Path(path), frontmatter=frontmatter, mtime=MTIME)


def make_indexer(tmp_path, config_text: str = "") -> CollectionIndexer:
    if config_text:
        (tmp_path / "_config.yml").write_text(config_text, encoding="utf-8")
    return CollectionIndexer(load_config(tmp_path))


def test_listing_is_newest_first(tmp_path):
    indexer = make_indexer(tmp_path)
    entries, errors = indexer.assign(
        [entry("_posts/2023-01-01-new-year.md"), entry("_posts/2023-06-01-summer.md")]
    )
    assert errors == []
    posts = indexer.collections(entries)[POSTS]
    assert [e.filename for e in posts.listing()] == [
        "2023-06-01-summer.md",
        "2023-01-01-new-year.md",
    ]


def test_same_day_ties_break_on_filename(tmp_path):
    indexer = make_indexer(tmp_path)
    entries, _ = indexer.assign(
        [
            entry("_posts/2023-03-03-alpha.md"),
            entry("_posts/2023-03-03-beta.md", date=datetime(2023, 3, 3, 1, 0)),
            entry("_posts/2023-03-03-gamma.md"),
        ]
    )
    posts = indexer.collections(entries)[POSTS]
    names = [e.filename for e in posts.listing()]
    assert names == [
        "2023-03-03-gamma.md",
        "2023-03-03-beta.md",
        "2023-03-03-alpha.md",
    ]
    # input order does not matter
    again, _ = indexer.assign(reversed([e for e in entries]))
    assert [e.filename for e in indexer.collections(again)[POSTS].listing()] == names


def test_missing_date_token_is_reported_but_kept(tmp_path):
    indexer = make_indexer(tmp_path)
    entries, errors = indexer.assign(
        [entry("_posts/undated.md", date=date(2022, 2, 2)), entry("_posts/2023-01-01-a.md")]
    )
    assert len(errors) == 1
    assert isinstance(errors[0], MissingDateToken)
    assert errors[0].source_path == Path("_posts/undated.md")

    undated = next(e for e in entries if e.filename == "undated.md")
    assert undated.collection == POSTS
    assert undated.date == datetime(2022, 2, 2)
    assert not undated.dated_filename

    posts = indexer.collections(entries)[POSTS]
    assert len(posts) == 2
    assert [e.filename for e in posts.listing()] == ["2023-01-01-a.md"]


def test_invalid_calendar_date_is_not_a_token(tmp_path):
    indexer = make_indexer(tmp_path)
    _, errors = indexer.assign([entry("_posts/2023-02-30-nope.md")])
    assert [type(e) for e in errors] == [MissingDateToken]


def test_date_sources(tmp_path):
    indexer = make_indexer(tmp_path)
    entries, _ = indexer.assign(
        [
            entry("_posts/2024-01-15-timed.md", date=datetime(2024, 1, 15, 9, 30)),
            entry("_posts/2024-01-16-mismatch.md", date=datetime(2023, 1, 1)),
            entry("about.md"),
            entry("2019-09-09-page.md"),
        ]
    )
    by_name = {e.filename: e for e in entries}
    assert by_name["2024-01-15-timed.md"].date == datetime(2024, 1, 15, 9, 30)
    assert by_name["2024-01-16-mismatch.md"].date == datetime(2024, 1, 16)
    assert by_name["about.md"].date == MTIME
    # pages are not date-ordered, so a date-like name is just a name
    assert by_name["2019-09-09-page.md"].date == MTIME
    assert by_name["2019-09-09-page.md"].collection == PAGES


def test_longest_directory_prefix_wins(tmp_path):
    indexer = make_indexer(
        tmp_path,
        "collections:\n"
        "  notes:\n"
        "    directory: _notes\n"
        "  archive:\n"
        "    directory: _notes/archive\n",
    )
    entries, _ = indexer.assign(
        [
            entry("_notes/one.md"),
            entry("_notes/archive/two.md"),
            entry("_notes/archive/deep/three.md"),
            entry("_notesextra/four.md"),
            entry("docs/five.md"),
        ]
    )
    assert {e.filename: e.collection for e in entries} == {
        "one.md": "notes",
        "two.md": "archive",
        "three.md": "archive",
        "four.md": PAGES,
        "five.md": PAGES,
    }


def test_every_collection_is_present(tmp_path):
    indexer = make_indexer(tmp_path)
    collections = indexer.collections([])
    assert set(collections) == {POSTS, PAGES}
    assert all(isinstance(c, Collection) and len(c) == 0 for c in collections.values())


def test_unordered_listing_is_by_path(tmp_path):
    indexer = make_indexer(tmp_path)
    entries, _ = indexer.assign([entry("b.md"), entry("a/z.md"), entry("a.md")])
    pages = indexer.collections(entries)[PAGES]
    assert [e.source.as_posix() for e in pages.listing()] == ["a.md", "a/z.md", "b.md"]

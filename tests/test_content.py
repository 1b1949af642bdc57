from datetime import datetime
from pathlib import Path

import pytest

from folio.config import load_config
from folio.content import ContentEntry, EntryParser, SourceWalker
from folio.errors import MalformedFrontMatter


def write(root: Path, rel: str, text: str = "x") -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_walker_classifies_files(tmp_path):
    for rel in [
        "index.md",
        "about.html",
        "feed.xml.jinja",
        "css/site.css",
        "_posts/2024-01-01-a.md",
        "_posts/image.png",
        "_layouts/default.html",
        "_includes/nav.html",
        "_sass/_base.scss",
        "_data/nav.yml",
        ".git/config",
        "assets/css/main.scss",
        "vendor/lib.js",
        "notes/draft.tmp",
        "_config.yml",
        "_site/index.html",
    ]:
        write(tmp_path, rel)
    (tmp_path / "_config.yml").write_text("exclude: ['*.tmp']\n", encoding="utf-8")
    tree = SourceWalker(load_config(tmp_path)).walk()
    assert [p.as_posix() for p in tree.content] == [
        "_posts/2024-01-01-a.md",
        "about.html",
        "feed.xml.jinja",
        "index.md",
    ]
    assert [p.as_posix() for p in tree.static] == ["css/site.css"]


def test_walker_copies_assets_from_public_collection_dir(tmp_path):
    write(tmp_path, "_config.yml", "collections:\n  notes:\n    directory: notes\n")
    for rel in ["notes/one.md", "notes/diagram.png", "_posts/image.png"]:
        write(tmp_path, rel)
    tree = SourceWalker(load_config(tmp_path)).walk()
    assert [p.as_posix() for p in tree.content] == ["notes/one.md"]
    assert [p.as_posix() for p in tree.static] == ["notes/diagram.png"]


def test_parser_reads_front_matter(tmp_path):
    write(tmp_path, "about.md", "---\ntitle: About\ntags: one two\n---\nHello\n")
    entry, errors = EntryParser(tmp_path).parse(Path("about.md"))
    assert errors == []
    assert entry.source == Path("about.md")
    assert entry.frontmatter == {"title": "About", "tags": "one two"}
    assert entry.body == "Hello\n"
    assert isinstance(entry.mtime, datetime)
    assert entry.tags == ["one", "two"]


def test_parser_keeps_text_on_malformed_header(tmp_path):
    text = "---\ntitle: Oops\n\nBody"
    write(tmp_path, "oops.md", text)
    entry, errors = EntryParser(tmp_path).parse(Path("oops.md"))
    assert entry.frontmatter == {}
    assert entry.body == text
    assert len(errors) == 1
    assert isinstance(errors[0], MalformedFrontMatter)


def test_entry_is_immutable():
    entry = ContentEntry(source=Path("a.md"), frontmatter={"title": "A"})
    with pytest.raises(AttributeError):
        entry.route = "/a/"
    with pytest.raises(TypeError):
        entry.frontmatter["title"] = "B"


def test_entry_properties():
    entry = ContentEntry(
        source=Path("_posts/2024-01-15-hello-world.md"),
        body="# Heading\n\nThe first paragraph.\n\nMore.",
        collection="posts",
        route="/2024/01/15/hello-world/",
        date=datetime(2024, 1, 15),
    )
    assert entry.title == "Hello World"
    assert entry.slug == "hello-world"
    assert entry.source_type == "markdown"
    variables = entry.page_variables()
    assert variables["url"] == "/2024/01/15/hello-world/"
    assert variables["excerpt"] == "The first paragraph."
    assert variables["path"] == "_posts/2024-01-15-hello-world.md"
    assert variables["tags"] == []


def test_source_types_and_output_extension():
    assert ContentEntry(source=Path("a.html")).source_type == "html"
    jinja = ContentEntry(source=Path("feed.xml.jinja"))
    assert jinja.source_type == "jinja"
    assert jinja.output_extension == ".xml"
    assert ContentEntry(source=Path("page.jinja")).output_extension == ".html"


def test_walker_skips_configured_output_when_writing_elsewhere(tmp_path):
    (tmp_path / "_config.yml").write_text("output_dir: public\n", encoding="utf-8")
    write(tmp_path, "public/index.html", "old build")
    write(tmp_path, "public/css/site.css")
    write(tmp_path, "index.md")
    config = load_config(tmp_path, output_dir=tmp_path / "public.staging")
    tree = SourceWalker(config).walk()
    assert [p.as_posix() for p in tree.content] == ["index.md"]
    assert tree.static == []

from pathlib import Path

import pytest

from folio.config import (
    DEFAULT_POSTS_PERMALINK,
    DRAFTS,
    PAGES,
    POSTS,
    load_config,
    validate_pattern,
)
from folio.errors import ConfigError


def write_config(root: Path, text: str) -> None:
    (root / "_config.yml").write_text(text, encoding="utf-8")


def test_defaults_without_config_file(tmp_path):
    config = load_config(tmp_path)
    assert config.output_dir == tmp_path / "_site"
    assert config.config_file is None
    posts = config.collection(POSTS)
    assert posts.directory == "_posts"
    assert posts.permalink == DEFAULT_POSTS_PERMALINK
    assert posts.date_ordered
    pages = config.collection(PAGES)
    assert pages.directory is None
    assert pages.permalink is None
    assert config.sass.output == "assets/css/main.css"
    with pytest.raises(KeyError):
        config.collection(DRAFTS)


def test_collections_and_extra_values(tmp_path):
    write_config(
        tmp_path,
        "title: My Blog\n"
        "url: https://example.com/\n"
        "author: Sam\n"
        "permalink: /blog/:title/\n"
        "collections:\n"
        "  notes:\n"
        "    permalink: /notes/:year/:title/\n"
        "    date_ordered: true\n"
        "    layout: note\n"
        "  pages:\n"
        "    layout: page\n",
    )
    config = load_config(tmp_path)
    assert config.url == "https://example.com"
    assert config.collection(POSTS).permalink == "/blog/:title/"
    notes = config.collection("notes")
    assert notes.directory == "_notes"
    assert notes.date_ordered
    assert notes.layout == "note"
    assert config.collection(PAGES).layout == "page"
    assert config.site_variables()["author"] == "Sam"
    assert config.site_variables()["title"] == "My Blog"


def test_drafts_reuse_posts_pattern(tmp_path):
    write_config(tmp_path, "collections:\n  posts:\n    layout: post\n")
    drafts = load_config(tmp_path, drafts=True).collection(DRAFTS)
    assert drafts.directory == "_drafts"
    assert drafts.permalink == DEFAULT_POSTS_PERMALINK
    assert drafts.layout == "post"
    assert not drafts.date_ordered


def test_drafts_flag_keeps_configured_drafts(tmp_path):
    write_config(tmp_path, "collections:\n  drafts:\n    directory: _drafts\n    layout: draft\n")
    config = load_config(tmp_path, drafts=True)
    assert [c.name for c in config.collections].count(DRAFTS) == 1
    assert config.collection(DRAFTS).layout == "draft"


def test_drafts_flag_rejects_reused_directory(tmp_path):
    write_config(tmp_path, "collections:\n  ideas:\n    directory: _drafts\n")
    assert load_config(tmp_path).collection("ideas").directory == "_drafts"
    with pytest.raises(ConfigError, match="reserved for drafts"):
        load_config(tmp_path, drafts=True)


def test_output_override_and_workers(tmp_path):
    write_config(tmp_path, "output_dir: public\nworkers: 2\n")
    config = load_config(tmp_path)
    assert config.output_dir == tmp_path / "public"
    assert config.max_workers == 2
    other = tmp_path.parent / "elsewhere"
    assert load_config(tmp_path, output_dir=other).output_dir == other


@pytest.mark.parametrize(
    "text, message",
    [
        ("title: [broken\n", "Invalid YAML"),
        ("- a list\n", "must be a mapping"),
        ("collections:\n  notes:\n    permalink: /n/:slug/\n", ":slug"),
        ("collections:\n  notes:\n    permalink: notes/:title/\n", "must start with '/'"),
        ("collections:\n  pages:\n    directory: site\n", "rooted at the site root"),
        ("collections:\n  a:\n    directory: shared\n  b:\n    directory: shared\n", "share a directory"),
        ("sass:\n  style: fancy\n", "Unknown sass style"),
        ("workers: lots\n", "'workers' must be an integer"),
        ("exclude: 3\n", "'exclude' must be a list"),
        ("collections:\n  notes:\n    permalink: 5\n", "must be a string"),
        ("permalink: 5\n", "must start with '/'"),
        ("port: abc\n", "'port' must be an integer"),
        ("port: 0\n", "'port' must be positive"),
    ],
)
def test_invalid_config_raises(tmp_path, text, message):
    write_config(tmp_path, text)
    with pytest.raises(ConfigError, match=message):
        load_config(tmp_path)


def test_missing_explicit_config_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path, config_file=tmp_path / "other.yml")


def test_validate_pattern():
    assert validate_pattern("/:year/:month/:day/:title/") == []
    assert validate_pattern("/:collection/:path/:slug") == ["slug"]

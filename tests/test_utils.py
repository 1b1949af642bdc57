from datetime import date, datetime
from pathlib import Path

from folio import utils


def test_split_date_token():
    assert utils.split_date_token("2024-01-15-hello-world") == (date(2024, 1, 15), "hello-world")
    assert utils.split_date_token("hello-world") == (None, "hello-world")
    assert utils.split_date_token("2024-13-40-bad") == (None, "2024-13-40-bad")
    assert utils.split_date_token("2024-01-15") == (None, "2024-01-15")


def test_slugs_and_titles():
    assert utils.strip_extensions("index.html.jinja") == "index"
    assert utils.strip_extensions("python-3.12.md") == "python-3.12"
    assert utils.title_slug("2024-01-01-Hello_World Again.md") == "hello-world-again"
    assert utils.titleize("2024-01-15-hello-world.md") == "Hello World"
    assert utils.titleize("---.md") == "Untitled"
    assert utils.slugify("2024-01-02-Post Title") == "post-title"
    assert utils.slugify("Hello, World!") == "hello-world"
    assert utils.slugify("!!!") == "untitled"


def test_first_paragraph():
    text = "# Title\n\n![img](a.png)\n\nFirst <b>bold</b> {{ page.title }}\nparagraph.\n\nSecond."
    assert utils.first_paragraph(text) == "First bold paragraph."
    assert utils.first_paragraph("word " * 100, limit=10) == "word word "
    assert utils.first_paragraph("") == ""


def test_coerce_datetime():
    assert utils.coerce_datetime(date(2024, 1, 2)) == datetime(2024, 1, 2)
    moment = datetime(2024, 1, 2, 3, 4)
    assert utils.coerce_datetime(moment) is moment
    assert utils.coerce_datetime("2024-01-02T03:04:00") == moment
    assert utils.coerce_datetime("soon") is None
    assert utils.coerce_datetime(None) is None


def test_path_classification():
    assert utils.is_markdown(Path("page.md"))
    assert utils.is_markdown(Path("page.markdown"))
    assert utils.is_template(Path("index.html.jinja"))
    assert utils.is_template(Path("feed.xml.jinja"))
    assert utils.is_html(Path("404.html"))
    assert not utils.is_html(Path("page.html.jinja"))
    assert utils.is_content(Path("a.htm"))
    assert not utils.is_content(Path("style.css"))
    assert utils.is_internal_path(Path("_includes/nav.html"))
    assert utils.is_internal_path(Path("docs/.cache/x"))
    assert not utils.is_internal_path(Path("docs/guide.md"))


def test_join_root_url():
    assert utils.join_root_url("https://example.com/", "/about/") == "https://example.com/about/"
    assert utils.join_root_url("https://example.com", "feed.xml") == "https://example.com/feed.xml"
    assert utils.join_root_url("", "/about/") == "/about/"


def test_ensure_clean_dir(tmp_path):
    target = tmp_path / "build"
    (target / "nested").mkdir(parents=True)
    (target / "nested" / "old.txt").write_text("old", encoding="utf-8")
    utils.ensure_clean_dir(target)
    assert target.exists() and list(target.iterdir()) == []

    # fallback deletion path when rmtree is ineffective
    stubborn = tmp_path / "stubborn"
    (stubborn / "inner").mkdir(parents=True)
    (stubborn / "inner" / "file.txt").write_text("data", encoding="utf-8")
    original_rmtree = utils.shutil.rmtree
    utils.shutil.rmtree = lambda path, ignore_errors=False: None
    try:
        utils.ensure_clean_dir(stubborn)
    finally:
        utils.shutil.rmtree = original_rmtree
    assert stubborn.exists() and list(stubborn.iterdir()) == []

    missing = tmp_path / "missing-dir"
    utils.ensure_clean_dir(missing)
    assert missing.exists()

from pathlib import Path

from folio.renderers import (
    HTMLRenderer,
    JinjaContentRenderer,
    MarkdownRenderer,
    RendererRegistry,
    _generate_heading_id,
)


def test_markdown_headings_get_unique_ids():
    html = MarkdownRenderer().render("# Intro\n\n## Intro\n\n### Setup *Use*\n")
    assert '<h1 id="intro">Intro</h1>' in html
    assert '<h2 id="intro-1">Intro</h2>' in html
    assert '<h3 id="setup-use">' in html


def test_markdown_plugins_and_raw_html():
    html = MarkdownRenderer().render(
        "~~old~~ and https://example.com\n\n| a | b |\n|---|---|\n| 1 | 2 |\n\n<div class=\"note\">raw</div>\n"
    )
    assert "<del>old</del>" in html
    assert '<a href="https://example.com">' in html
    assert "<table>" in html
    assert '<div class="note">raw</div>' in html


def test_code_blocks_are_highlighted():
    html = MarkdownRenderer().render("```python\nprint('hi')\n```\n")
    assert '<div class="highlight">' in html
    plain = MarkdownRenderer().render("```nosuchlang\na < b\n```\n")
    assert '<pre><code class="language-nosuchlang">a &lt; b' in plain


def test_registry_picks_renderer_by_extension():
    registry = RendererRegistry()
    assert isinstance(registry.get_renderer(Path("a.md")), MarkdownRenderer)
    assert isinstance(registry.get_renderer(Path("a.markdown")), MarkdownRenderer)
    assert isinstance(registry.get_renderer(Path("a.html.jinja")), JinjaContentRenderer)
    assert isinstance(registry.get_renderer(Path("a.html")), HTMLRenderer)
    assert registry.get_renderer(Path("a.txt")) is None


def test_passthrough_renderers():
    assert HTMLRenderer().render("<p>x</p>") == "<p>x</p>"
    assert JinjaContentRenderer().render("{{ page.title }}") == "{{ page.title }}"


def test_generate_heading_id():
    assert _generate_heading_id("Hello <em>World</em>!") == "hello-world"

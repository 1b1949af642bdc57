"""Body renderers for Folio.

Each renderer turns the body of one kind of content file into the HTML
that becomes the innermost ``content`` of the layout chain.

Key classes:
- MarkdownRenderer: Renders Markdown to HTML with syntax highlighting.
- HTMLRenderer: Passes through HTML content.
- JinjaContentRenderer: Marks Jinja bodies for rendering by the composer.
- RendererRegistry: Picks the renderer for a source path.
"""

from __future__ import annotations

import re
from pathlib import Path

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .utils import is_html, is_markdown, is_template


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text."""
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


class _HighlightRenderer(mistune.HTMLRenderer):
    """Markdown renderer with heading anchors and Pygments code blocks."""

    def __init__(self) -> None:
        super().__init__(escape=False)
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        base_id = _generate_heading_id(text)
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        lang = info.split()[0] if info else ""
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
        escaped = code.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
        lang_class = f' class="language-{lang}"' if lang else ""
        return f"<pre><code{lang_class}>{escaped}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown bodies to HTML."""

    source_type = "markdown"

    def can_render(self, path: Path) -> bool:
        return is_markdown(path)

    def render(self, content: str) -> str:
        markdown = mistune.create_markdown(
            renderer=_HighlightRenderer(),
            plugins=["strikethrough", "footnotes", "table", "url"],
        )
        return markdown(content)


class HTMLRenderer:
    """Passes plain HTML bodies through unchanged."""

    source_type = "html"

    def can_render(self, path: Path) -> bool:
        return is_html(path)

    def render(self, content: str) -> str:
        return content


class JinjaContentRenderer:
    """Identifies Jinja bodies.

    The body is returned untouched; the layout composer renders it with the
    page and site variables in scope.
    """

    source_type = "jinja"

    def can_render(self, path: Path) -> bool:
        return is_template(path)

    def render(self, content: str) -> str:
        return content


class RendererRegistry:
    """Registry for body renderers, checked in registration order."""

    def __init__(self) -> None:
        self._renderers: list = []
        self.register(MarkdownRenderer())
        self.register(JinjaContentRenderer())
        self.register(HTMLRenderer())

    def register(self, renderer) -> None:
        self._renderers.append(renderer)

    def get_renderer(self, path: Path):
        for renderer in self._renderers:
            if renderer.can_render(path):
                return renderer
        return None


default_renderer_registry = RendererRegistry()

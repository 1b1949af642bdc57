"""Folio static site generator.

Folio builds a static site from a source tree of Markdown, HTML and Jinja2
entries with YAML front matter. Entries are grouped into collections,
routed through permalink patterns, wrapped in chains of layouts and
written next to a stylesheet compiled from Sass with a selectable skin.

The main entry point is the CLI module, which provides commands for
building sites, creating posts and running the development server.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"

"""Utility functions for Folio.

Key functions:
    split_date_token: Split a YYYY-MM-DD- prefix off a filename stem.
    title_slug: Build the :title route segment from a filename.
    titleize: Convert filenames to human-readable titles.
    slugify: Convert free text to a URL slug.
    first_paragraph: Extract a plain-text excerpt from a body.
    is_markdown / is_template / is_html / is_content: Classify source files.
    strip_extensions: Drop every suffix from a filename.
    join_root_url: Join a base URL with a path.
    ensure_clean_dir: Ensure a directory exists and is empty.
"""

from __future__ import annotations

import re
import shutil
from datetime import date, datetime
from pathlib import Path

DATE_TOKEN_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})-(.+)$")
MARKDOWN_EXTENSIONS = (".md", ".markdown")


def split_date_token(stem: str) -> tuple[date | None, str]:
    """Split a leading date token off a filename stem.

    Args:
        stem: Filename without extension, e.g. "2024-01-15-hello-world".

    Returns:
        Tuple of (date, remainder). The date is None when the stem has no
        token or the token is not a real calendar date; the remainder is
        then the stem unchanged.

    Examples:
        >>> split_date_token("2024-01-15-hello-world")
        (datetime.date(2024, 1, 15), 'hello-world')

        >>> split_date_token("hello-world")
        (None, 'hello-world')
    """
    match = DATE_TOKEN_RE.match(stem)
    if not match:
        return None, stem
    year, month, day, rest = match.groups()
    try:
        return date(int(year), int(month), int(day)), rest
    except ValueError:
        return None, stem


def strip_extensions(name: str) -> str:
    """Drop the content extension from a filename.

    ".jinja" templates lose their output extension too, so
    "index.html.jinja" becomes "index" while "python-3.12.md" keeps its
    inner dot.
    """
    path = Path(name)
    if path.suffix == ".jinja":
        path = Path(path.stem)
    return path.stem


def title_slug(filename: str) -> str:
    """Build the :title route segment for a filename.

    The date token and extensions are stripped, the result is lower-cased
    and spaces and underscores become hyphens.

    Examples:
        >>> title_slug("2024-01-01-Hello_World.md")
        'hello-world'
    """
    _, rest = split_date_token(strip_extensions(filename))
    return re.sub(r"[ _]", "-", rest.lower())


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Removes date prefixes (YYYY-MM-DD), replaces hyphens and underscores
    with spaces, and capitalizes each word.

    Examples:
        >>> titleize("2024-01-15-hello-world.md")
        'Hello World'
    """
    _, base = split_date_token(strip_extensions(filename))
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def first_paragraph(text: str, limit: int = 160) -> str:
    """Extract and clean the first paragraph from text.

    Skips headings, images, code fences and rules; strips HTML tags and
    Jinja syntax, collapses whitespace and truncates to the limit.
    """
    paragraphs = [p.strip() for p in text.split("\n\n") if p.strip()]
    for para in paragraphs:
        if para.startswith(("#", "![", "```", "---", "{%")):
            continue
        para = re.sub(r"<[^>]+>", "", para)
        para = re.sub(r"\{[%#{].*?[%#}]\}", "", para)
        collapsed = " ".join(para.split())
        if collapsed:
            return collapsed[:limit]
    return ""


def coerce_datetime(value: object) -> datetime | None:
    """Turn a YAML date/datetime (or ISO string) into a datetime."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    return None


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file."""
    return path.suffix.lower() in MARKDOWN_EXTENSIONS


def is_template(path: Path) -> bool:
    """Check if a path is a Jinja template file (.jinja or .html.jinja)."""
    return path.suffixes[-2:] == [".html", ".jinja"] or path.suffix == ".jinja"


def is_html(path: Path) -> bool:
    """Check if a path is a plain HTML file (not a Jinja template)."""
    return path.suffix.lower() in (".html", ".htm") and not is_template(path)


def is_content(path: Path) -> bool:
    """Check if a path is rendered as an entry rather than copied."""
    return is_markdown(path) or is_template(path) or is_html(path)


def is_internal_path(path: Path) -> bool:
    """Check if any component of a relative path starts with _ or a dot."""
    return any(part.startswith(("_", ".")) for part in path.parts)


def join_root_url(root_url: str, path: str) -> str:
    """Join a base URL with a path, avoiding doubled or missing slashes."""
    if not root_url:
        return path
    return f"{root_url.rstrip('/')}/{path.lstrip('/')}"


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    If the directory exists, removes all contents. Creates the
    directory if it doesn't exist.
    """
    if path.exists():
        shutil.rmtree(str(path), ignore_errors=True)
        if path.exists():
            # Fallback for stubborn directories
            for item in path.rglob("*"):
                if item.is_file():
                    item.unlink()
            for item in sorted(
                [p for p in path.rglob("*") if p.is_dir()], reverse=True
            ):
                item.rmdir()
            path.rmdir()
    path.mkdir(parents=True, exist_ok=True)


def slugify(text: str) -> str:
    """Convert free text to a URL slug, dropping any date prefix.

    Examples:
        >>> slugify("Hello, World!")
        'hello-world'
    """
    _, cleaned = split_date_token(text)
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", cleaned)
    return cleaned.strip("-").lower() or "untitled"

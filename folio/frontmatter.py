"""YAML front matter for Folio content files.

A content file may open with a header block:

    ---
    title: Hello
    tags: [python, blog]
    ---
    Body text...

The opening line must be exactly ``---`` and must be the first line of the
file. Everything up to the next ``---`` line is parsed as a YAML mapping;
the rest of the file is the body.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml

from .errors import MalformedFrontMatter

DELIMITER = "---"
OPENING_RE = re.compile(r"\A(?:\ufeff)?---[ \t]*\r?\n")
CLOSING_RE = re.compile(r"^---[ \t]*(?:\r?\n|\Z)", re.MULTILINE)


def has_frontmatter(text: str) -> bool:
    """Return True if the text opens with a front matter delimiter."""
    return OPENING_RE.match(text) is not None


def parse_frontmatter(
    text: str, source: Path | None = None
) -> tuple[dict[str, Any], str]:
    """Split text into its front matter mapping and body.

    Args:
        text: Raw file content.
        source: Source path, used only in error messages.

    Returns:
        Tuple of (front matter dict, remaining body). Text without an opening
        delimiter yields an empty dict and the unchanged text.

    Raises:
        MalformedFrontMatter: If the header is unterminated, is not valid
            YAML, or is not a mapping.
    """
    opening = OPENING_RE.match(text)
    if not opening:
        return {}, text
    source = source or Path("<string>")
    closing = CLOSING_RE.search(text, opening.end())
    if not closing:
        raise MalformedFrontMatter(
            source, "front matter opened with '---' but never closed"
        )
    header = text[opening.end() : closing.start()]
    try:
        data = yaml.safe_load(header)
    except yaml.YAMLError as exc:
        raise MalformedFrontMatter(source, f"invalid YAML: {exc}") from exc
    except (ValueError, TypeError) as exc:
        # PyYAML builds timestamps eagerly; 2024-13-45 fails here.
        raise MalformedFrontMatter(source, f"invalid value: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedFrontMatter(
            source, f"front matter must be a mapping, got {type(data).__name__}"
        )
    return data, text[closing.end() :]


def dump_frontmatter(data: dict[str, Any], body: str = "") -> str:
    """Serialize a mapping and body back into front matter form."""
    if not data:
        header = ""
    else:
        header = yaml.safe_dump(
            data, sort_keys=False, allow_unicode=True, default_flow_style=False
        )
    return f"{DELIMITER}\n{header}{DELIMITER}\n{body}"

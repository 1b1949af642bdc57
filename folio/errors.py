"""Error taxonomy for Folio.

Errors fall into three families, and only the site assembler decides what
to do with each of them:

- EntryError: a problem with one content file. The build records it and
  carries on (MalformedFrontMatter, MissingDateToken, InvalidPermalink).
- BuildError: a problem that makes the output untrustworthy. The build
  stops before writing anything (RouteCollision, LayoutCycle, ConfigError,
  RenderError).
- BuildWarning: degraded output that is still published (UnknownSkin,
  UnknownLayout, StylesheetError). Warnings are plain records, not raised.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path


class FolioError(Exception):
    """Base class for all Folio errors."""


class EntryError(FolioError):
    """Non-fatal error tied to a single content file.

    Attributes:
        source_path: Source file, relative to the site root.
        message: Human-readable error message.
    """

    kind = "entry"

    def __init__(self, source_path: Path, message: str):
        self.source_path = Path(source_path)
        self.message = message
        super().__init__(f"{source_path}: {message}")


class MalformedFrontMatter(EntryError):
    kind = "malformed-front-matter"


class MissingDateToken(EntryError):
    kind = "missing-date-token"


class InvalidPermalink(EntryError):
    kind = "invalid-permalink"


class BuildError(FolioError):
    """Error that aborts the build.

    Attributes:
        source_path: Path to the source file that caused the error, if any.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path | None,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        prefix = f"{source_path}: " if source_path is not None else ""
        super().__init__(f"{prefix}{message}")


class ConfigError(BuildError):
    """The site configuration is unusable."""


class RenderError(BuildError):
    """A template failed while rendering an entry."""


class RouteCollision(BuildError):
    """Two sources resolved to the same output.

    Attributes:
        route: The contested route.
        sources: Every source that claimed it, in claim order.
    """

    def __init__(self, route: str, sources: Iterable[Path]):
        self.route = route
        self.sources = tuple(sources)
        names = ", ".join(str(s) for s in self.sources)
        super().__init__(
            self.sources[-1] if self.sources else None,
            f"Route collision on {route}: {names}",
        )


class LayoutCycle(BuildError):
    """A layout's parent chain loops back on itself.

    Attributes:
        chain: Layout names walked, ending with the repeated name.
    """

    def __init__(self, chain: Iterable[str], source_path: Path | None = None):
        self.chain = tuple(chain)
        self.repeated = self.chain[-1] if self.chain else ""
        super().__init__(
            source_path,
            f"Layout cycle on '{self.repeated}': {' -> '.join(self.chain)}",
        )


@dataclass(frozen=True)
class BuildWarning:
    """Degraded-but-published condition recorded during a build."""

    kind: str
    message: str
    source_path: Path | None = None

    def __str__(self) -> str:
        if self.source_path is None:
            return self.message
        return f"{self.source_path}: {self.message}"


def unknown_skin(name: str, fallback: str) -> BuildWarning:
    return BuildWarning(
        "unknown-skin", f"Unknown skin '{name}'; using '{fallback}' instead"
    )


def unknown_layout(name: str, source_path: Path | None) -> BuildWarning:
    return BuildWarning(
        "unknown-layout", f"Layout '{name}' does not exist", source_path
    )


def stylesheet_error(source_path: Path, message: str) -> BuildWarning:
    return BuildWarning(
        "stylesheet-error", f"Stylesheet not built: {message}", source_path
    )

"""Stylesheet build for Folio.

The site has one stylesheet entry (``assets/css/main.scss`` by default)
whose imports come in a fixed order: the skin's variables, the base
framework, then any custom rules::

    ---
    ---
    @import "skins/{{ skin }}";
    @import "base";

    .site-title { letter-spacing: 0.1em; }

An entry that opens with a front matter block is rendered with Jinja2
first, with ``skin`` and ``site`` in scope. The result is compiled by
libsass with the Sass directory on the include path.

A skin is a partial under ``<sass_dir>/skins/``. An unset or unknown skin
falls back to ``default``; styling problems are recorded as warnings and
never stop the build.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any

import sass
from jinja2 import Environment, TemplateError

from .config import SiteConfig
from .errors import (
    BuildWarning,
    MalformedFrontMatter,
    stylesheet_error,
    unknown_skin,
)
from .frontmatter import has_frontmatter, parse_frontmatter

DEFAULT_SKIN = "default"
SKINS_DIR = "skins"
SASS_EXTENSIONS = (".scss", ".sass", ".css")


@dataclass
class StylesheetResult:
    """Outcome of a stylesheet build.

    Attributes:
        output: Output path relative to the output directory.
        skin: Skin that was actually used.
        css: Compiled CSS, or None when compilation failed.
        warnings: Degraded conditions met along the way.
    """

    output: PurePosixPath
    skin: str
    css: str | None = None
    warnings: list[BuildWarning] = field(default_factory=list)


class AssetBuilder:
    """Compiles the site stylesheet with the configured skin.

    Attributes:
        config: Site configuration.
        site: Values exposed to the entry template as ``site``.
    """

    def __init__(self, config: SiteConfig, site: Mapping[str, Any] | None = None):
        self.config = config
        self.site = site if site is not None else config.site_variables()
        self.sass_dir = config.root / config.sass.sass_dir
        self.entry = config.root / config.sass.entry
        self._env = Environment(autoescape=False, keep_trailing_newline=True)

    def skin_exists(self, name: str) -> bool:
        skins = self.sass_dir / SKINS_DIR
        return any(
            (skins / f"{prefix}{name}{ext}").is_file()
            for prefix in ("_", "")
            for ext in SASS_EXTENSIONS
        )

    def resolve_skin(self) -> tuple[str, list[BuildWarning]]:
        """Return the skin to use and a warning if the configured one is missing."""
        requested = self.config.skin
        if requested and self.skin_exists(requested):
            return requested, []
        if requested and requested != DEFAULT_SKIN:
            return DEFAULT_SKIN, [unknown_skin(requested, DEFAULT_SKIN)]
        return DEFAULT_SKIN, []

    def build(self) -> StylesheetResult | None:
        """Build the stylesheet.

        Returns:
            The result, or None when the site has no stylesheet entry.
        """
        if not self.entry.is_file():
            return None
        rel = self.entry.relative_to(self.config.root)
        skin, warnings = self.resolve_skin()
        result = StylesheetResult(
            output=PurePosixPath(self.config.sass.output), skin=skin, warnings=warnings
        )
        try:
            source = self.prepare(self.entry.read_text(encoding="utf-8"), skin)
            result.css = self.compile(source)
        except MalformedFrontMatter as exc:
            result.warnings.append(stylesheet_error(rel, exc.message))
        except TemplateError as exc:
            result.warnings.append(stylesheet_error(rel, f"template error: {exc}"))
        except sass.CompileError as exc:
            result.warnings.append(stylesheet_error(rel, str(exc).strip()))
        return result

    def prepare(self, text: str, skin: str) -> str:
        """Strip the entry's front matter and render it when present."""
        if not has_frontmatter(text):
            return text
        _, body = parse_frontmatter(text, self.entry)
        template = self._env.from_string(body)
        return template.render(skin=skin, site=self.site)

    def compile(self, source: str) -> str:
        """Compile Sass source with the Sass directory on the include path."""
        return sass.compile(
            string=source,
            include_paths=[str(self.sass_dir), str(self.entry.parent)],
            output_style=self.config.sass.style,
            indented=self.entry.suffix == ".sass",
        )

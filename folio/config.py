"""Site configuration for Folio.

The configuration is read once from ``_config.yml`` at the site root and
turned into an immutable SiteConfig that every stage of the build receives
explicitly.

Example ``_config.yml``::

    title: My Blog
    url: https://example.com
    skin: dark
    collections:
      posts:
        permalink: /:year/:month/:day/:title/
        layout: post
      notes:
        directory: _notes
        permalink: /notes/:title/
      pages:
        layout: page
    sass:
      sass_dir: _sass
      entry: assets/css/main.scss
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path, PurePosixPath
from typing import Any

import yaml

from .errors import ConfigError

CONFIG_FILENAME = "_config.yml"
PAGES = "pages"
POSTS = "posts"
DRAFTS = "drafts"

PLACEHOLDERS = frozenset({"year", "month", "day", "title", "collection", "path"})
PLACEHOLDER_RE = re.compile(r":([A-Za-z_]+)")

DEFAULT_POSTS_PERMALINK = "/:year/:month/:day/:title/"
DEFAULT_COLLECTION_PERMALINK = "/:collection/:path/"
SASS_STYLES = ("nested", "expanded", "compact", "compressed")

DEFAULT_CONFIG: dict[str, Any] = {
    "title": "",
    "description": "",
    "url": "",
    "skin": None,
    "output_dir": "_site",
    "layouts_dir": "_layouts",
    "includes_dir": "_includes",
    "permalink": DEFAULT_POSTS_PERMALINK,
    "collections": {},
    "sass": {},
    "exclude": [],
    "workers": None,
    "port": 4000,
    "ws_port": None,
}

DEFAULT_EXCLUDE = ("Gemfile", "Gemfile.lock", "node_modules", "vendor")


@dataclass(frozen=True)
class CollectionSpec:
    """Declared semantics of one collection.

    Attributes:
        name: Collection name, exposed to templates as ``site.<name>``.
        directory: Source directory relative to the site root, in posix
            form. None for the implicit pages collection.
        permalink: Default route pattern. None means "mirror the source
            path", which only the pages collection uses.
        date_ordered: Whether filenames carry a YYYY-MM-DD- token and
            listings are sorted newest first.
        layout: Default layout for entries that don't name one.
    """

    name: str
    directory: str | None = None
    permalink: str | None = DEFAULT_COLLECTION_PERMALINK
    date_ordered: bool = False
    layout: str | None = None

    @property
    def depth(self) -> int:
        return len(PurePosixPath(self.directory).parts) if self.directory else 0


@dataclass(frozen=True)
class SassSpec:
    """Stylesheet build settings."""

    sass_dir: str = "_sass"
    entry: str = "assets/css/main.scss"
    style: str = "expanded"

    @property
    def output(self) -> str:
        return str(PurePosixPath(self.entry).with_suffix(".css"))


@dataclass(frozen=True)
class SiteConfig:
    """Immutable configuration for a single build."""

    root: Path
    output_dir: Path
    title: str = ""
    description: str = ""
    url: str = ""
    skin: str | None = None
    layouts_dir: str = "_layouts"
    includes_dir: str = "_includes"
    collections: tuple[CollectionSpec, ...] = ()
    sass: SassSpec = SassSpec()
    exclude: tuple[str, ...] = DEFAULT_EXCLUDE
    drafts: bool = False
    workers: int | None = None
    port: int = 4000
    ws_port: int | None = None
    config_file: Path | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def collection(self, name: str) -> CollectionSpec:
        for spec in self.collections:
            if spec.name == name:
                return spec
        raise KeyError(name)

    @property
    def max_workers(self) -> int:
        return self.workers or os.cpu_count() or 1

    def site_variables(self) -> dict[str, Any]:
        """Return the values templates see under ``site``."""
        return {
            **self.extra,
            "title": self.title,
            "description": self.description,
            "url": self.url,
            "skin": self.skin,
        }


def load_config(
    root: Path,
    output_dir: Path | None = None,
    drafts: bool = False,
    config_file: Path | None = None,
) -> SiteConfig:
    """Load and validate the site configuration.

    Args:
        root: Site source directory.
        output_dir: Optional override for the configured output directory.
        drafts: Whether to build the _drafts collection.
        config_file: Optional configuration path; defaults to _config.yml
            in the root. A missing default file means "all defaults".

    Returns:
        The validated SiteConfig.

    Raises:
        ConfigError: If the file cannot be parsed or holds invalid values.
    """
    config_path = config_file or root / CONFIG_FILENAME
    loaded: dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(config_path, f"Invalid YAML: {exc}", exc) from exc
        if not isinstance(loaded, dict):
            raise ConfigError(config_path, "Configuration must be a mapping")
    elif config_file is not None:
        raise ConfigError(config_path, "Configuration file not found")

    values = {**DEFAULT_CONFIG, **loaded}
    known = set(DEFAULT_CONFIG)
    extra = {k: v for k, v in loaded.items() if k not in known}

    configured_out = Path(str(values["output_dir"]))
    exclude = DEFAULT_EXCLUDE + tuple(_as_list(values["exclude"], "exclude", config_path))
    if not configured_out.is_absolute():
        # The configured output is never a source, even when writing elsewhere.
        exclude += (f"{configured_out.as_posix().strip('/')}/*",)
    out = output_dir or configured_out
    if not out.is_absolute():
        out = root / out

    collections = _parse_collections(
        values["collections"], str(values["permalink"]), config_path
    )
    if drafts and all(c.name != DRAFTS for c in collections):
        if any(c.directory == "_drafts" for c in collections):
            raise ConfigError(
                config_path, "Collection directory _drafts is reserved for drafts"
            )
        posts = next(c for c in collections if c.name == POSTS)
        collections = collections + (
            CollectionSpec(
                DRAFTS, "_drafts", permalink=posts.permalink, layout=posts.layout
            ),
        )

    return SiteConfig(
        root=root,
        output_dir=out,
        title=str(values["title"] or ""),
        description=str(values["description"] or ""),
        url=str(values["url"] or "").rstrip("/"),
        skin=str(values["skin"]) if values["skin"] else None,
        layouts_dir=str(values["layouts_dir"]),
        includes_dir=str(values["includes_dir"]),
        collections=collections,
        sass=_parse_sass(values["sass"], config_path),
        exclude=exclude,
        drafts=drafts,
        workers=_optional_int(values["workers"], "workers", config_path),
        port=_optional_int(values["port"], "port", config_path)
        or DEFAULT_CONFIG["port"],
        ws_port=_optional_int(values["ws_port"], "ws_port", config_path),
        config_file=config_path if config_path.exists() else None,
        extra=extra,
    )


def validate_pattern(pattern: str) -> list[str]:
    """Return the placeholders in a pattern that Folio can't substitute."""
    return [
        name for name in PLACEHOLDER_RE.findall(pattern) if name not in PLACEHOLDERS
    ]


def _parse_collections(
    raw: Any, posts_permalink: str, config_path: Path
) -> tuple[CollectionSpec, ...]:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(config_path, "'collections' must be a mapping")

    specs: dict[str, CollectionSpec] = {
        POSTS: CollectionSpec(
            POSTS, "_posts", permalink=posts_permalink, date_ordered=True
        ),
        PAGES: CollectionSpec(PAGES, None, permalink=None),
    }
    for name, options in raw.items():
        name = str(name)
        options = options or {}
        if not isinstance(options, dict):
            raise ConfigError(config_path, f"Collection '{name}' must be a mapping")
        base = specs.get(name, CollectionSpec(name, f"_{name}"))
        if name == PAGES and options.get("directory"):
            raise ConfigError(
                config_path, "The pages collection is rooted at the site root"
            )
        if name == PAGES and options.get("permalink"):
            raise ConfigError(
                config_path, "Pages take their route from their path or permalink"
            )
        directory = options.get("directory", base.directory)
        if directory is not None:
            directory = str(PurePosixPath(str(directory).strip("/")))
        specs[name] = replace(
            base,
            directory=directory,
            permalink=options.get("permalink", base.permalink),
            date_ordered=bool(options.get("date_ordered", base.date_ordered)),
            layout=options.get("layout", base.layout),
        )

    for spec in specs.values():
        if spec.permalink is None:
            continue
        if not isinstance(spec.permalink, str):
            raise ConfigError(
                config_path,
                f"Permalink for collection '{spec.name}' must be a string",
            )
        if not spec.permalink.startswith("/"):
            raise ConfigError(
                config_path,
                f"Permalink for collection '{spec.name}' must start with '/'",
            )
        unknown = validate_pattern(spec.permalink)
        if unknown:
            raise ConfigError(
                config_path,
                f"Unknown placeholder(s) in '{spec.name}' permalink: "
                + ", ".join(f":{u}" for u in unknown),
            )

    directories = [s.directory for s in specs.values() if s.directory]
    if len(directories) != len(set(directories)):
        raise ConfigError(config_path, "Two collections share a directory")
    return tuple(specs.values())


def _parse_sass(raw: Any, config_path: Path) -> SassSpec:
    if not raw:
        return SassSpec()
    if not isinstance(raw, dict):
        raise ConfigError(config_path, "'sass' must be a mapping")
    spec = SassSpec(
        sass_dir=str(raw.get("sass_dir", SassSpec.sass_dir)),
        entry=str(raw.get("entry", SassSpec.entry)),
        style=str(raw.get("style", SassSpec.style)),
    )
    if spec.style not in SASS_STYLES:
        raise ConfigError(
            config_path,
            f"Unknown sass style '{spec.style}' (expected one of {', '.join(SASS_STYLES)})",
        )
    return spec


def _as_list(value: Any, key: str, config_path: Path) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ConfigError(config_path, f"'{key}' must be a list")
    return [str(v) for v in value]


def _optional_int(value: Any, key: str, config_path: Path) -> int | None:
    if value is None:
        return None
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(config_path, f"'{key}' must be an integer", exc) from exc
    if number < 1:
        raise ConfigError(config_path, f"'{key}' must be positive")
    return number

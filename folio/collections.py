"""Collections for Folio.

A collection groups entries that share a source directory and routing
rules. Every entry belongs to exactly one collection: the configured
collection with the longest matching directory, or the implicit "pages"
collection rooted at the site root.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import replace
from pathlib import PurePosixPath

from .config import PAGES, CollectionSpec, SiteConfig
from .content import ContentEntry
from .errors import EntryError, MissingDateToken
from .utils import coerce_datetime, split_date_token, strip_extensions


class Collection(Sequence[ContentEntry]):
    """Entries of one collection, with a listing view for templates."""

    def __init__(self, spec: CollectionSpec, entries: Iterable[ContentEntry]):
        self.spec = spec
        self._entries = sorted(entries, key=lambda e: e.source.as_posix())
        self._listing: list[ContentEntry] | None = None

    @property
    def name(self) -> str:
        return self.spec.name

    def __iter__(self) -> Iterator[ContentEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, item):
        return self._entries[item]

    def listing(self) -> list[ContentEntry]:
        """Entries in listing order.

        Date-ordered collections list only entries with a filename date,
        newest first, ties broken by filename (also descending). Other
        collections list every entry by source path.
        """
        if self._listing is None:
            if self.spec.date_ordered:
                dated = [e for e in self._entries if e.dated_filename]
                self._listing = sorted(
                    dated, key=lambda e: (e.date.date(), e.filename), reverse=True
                )
            else:
                self._listing = list(self._entries)
        return list(self._listing)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Collection({self.name!r}, {len(self._entries)} entries)"


class CollectionIndexer:
    """Assigns entries to collections and resolves their dates.

    Attributes:
        config: Site configuration.
    """

    def __init__(self, config: SiteConfig):
        self.config = config
        # Deepest directories first so the longest prefix wins.
        self._specs = sorted(
            (s for s in config.collections if s.directory),
            key=lambda s: s.depth,
            reverse=True,
        )
        self._pages = config.collection(PAGES)

    def spec_for(self, entry: ContentEntry) -> CollectionSpec:
        posix = PurePosixPath(entry.source.as_posix())
        for spec in self._specs:
            if PurePosixPath(spec.directory) in posix.parents:
                return spec
        return self._pages

    def assign(
        self, entries: Iterable[ContentEntry]
    ) -> tuple[list[ContentEntry], list[EntryError]]:
        """Attach collection name and date to each entry.

        The date comes from the filename's YYYY-MM-DD- token, then the
        front matter ``date``, then the file's modification time. Entries of
        a date-ordered collection without a filename token are reported with
        MissingDateToken; they are still built but left out of listings.

        Returns:
            Tuple of (updated entries, per-entry errors).
        """
        assigned: list[ContentEntry] = []
        errors: list[EntryError] = []
        for entry in entries:
            spec = self.spec_for(entry)
            token_date, _ = split_date_token(strip_extensions(entry.filename))
            if token_date is not None and spec.date_ordered:
                date = coerce_datetime(token_date)
                fm_date = coerce_datetime(entry.frontmatter.get("date"))
                if fm_date is not None and fm_date.date() == token_date:
                    date = fm_date
                dated = True
            else:
                date = coerce_datetime(entry.frontmatter.get("date")) or entry.mtime
                dated = False
                if spec.date_ordered:
                    errors.append(
                        MissingDateToken(
                            entry.source,
                            "filename has no YYYY-MM-DD- date token; "
                            f"left out of the '{spec.name}' listing",
                        )
                    )
            assigned.append(
                replace(entry, collection=spec.name, date=date, dated_filename=dated)
            )
        return assigned, errors

    def collections(self, entries: Iterable[ContentEntry]) -> dict[str, Collection]:
        """Group already-assigned entries into Collection objects."""
        grouped: dict[str, list[ContentEntry]] = {
            spec.name: [] for spec in self.config.collections
        }
        for entry in entries:
            grouped[entry.collection].append(entry)
        return {
            name: Collection(self.config.collection(name), members)
            for name, members in grouped.items()
        }

"""Store contract and one-shot backend selection.

    store = open_store(cfg)          # SQLite, or the JSON file if SQLite won't open
    table = store.create_table("Notes", "alice")
    entry = store.create_entry(table.id, "Hello", ["demo"], "world")
    store.search_entries("wor")

Both backends implement the same contract; call sites only ever see Store.
The backend is chosen once, when the store is opened, and never switched.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from thighpads.errors import EmptyTitle, IOFailure, InvalidName
from thighpads.models import SearchResult, format_tags, is_valid_table_name

if TYPE_CHECKING:
    from thighpads.config import TPConfig
    from thighpads.models import Entry, Table

logger = logging.getLogger("thighpads.store")

# Snippet bounds for search results.
CONTEXT_MAX = 60
CONTEXT_RADIUS = 20


class Store(ABC):
    """Durable CRUD + search over tables and entries."""

    backend: str = ""

    @abstractmethod
    def create_table(self, name: str, author: str) -> Table: ...

    @abstractmethod
    def get_table(self, table_id: int) -> Table: ...

    @abstractmethod
    def get_table_by_name(self, name: str) -> Table: ...

    @abstractmethod
    def list_tables(self) -> list[Table]: ...

    @abstractmethod
    def delete_table(self, table_id: int) -> None: ...

    @abstractmethod
    def create_entry(self, table_id: int, title: str, tags: list[str], content: str) -> Entry: ...

    @abstractmethod
    def get_entry(self, entry_id: int) -> Entry: ...

    @abstractmethod
    def list_entries(self, table_id: int) -> list[Entry]: ...

    @abstractmethod
    def update_entry(
        self,
        entry_id: int,
        *,
        title: str | None = None,
        tags: list[str] | None = None,
        content: str | None = None,
    ) -> Entry: ...

    @abstractmethod
    def delete_entry(self, entry_id: int) -> None: ...

    @abstractmethod
    def search_entries(self, query: str) -> list[SearchResult]: ...

    def close(self) -> None:  # noqa: B027
        pass

    def __enter__(self) -> Store:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


# ---------------------------------------------------------------------------
# Validation shared by both backends
# ---------------------------------------------------------------------------


def check_table_name(name: str) -> str:
    name = (name or "").strip()
    if not is_valid_table_name(name):
        raise InvalidName(name)
    return name


def check_title(title: str | None) -> str:
    title = (title or "").strip()
    if not title:
        raise EmptyTitle
    return title


def clean_tags(tags: list[str] | None) -> list[str]:
    return [str(t).strip() for t in tags or [] if str(t).strip()]


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


def snippet(text: str, query: str) -> str:
    """Bounded window around the first case-insensitive match of query in text."""
    if len(text) <= CONTEXT_MAX:
        return text
    idx = text.casefold().find(query.casefold())
    if idx < 0:
        return text[:CONTEXT_MAX] + "..."
    start = max(0, idx - CONTEXT_RADIUS)
    end = min(len(text), idx + len(query) + CONTEXT_RADIUS)
    out = text[start:end]
    if start > 0:
        out = "..." + out
    if end < len(text):
        out += "..."
    return out


def match_entry(entry: Entry, table_name: str, query: str) -> SearchResult | None:
    """Return a SearchResult if entry matches query in title, tags or content."""
    q = query.casefold()
    if not q:
        return None
    if q in entry.title.casefold():
        field, text = "title", entry.title
    elif any(q in t.casefold() for t in entry.tags):
        field, text = "tags", format_tags(entry.tags)
    elif q in entry.content.casefold():
        field, text = "content", entry.content
    else:
        return None
    return SearchResult(
        entry_id=entry.id,
        table_id=entry.table_id,
        table_name=table_name,
        title=entry.title,
        matching_field=field,
        context=snippet(text, query),
    )


def sort_results(results: list[SearchResult]) -> list[SearchResult]:
    return sorted(results, key=lambda r: (r.table_name.casefold(), r.title.casefold(), r.entry_id))


# ---------------------------------------------------------------------------
# Backend selection
# ---------------------------------------------------------------------------


def open_store(cfg: TPConfig) -> Store:
    """Open the configured backend.

    backend = "auto": try SQLite; if it cannot be opened for any reason
    (including a Python built without the sqlite3 driver), fall back to the
    JSON file store for the rest of the process. An IOFailure from the JSON
    store propagates: there is nothing left to fall back to.
    """
    from thighpads.file_store import JSONFileStore

    if cfg.backend == "file":
        return JSONFileStore(cfg.file_db_path, legacy_dir=cfg.legacy_tables_dir)

    try:
        import sqlite3

        from thighpads.sqlite_store import SQLiteStore
    except ImportError as exc:
        _sqlite_unavailable(cfg, exc)
    else:
        try:
            return SQLiteStore(cfg.db_path)
        except (sqlite3.Error, OSError, IOFailure) as exc:
            _sqlite_unavailable(cfg, exc)

    return JSONFileStore(cfg.file_db_path, legacy_dir=cfg.legacy_tables_dir)


def _sqlite_unavailable(cfg: TPConfig, exc: Exception) -> None:
    if cfg.backend == "sqlite":
        raise IOFailure(f"Cannot open database {cfg.db_path}: {exc}") from exc
    logger.warning("SQLite unavailable (%s), using file store %s", exc, cfg.file_db_path)

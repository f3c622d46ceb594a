"""Data models for tables, entries and search results."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

# Table names: letters, digits, underscore.
_NAME_RE = re.compile(r"^\w+$")


def now_iso() -> str:
    return datetime.now(UTC).replace(microsecond=0).isoformat()


def is_valid_table_name(name: str) -> bool:
    return bool(_NAME_RE.match(name or ""))


def parse_tags(raw: str) -> list[str]:
    """Split a comma-separated tag string, keeping order and dropping blanks."""
    return [t.strip() for t in (raw or "").split(",") if t.strip()]


def format_tags(tags: list[str]) -> str:
    return ", ".join(tags)


@dataclass
class Entry:
    """One snippet record owned by a table."""

    id: int
    table_id: int
    title: str
    tags: list[str] = field(default_factory=list)
    content: str = ""
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Entry:
        return cls(
            id=int(d["id"]),
            table_id=int(d["table_id"]),
            title=d.get("title", ""),
            tags=list(d.get("tags") or []),
            content=d.get("content", ""),
            created_at=d.get("created_at", ""),
            updated_at=d.get("updated_at", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "table_id": self.table_id,
            "title": self.title,
            "tags": list(self.tags),
            "content": self.content,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class Table:
    """A named collection of entries, keyed by entry id."""

    id: int
    name: str
    author: str = ""
    created_at: str = ""
    updated_at: str = ""
    entries: dict[int, Entry] = field(default_factory=dict)

    @property
    def entry_count(self) -> int:
        return len(self.entries)

    def sorted_entries(self) -> list[Entry]:
        return sorted(self.entries.values(), key=lambda e: (e.title.casefold(), e.id))

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Table:
        return cls(
            id=int(d["id"]),
            name=d.get("name", ""),
            author=d.get("author", ""),
            created_at=d.get("created_at", ""),
            updated_at=d.get("updated_at", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        """Header fields only; entries are serialised separately."""
        return {
            "id": self.id,
            "name": self.name,
            "author": self.author,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class SearchResult:
    """Read-only projection of a search hit. Never persisted."""

    entry_id: int
    table_id: int
    table_name: str
    title: str
    matching_field: str      # title | tags | content
    context: str = ""


@dataclass
class PortableFile:
    """Decoded .thighpad envelope."""

    format_version: str
    exported_at: str
    exported_by: str
    table: dict[str, Any]
    entries: list[dict[str, Any]] = field(default_factory=list)

    @property
    def table_name(self) -> str:
        return str(self.table.get("name") or "")

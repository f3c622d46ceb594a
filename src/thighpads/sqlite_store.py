"""SQLite backend for the Store contract.

Schema:
    tables   (id INTEGER PK, name UNIQUE, author, created_at, updated_at)
    entries  (id INTEGER PK, table_id -> tables ON DELETE CASCADE,
              title, tags_json, content, created_at, updated_at)
    meta     (key PK, value)          # schema_version

Each call opens its own connection; writes run inside one transaction.
"""

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
from typing import TYPE_CHECKING

from thighpads.db import get_conn
from thighpads.errors import DuplicateName, EntryNotFound, IOFailure, TableNotFound
from thighpads.models import Entry, Table, now_iso
from thighpads.store import (
    Store,
    check_table_name,
    check_title,
    clean_tags,
    match_entry,
    sort_results,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from thighpads.models import SearchResult

logger = logging.getLogger("thighpads.sqlite_store")

SCHEMA_VERSION = "1"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tables (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    author TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS entries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    table_id INTEGER NOT NULL REFERENCES tables(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    tags_json TEXT NOT NULL DEFAULT '[]',
    content TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_entries_table ON entries(table_id);
"""

_ENTRY_COLS = "id, table_id, title, tags_json, content, created_at, updated_at"
_TABLE_COLS = "id, name, author, created_at, updated_at"


def _row_to_entry(row: sqlite3.Row) -> Entry:
    return Entry(
        id=row["id"],
        table_id=row["table_id"],
        title=row["title"],
        tags=json.loads(row["tags_json"] or "[]"),
        content=row["content"] or "",
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_table(row: sqlite3.Row) -> Table:
    return Table(
        id=row["id"],
        name=row["name"],
        author=row["author"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class SQLiteStore(Store):
    """Relational backend. Raises sqlite3.Error from __init__ if the DB can't be opened."""

    backend = "sqlite"

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        conn = get_conn(db_path)
        try:
            conn.executescript(SCHEMA_SQL)
            conn.execute(
                "INSERT OR REPLACE INTO meta(key, value) VALUES('schema_version', ?)",
                (SCHEMA_VERSION,),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("opened SQLite store %s", db_path)

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    @contextlib.contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        """Connection whose sqlite3 errors surface as IOFailure."""
        try:
            conn = get_conn(self.db_path)
        except sqlite3.Error as exc:
            raise IOFailure(f"Database error: {exc}") from exc
        try:
            yield conn
        except sqlite3.Error as exc:
            raise IOFailure(f"Database error: {exc}") from exc
        finally:
            conn.close()

    def _load_table(self, conn: sqlite3.Connection, row: sqlite3.Row) -> Table:
        table = _row_to_table(row)
        for erow in conn.execute(
            f"SELECT {_ENTRY_COLS} FROM entries WHERE table_id = ?", (table.id,)
        ):
            entry = _row_to_entry(erow)
            table.entries[entry.id] = entry
        return table

    def _touch_table(self, conn: sqlite3.Connection, table_id: int, now: str) -> None:
        conn.execute("UPDATE tables SET updated_at = ? WHERE id = ?", (now, table_id))

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def create_table(self, name: str, author: str) -> Table:
        name = check_table_name(name)
        now = now_iso()
        with self._conn() as conn:
            if conn.execute("SELECT 1 FROM tables WHERE name = ?", (name,)).fetchone():
                raise DuplicateName(name)
            try:
                with conn:
                    cur = conn.execute(
                        "INSERT INTO tables(name, author, created_at, updated_at) VALUES(?,?,?,?)",
                        (name, author or "", now, now),
                    )
            except sqlite3.IntegrityError as exc:
                raise DuplicateName(name) from exc
            table_id = int(cur.lastrowid or 0)
        return Table(id=table_id, name=name, author=author or "", created_at=now, updated_at=now)

    def get_table(self, table_id: int) -> Table:
        with self._conn() as conn:
            row = conn.execute(f"SELECT {_TABLE_COLS} FROM tables WHERE id = ?", (table_id,)).fetchone()
            if row is None:
                raise TableNotFound(table_id)
            return self._load_table(conn, row)

    def get_table_by_name(self, name: str) -> Table:
        with self._conn() as conn:
            row = conn.execute(f"SELECT {_TABLE_COLS} FROM tables WHERE name = ?", (name,)).fetchone()
            if row is None:
                raise TableNotFound(name)
            return self._load_table(conn, row)

    def list_tables(self) -> list[Table]:
        with self._conn() as conn:
            rows = conn.execute(f"SELECT {_TABLE_COLS} FROM tables ORDER BY name COLLATE NOCASE, id").fetchall()
            return [self._load_table(conn, row) for row in rows]

    def delete_table(self, table_id: int) -> None:
        with self._conn() as conn, conn:
            # One transaction: entries and table go together or not at all.
            if conn.execute("SELECT 1 FROM tables WHERE id = ?", (table_id,)).fetchone() is None:
                raise TableNotFound(table_id)
            conn.execute("DELETE FROM entries WHERE table_id = ?", (table_id,))
            conn.execute("DELETE FROM tables WHERE id = ?", (table_id,))
        logger.info("deleted table %s", table_id)

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def create_entry(self, table_id: int, title: str, tags: list[str], content: str) -> Entry:
        title = check_title(title)
        tags = clean_tags(tags)
        now = now_iso()
        with self._conn() as conn, conn:
            if conn.execute("SELECT 1 FROM tables WHERE id = ?", (table_id,)).fetchone() is None:
                raise TableNotFound(table_id)
            cur = conn.execute(
                "INSERT INTO entries(table_id, title, tags_json, content, created_at, updated_at) "
                "VALUES(?,?,?,?,?,?)",
                (table_id, title, json.dumps(tags, ensure_ascii=False), content or "", now, now),
            )
            self._touch_table(conn, table_id, now)
            entry_id = int(cur.lastrowid or 0)
        return Entry(
            id=entry_id,
            table_id=table_id,
            title=title,
            tags=tags,
            content=content or "",
            created_at=now,
            updated_at=now,
        )

    def get_entry(self, entry_id: int) -> Entry:
        with self._conn() as conn:
            row = conn.execute(f"SELECT {_ENTRY_COLS} FROM entries WHERE id = ?", (entry_id,)).fetchone()
            if row is None:
                raise EntryNotFound(entry_id)
            return _row_to_entry(row)

    def list_entries(self, table_id: int) -> list[Entry]:
        with self._conn() as conn:
            if conn.execute("SELECT 1 FROM tables WHERE id = ?", (table_id,)).fetchone() is None:
                raise TableNotFound(table_id)
            rows = conn.execute(
                f"SELECT {_ENTRY_COLS} FROM entries WHERE table_id = ? ORDER BY title COLLATE NOCASE, id",
                (table_id,),
            ).fetchall()
            return [_row_to_entry(r) for r in rows]

    def update_entry(
        self,
        entry_id: int,
        *,
        title: str | None = None,
        tags: list[str] | None = None,
        content: str | None = None,
    ) -> Entry:
        with self._conn() as conn, conn:
            row = conn.execute(f"SELECT {_ENTRY_COLS} FROM entries WHERE id = ?", (entry_id,)).fetchone()
            if row is None:
                raise EntryNotFound(entry_id)
            entry = _row_to_entry(row)
            if title is not None:
                entry.title = check_title(title)
            if tags is not None:
                entry.tags = clean_tags(tags)
            if content is not None:
                entry.content = content
            entry.updated_at = now_iso()
            conn.execute(
                "UPDATE entries SET title = ?, tags_json = ?, content = ?, updated_at = ? WHERE id = ?",
                (entry.title, json.dumps(entry.tags, ensure_ascii=False), entry.content, entry.updated_at, entry_id),
            )
            self._touch_table(conn, entry.table_id, entry.updated_at)
        return entry

    def delete_entry(self, entry_id: int) -> None:
        with self._conn() as conn, conn:
            row = conn.execute("SELECT table_id FROM entries WHERE id = ?", (entry_id,)).fetchone()
            if row is None:
                raise EntryNotFound(entry_id)
            conn.execute("DELETE FROM entries WHERE id = ?", (entry_id,))
            self._touch_table(conn, row["table_id"], now_iso())

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search_entries(self, query: str) -> list[SearchResult]:
        if not (query or "").strip():
            return []
        with self._conn() as conn:
            rows = conn.execute(
                f"""
                SELECT e.{_ENTRY_COLS.replace(", ", ", e.")}, t.name AS table_name
                FROM entries e JOIN tables t ON t.id = e.table_id
                WHERE tp_contains(e.title, :q)
                   OR tp_contains(e.content, :q)
                   OR EXISTS (SELECT 1 FROM json_each(e.tags_json) WHERE tp_contains(json_each.value, :q))
                """,
                {"q": query},
            ).fetchall()
        results = []
        for row in rows:
            hit = match_entry(_row_to_entry(row), row["table_name"], query)
            if hit is not None:
                results.append(hit)
        return sort_results(results)

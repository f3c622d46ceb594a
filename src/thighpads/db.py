"""DB connection: local SQLite file with WAL and foreign keys."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


def casefold_contains(haystack: str | None, needle: str | None) -> int:
    """SQL function tp_contains(haystack, needle): 1 if needle occurs case-insensitively."""
    if not haystack or not needle:
        return 0
    return int(needle.casefold() in haystack.casefold())


def get_conn(db_path: Path) -> sqlite3.Connection:
    """Open a local SQLite connection at db_path.

    A corrupt file surfaces here as sqlite3.OperationalError rather than on
    the first query. Enables WAL mode and foreign key enforcement, and
    registers tp_contains().
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    try:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        conn.execute("PRAGMA busy_timeout=5000")
    except sqlite3.DatabaseError as exc:
        conn.close()
        raise sqlite3.OperationalError(
            f"Failed to open DB {db_path}; it may be corrupt.\nOriginal error: {exc}"
        ) from exc
    conn.create_function("tp_contains", 2, casefold_contains, deterministic=True)
    return conn

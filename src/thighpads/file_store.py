"""JSON-document backend for the Store contract.

One file holds everything (read fully on open, rewritten on every mutation):

    {
      "version": 2,
      "next_id": 7,
      "tables":  [{"id": 1, "name": "Notes", "author": "...", "created_at": ..., "updated_at": ...}],
      "entries": [{"id": 2, "table_id": 1, "title": ..., "tags": [...], "content": ..., ...}]
    }

Table and entry ids come from the same next_id counter, so ids are unique
across the whole store. next_id is rebuilt from the highest id on load.

Format precedence on open:
    version 2          authoritative; legacy tables/ dir is ignored
    no "version" key   version-1 document, upgraded in place
    version > 2        refused (IOFailure)
    no document        legacy tables/*.json migrated, dir renamed to tables.migrated

Writes go to a temp file under flock(LOCK_EX) and are renamed over the
document; in-memory state only changes after the rename succeeds.
"""

from __future__ import annotations

import contextlib
import dataclasses
import fcntl
import json
import logging
import threading
from typing import TYPE_CHECKING, Any

from thighpads.errors import DuplicateName, EntryNotFound, IOFailure, TableNotFound
from thighpads.models import Entry, Table, is_valid_table_name, now_iso, parse_tags
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

logger = logging.getLogger("thighpads.file_store")

DOC_VERSION = 2


class RWLock:
    """Readers-writer lock: concurrent readers, exclusive writers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextlib.contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextlib.contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def _copy_entry(entry: Entry) -> Entry:
    return dataclasses.replace(entry, tags=list(entry.tags))


class JSONFileStore(Store):
    """File-backed store with the same contract as SQLiteStore."""

    backend = "file"

    def __init__(self, path: Path, *, legacy_dir: Path | None = None) -> None:
        self.path = path
        self.legacy_dir = legacy_dir
        self._lock = RWLock()
        self._tables: dict[int, Table] = {}
        self._entries: dict[int, Entry] = {}
        self._next_id = 1
        self._load()

    # ------------------------------------------------------------------
    # Disk
    # ------------------------------------------------------------------

    def _load(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise IOFailure(f"Cannot create data directory {self.path.parent}: {exc}") from exc

        if self.path.exists():
            doc = self._read_doc()
            version = self._int_field(doc, "version", 1)
            if version > DOC_VERSION:
                msg = f"{self.path} has format version {version}; this release reads up to {DOC_VERSION}"
                raise IOFailure(msg)
            self._apply_doc(doc)
            if self.legacy_dir is not None and any(self.legacy_dir.glob("*.json")):
                logger.info("ignoring legacy tables in %s: %s is authoritative", self.legacy_dir, self.path)
            if version < DOC_VERSION:
                logger.info("upgrading %s from version %d to %d", self.path, version, DOC_VERSION)
                self._write_doc(self._tables, self._entries, self._next_id)
            return

        migrating = self.legacy_dir is not None and self.legacy_dir.is_dir()
        if migrating:
            self._migrate_legacy(self.legacy_dir)
        # Write the (possibly empty) document now so an unwritable location
        # fails at startup rather than on the first edit.
        self._write_doc(self._tables, self._entries, self._next_id)
        # The legacy files stay in place until their data is on disk.
        if migrating:
            self._retire_legacy(self.legacy_dir)

    def _int_field(self, doc: dict[str, Any], key: str, default: int) -> int:
        try:
            return int(doc.get(key, default))
        except (TypeError, ValueError) as exc:
            raise IOFailure(f"Malformed store document {self.path}: bad {key!r}: {exc}") from exc

    def _read_doc(self) -> dict[str, Any]:
        try:
            with self.path.open() as f:
                fcntl.flock(f, fcntl.LOCK_SH)
                doc = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise IOFailure(f"Cannot read {self.path}: {exc}") from exc
        if not isinstance(doc, dict):
            raise IOFailure(f"Cannot read {self.path}: not a JSON object")
        return doc

    def _apply_doc(self, doc: dict[str, Any]) -> None:
        try:
            tables = {t.id: t for t in (Table.from_dict(d) for d in doc.get("tables", []))}
            entries = {e.id: e for e in (Entry.from_dict(d) for d in doc.get("entries", []))}
        except (KeyError, TypeError, ValueError) as exc:
            raise IOFailure(f"Malformed store document {self.path}: {exc}") from exc
        # Drop orphans left by any older, non-atomic writer.
        entries = {eid: e for eid, e in entries.items() if e.table_id in tables}
        max_id = max([0, *tables, *entries])
        self._tables = tables
        self._entries = entries
        self._next_id = max(self._int_field(doc, "next_id", 1), max_id + 1)

    def _write_doc(self, tables: dict[int, Table], entries: dict[int, Entry], next_id: int) -> None:
        """Atomically write the whole document under exclusive flock."""
        doc = {
            "version": DOC_VERSION,
            "next_id": next_id,
            "tables": [t.to_dict() for t in sorted(tables.values(), key=lambda t: t.id)],
            "entries": [e.to_dict() for e in sorted(entries.values(), key=lambda e: e.id)],
        }
        tmp = self.path.with_suffix(".json.tmp")
        try:
            with tmp.open("w") as f:
                fcntl.flock(f, fcntl.LOCK_EX)
                json.dump(doc, f, indent=2, ensure_ascii=False)
            tmp.replace(self.path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                tmp.unlink()
            raise IOFailure(f"Cannot write {self.path}: {exc}") from exc

    def _commit(self, tables: dict[int, Table], entries: dict[int, Entry], next_id: int) -> None:
        self._write_doc(tables, entries, next_id)
        self._tables, self._entries, self._next_id = tables, entries, next_id

    def _migrate_legacy(self, legacy_dir: Path) -> None:
        """Import per-table JSON files from an older release. One-time migration."""
        for path in sorted(legacy_dir.glob("*.json")):
            try:
                data = json.loads(path.read_text())
            except (OSError, json.JSONDecodeError):
                logger.warning("skipping unreadable legacy table %s", path)
                continue
            if not isinstance(data, dict):
                continue
            name = self._legacy_name(str(data.get("name") or path.stem))
            now = now_iso()
            table = Table(
                id=self._next_id,
                name=name,
                author=str(data.get("author", "")),
                created_at=str(data.get("created_at") or now),
                updated_at=str(data.get("updated_at") or now),
            )
            self._next_id += 1
            self._tables[table.id] = table
            raw_entries = data.get("entries") or {}
            if isinstance(raw_entries, dict):
                raw_entries = list(raw_entries.values())
            for raw in raw_entries:
                if not isinstance(raw, dict):
                    continue
                tags = raw.get("tags") or []
                if isinstance(tags, str):
                    tags = parse_tags(tags)
                entry = Entry(
                    id=self._next_id,
                    table_id=table.id,
                    title=str(raw.get("title") or "").strip() or "Untitled",
                    tags=clean_tags(tags),
                    content=str(raw.get("content") or ""),
                    created_at=str(raw.get("created_at") or now),
                    updated_at=str(raw.get("updated_at") or now),
                )
                self._next_id += 1
                self._entries[entry.id] = entry
            logger.info("migrated legacy table %s (%s)", name, path)

    def _retire_legacy(self, legacy_dir: Path) -> None:
        migrated = legacy_dir.with_name(legacy_dir.name + ".migrated")
        with contextlib.suppress(OSError):
            legacy_dir.rename(migrated)

    def _legacy_name(self, raw: str) -> str:
        name = "".join(ch if (ch.isalnum() or ch == "_") else "_" for ch in raw.strip()) or "Imported"
        if not is_valid_table_name(name):
            name = "Imported"
        taken = {t.name for t in self._tables.values()}
        candidate, n = name, 2
        while candidate in taken:
            candidate = f"{name}_{n}"
            n += 1
        return candidate

    # ------------------------------------------------------------------
    # Read helpers (caller holds the lock)
    # ------------------------------------------------------------------

    def _full_table(self, table: Table) -> Table:
        out = dataclasses.replace(table, entries={})
        for e in self._entries.values():
            if e.table_id == table.id:
                out.entries[e.id] = _copy_entry(e)
        return out

    def _table_by_name(self, name: str) -> Table | None:
        return next((t for t in self._tables.values() if t.name == name), None)

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def create_table(self, name: str, author: str) -> Table:
        name = check_table_name(name)
        with self._lock.write():
            if self._table_by_name(name) is not None:
                raise DuplicateName(name)
            now = now_iso()
            table = Table(id=self._next_id, name=name, author=author or "", created_at=now, updated_at=now)
            tables = {**self._tables, table.id: table}
            self._commit(tables, self._entries, self._next_id + 1)
            return dataclasses.replace(table, entries={})

    def get_table(self, table_id: int) -> Table:
        with self._lock.read():
            table = self._tables.get(table_id)
            if table is None:
                raise TableNotFound(table_id)
            return self._full_table(table)

    def get_table_by_name(self, name: str) -> Table:
        with self._lock.read():
            table = self._table_by_name(name)
            if table is None:
                raise TableNotFound(name)
            return self._full_table(table)

    def list_tables(self) -> list[Table]:
        with self._lock.read():
            ordered = sorted(self._tables.values(), key=lambda t: (t.name.casefold(), t.id))
            return [self._full_table(t) for t in ordered]

    def delete_table(self, table_id: int) -> None:
        with self._lock.write():
            if table_id not in self._tables:
                raise TableNotFound(table_id)
            tables = {tid: t for tid, t in self._tables.items() if tid != table_id}
            entries = {eid: e for eid, e in self._entries.items() if e.table_id != table_id}
            self._commit(tables, entries, self._next_id)
        logger.info("deleted table %s", table_id)

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def _touched(self, table_id: int, now: str) -> dict[int, Table]:
        return {**self._tables, table_id: dataclasses.replace(self._tables[table_id], updated_at=now)}

    def create_entry(self, table_id: int, title: str, tags: list[str], content: str) -> Entry:
        title = check_title(title)
        tags = clean_tags(tags)
        with self._lock.write():
            if table_id not in self._tables:
                raise TableNotFound(table_id)
            now = now_iso()
            entry = Entry(
                id=self._next_id,
                table_id=table_id,
                title=title,
                tags=tags,
                content=content or "",
                created_at=now,
                updated_at=now,
            )
            entries = {**self._entries, entry.id: entry}
            self._commit(self._touched(table_id, now), entries, self._next_id + 1)
            return _copy_entry(entry)

    def get_entry(self, entry_id: int) -> Entry:
        with self._lock.read():
            entry = self._entries.get(entry_id)
            if entry is None:
                raise EntryNotFound(entry_id)
            return _copy_entry(entry)

    def list_entries(self, table_id: int) -> list[Entry]:
        with self._lock.read():
            if table_id not in self._tables:
                raise TableNotFound(table_id)
            rows = [e for e in self._entries.values() if e.table_id == table_id]
            return [_copy_entry(e) for e in sorted(rows, key=lambda e: (e.title.casefold(), e.id))]

    def update_entry(
        self,
        entry_id: int,
        *,
        title: str | None = None,
        tags: list[str] | None = None,
        content: str | None = None,
    ) -> Entry:
        with self._lock.write():
            current = self._entries.get(entry_id)
            if current is None:
                raise EntryNotFound(entry_id)
            updated = _copy_entry(current)
            if title is not None:
                updated.title = check_title(title)
            if tags is not None:
                updated.tags = clean_tags(tags)
            if content is not None:
                updated.content = content
            updated.updated_at = now_iso()
            entries = {**self._entries, entry_id: updated}
            self._commit(self._touched(updated.table_id, updated.updated_at), entries, self._next_id)
            return _copy_entry(updated)

    def delete_entry(self, entry_id: int) -> None:
        with self._lock.write():
            current = self._entries.get(entry_id)
            if current is None:
                raise EntryNotFound(entry_id)
            entries = {eid: e for eid, e in self._entries.items() if eid != entry_id}
            self._commit(self._touched(current.table_id, now_iso()), entries, self._next_id)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search_entries(self, query: str) -> list[SearchResult]:
        if not (query or "").strip():
            return []
        with self._lock.read():
            results = []
            for entry in self._entries.values():
                table = self._tables[entry.table_id]
                hit = match_entry(entry, table.name, query)
                if hit is not None:
                    results.append(hit)
        return sort_results(results)

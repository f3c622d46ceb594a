"""Portable .thighpad files: one table and its entries in a JSON envelope.

    {
      "table":   {"id": 1, "name": "Notes", "author": "alice", "created_at": ..., "updated_at": ...},
      "entries": [{"id": 2, "table_id": 1, "title": "Hello", "tags": ["demo"], "content": "world", ...}],
      "meta":    {"exported_at": "2026-01-01T00:00:00+00:00", "exported_by": "alice", "version": "1.0"}
    }

Import only accepts files whose meta.version equals FILE_VERSION.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from thighpads.errors import (
    FormatMismatch,
    InvalidInput,
    IOFailure,
    PartialFailure,
    ThighpadsError,
)
from thighpads.models import PortableFile, now_iso

if TYPE_CHECKING:
    from thighpads.config import TPConfig
    from thighpads.models import Table
    from thighpads.store import Store

logger = logging.getLogger("thighpads.codec")

FILE_VERSION = "1.0"
EXTENSION = ".thighpad"
FALLBACK_NAME = "ThighPads_Export"
MAX_NAME_ATTEMPTS = 1000

_ILLEGAL_CHARS = set('<>:"/\\|?*')


@dataclass
class ExportResult:
    written: list[Path] = field(default_factory=list)
    failures: dict[Path, str] = field(default_factory=dict)

    @property
    def partial(self) -> bool:
        return bool(self.written) and bool(self.failures)


@dataclass
class ImportResult:
    table: Table
    imported: int = 0
    failures: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def encode(table: Table, actor: str, *, now: str | None = None) -> bytes:
    doc = {
        "table": table.to_dict(),
        "entries": [e.to_dict() for e in table.sorted_entries()],
        "meta": {
            "exported_at": now or now_iso(),
            "exported_by": actor,
            "version": FILE_VERSION,
        },
    }
    return json.dumps(doc, indent=2, ensure_ascii=False).encode("utf-8")


def decode(data: bytes | str) -> PortableFile:
    """Parse and validate an envelope. The version is checked before the payload."""
    try:
        doc = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise FormatMismatch(f"Not a valid ThighPads file: {exc}") from exc
    if not isinstance(doc, dict):
        raise FormatMismatch("Not a valid ThighPads file: expected a JSON object")

    meta = doc.get("meta")
    version = meta.get("version") if isinstance(meta, dict) else None
    if version != FILE_VERSION:
        raise FormatMismatch(f"Incompatible file version: {version!r} (expected {FILE_VERSION!r})")

    table = doc.get("table")
    if not isinstance(table, dict) or not str(table.get("name") or "").strip():
        raise FormatMismatch("Invalid ThighPads file: missing table name")
    entries = doc.get("entries", [])
    if not isinstance(entries, list):
        raise FormatMismatch("Invalid ThighPads file: 'entries' must be a list")

    return PortableFile(
        format_version=version,
        exported_at=str(meta.get("exported_at", "")),
        exported_by=str(meta.get("exported_by", "")),
        table=table,
        entries=entries,
    )


# ---------------------------------------------------------------------------
# File naming
# ---------------------------------------------------------------------------


def sanitize_filename(name: str) -> str:
    cleaned = "".join("_" if (ch in _ILLEGAL_CHARS or ord(ch) < 32) else ch for ch in name or "")
    cleaned = cleaned.strip().strip(".").strip()
    if cleaned in ("", ".", ".."):
        return FALLBACK_NAME
    return cleaned


def unique_path(directory: Path, stem: str) -> Path:
    """First of stem.thighpad, stem_1.thighpad, ... that does not exist yet."""
    candidate = directory / f"{stem}{EXTENSION}"
    for n in range(1, MAX_NAME_ATTEMPTS + 1):
        if not candidate.exists():
            return candidate
        candidate = directory / f"{stem}_{n}{EXTENSION}"
    raise IOFailure(f"Could not find a free file name for {stem!r} in {directory}")


def export_destinations(cfg: TPConfig, location: str) -> list[Path]:
    if location == "desktop":
        return [cfg.desktop_export_dir]
    if location == "both":
        return [cfg.export_dir, cfg.desktop_export_dir]
    return [cfg.export_dir]


# ---------------------------------------------------------------------------
# Export / import
# ---------------------------------------------------------------------------


def _write_new(directory: Path, stem: str, data: bytes) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    # Exclusive create: a file appearing between probe and write is retried.
    for _ in range(MAX_NAME_ATTEMPTS):
        path = unique_path(directory, stem)
        try:
            with path.open("xb") as f:
                f.write(data)
        except FileExistsError:
            continue
        return path
    raise IOFailure(f"Could not find a free file name for {stem!r} in {directory}")


def export_table(
    store: Store,
    table_id: int,
    actor: str,
    destinations: list[Path],
    filename: str | None = None,
) -> ExportResult:
    """Write the table to every destination independently.

    Raises IOFailure only if nothing could be written; otherwise the caller
    inspects ExportResult.failures (and .partial).
    """
    table = store.get_table(table_id)
    data = encode(table, actor)
    stem = sanitize_filename(filename or table.name)
    if stem.lower().endswith(EXTENSION):
        stem = sanitize_filename(stem[: -len(EXTENSION)])

    result = ExportResult()
    for directory in destinations:
        directory = Path(directory).expanduser()
        try:
            path = _write_new(directory, stem, data)
        except (OSError, IOFailure) as exc:
            logger.warning("export of %s to %s failed: %s", table.name, directory, exc)
            result.failures[directory] = str(exc)
            continue
        logger.info("exported %s to %s", table.name, path)
        result.written.append(path)

    if not result.written:
        detail = "; ".join(f"{d}: {msg}" for d, msg in result.failures.items()) or "no destinations"
        raise IOFailure(f"Export failed: {detail}")
    return result


def import_file(store: Store, path: str | Path, new_author: str) -> ImportResult:
    """Create a new table from a .thighpad file and replay its entries."""
    src = Path(path).expanduser()
    if not src.is_file():
        raise IOFailure(f"File not found: {src}")
    if src.suffix.lower() != EXTENSION:
        raise InvalidInput(f"Not a {EXTENSION} file: {src.name}")
    try:
        data = src.read_bytes()
    except OSError as exc:
        raise IOFailure(f"Cannot read {src}: {exc}") from exc

    portable = decode(data)
    table = store.create_table(portable.table_name.strip(), new_author)
    result = ImportResult(table=table)

    for i, raw in enumerate(portable.entries):
        if not isinstance(raw, dict):
            result.failures.append(f"entry {i}: not an object")
            continue
        tags = raw.get("tags") or []
        if not isinstance(tags, list):
            tags = [str(tags)]
        try:
            store.create_entry(
                table.id,
                str(raw.get("title") or ""),
                [str(t) for t in tags],
                str(raw.get("content") or ""),
            )
        except ThighpadsError as exc:
            logger.warning("import %s: entry %d skipped: %s", src.name, i, exc)
            result.failures.append(f"entry {i}: {exc}")
            continue
        result.imported += 1

    if portable.entries and result.imported == 0:
        raise PartialFailure(
            f"Imported table {table.name} but none of its {len(portable.entries)} entries",
            table=table,
        )
    result.table = store.get_table(table.id)
    logger.info("imported %s as %s (%d entries)", src, table.name, result.imported)
    return result

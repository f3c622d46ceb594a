"""Portable .thighpad files: envelope, naming, export destinations, import."""

from __future__ import annotations

import json

import pytest

from thighpads import codec
from thighpads.errors import (
    DuplicateName,
    FormatMismatch,
    InvalidInput,
    IOFailure,
    PartialFailure,
)


def _notes(store):
    table = store.create_table("Notes", "alice")
    store.create_entry(table.id, "Hello", ["demo"], "world")
    store.create_entry(table.id, "Second", [], "multi\nline")
    return store.get_table(table.id)


def test_encode_envelope(store):
    table = _notes(store)
    doc = json.loads(codec.encode(table, "alice", now="2026-01-01T00:00:00+00:00"))
    assert doc["meta"] == {
        "exported_at": "2026-01-01T00:00:00+00:00",
        "exported_by": "alice",
        "version": codec.FILE_VERSION,
    }
    assert doc["table"]["name"] == "Notes"
    assert "entries" not in doc["table"]
    assert [e["title"] for e in doc["entries"]] == ["Hello", "Second"]


@pytest.mark.parametrize(
    "data",
    [
        b"not json",
        b"[1, 2]",
        b'{"table": {"name": "X"}, "entries": [], "meta": {"version": "0.9"}}',
        b'{"table": {"name": "X"}, "entries": []}',
        b'{"table": {}, "entries": [], "meta": {"version": "1.0"}}',
        b'{"table": {"name": "X"}, "entries": {}, "meta": {"version": "1.0"}}',
    ],
)
def test_decode_rejects(data):
    with pytest.raises(FormatMismatch):
        codec.decode(data)


def test_version_checked_before_payload():
    with pytest.raises(FormatMismatch, match="version"):
        codec.decode(b'{"table": "garbage", "entries": 5, "meta": {"version": "2.0"}}')


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Notes", "Notes"),
        ('a<b>c:"d/e\\f|g?h*', "a_b_c__d_e_f_g_h_"),
        ("tab\there", "tab_here"),
        ("  ..  ", "ThighPads_Export"),
        ("", "ThighPads_Export"),
        ("..", "ThighPads_Export"),
    ],
)
def test_sanitize_filename(raw, expected):
    assert codec.sanitize_filename(raw) == expected


def test_unique_path_tries_suffixes(tmp_path):
    assert codec.unique_path(tmp_path, "Notes").name == "Notes.thighpad"
    (tmp_path / "Notes.thighpad").write_text("x")
    (tmp_path / "Notes_1.thighpad").write_text("x")
    assert codec.unique_path(tmp_path, "Notes").name == "Notes_2.thighpad"


def test_unique_path_gives_up(tmp_path, monkeypatch):
    monkeypatch.setattr(codec, "MAX_NAME_ATTEMPTS", 3)
    for name in ("N", "N_1", "N_2", "N_3"):
        (tmp_path / f"{name}.thighpad").write_text("x")
    with pytest.raises(IOFailure):
        codec.unique_path(tmp_path, "N")


def test_export_collision_gets_suffix(store, tmp_path):
    table = _notes(store)
    out = tmp_path / "out"
    out.mkdir()
    (out / "Notes.thighpad").write_text("existing")

    result = codec.export_table(store, table.id, "alice", [out])

    assert [p.name for p in result.written] == ["Notes_1.thighpad"]
    assert (out / "Notes.thighpad").read_text() == "existing"


def test_export_to_several_destinations(store, tmp_path):
    table = _notes(store)
    result = codec.export_table(store, table.id, "alice", [tmp_path / "a", tmp_path / "b" / "c"])
    assert len(result.written) == 2
    assert not result.partial
    assert all(p.exists() for p in result.written)


def test_export_partial_failure(store, tmp_path):
    table = _notes(store)
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a dir")
    result = codec.export_table(store, table.id, "alice", [blocker / "sub", tmp_path / "ok"])
    assert result.partial
    assert [p.parent for p in result.written] == [tmp_path / "ok"]
    assert list(result.failures) == [blocker / "sub"]


def test_export_fails_when_nothing_written(store, tmp_path):
    table = _notes(store)
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    with pytest.raises(IOFailure):
        codec.export_table(store, table.id, "alice", [blocker / "a", blocker / "b"])


def test_import_round_trip(store, tmp_path):
    table = _notes(store)
    (path,) = codec.export_table(store, table.id, "alice", [tmp_path]).written
    store.delete_table(table.id)

    result = codec.import_file(store, path, "bob")

    assert result.imported == 2
    assert result.table.name == "Notes"
    assert result.table.author == "bob"
    got = sorted((e.title, tuple(e.tags), e.content) for e in result.table.entries.values())
    want = sorted((e.title, tuple(e.tags), e.content) for e in table.entries.values())
    assert got == want


def test_import_never_overwrites(store, tmp_path):
    table = _notes(store)
    (path,) = codec.export_table(store, table.id, "alice", [tmp_path]).written
    with pytest.raises(DuplicateName):
        codec.import_file(store, path, "bob")


def test_import_version_mismatch(store, tmp_path):
    path = tmp_path / "old.thighpad"
    path.write_text(json.dumps({"table": {"name": "Old"}, "entries": [], "meta": {"version": "0.1"}}))
    with pytest.raises(FormatMismatch):
        codec.import_file(store, path, "bob")
    assert store.list_tables() == []


def test_import_checks_path(store, tmp_path):
    with pytest.raises(IOFailure):
        codec.import_file(store, tmp_path / "missing.thighpad", "bob")
    other = tmp_path / "notes.txt"
    other.write_text("{}")
    with pytest.raises(InvalidInput):
        codec.import_file(store, other, "bob")


def test_import_expands_home(store, tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    table = _notes(store)
    codec.export_table(store, table.id, "alice", [tmp_path], filename="Copy")
    store.delete_table(table.id)
    result = codec.import_file(store, "~/Copy.thighpad", "bob")
    assert result.table.name == "Notes"


def test_import_partial_entries(store, tmp_path):
    path = tmp_path / "mixed.thighpad"
    doc = {
        "table": {"name": "Mixed"},
        "entries": [{"title": "ok", "content": "c"}, {"title": "  "}, "junk"],
        "meta": {"version": codec.FILE_VERSION},
    }
    path.write_text(json.dumps(doc))
    result = codec.import_file(store, path, "bob")
    assert result.imported == 1
    assert len(result.failures) == 2


def test_import_zero_entries_succeeded(store, tmp_path):
    path = tmp_path / "bad.thighpad"
    doc = {"table": {"name": "Bad"}, "entries": [{"title": ""}], "meta": {"version": codec.FILE_VERSION}}
    path.write_text(json.dumps(doc))
    with pytest.raises(PartialFailure) as info:
        codec.import_file(store, path, "bob")
    assert info.value.table is not None
    assert info.value.table.name == "Bad"


def test_export_destinations(cfg):
    assert codec.export_destinations(cfg, "config") == [cfg.export_dir]
    assert codec.export_destinations(cfg, "desktop") == [cfg.desktop_export_dir]
    assert codec.export_destinations(cfg, "both") == [cfg.export_dir, cfg.desktop_export_dir]

"""JSON backend specifics: persistence, next_id, legacy migration, rollback."""

from __future__ import annotations

import json

import pytest

from thighpads.config import TPConfig
from thighpads.errors import IOFailure
from thighpads.file_store import DOC_VERSION, JSONFileStore
from thighpads.sqlite_store import SQLiteStore
from thighpads.store import open_store


def _legacy_table(path, name, entries):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(
            {
                "id": "t-1",
                "name": name,
                "author": "old",
                "created_at": "2024-01-01T00:00:00Z",
                "updated_at": "2024-01-02T00:00:00Z",
                "entries": {e["id"]: e for e in entries},
            }
        )
    )


def test_reopen_sees_same_data(tmp_path):
    path = tmp_path / "thighpads.json"
    s = JSONFileStore(path)
    t = s.create_table("Notes", "alice")
    e = s.create_entry(t.id, "Hello", ["demo"], "world")

    again = JSONFileStore(path)
    assert again.get_entry(e.id).tags == ["demo"]
    assert json.loads(path.read_text())["version"] == DOC_VERSION


def test_next_id_rebuilt_from_max_id(tmp_path):
    path = tmp_path / "thighpads.json"
    path.write_text(
        json.dumps(
            {
                "version": 2,
                "next_id": 1,
                "tables": [{"id": 7, "name": "T"}],
                "entries": [{"id": 40, "table_id": 7, "title": "x"}],
            }
        )
    )
    s = JSONFileStore(path)
    assert s.create_entry(7, "y", [], "").id == 41


def test_unwritable_location_fails_on_open(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    with pytest.raises(IOFailure):
        JSONFileStore(blocker / "thighpads.json")


def test_corrupt_document_fails_on_open(tmp_path):
    path = tmp_path / "thighpads.json"
    path.write_text("{not json")
    with pytest.raises(IOFailure):
        JSONFileStore(path)


def test_newer_document_version_is_refused(tmp_path):
    path = tmp_path / "thighpads.json"
    path.write_text(json.dumps({"version": DOC_VERSION + 1, "tables": [], "entries": []}))
    with pytest.raises(IOFailure):
        JSONFileStore(path)


def test_version1_document_is_upgraded(tmp_path):
    path = tmp_path / "thighpads.json"
    path.write_text(
        json.dumps({"tables": [{"id": 1, "name": "Old"}], "entries": [{"id": 2, "table_id": 1, "title": "e"}]})
    )
    s = JSONFileStore(path)
    assert s.get_table_by_name("Old").entry_count == 1
    doc = json.loads(path.read_text())
    assert doc["version"] == DOC_VERSION
    assert doc["next_id"] == 3


def test_legacy_tables_are_migrated(tmp_path):
    legacy = tmp_path / "tables"
    _legacy_table(
        legacy / "Recipes.json",
        "Recipes",
        [
            {"id": "e-1", "title": "Soup", "tags": ["hot", "easy"], "content": "boil"},
            {"id": "e-2", "title": "", "tags": "cold, quick", "content": "mix"},
        ],
    )
    s = JSONFileStore(tmp_path / "thighpads.json", legacy_dir=legacy)

    table = s.get_table_by_name("Recipes")
    assert table.author == "old"
    titles = sorted(e.title for e in table.entries.values())
    assert titles == ["Soup", "Untitled"]
    assert sorted(tuple(e.tags) for e in table.entries.values()) == [("cold", "quick"), ("hot", "easy")]
    assert not legacy.exists()
    assert (tmp_path / "tables.migrated" / "Recipes.json").exists()


def test_current_document_wins_over_legacy_files(tmp_path):
    path = tmp_path / "thighpads.json"
    s = JSONFileStore(path)
    s.create_table("Current", "alice")

    legacy = tmp_path / "tables"
    _legacy_table(legacy / "Stale.json", "Stale", [])
    again = JSONFileStore(path, legacy_dir=legacy)

    assert [t.name for t in again.list_tables()] == ["Current"]
    assert (legacy / "Stale.json").exists()


def test_failed_write_rolls_back(tmp_path, monkeypatch):
    s = JSONFileStore(tmp_path / "thighpads.json")
    t = s.create_table("Notes", "alice")
    e = s.create_entry(t.id, "Hello", [], "")

    def boom(*args, **kwargs):
        raise IOFailure("disk full")

    monkeypatch.setattr(s, "_write_doc", boom)
    with pytest.raises(IOFailure):
        s.delete_table(t.id)

    assert s.get_table(t.id).entry_count == 1
    assert s.get_entry(e.id).title == "Hello"


def test_open_store_falls_back_when_sqlite_fails(tmp_path, monkeypatch):
    import sqlite3

    import thighpads.sqlite_store

    def broken(self, db_path):
        raise sqlite3.OperationalError("unable to open database file")

    monkeypatch.setattr(thighpads.sqlite_store.SQLiteStore, "__init__", broken)
    cfg = TPConfig(home=tmp_path)
    s = open_store(cfg)
    assert s.backend == "file"
    t = s.create_table("Notes", "alice")
    assert s.get_table(t.id).name == "Notes"
    assert cfg.file_db_path.exists()


def test_open_store_corrupt_sqlite_file_falls_back(tmp_path):
    cfg = TPConfig(home=tmp_path)
    cfg.db_path.write_bytes(b"this is not a sqlite database, just junk bytes" * 20)
    s = open_store(cfg)
    assert s.backend == "file"


def test_open_store_forced_sqlite_does_not_fall_back(tmp_path, monkeypatch):
    import sqlite3

    def broken(self, db_path):
        raise sqlite3.OperationalError("nope")

    monkeypatch.setattr(SQLiteStore, "__init__", broken)
    cfg = TPConfig(home=tmp_path)
    cfg.storage.backend = "sqlite"
    with pytest.raises(IOFailure):
        open_store(cfg)


def test_open_store_prefers_sqlite(tmp_path):
    s = open_store(TPConfig(home=tmp_path))
    assert s.backend == "sqlite"


def test_failed_migration_keeps_legacy_tables(tmp_path, monkeypatch):
    legacy = tmp_path / "tables"
    _legacy_table(legacy / "Recipes.json", "Recipes", [{"id": "e-1", "title": "Soup", "content": "boil"}])
    path = tmp_path / "thighpads.json"

    def boom(*args, **kwargs):
        raise IOFailure("disk full")

    with monkeypatch.context() as m:
        m.setattr(JSONFileStore, "_write_doc", boom)
        with pytest.raises(IOFailure):
            JSONFileStore(path, legacy_dir=legacy)

    assert (legacy / "Recipes.json").exists()
    assert not path.exists()
    s = JSONFileStore(path, legacy_dir=legacy)
    assert [t.name for t in s.list_tables()] == ["Recipes"]
    assert not legacy.exists()


@pytest.mark.parametrize(
    "doc",
    [
        {"version": None, "tables": [], "entries": []},
        {"version": "two", "tables": [], "entries": []},
        {"version": 2, "next_id": [1], "tables": [], "entries": []},
    ],
)
def test_malformed_counters_fail_on_open(tmp_path, doc):
    path = tmp_path / "thighpads.json"
    path.write_text(json.dumps(doc))
    with pytest.raises(IOFailure):
        JSONFileStore(path)


def test_open_store_falls_back_without_sqlite_driver(tmp_path, monkeypatch):
    import sys

    monkeypatch.setitem(sys.modules, "sqlite3", None)
    monkeypatch.delitem(sys.modules, "thighpads.sqlite_store", raising=False)
    monkeypatch.delitem(sys.modules, "thighpads.db", raising=False)

    cfg = TPConfig(home=tmp_path)
    s = open_store(cfg)
    assert s.backend == "file"
    assert s.create_table("Notes", "alice").name == "Notes"


def test_open_store_forced_sqlite_without_driver_fails(tmp_path, monkeypatch):
    import sys

    monkeypatch.setitem(sys.modules, "sqlite3", None)
    monkeypatch.delitem(sys.modules, "thighpads.sqlite_store", raising=False)
    monkeypatch.delitem(sys.modules, "thighpads.db", raising=False)

    cfg = TPConfig(home=tmp_path)
    cfg.storage.backend = "sqlite"
    with pytest.raises(IOFailure):
        open_store(cfg)

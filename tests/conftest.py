from __future__ import annotations

import pytest

from thighpads.config import TPConfig, UserConfig, save_config
from thighpads.file_store import JSONFileStore
from thighpads.sqlite_store import SQLiteStore


@pytest.fixture()
def cfg(tmp_path, monkeypatch):
    """A configured (not first-run) data directory under tmp_path."""
    monkeypatch.setenv("HOME", str(tmp_path / "userhome"))
    c = TPConfig(home=tmp_path / "home", user=UserConfig(username="alice"))
    c.export.desktop_dir = str(tmp_path / "desktop")
    save_config(c)
    return c


@pytest.fixture(params=["sqlite", "file"])
def store(request, tmp_path):
    """The same contract suite runs against both backends."""
    if request.param == "sqlite":
        s = SQLiteStore(tmp_path / "data" / "thighpads.db")
    else:
        s = JSONFileStore(tmp_path / "data" / "thighpads.json")
    yield s
    s.close()

from __future__ import annotations

import pytest

from thighpads.controller import Controller, Key, UpdateAvailable
from thighpads.render import PALETTES, render, render_text
from thighpads.sqlite_store import SQLiteStore


@pytest.fixture()
def ctl(cfg):
    store = SQLiteStore(cfg.db_path)
    table = store.create_table("Notes", "alice")
    store.create_entry(table.id, "Hello", ["demo"], "world")
    return Controller(store, cfg)


def test_home_lists_tables(ctl):
    text = render_text(ctl.state, 100)
    assert "Tables" in text
    assert "Notes" in text
    assert "alice" in text


def test_entry_detail(ctl):
    ctl.handle(Key("enter", "\r"))
    ctl.handle(Key("enter", "\r"))
    text = render_text(ctl.state, 100)
    assert "Notes / Hello" in text
    assert "demo" in text
    assert "world" in text


def test_flash_and_banner(ctl):
    ctl.handle(UpdateAvailable("9.0.0", "https://example.invalid"))
    ctl.handle(Key("enter", "\r"))
    ctl.handle(Key("enter", "\r"))
    ctl.handle(Key("d", "d"))
    text = render_text(ctl.state, 100)
    assert "Update available: v9.0.0" in text
    assert "Press d again" in text


def test_form_shows_fields(ctl):
    ctl.handle(Key("n", "n"))
    ctl.handle(Key("X", "X"))
    text = render_text(ctl.state, 100)
    assert "New table" in text
    assert "Table name: X_" in text


@pytest.mark.parametrize("theme", sorted(PALETTES))
def test_every_theme_renders(ctl, theme):
    assert render(ctl.state, theme) is not None
    assert "Notes" in render_text(ctl.state, 80, theme)

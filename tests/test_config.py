from __future__ import annotations

from pathlib import Path

from thighpads.config import TPConfig, default_home, is_first_run, load_config, save_config


def test_defaults_when_missing(tmp_path):
    cfg = load_config(tmp_path)
    assert is_first_run(cfg)
    assert cfg.ui.theme == "default"
    assert cfg.export.default_location == "config"
    assert cfg.backend == "auto"
    assert cfg.updates.auto_check is True
    assert cfg.db_path == tmp_path.resolve() / "thighpads.db"


def test_save_and_reload(tmp_path):
    cfg = TPConfig(home=tmp_path / "home")
    cfg.user.username = 'al "the" ice'
    cfg.ui.theme = "light"
    cfg.export.default_location = "both"
    cfg.export.desktop_dir = str(tmp_path / "desk")
    cfg.storage.backend = "file"
    cfg.updates.auto_check = False
    save_config(cfg)

    again = load_config(cfg.home)
    assert not is_first_run(again)
    assert again.user.username == 'al "the" ice'
    assert again.ui.theme == "light"
    assert again.export.default_location == "both"
    assert again.desktop_export_dir == (tmp_path / "desk").resolve()
    assert again.backend == "file"
    assert again.updates.auto_check is False
    assert (cfg.home / "exports").is_dir()


def test_control_characters_survive_save(tmp_path):
    cfg = TPConfig(home=tmp_path / "home")
    cfg.user.username = "line1\nline2\ttab \\ back \x7f del \U0001f600"
    cfg.export.desktop_dir = str(tmp_path / "de\nsk")
    save_config(cfg)

    again = load_config(cfg.home)
    assert again.user.username == "line1\nline2\ttab \\ back \x7f del \U0001f600"
    assert again.export.desktop_dir.endswith("de\nsk")


def test_unknown_choices_fall_back(tmp_path):
    (tmp_path / "config.toml").write_text('[ui]\ntheme = "neon"\n[storage]\nbackend = "mongo"\n')
    cfg = load_config(tmp_path)
    assert cfg.ui.theme == "default"
    assert cfg.backend == "auto"


def test_home_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("THIGHPADS_HOME", str(tmp_path / "env"))
    assert default_home() == (tmp_path / "env").resolve()
    assert load_config().home == (tmp_path / "env").resolve()


def test_default_desktop_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    cfg = TPConfig(home=tmp_path / "h")
    assert cfg.desktop_export_dir == Path(tmp_path) / "Desktop" / "ThighPads Exports"

from __future__ import annotations

from click.testing import CliRunner

from thighpads import cli as cli_mod
from thighpads.cli import cli
from thighpads.sqlite_store import SQLiteStore


def _run(cfg, *args, **kwargs):
    return CliRunner().invoke(cli, ["--home", str(cfg.home), *args], **kwargs)


def _seed(cfg):
    store = SQLiteStore(cfg.db_path)
    table = store.create_table("Notes", "alice")
    store.create_entry(table.id, "Hello", ["demo"], "world")
    store.close()


def test_list_and_search(cfg):
    _seed(cfg)
    result = _run(cfg, "list")
    assert result.exit_code == 0, result.output
    assert "Notes" in result.output

    result = _run(cfg, "list", "Notes")
    assert result.exit_code == 0
    assert "Hello" in result.output

    result = _run(cfg, "search", "WORLD")
    assert result.exit_code == 0
    assert "Hello" in result.output

    result = _run(cfg, "list", "Missing")
    assert result.exit_code != 0
    assert "Table not found" in result.output


def test_export_import_round_trip(cfg, tmp_path):
    _seed(cfg)
    out = tmp_path / "out"
    result = _run(cfg, "export", "Notes", "--dir", str(out))
    assert result.exit_code == 0, result.output
    exported = out / "Notes.thighpad"
    assert exported.exists()

    result = _run(cfg, "import", str(exported))
    assert result.exit_code != 0
    assert "already exists" in result.output

    other = tmp_path / "other"
    other.mkdir()
    result = CliRunner().invoke(cli, ["--home", str(other), "import", str(exported), "--author", "bob"])
    assert result.exit_code == 0, result.output
    assert "Imported Notes (1 entries)" in result.output


def test_check_update(cfg, monkeypatch):
    from thighpads.update import UpdateInfo

    monkeypatch.setattr(
        cli_mod.UpdateChecker,
        "check_for_update",
        lambda self, force=False: UpdateInfo(True, "9.9.9", "https://example.invalid"),
    )
    result = _run(cfg, "check-update")
    assert result.exit_code == 0
    assert "9.9.9" in result.output


def test_install_skips_when_present(cfg, monkeypatch):
    monkeypatch.setattr(cli_mod._install, "is_installed_globally", lambda: True)
    result = _run(cfg, "install")
    assert result.exit_code == 0
    assert "already installed" in result.output


def test_wipe(cfg):
    _seed(cfg)
    result = _run(cfg, "wipe", input="y\n")
    assert result.exit_code == 0, result.output
    assert not cfg.home.exists()


def test_wipe_aborted(cfg):
    result = _run(cfg, "wipe", input="n\n")
    assert result.exit_code != 0
    assert cfg.home.exists()


def test_version():
    result = CliRunner().invoke(cli, ["version"])
    assert result.exit_code == 0
    assert "ThighPads" in result.output

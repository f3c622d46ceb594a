"""TPConfig: per-user configuration and data layout.

Default layout (under ~/.config/thighpads, or $THIGHPADS_HOME):

    config.toml           # user settings (absent = first run)
    thighpads.db          # SQLite store
    thighpads.json        # JSON store (fallback backend)
    tables/               # legacy per-table JSON files (migrated on first open)
    exports/              # default export destination
    lastupdate            # ISO timestamp of the last update check
    logs/
        thighpads.log

config.toml example:

    [user]
    username = "alice"

    [ui]
    theme = "default"            # default | dark | light

    [updates]
    auto_check = true

    [export]
    default_location = "config"  # config | desktop | both
    desktop_dir = ""             # empty = ~/Desktop/ThighPads Exports

    [storage]
    backend = "auto"             # auto | sqlite | file
"""

from __future__ import annotations

import json
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

_CONFIG_FILENAME = "config.toml"
_HOME_ENV = "THIGHPADS_HOME"
_DEFAULT_HOME = Path("~/.config/thighpads")
_DESKTOP_EXPORT_DIR = Path("~/Desktop/ThighPads Exports")

THEMES = ("default", "dark", "light")
EXPORT_LOCATIONS = ("config", "desktop", "both")
BACKENDS = ("auto", "sqlite", "file")


@dataclass
class UserConfig:
    username: str = ""


@dataclass
class UIConfig:
    theme: str = "default"


@dataclass
class UpdatesConfig:
    auto_check: bool = True


@dataclass
class ExportConfig:
    default_location: str = "config"
    desktop_dir: str = ""   # empty = ~/Desktop/ThighPads Exports


@dataclass
class StorageConfig:
    backend: str = "auto"


@dataclass
class TPConfig:
    """Resolved configuration for one user's thighpads data directory."""

    home: Path
    user: UserConfig = field(default_factory=UserConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    updates: UpdatesConfig = field(default_factory=UpdatesConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    @property
    def config_path(self) -> Path:
        return self.home / _CONFIG_FILENAME

    @property
    def db_path(self) -> Path:
        return self.home / "thighpads.db"

    @property
    def file_db_path(self) -> Path:
        return self.home / "thighpads.json"

    @property
    def legacy_tables_dir(self) -> Path:
        return self.home / "tables"

    @property
    def export_dir(self) -> Path:
        return self.home / "exports"

    @property
    def desktop_export_dir(self) -> Path:
        if self.export.desktop_dir:
            return normalize_path(self.export.desktop_dir)
        return _DESKTOP_EXPORT_DIR.expanduser()

    @property
    def last_update_path(self) -> Path:
        return self.home / "lastupdate"

    @property
    def log_dir(self) -> Path:
        return self.home / "logs"

    @property
    def backend(self) -> str:
        return self.storage.backend

    def ensure_dirs(self) -> None:
        """Create home, exports/ and logs/ if they don't exist."""
        self.home.mkdir(parents=True, exist_ok=True)
        self.export_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)


def normalize_path(path: str | Path) -> Path:
    """Expand ~ and make absolute."""
    return Path(path).expanduser().resolve()


def default_home() -> Path:
    env = os.environ.get(_HOME_ENV)
    if env:
        return normalize_path(env)
    return _DEFAULT_HOME.expanduser()


def _choice(value: Any, allowed: tuple[str, ...], default: str) -> str:
    value = str(value or "").strip().lower()
    return value if value in allowed else default


def load_config(home: Path | str | None = None) -> TPConfig:
    """Load config.toml from home (default: $THIGHPADS_HOME or ~/.config/thighpads)."""
    home_path = normalize_path(home) if home else default_home()
    config_path = home_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    user_section = raw.get("user", {})
    ui_section = raw.get("ui", {})
    upd_section = raw.get("updates", {})
    exp_section = raw.get("export", {})
    st_section = raw.get("storage", {})

    return TPConfig(
        home=home_path,
        user=UserConfig(
            username=str(user_section.get("username", "")),
        ),
        ui=UIConfig(
            theme=_choice(ui_section.get("theme"), THEMES, "default"),
        ),
        updates=UpdatesConfig(
            auto_check=bool(upd_section.get("auto_check", True)),
        ),
        export=ExportConfig(
            default_location=_choice(exp_section.get("default_location"), EXPORT_LOCATIONS, "config"),
            desktop_dir=str(exp_section.get("desktop_dir", "")),
        ),
        storage=StorageConfig(
            backend=_choice(st_section.get("backend"), BACKENDS, "auto"),
        ),
    )


def is_first_run(cfg: TPConfig) -> bool:
    return not cfg.config_path.exists()


def _toml_str(value: str) -> str:
    """TOML basic string. JSON string escapes are valid TOML escapes; DEL is not allowed raw."""
    return json.dumps(value, ensure_ascii=False).replace("\x7f", "\\u007f")


def save_config(cfg: TPConfig) -> Path:
    """Write cfg to config.toml, creating the data directory if needed."""
    cfg.ensure_dirs()
    content = f"""\
# thighpads settings, edited from the Settings screen

[user]
username = {_toml_str(cfg.user.username)}

[ui]
theme = {_toml_str(cfg.ui.theme)}            # default | dark | light

[updates]
auto_check = {"true" if cfg.updates.auto_check else "false"}

[export]
default_location = {_toml_str(cfg.export.default_location)}  # config | desktop | both
desktop_dir = {_toml_str(cfg.export.desktop_dir)}             # empty = ~/Desktop/ThighPads Exports

[storage]
backend = {_toml_str(cfg.storage.backend)}             # auto | sqlite | file
"""
    tmp = cfg.config_path.with_suffix(".toml.tmp")
    tmp.write_text(content)
    tmp.replace(cfg.config_path)
    return cfg.config_path

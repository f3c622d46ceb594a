"""ThighPads: tables of free-text entries, managed from the terminal.

Layout of the data directory (~/.config/thighpads or $THIGHPADS_HOME):
    config.toml           settings; absent on first run
    thighpads.db          SQLite store (primary backend)
    thighpads.json        JSON store (used when SQLite cannot be opened)
    exports/              default home of .thighpad files
    lastupdate            time of the last update check
    logs/thighpads.log

Store operations go through the Store interface returned by open_store();
callers never know which backend is active.
"""

__version__ = "1.2.0"

from thighpads.config import TPConfig, load_config, save_config
from thighpads.models import Entry, SearchResult, Table
from thighpads.store import Store, open_store

__all__ = [
    "Entry",
    "SearchResult",
    "Store",
    "TPConfig",
    "Table",
    "__version__",
    "load_config",
    "open_store",
    "save_config",
]

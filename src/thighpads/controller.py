"""Screen controller: one dataclass per screen, one handler per screen.

    ctl = Controller(store, cfg)
    effect = ctl.handle(Key("n", "n"))       # Home -> CreateTable
    render(ctl.state, cfg.ui.theme)

Screens (entered from):

    Setup           first run only
    Home            table list
    TableDetail     Home / enter
    EntryDetail     TableDetail / enter, SearchResults / enter
    CreateTable     Home / n
    CreateEntry     TableDetail / n
    EditEntry       EntryDetail / e
    Import          Home / i
    Export          TableDetail / e
    Search          Home, TableDetail / "/"
    SearchResults   Search / enter
    Confirm         Home / d, TableDetail / d, D
    Settings        Home / s

Every store or codec call happens inside handle(); a ThighpadsError becomes an
error Flash and the screen stays where it was. The flash is cleared when the
next Key arrives, never by Resize or UpdateAvailable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from thighpads import codec
from thighpads.config import EXPORT_LOCATIONS, THEMES, is_first_run, save_config
from thighpads.errors import InvalidInput, IOFailure, ThighpadsError
from thighpads.models import format_tags, parse_tags

if TYPE_CHECKING:
    from collections.abc import Callable

    from thighpads.config import TPConfig
    from thighpads.models import Entry, SearchResult, Table
    from thighpads.store import Store

logger = logging.getLogger("thighpads.controller")

PAGE_SIZE = 10


# ---------------------------------------------------------------------------
# Events and effects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Key:
    key: str
    character: str | None = None

    @property
    def command(self) -> str:
        """Printable character if there is one (so 'D' differs from 'd'), else the key name."""
        if self.character and len(self.character) == 1 and self.character.isprintable():
            return self.character
        return self.key


@dataclass(frozen=True)
class Resize:
    width: int
    height: int


@dataclass(frozen=True)
class UpdateAvailable:
    version: str
    url: str = ""


Event = Key | Resize | UpdateAvailable


@dataclass(frozen=True)
class Quit:
    pass


@dataclass(frozen=True)
class CopyToClipboard:
    text: str


Effect = Quit | CopyToClipboard | None


@dataclass(frozen=True)
class Flash:
    message: str
    error: bool = False


# ---------------------------------------------------------------------------
# Forms
# ---------------------------------------------------------------------------


@dataclass
class FormField:
    name: str
    label: str
    value: str = ""
    kind: str = "text"          # text | multiline | choice
    choices: tuple[str, ...] = ()

    def cycle(self, step: int) -> None:
        if not self.choices:
            return
        try:
            i = self.choices.index(self.value)
        except ValueError:
            i = -step
        self.value = self.choices[(i + step) % len(self.choices)]


@dataclass
class Form:
    fields: list[FormField]
    focus: int = 0

    @property
    def focused(self) -> FormField:
        return self.fields[self.focus]

    def next_field(self) -> None:
        self.focus = (self.focus + 1) % len(self.fields)

    def prev_field(self) -> None:
        self.focus = (self.focus - 1) % len(self.fields)

    def values(self) -> dict[str, str]:
        """Snapshot of every field, read together at submit time."""
        return {f.name: f.value for f in self.fields}

    def handle(self, ev: Key) -> str | None:
        """Apply an editing key. Returns "submit", "cancel" or None."""
        fld = self.focused
        key = ev.key
        if key == "escape":
            return "cancel"
        if key == "ctrl+s":
            return "submit"
        if key == "tab":
            self.next_field()
            return None
        if key == "shift+tab":
            self.prev_field()
            return None
        if key == "enter":
            if fld.kind == "multiline":
                fld.value += "\n"
                return None
            return "submit"
        if fld.kind == "choice":
            if key in ("right", "space"):
                fld.cycle(1)
            elif key == "left":
                fld.cycle(-1)
            return None
        if key == "backspace":
            fld.value = fld.value[:-1]
            return None
        ch = ev.character
        if ch and len(ch) == 1 and ch.isprintable():
            fld.value += ch
        return None


def _form(*fields: FormField) -> Form:
    return Form(fields=list(fields))


# ---------------------------------------------------------------------------
# Screens
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PendingConfirmation:
    action: str                 # delete_table | delete_entry
    target: int
    label: str = ""


@dataclass
class SetupScreen:
    form: Form


@dataclass
class HomeScreen:
    tables: list[Table] = field(default_factory=list)
    cursor: int = 0


@dataclass
class TableDetailScreen:
    table: Table
    entries: list[Entry] = field(default_factory=list)
    cursor: int = 0


@dataclass
class EntryDetailScreen:
    table: Table
    entry: Entry
    scroll: int = 0
    pending: PendingConfirmation | None = None


@dataclass
class CreateTableScreen:
    form: Form


@dataclass
class CreateEntryScreen:
    table: Table
    form: Form


@dataclass
class EditEntryScreen:
    table: Table
    entry: Entry
    form: Form


@dataclass
class ImportScreen:
    form: Form


@dataclass
class ExportScreen:
    table: Table
    form: Form


@dataclass
class SearchScreen:
    form: Form
    origin: Screen


@dataclass
class SearchResultsScreen:
    query: str
    results: list[SearchResult]
    search: SearchScreen
    cursor: int = 0


@dataclass
class ConfirmScreen:
    pending: PendingConfirmation
    previous: Screen


@dataclass
class SettingsScreen:
    form: Form


Screen = (
    SetupScreen
    | HomeScreen
    | TableDetailScreen
    | EntryDetailScreen
    | CreateTableScreen
    | CreateEntryScreen
    | EditEntryScreen
    | ImportScreen
    | ExportScreen
    | SearchScreen
    | SearchResultsScreen
    | ConfirmScreen
    | SettingsScreen
)

FORM_SCREENS = (
    SetupScreen,
    CreateTableScreen,
    CreateEntryScreen,
    EditEntryScreen,
    ImportScreen,
    ExportScreen,
    SearchScreen,
    SettingsScreen,
)


@dataclass
class AppState:
    screen: Screen
    flash: Flash | None = None
    update: UpdateAvailable | None = None
    width: int = 80
    height: int = 24


def _move(cursor: int, delta: int, count: int) -> int:
    if count <= 0:
        return 0
    return max(0, min(count - 1, cursor + delta))


def _index_of(items: list, item_id: int) -> int:
    return next((i for i, it in enumerate(items) if it.id == item_id), 0)


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------


class Controller:
    """Owns the AppState and the Store handle; handle() is the only entry point."""

    def __init__(self, store: Store, cfg: TPConfig) -> None:
        self.store = store
        self.cfg = cfg
        if is_first_run(cfg):
            screen: Screen = self._setup_screen()
        else:
            screen = self._home_screen()
        self.state = AppState(screen=screen)

    # -- event entry point ---------------------------------------------------

    def handle(self, event: Event) -> Effect:
        if isinstance(event, Resize):
            self.state.width, self.state.height = event.width, event.height
            return None
        if isinstance(event, UpdateAvailable):
            self.state.update = event
            return None

        self.state.flash = None
        if event.key == "ctrl+c":
            return Quit()
        screen = self.state.screen
        handler = getattr(self, f"_on_{type(screen).__name__}")
        try:
            return handler(screen, event)
        except ThighpadsError as exc:
            logger.info("%s: %s", type(screen).__name__, exc)
            self._error(str(exc))
            return None

    # -- feedback ------------------------------------------------------------

    def _ok(self, message: str) -> None:
        self.state.flash = Flash(message)

    def _error(self, message: str) -> None:
        self.state.flash = Flash(message, error=True)

    def _goto(self, screen: Screen) -> None:
        self.state.screen = screen

    def _committed(self, message: str, reload: Callable[[], Screen], *, error: bool = False) -> None:
        """Leave the current screen after a change that is already saved.

        A reload failure is reported on its own and never leaves the user on
        the form that made the change.
        """
        try:
            screen = reload()
        except ThighpadsError as exc:
            logger.warning("view refresh after %r failed: %s", message, exc)
            self._goto(self._fallback_home())
            self._error(f"{message}, but the view could not be refreshed: {exc}")
            return
        self._goto(screen)
        if error:
            self._error(message)
        else:
            self._ok(message)

    def _fallback_home(self) -> HomeScreen:
        try:
            return self._home_screen()
        except ThighpadsError:
            return HomeScreen(tables=[])

    # -- screen builders -----------------------------------------------------

    def _setup_screen(self) -> SetupScreen:
        return SetupScreen(form=_form(FormField("username", "Username", self.cfg.user.username)))

    def _home_screen(self, select_id: int | None = None) -> HomeScreen:
        tables = self.store.list_tables()
        cursor = _index_of(tables, select_id) if select_id is not None else 0
        return HomeScreen(tables=tables, cursor=cursor)

    def _table_screen(self, table_id: int, select_id: int | None = None) -> TableDetailScreen:
        table = self.store.get_table(table_id)
        entries = self.store.list_entries(table_id)
        cursor = _index_of(entries, select_id) if select_id is not None else 0
        return TableDetailScreen(table=table, entries=entries, cursor=cursor)

    def _entry_screen(self, table_id: int, entry_id: int) -> EntryDetailScreen:
        return EntryDetailScreen(table=self.store.get_table(table_id), entry=self.store.get_entry(entry_id))

    def _search_screen(self, origin: Screen) -> SearchScreen:
        return SearchScreen(form=_form(FormField("query", "Search")), origin=origin)

    def _settings_screen(self) -> SettingsScreen:
        cfg = self.cfg
        return SettingsScreen(
            form=_form(
                FormField("username", "Username", cfg.user.username),
                FormField("theme", "Theme", cfg.ui.theme, kind="choice", choices=THEMES),
                FormField(
                    "export_location",
                    "Default export location",
                    cfg.export.default_location,
                    kind="choice",
                    choices=EXPORT_LOCATIONS,
                ),
                FormField("desktop_dir", "Desktop export folder", cfg.export.desktop_dir),
                FormField(
                    "auto_check",
                    "Check for updates",
                    "on" if cfg.updates.auto_check else "off",
                    kind="choice",
                    choices=("on", "off"),
                ),
            )
        )

    def _save_config(self) -> None:
        try:
            save_config(self.cfg)
        except OSError as exc:
            raise IOFailure(f"Cannot save settings: {exc}") from exc

    # -- Setup ---------------------------------------------------------------

    def _on_SetupScreen(self, screen: SetupScreen, ev: Key) -> Effect:
        if ev.key == "escape":
            return None
        if screen.form.handle(ev) != "submit":
            return None
        username = screen.form.values()["username"].strip()
        if not username:
            raise InvalidInput("Username must not be empty")
        self.cfg.user.username = username
        self._save_config()
        self._committed(f"Welcome, {username}!", self._home_screen)
        return None

    # -- Home ----------------------------------------------------------------

    def _on_HomeScreen(self, screen: HomeScreen, ev: Key) -> Effect:
        cmd = ev.command
        count = len(screen.tables)
        if cmd in ("up", "k"):
            screen.cursor = _move(screen.cursor, -1, count)
        elif cmd in ("down", "j"):
            screen.cursor = _move(screen.cursor, 1, count)
        elif cmd == "enter" and count:
            self._goto(self._table_screen(screen.tables[screen.cursor].id))
        elif cmd == "n":
            self._goto(CreateTableScreen(form=_form(FormField("name", "Table name"))))
        elif cmd == "i":
            self._goto(ImportScreen(form=_form(FormField("path", "File path"))))
        elif cmd == "d" and count:
            table = screen.tables[screen.cursor]
            pending = PendingConfirmation("delete_table", table.id, table.name)
            self._goto(ConfirmScreen(pending=pending, previous=screen))
        elif cmd == "/":
            self._goto(self._search_screen(screen))
        elif cmd == "s":
            self._goto(self._settings_screen())
        elif cmd == "q":
            return Quit()
        return None

    # -- TableDetail ---------------------------------------------------------

    def _on_TableDetailScreen(self, screen: TableDetailScreen, ev: Key) -> Effect:
        cmd = ev.command
        count = len(screen.entries)
        if cmd in ("up", "k"):
            screen.cursor = _move(screen.cursor, -1, count)
        elif cmd in ("down", "j"):
            screen.cursor = _move(screen.cursor, 1, count)
        elif cmd == "enter" and count:
            self._goto(self._entry_screen(screen.table.id, screen.entries[screen.cursor].id))
        elif cmd == "n":
            self._goto(
                CreateEntryScreen(
                    table=screen.table,
                    form=_form(
                        FormField("title", "Title"),
                        FormField("tags", "Tags (comma separated)"),
                        FormField("content", "Content", kind="multiline"),
                    ),
                )
            )
        elif cmd == "e":
            self._goto(
                ExportScreen(
                    table=screen.table,
                    form=_form(
                        FormField(
                            "location",
                            "Location",
                            self.cfg.export.default_location,
                            kind="choice",
                            choices=EXPORT_LOCATIONS,
                        ),
                        FormField("filename", "File name", screen.table.name),
                    ),
                )
            )
        elif cmd == "d" and count:
            entry = screen.entries[screen.cursor]
            pending = PendingConfirmation("delete_entry", entry.id, entry.title)
            self._goto(ConfirmScreen(pending=pending, previous=screen))
        elif cmd == "D":
            pending = PendingConfirmation("delete_table", screen.table.id, screen.table.name)
            self._goto(ConfirmScreen(pending=pending, previous=screen))
        elif cmd == "/":
            self._goto(self._search_screen(screen))
        elif cmd in ("b", "escape"):
            self._goto(self._home_screen(screen.table.id))
        elif cmd == "q":
            return Quit()
        return None

    # -- EntryDetail ---------------------------------------------------------

    def _on_EntryDetailScreen(self, screen: EntryDetailScreen, ev: Key) -> Effect:
        cmd = ev.command
        pending, screen.pending = screen.pending, None

        if cmd == "d":
            if pending is not None and pending.action == "delete_entry" and pending.target == screen.entry.id:
                self.store.delete_entry(screen.entry.id)
                self._committed(
                    f"Deleted entry {screen.entry.title}", lambda: self._table_screen(screen.table.id)
                )
            else:
                screen.pending = PendingConfirmation("delete_entry", screen.entry.id, screen.entry.title)
                self._ok("Press d again to delete this entry")
            return None

        last_line = max(0, screen.entry.content.count("\n"))
        if cmd in ("up", "k"):
            screen.scroll = max(0, screen.scroll - 1)
        elif cmd in ("down", "j"):
            screen.scroll = min(last_line, screen.scroll + 1)
        elif cmd in ("g", "home"):
            screen.scroll = 0
        elif cmd in ("G", "end"):
            screen.scroll = last_line
        elif cmd == "pageup":
            screen.scroll = max(0, screen.scroll - PAGE_SIZE)
        elif cmd == "pagedown":
            screen.scroll = min(last_line, screen.scroll + PAGE_SIZE)
        elif cmd == "e":
            entry = screen.entry
            self._goto(
                EditEntryScreen(
                    table=screen.table,
                    entry=entry,
                    form=_form(
                        FormField("title", "Title", entry.title),
                        FormField("tags", "Tags (comma separated)", format_tags(entry.tags)),
                        FormField("content", "Content", entry.content, kind="multiline"),
                    ),
                )
            )
        elif cmd == "c":
            self._ok("Content copied to clipboard")
            return CopyToClipboard(screen.entry.content)
        elif cmd in ("b", "escape"):
            self._goto(self._table_screen(screen.table.id, screen.entry.id))
        elif cmd == "q":
            return Quit()
        return None

    # -- Forms ---------------------------------------------------------------

    def _on_CreateTableScreen(self, screen: CreateTableScreen, ev: Key) -> Effect:
        action = screen.form.handle(ev)
        if action == "cancel":
            self._goto(self._home_screen())
        elif action == "submit":
            values = screen.form.values()
            table = self.store.create_table(values["name"], self.cfg.user.username)
            self._committed(f"Created table {table.name}", lambda: self._home_screen(table.id))
        return None

    def _on_CreateEntryScreen(self, screen: CreateEntryScreen, ev: Key) -> Effect:
        action = screen.form.handle(ev)
        if action == "cancel":
            self._goto(self._table_screen(screen.table.id))
        elif action == "submit":
            values = screen.form.values()
            entry = self.store.create_entry(
                screen.table.id, values["title"], parse_tags(values["tags"]), values["content"]
            )
            self._committed(f"Created entry {entry.title}", lambda: self._table_screen(screen.table.id, entry.id))
        return None

    def _on_EditEntryScreen(self, screen: EditEntryScreen, ev: Key) -> Effect:
        action = screen.form.handle(ev)
        if action == "cancel":
            self._goto(self._entry_screen(screen.table.id, screen.entry.id))
        elif action == "submit":
            values = screen.form.values()
            entry = self.store.update_entry(
                screen.entry.id,
                title=values["title"],
                tags=parse_tags(values["tags"]),
                content=values["content"],
            )
            self._committed("Entry saved", lambda: self._entry_screen(screen.table.id, entry.id))
        return None

    def _on_ImportScreen(self, screen: ImportScreen, ev: Key) -> Effect:
        action = screen.form.handle(ev)
        if action == "cancel":
            self._goto(self._home_screen())
        elif action == "submit":
            path = screen.form.values()["path"].strip()
            if not path:
                raise InvalidInput("Enter the path of a .thighpad file")
            result = codec.import_file(self.store, path, self.cfg.user.username)
            message = f"Imported {result.table.name} ({result.imported} entries)"
            if result.failures:
                message = f"{message}; {len(result.failures)} entries failed"
            self._committed(message, lambda: self._home_screen(result.table.id), error=bool(result.failures))
        return None

    def _on_ExportScreen(self, screen: ExportScreen, ev: Key) -> Effect:
        action = screen.form.handle(ev)
        if action == "cancel":
            self._goto(self._table_screen(screen.table.id))
        elif action == "submit":
            values = screen.form.values()
            destinations = codec.export_destinations(self.cfg, values["location"])
            result = codec.export_table(
                self.store,
                screen.table.id,
                self.cfg.user.username,
                destinations,
                values["filename"].strip() or None,
            )
            written = ", ".join(str(p) for p in result.written)
            message = f"Exported to {written}"
            if result.partial:
                failed = ", ".join(str(d) for d in result.failures)
                message = f"{message}; failed for {failed}"
            self._committed(message, lambda: self._table_screen(screen.table.id), error=result.partial)
        return None

    def _on_SearchScreen(self, screen: SearchScreen, ev: Key) -> Effect:
        action = screen.form.handle(ev)
        if action == "cancel":
            self._goto(screen.origin)
        elif action == "submit":
            query = screen.form.values()["query"].strip()
            if not query:
                raise InvalidInput("Enter a search term")
            results = self.store.search_entries(query)
            self._goto(SearchResultsScreen(query=query, results=results, search=screen))
            if not results:
                self._ok(f"No matches for {query!r}")
        return None

    def _on_SettingsScreen(self, screen: SettingsScreen, ev: Key) -> Effect:
        action = screen.form.handle(ev)
        if action == "cancel":
            self._goto(self._home_screen())
        elif action == "submit":
            values = screen.form.values()
            username = values["username"].strip()
            if not username:
                raise InvalidInput("Username must not be empty")
            self.cfg.user.username = username
            self.cfg.ui.theme = values["theme"]
            self.cfg.export.default_location = values["export_location"]
            self.cfg.export.desktop_dir = values["desktop_dir"].strip()
            self.cfg.updates.auto_check = values["auto_check"] == "on"
            self._save_config()
            self._committed("Settings saved", self._home_screen)
        return None

    # -- SearchResults -------------------------------------------------------

    def _on_SearchResultsScreen(self, screen: SearchResultsScreen, ev: Key) -> Effect:
        cmd = ev.command
        count = len(screen.results)
        if cmd in ("up", "k"):
            screen.cursor = _move(screen.cursor, -1, count)
        elif cmd in ("down", "j"):
            screen.cursor = _move(screen.cursor, 1, count)
        elif cmd == "enter" and count:
            hit = screen.results[screen.cursor]
            self._goto(self._entry_screen(hit.table_id, hit.entry_id))
        elif cmd in ("b", "escape"):
            self._goto(screen.search)
        elif cmd == "q":
            return Quit()
        return None

    # -- Confirm -------------------------------------------------------------

    def _on_ConfirmScreen(self, screen: ConfirmScreen, ev: Key) -> Effect:
        cmd = ev.command
        pending = screen.pending
        if cmd in ("n", "escape"):
            self._goto(screen.previous)
            return None
        if cmd == "q":
            return Quit()
        if cmd != "y":
            return None
        if pending.action == "delete_table":
            self.store.delete_table(pending.target)
            self._committed(f"Deleted table {pending.label}", self._home_screen)
        elif pending.action == "delete_entry":
            previous = screen.previous
            table_id = previous.table.id if isinstance(previous, TableDetailScreen) else None
            self.store.delete_entry(pending.target)
            if table_id is not None:
                self._committed(f"Deleted entry {pending.label}", lambda: self._table_screen(table_id))
            else:
                self._committed(f"Deleted entry {pending.label}", self._home_screen)
        return None

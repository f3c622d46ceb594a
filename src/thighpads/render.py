"""Paint controller state as a rich renderable.

render(state, theme) is what the Textual host puts into its Static widget;
render_text(state, width) prints the same renderable to a plain string.
"""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

from rich.console import Console, Group
from rich.markup import escape
from rich.table import Table as RichTable
from rich.text import Text

from thighpads.controller import (
    FORM_SCREENS,
    ConfirmScreen,
    CreateEntryScreen,
    CreateTableScreen,
    EditEntryScreen,
    EntryDetailScreen,
    ExportScreen,
    HomeScreen,
    ImportScreen,
    SearchResultsScreen,
    SearchScreen,
    SettingsScreen,
    SetupScreen,
    TableDetailScreen,
)
from thighpads.models import format_tags

if TYPE_CHECKING:
    from rich.console import RenderableType

    from thighpads.controller import AppState, Form, Screen

PALETTES: dict[str, dict[str, str]] = {
    "default": {
        "title": "bold magenta",
        "accent": "cyan",
        "muted": "dim",
        "selected": "reverse bold",
        "success": "green",
        "error": "bold red",
        "banner": "yellow",
    },
    "dark": {
        "title": "bold bright_white",
        "accent": "bright_blue",
        "muted": "grey50",
        "selected": "black on bright_blue",
        "success": "bright_green",
        "error": "bright_red",
        "banner": "bright_yellow",
    },
    "light": {
        "title": "bold dark_blue",
        "accent": "dark_cyan",
        "muted": "grey42",
        "selected": "white on dark_cyan",
        "success": "dark_green",
        "error": "red3",
        "banner": "dark_orange3",
    },
}

HELP = {
    SetupScreen: "enter save · ctrl+c quit",
    HomeScreen: "j/k move · enter open · n new · i import · d delete · / search · s settings · q quit",
    TableDetailScreen: "j/k move · enter open · n new · e export · d delete entry · D delete table · / search · b back",
    EntryDetailScreen: "e edit · dd delete · c copy · j/k/g/G scroll · b back · q quit",
    SearchResultsScreen: "j/k move · enter open · esc back · q quit",
    ConfirmScreen: "y confirm · n/esc cancel",
}
FORM_HELP = "tab next field · ctrl+s save · enter submit · esc cancel"

TITLES = {
    SetupScreen: "Welcome to ThighPads",
    HomeScreen: "Tables",
    CreateTableScreen: "New table",
    ImportScreen: "Import table",
    SearchScreen: "Search",
    SettingsScreen: "Settings",
    ConfirmScreen: "Confirm",
}


def palette(theme: str) -> dict[str, str]:
    return PALETTES.get(theme, PALETTES["default"])


def _title(screen: Screen) -> str:
    if isinstance(screen, TableDetailScreen):
        return f"Table: {screen.table.name}"
    if isinstance(screen, EntryDetailScreen):
        return f"{screen.table.name} / {screen.entry.title}"
    if isinstance(screen, CreateEntryScreen):
        return f"New entry in {screen.table.name}"
    if isinstance(screen, EditEntryScreen):
        return f"Edit {screen.entry.title}"
    if isinstance(screen, ExportScreen):
        return f"Export {screen.table.name}"
    if isinstance(screen, SearchResultsScreen):
        return f"Results for {screen.query!r}"
    return TITLES.get(type(screen), "ThighPads")


# ---------------------------------------------------------------------------
# Body per screen
# ---------------------------------------------------------------------------


def _form(form: Form, pal: dict[str, str]) -> RenderableType:
    lines = []
    for i, fld in enumerate(form.fields):
        focused = i == form.focus
        label = Text(f"{'>' if focused else ' '} {fld.label}: ", style=pal["accent"] if focused else "")
        if fld.kind == "choice":
            value = Text(f"< {fld.value} >", style=pal["selected"] if focused else "")
        elif fld.kind == "multiline":
            label.append("\n")
            value = Text(fld.value + ("_" if focused else ""))
        else:
            value = Text(fld.value + ("_" if focused else ""))
        lines.append(label + value)
    return Group(*lines)


def _home(screen: HomeScreen, pal: dict[str, str]) -> RenderableType:
    if not screen.tables:
        return Text("No tables yet. Press n to create one or i to import.", style=pal["muted"])
    grid = RichTable(show_header=True, header_style="bold", expand=True)
    grid.add_column("Name", no_wrap=True)
    grid.add_column("Author", style=pal["muted"])
    grid.add_column("Entries", justify="right")
    grid.add_column("Updated", style=pal["muted"], no_wrap=True)
    for i, t in enumerate(screen.tables):
        grid.add_row(
            escape(t.name),
            escape(t.author),
            str(t.entry_count),
            t.updated_at[:10],
            style=pal["selected"] if i == screen.cursor else None,
        )
    return grid


def _table_detail(screen: TableDetailScreen, pal: dict[str, str]) -> RenderableType:
    header = Text(f"by {screen.table.author or 'unknown'} · {len(screen.entries)} entries", style=pal["muted"])
    if not screen.entries:
        return Group(header, Text("No entries yet. Press n to add one.", style=pal["muted"]))
    grid = RichTable(show_header=True, header_style="bold", expand=True)
    grid.add_column("Title", no_wrap=True)
    grid.add_column("Tags", style=pal["accent"])
    grid.add_column("Updated", style=pal["muted"], no_wrap=True)
    for i, e in enumerate(screen.entries):
        grid.add_row(
            escape(e.title),
            escape(format_tags(e.tags)),
            e.updated_at[:10],
            style=pal["selected"] if i == screen.cursor else None,
        )
    return Group(header, grid)


def _entry_detail(screen: EntryDetailScreen, pal: dict[str, str], height: int) -> RenderableType:
    e = screen.entry
    meta = Text()
    meta.append("Tags: ", style="bold")
    meta.append(format_tags(e.tags) or "-", style=pal["accent"])
    meta.append(f"\nCreated {e.created_at} · Updated {e.updated_at}", style=pal["muted"])
    lines = e.content.split("\n")
    visible = max(1, height - 8)
    window = lines[screen.scroll : screen.scroll + visible]
    body = Text("\n".join(window))
    parts: list[RenderableType] = [meta, Text(""), body]
    if len(lines) > visible:
        parts.append(Text(f"line {screen.scroll + 1}/{len(lines)}", style=pal["muted"]))
    return Group(*parts)


def _search_results(screen: SearchResultsScreen, pal: dict[str, str]) -> RenderableType:
    if not screen.results:
        return Text("No matches.", style=pal["muted"])
    grid = RichTable(show_header=True, header_style="bold", expand=True)
    grid.add_column("Table", style=pal["accent"], no_wrap=True)
    grid.add_column("Title", no_wrap=True)
    grid.add_column("Field", style=pal["muted"])
    grid.add_column("Context")
    for i, r in enumerate(screen.results):
        grid.add_row(
            escape(r.table_name),
            escape(r.title),
            r.matching_field,
            escape(r.context.replace("\n", " ")),
            style=pal["selected"] if i == screen.cursor else None,
        )
    return grid


def _confirm(screen: ConfirmScreen, pal: dict[str, str]) -> RenderableType:
    p = screen.pending
    if p.action == "delete_table":
        question = f"Delete table {p.label} and all of its entries?"
    else:
        question = f"Delete entry {p.label}?"
    return Text(f"{question} (y/n)", style=pal["error"])


def _body(state: AppState, pal: dict[str, str]) -> RenderableType:
    screen = state.screen
    if isinstance(screen, HomeScreen):
        return _home(screen, pal)
    if isinstance(screen, TableDetailScreen):
        return _table_detail(screen, pal)
    if isinstance(screen, EntryDetailScreen):
        return _entry_detail(screen, pal, state.height)
    if isinstance(screen, SearchResultsScreen):
        return _search_results(screen, pal)
    if isinstance(screen, ConfirmScreen):
        return _confirm(screen, pal)
    if isinstance(screen, SetupScreen):
        intro = Text("Choose a username. It is recorded as the author of your tables.", style=pal["muted"])
        return Group(intro, Text(""), _form(screen.form, pal))
    return _form(screen.form, pal)


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------


def render(state: AppState, theme: str = "default") -> RenderableType:
    pal = palette(theme)
    screen = state.screen
    parts: list[RenderableType] = []
    if state.update is not None:
        banner = f"Update available: v{state.update.version}  {state.update.url}".rstrip()
        parts.append(Text(banner, style=pal["banner"]))
    parts.append(Text(_title(screen), style=pal["title"]))
    parts.append(Text(""))
    parts.append(_body(state, pal))
    parts.append(Text(""))
    if state.flash is not None:
        parts.append(Text(state.flash.message, style=pal["error"] if state.flash.error else pal["success"]))
    if isinstance(screen, FORM_SCREENS) and not isinstance(screen, SetupScreen):
        help_line = FORM_HELP
    else:
        help_line = HELP.get(type(screen), "")
    parts.append(Text(help_line, style=pal["muted"]))
    return Group(*parts)


def render_text(state: AppState, width: int = 80, theme: str = "default") -> str:
    """Plain-text rendering (no colour codes)."""
    buf = io.StringIO()
    console = Console(file=buf, width=width, color_system=None, force_terminal=False, highlight=False)
    console.print(render(state, theme))
    return buf.getvalue()

"""thighpads CLI: the TUI plus a few non-interactive commands.

Commands:
    thighpads                      launch the TUI
    thighpads list [TABLE]         list tables, or the entries of one table
    thighpads search QUERY         search titles, tags and content
    thighpads export TABLE         write TABLE.thighpad to the export folder(s)
    thighpads import PATH          create a new table from a .thighpad file
    thighpads check-update         ask GitHub for a newer release
    thighpads update               reinstall the latest release
    thighpads install              install the `thighpads` command globally
    thighpads uninstall            remove the global install
    thighpads wipe                 delete all data and settings
    thighpads version              print the version
"""

from __future__ import annotations

import logging
import shutil
import sys
import tomllib
from pathlib import Path

import click

from thighpads import __version__
from thighpads import codec
from thighpads import install as _install
from thighpads.config import EXPORT_LOCATIONS, TPConfig, load_config
from thighpads.errors import IOFailure, ThighpadsError
from thighpads.models import format_tags
from thighpads.store import Store, open_store
from thighpads.update import UpdateChecker, UpdateError

logger = logging.getLogger("thighpads.cli")

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_cfg(ctx: click.Context) -> TPConfig:
    try:
        return load_config(ctx.obj.get("home"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise click.ClickException(f"Cannot read config: {exc}") from exc


def _open_store(cfg: TPConfig) -> Store:
    """Open the store or exit: without a store there is nothing to do."""
    try:
        cfg.ensure_dirs()
        return open_store(cfg)
    except (IOFailure, OSError) as exc:
        click.echo(f"Error: cannot open data store: {exc}", err=True)
        raise SystemExit(1) from exc


def _setup_logging(cfg: TPConfig, *, verbose: bool, to_file: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    if to_file:
        cfg.log_dir.mkdir(parents=True, exist_ok=True)
        logging.basicConfig(filename=str(cfg.log_dir / "thighpads.log"), level=level, format=_LOG_FORMAT)
    elif verbose:
        logging.basicConfig(level=level, format=_LOG_FORMAT)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group(invoke_without_command=True)
@click.option("--home", type=click.Path(file_okay=False), default=None, help="Data directory")
@click.option("--verbose", "-v", is_flag=True, help="Log to stderr")
@click.version_option(__version__, prog_name="thighpads")
@click.pass_context
def cli(ctx: click.Context, home: str | None, verbose: bool) -> None:
    """ThighPads: tables of notes and snippets in the terminal."""
    ctx.ensure_object(dict)
    ctx.obj["home"] = home
    ctx.obj["verbose"] = verbose
    if ctx.invoked_subcommand is None:
        _run_tui(ctx)
        return
    _setup_logging(_load_cfg(ctx), verbose=verbose, to_file=False)


def _run_tui(ctx: click.Context) -> None:
    from thighpads.controller import Controller
    from thighpads.tui import ThighpadsApp

    cfg = _load_cfg(ctx)
    # stderr belongs to the terminal UI while it runs.
    _setup_logging(cfg, verbose=ctx.obj["verbose"], to_file=True)
    store = _open_store(cfg)
    logger.info("starting TUI (backend=%s, home=%s)", store.backend, cfg.home)
    try:
        app = ThighpadsApp(
            Controller(store, cfg),
            checker=UpdateChecker(cfg, __version__),
            auto_check_update=cfg.updates.auto_check,
        )
        app.run()
    finally:
        store.close()


# ---------------------------------------------------------------------------
# thighpads list / search
# ---------------------------------------------------------------------------


@cli.command("list")
@click.argument("table_name", required=False)
@click.pass_context
def list_cmd(ctx: click.Context, table_name: str | None) -> None:
    """List tables, or the entries of TABLE_NAME."""
    from rich.console import Console
    from rich.markup import escape
    from rich.table import Table

    cfg = _load_cfg(ctx)
    console = Console()
    with _open_store(cfg) as store:
        try:
            if table_name is None:
                tables = store.list_tables()
                grid = Table(title=f"ThighPads ({store.backend})", show_header=True, header_style="bold")
                grid.add_column("Name", no_wrap=True)
                grid.add_column("Author", style="dim")
                grid.add_column("Entries", justify="right")
                grid.add_column("Updated", style="dim")
                for t in tables:
                    grid.add_row(escape(t.name), escape(t.author), str(t.entry_count), t.updated_at)
                if not tables:
                    grid.add_row("[dim]no tables yet[/dim]", "", "", "")
            else:
                table = store.get_table_by_name(table_name)
                grid = Table(title=escape(table.name), show_header=True, header_style="bold")
                grid.add_column("ID", style="dim", justify="right")
                grid.add_column("Title", no_wrap=True)
                grid.add_column("Tags", style="cyan")
                grid.add_column("Updated", style="dim")
                for e in store.list_entries(table.id):
                    grid.add_row(str(e.id), escape(e.title), escape(format_tags(e.tags)), e.updated_at)
        except ThighpadsError as exc:
            raise click.ClickException(str(exc)) from exc
    console.print(grid)


@cli.command()
@click.argument("query")
@click.pass_context
def search(ctx: click.Context, query: str) -> None:
    """Search entry titles, tags and content (case-insensitive)."""
    from rich.console import Console
    from rich.markup import escape
    from rich.table import Table

    cfg = _load_cfg(ctx)
    with _open_store(cfg) as store:
        try:
            results = store.search_entries(query)
        except ThighpadsError as exc:
            raise click.ClickException(str(exc)) from exc
    if not results:
        click.echo("No matches.")
        return
    grid = Table(show_header=True, header_style="bold")
    grid.add_column("Table", style="cyan", no_wrap=True)
    grid.add_column("Title", no_wrap=True)
    grid.add_column("Field", style="dim")
    grid.add_column("Context")
    for r in results:
        grid.add_row(escape(r.table_name), escape(r.title), r.matching_field, escape(r.context.replace("\n", " ")))
    Console().print(grid)


# ---------------------------------------------------------------------------
# thighpads export / import
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("table_name")
@click.option(
    "--to",
    "location",
    type=click.Choice(EXPORT_LOCATIONS),
    default=None,
    help="Export folder(s) (default: from config)",
)
@click.option(
    "--dir",
    "dirs",
    multiple=True,
    type=click.Path(file_okay=False),
    help="Explicit destination directory (repeatable; overrides --to)",
)
@click.option("--name", default=None, help="File name (default: table name)")
@click.pass_context
def export(ctx: click.Context, table_name: str, location: str | None, dirs: tuple[str, ...], name: str | None) -> None:
    """Export TABLE_NAME as a .thighpad file."""
    cfg = _load_cfg(ctx)
    if dirs:
        destinations = [Path(d).expanduser() for d in dirs]
    else:
        destinations = codec.export_destinations(cfg, location or cfg.export.default_location)
    with _open_store(cfg) as store:
        try:
            table = store.get_table_by_name(table_name)
            result = codec.export_table(store, table.id, cfg.user.username, destinations, name)
        except ThighpadsError as exc:
            raise click.ClickException(str(exc)) from exc
    for path in result.written:
        click.echo(f"Exported {table_name} -> {path}")
    for directory, reason in result.failures.items():
        click.echo(f"Warning: could not export to {directory}: {reason}", err=True)


@cli.command("import")
@click.argument("path", type=click.Path())
@click.option("--author", default=None, help="Author of the new table (default: your username)")
@click.pass_context
def import_cmd(ctx: click.Context, path: str, author: str | None) -> None:
    """Create a new table from a .thighpad file."""
    cfg = _load_cfg(ctx)
    with _open_store(cfg) as store:
        try:
            result = codec.import_file(store, path, author or cfg.user.username)
        except ThighpadsError as exc:
            raise click.ClickException(str(exc)) from exc
    click.echo(f"Imported {result.table.name} ({result.imported} entries)")
    for failure in result.failures:
        click.echo(f"Warning: {failure}", err=True)


# ---------------------------------------------------------------------------
# thighpads check-update / update / install / uninstall
# ---------------------------------------------------------------------------


@cli.command("check-update")
@click.pass_context
def check_update(ctx: click.Context) -> None:
    """Check GitHub for a newer release (ignores the weekly interval)."""
    cfg = _load_cfg(ctx)
    cfg.ensure_dirs()
    try:
        info = UpdateChecker(cfg, __version__).check_for_update(force=True)
    except UpdateError as exc:
        raise click.ClickException(str(exc)) from exc
    if info.available:
        click.echo(f"Update available: {__version__} -> {info.version}")
        if info.url:
            click.echo(info.url)
        click.echo("Run `thighpads update` to install it.")
    else:
        click.echo(f"ThighPads {__version__} is up to date.")


@cli.command()
def update() -> None:
    """Reinstall ThighPads from the latest source."""
    click.echo("Updating ThighPads...")
    ok, message = _install.self_update()
    if not ok:
        raise click.ClickException(message)
    click.echo(message)


@cli.command("install")
@click.option("--force", is_flag=True, help="Reinstall even if already on PATH")
def install_cmd(force: bool) -> None:
    """Install the `thighpads` command globally (uv tool, else pip --user)."""
    if _install.is_installed_globally() and not force:
        click.echo("ThighPads is already installed globally. Use --force to reinstall.")
        return
    ok, message = _install.install_globally()
    if not ok:
        raise click.ClickException(message)
    click.echo(message)


@cli.command("uninstall")
def uninstall_cmd() -> None:
    """Remove the global `thighpads` command. Data is kept."""
    ok, message = _install.uninstall_globally()
    if not ok:
        raise click.ClickException(message)
    click.echo(message)


# ---------------------------------------------------------------------------
# thighpads wipe / version
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def wipe(ctx: click.Context, yes: bool) -> None:
    """Delete all tables, entries and settings."""
    cfg = _load_cfg(ctx)
    if not cfg.home.exists():
        click.echo(f"Nothing to wipe at {cfg.home}")
        return
    if not yes:
        click.confirm(f"Delete everything under {cfg.home}?", abort=True)
    try:
        shutil.rmtree(cfg.home)
    except OSError as exc:
        raise click.ClickException(f"Could not wipe {cfg.home}: {exc}") from exc
    click.echo(f"Wiped {cfg.home}")


@cli.command()
def version() -> None:
    """Print the ThighPads version."""
    click.echo(f"ThighPads {__version__} (Python {sys.version.split()[0]})")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()

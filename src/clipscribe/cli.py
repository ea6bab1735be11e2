"""Command line interface for clipscribe."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from clipscribe.agent import CaptureAgent, setup_logging
from clipscribe.capture.hotkey import parse_hotkey
from clipscribe.config import AppConfig
from clipscribe.errors import (
    HotkeyRegistrationError,
    InvalidHotkeySpec,
    PersistenceFailure,
    RecordNotFound,
    SettingsStoreFailure,
)
from clipscribe.events import CLIP_SAVED
from clipscribe.models import ImageCapture, TextCapture
from clipscribe.store.database import Database
from clipscribe.store.records import PersistenceStore
from clipscribe.store.settings import GLOBAL_HOTKEY, LLM_API_KEY, SettingsCache

console = Console()
app = typer.Typer(help="clipscribe - capture, categorize and keep what you copy")
settings_app = typer.Typer(help="Read and change stored settings")
hotkey_app = typer.Typer(help="Inspect and change the global capture hotkey")
app.add_typer(settings_app, name="settings")
app.add_typer(hotkey_app, name="hotkey")

SECRET_KEYS = {LLM_API_KEY}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _open_database(db: Optional[Path]) -> Database:
    config = AppConfig(db_path=db)
    database = Database(config.resolve_db_path(Path.cwd()))
    database.ensure_schema()
    return database


def _open_settings(db: Optional[Path]) -> SettingsCache:
    settings = SettingsCache(_open_database(db))
    settings.initialize()
    return settings


def _mask(key: str, value: str) -> str:
    if key in SECRET_KEYS and value:
        return value[:3] + "..." + value[-4:] if len(value) > 8 else "****"
    return value


def _preview(capture) -> str:
    if isinstance(capture, TextCapture):
        return escape(capture.plain.replace("\n", " ")[:80])
    if isinstance(capture, ImageCapture):
        return f"<image {capture.width}x{capture.height}>"
    raise TypeError(f"Unsupported capture type: {type(capture).__name__}")


@app.command()
def run(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    workers: int = typer.Option(AppConfig().max_workers, help="Concurrent enrichment cycles"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Start the background agent and listen for the global hotkey."""
    log_file = setup_logging(verbose)
    config = AppConfig(db_path=db, max_workers=workers)
    agent = CaptureAgent(config)
    agent.events.subscribe(CLIP_SAVED, lambda _: console.print("[green]Clip saved.[/green]"))
    console.print(
        f"Listening on [bold]{agent.settings.global_hotkey()}[/bold] "
        f"(database: {agent.database.db_path}, log: {log_file})"
    )
    try:
        agent.run_forever()
    except (InvalidHotkeySpec, HotkeyRegistrationError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)


@app.command()
def capture(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Run a single capture cycle right now, without waiting for the hotkey."""
    _setup_logging(verbose)
    agent = CaptureAgent(AppConfig(db_path=db))
    try:
        cycle = agent.orchestrator.run_cycle()
    finally:
        agent.orchestrator.shutdown()

    if cycle.record is None:
        console.print("[yellow]Nothing captured.[/yellow]")
        raise typer.Exit(code=1)
    record = cycle.record
    tags = escape(', '.join(record.tags or ()))
    console.print(f"Saved clip {record.id} as [bold]{escape(record.category)}[/bold] ({tags})")
    if record.summary:
        console.print(escape(record.summary))


@app.command("list")
def list_clips(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    limit: int = typer.Option(20, help="Number of clips to display"),
) -> None:
    """Show stored clips, newest first."""
    store = PersistenceStore(_open_database(db))
    try:
        records = store.list_records()
    except PersistenceFailure as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    if not records:
        console.print("[yellow]No clips stored yet.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("ID")
    table.add_column("Created")
    table.add_column("Category")
    table.add_column("Tags")
    table.add_column("Content")

    for record in records[:limit]:
        table.add_row(
            record.id,
            record.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            escape(record.category or ""),
            escape(", ".join(record.tags or ())),
            _preview(record.capture),
        )
    console.print(table)


@app.command()
def delete(
    record_id: str = typer.Argument(..., help="Clip identifier"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Delete a stored clip by id."""
    store = PersistenceStore(_open_database(db))
    try:
        store.delete(record_id)
    except RecordNotFound:
        console.print(f"[red]Item not found: {record_id}[/red]")
        raise typer.Exit(code=1)
    except PersistenceFailure as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    console.print(f"Deleted clip {record_id}.")


@settings_app.command("get")
def settings_get(
    key: str = typer.Argument(..., help="Setting key"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Print one setting."""
    value = _open_settings(db).get(key)
    if value is None:
        console.print(f"[yellow]{key} is not set.[/yellow]")
        raise typer.Exit(code=1)
    console.print(escape(_mask(key, value)))


@settings_app.command("set")
def settings_set(
    key: str = typer.Argument(..., help="Setting key"),
    value: str = typer.Argument(..., help="New value"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Store a setting."""
    if key == GLOBAL_HOTKEY:
        try:
            parse_hotkey(value)
        except InvalidHotkeySpec as exc:
            raise typer.BadParameter(f"Invalid hotkey format: {exc}") from exc
    try:
        _open_settings(db).set(key, value)
    except SettingsStoreFailure as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    console.print(f"Saved {key}.")


@settings_app.command("list")
def settings_list(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Show every stored setting."""
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Key")
    table.add_column("Value")
    for key, value in sorted(_open_settings(db).list_all().items()):
        table.add_row(escape(key), escape(_mask(key, value)))
    console.print(table)


@hotkey_app.command("show")
def hotkey_show(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Print the configured capture hotkey."""
    console.print(_open_settings(db).global_hotkey())


@hotkey_app.command("test")
def hotkey_test(spec: str = typer.Argument(..., help="Accelerator, e.g. Control+Shift+S")) -> None:
    """Check that an accelerator string parses."""
    try:
        binding = parse_hotkey(spec)
    except InvalidHotkeySpec as exc:
        console.print(f"[red]Invalid hotkey: {exc}[/red]")
        raise typer.Exit(code=1)
    modifiers = ", ".join(sorted(m.value for m in binding.modifiers)) or "none"
    console.print(f"OK: key {binding.key}, modifiers {modifiers}")


@hotkey_app.command("set")
def hotkey_set(
    spec: str = typer.Argument(..., help="Accelerator, e.g. Alt+F9"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Store a new capture hotkey; a running agent picks it up on restart."""
    try:
        parse_hotkey(spec)
    except InvalidHotkeySpec as exc:
        console.print(f"[red]Invalid hotkey format: {exc}[/red]")
        raise typer.Exit(code=1)
    try:
        _open_settings(db).set(GLOBAL_HOTKEY, spec)
    except SettingsStoreFailure as exc:
        console.print(f"[red]Failed to save hotkey: {exc}[/red]")
        raise typer.Exit(code=1)
    console.print(f"Hotkey set to [bold]{spec}[/bold].")

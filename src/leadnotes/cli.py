from __future__ import annotations

import logging
from pathlib import Path
from typing import NoReturn, Optional

from dotenv import load_dotenv

load_dotenv()

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from leadnotes.client import NotesBackend, create_backend
from leadnotes.config import load_settings
from leadnotes.errors import NotesError
from leadnotes.export import SORT_FIELDS, filter_notes, notes_to_csv
from leadnotes.models import DEFAULT_STATUS, STATUSES

app = typer.Typer(help="Lead Notes — CRM notes for discovered businesses")
console = Console()

_STATUS_STYLES = {
    "new": "dim",
    "contacted": "blue",
    "follow_up": "yellow",
    "won": "green",
    "lost": "red",
}


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _backend() -> NotesBackend:
    return create_backend(load_settings())


def _fail(exc: NotesError) -> NoReturn:
    console.print(f"[red]Error:[/red] {exc.message}")
    raise typer.Exit(code=1)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Host to bind to"),
    port: int = typer.Option(8000, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """Start the notes web server."""
    import uvicorn

    uvicorn.run("leadnotes.web:create_app", host=host, port=port, reload=reload, factory=True)


@app.command("list")
def list_notes(
    search: str = typer.Option("", help="Match name, address, place id or note text"),
    status: str = typer.Option("all", help="Only notes with this status"),
    sort: str = typer.Option("updated", help=f"Sort by: {', '.join(SORT_FIELDS)}"),
    asc: bool = typer.Option(False, help="Sort ascending"),
) -> None:
    """Show saved notes."""
    try:
        notes = _backend().list_notes()
    except NotesError as exc:
        _fail(exc)

    notes = filter_notes(notes, search=search, status=status, sort_by=sort, ascending=asc)
    if not notes:
        console.print("[yellow]No notes yet.[/yellow]")
        return

    table = Table(title="Notes")
    table.add_column("Place ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Address")
    table.add_column("Status")
    table.add_column("Updated", style="yellow")
    for n in notes:
        st = n.get("status") or DEFAULT_STATUS
        table.add_row(
            n.get("placeId", ""),
            n.get("name") or "—",
            n.get("address") or "—",
            f"[{_STATUS_STYLES.get(st, 'white')}]{st}[/]",
            n.get("updatedAt") or "—",
        )
    console.print(table)


@app.command()
def show(place_id: str = typer.Argument(..., help="Place id of the note")) -> None:
    """Show one note."""
    try:
        note = _backend().get_note(place_id)
    except NotesError as exc:
        _fail(exc)

    if not note:
        console.print(f"[yellow]No note for {place_id}.[/yellow]")
        return
    console.print(f"[bold cyan]{note.get('name') or place_id}[/bold cyan]  [dim]{place_id}[/dim]")
    if note.get("address"):
        console.print(note["address"], markup=False)
    console.print(f"Status: {note.get('status') or DEFAULT_STATUS}   Updated: {note.get('updatedAt') or '—'}")
    if note.get("note"):
        console.print()
        console.print(note["note"], markup=False)


@app.command("set")
def set_note(
    place_id: str = typer.Argument(..., help="Place id of the note"),
    name: str = typer.Option("", help="Business name"),
    address: str = typer.Option("", help="Business address"),
    note: str = typer.Option("", help="Note text"),
    status: str = typer.Option(DEFAULT_STATUS, help=f"One of: {', '.join(STATUSES)}"),
) -> None:
    """Create or replace the note for a place."""
    data = {"placeId": place_id, "name": name, "address": address, "note": note, "status": status}
    try:
        record = _backend().upsert_note(data)
    except NotesError as exc:
        _fail(exc)
    console.print(f"[green]Saved[/green] {record['placeId']} ({record['status']}) at {record['updatedAt']}")


@app.command()
def delete(place_id: str = typer.Argument(..., help="Place id of the note")) -> None:
    """Delete the note for a place."""
    try:
        _backend().delete_note(place_id)
    except NotesError as exc:
        _fail(exc)
    console.print(f"[green]Deleted[/green] {place_id}")


@app.command()
def export(
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write CSV here instead of stdout"),
    search: str = typer.Option("", help="Match name, address, place id or note text"),
    status: str = typer.Option("all", help="Only notes with this status"),
) -> None:
    """Export notes as CSV."""
    try:
        notes = _backend().list_notes()
    except NotesError as exc:
        _fail(exc)

    text = notes_to_csv(filter_notes(notes, search=search, status=status))
    if output is None:
        typer.echo(text, nl=False)
        return
    output.write_text(text, encoding="utf-8")
    console.print(f"[green]Wrote[/green] {output}")

"""tgportal CLI: inspect persisted portals."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from tgportal.config import get_config
from tgportal.db.engine import Database

app = typer.Typer(
    name="tgportal",
    help="tgportal — Telegram ↔ Matrix portal store",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()


async def _open_db() -> Database:
    config = get_config()
    db = Database(
        config.data_dir,
        journal_mode=config.db_journal_mode,
        busy_timeout_ms=config.db_busy_timeout_ms,
    )
    await db.initialize()
    return db


async def _list_entries() -> list[dict[str, Any]]:
    db = await _open_db()
    try:
        return await db.portal_list()
    finally:
        await db.close()


async def _get_entry(room_id: str) -> dict[str, Any] | None:
    db = await _open_db()
    try:
        return await db.portal_get_by_room(room_id)
    finally:
        await db.close()


@app.command()
def portals() -> None:
    """List stored portals."""
    entries = asyncio.run(_list_entries())
    if not entries:
        console.print("[dim]No portals stored.[/dim]")
        return

    table = Table(title="Portals")
    table.add_column("Kind", style="cyan")
    table.add_column("Telegram ID")
    table.add_column("Receiver")
    table.add_column("Title")
    table.add_column("Room", style="green")
    for entry in entries:
        peer = entry["data"].get("peer") or {}
        table.add_row(
            str(peer.get("type", "?")),
            str(entry["id"]),
            str(entry["receiverID"]),
            str(peer.get("title") or ""),
            entry["roomID"] or "[dim]not created[/dim]",
        )
    console.print(table)


@app.command()
def show(room_id: str = typer.Argument(..., help="Matrix room ID of the portal")) -> None:
    """Print the stored entry of the portal bridged to ROOM_ID."""
    entry = asyncio.run(_get_entry(room_id))
    if entry is None:
        console.print(f"[red]No portal for room {room_id}[/red]")
        raise typer.Exit(code=1)
    console.print_json(json.dumps(entry))


if __name__ == "__main__":
    app()

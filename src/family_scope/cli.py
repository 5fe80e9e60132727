"""CLI interface for Family Scope."""

import asyncio
import json
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import ScopeSettings, get_settings
from .graph import (
    DirectionPolicy,
    InvalidArgument,
    RelationKind,
    ScopeResolver,
    SQLiteEdgeStore,
    StoreUnavailable,
)
from .logging import configure_logging

app = typer.Typer(
    name="family-scope",
    help="Bounded relation-scope resolution over a family graph",
    add_completion=False,
)
console = Console()

EXIT_INVALID_ARGUMENT = 2
EXIT_STORE_UNAVAILABLE = 3


def _load(db: Path | None) -> tuple[ScopeSettings, SQLiteEdgeStore]:
    try:
        settings = get_settings()
    except ValidationError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        raise typer.Exit(EXIT_INVALID_ARGUMENT)
    configure_logging(settings.log_level)
    db_path = db or settings.db_path
    try:
        store = SQLiteEdgeStore(db_path)
    except StoreUnavailable as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(EXIT_STORE_UNAVAILABLE)
    return settings, store


def _resolver(settings: ScopeSettings, store: SQLiteEdgeStore) -> ScopeResolver:
    return ScopeResolver(
        store,
        batch_size=settings.batch_size,
        max_concurrent_batches=settings.max_concurrent_batches,
        timeout=settings.timeout_seconds,
    )


def _fail(error: Exception) -> None:
    console.print(f"[red]Error: {error}[/red]")
    if isinstance(error, InvalidArgument):
        raise typer.Exit(EXIT_INVALID_ARGUMENT)
    raise typer.Exit(EXIT_STORE_UNAVAILABLE)


@app.command()
def link(
    user_id: str = typer.Argument(..., help="Entity the relation starts from"),
    related_user_id: str = typer.Argument(..., help="Entity the relation points to"),
    kind: RelationKind = typer.Argument(..., help="USER is KIND of RELATED"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
):
    """Link two entities, recording the relation and its inverse."""
    _, store = _load(db)
    try:
        forward, inverse = store.link(user_id, related_user_id, kind)
    except (InvalidArgument, StoreUnavailable) as e:
        _fail(e)

    console.print(
        f"[green]Linked {forward.source_id} -{forward.kind.value}-> {forward.target_id} "
        f"and {inverse.source_id} -{inverse.kind.value}-> {inverse.target_id}[/green]"
    )


@app.command()
def scope(
    root_id: str = typer.Argument(..., help="Root entity id"),
    direction: DirectionPolicy = typer.Option(DirectionPolicy.BOTH, "--direction", "-d", help="Direction policy"),
    max_depth: int = typer.Option(2, "--max-depth", "-m", help="Maximum traversal depth"),
    node_cap: int = typer.Option(None, "--node-cap", "-n", help="Maximum number of members"),
    exclude_self: bool = typer.Option(False, "--exclude-self", help="Leave the root out of the result"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw response as JSON"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
):
    """Resolve the members reachable from ROOT_ID."""
    settings, store = _load(db)
    resolver = _resolver(settings, store)

    try:
        result = asyncio.run(
            resolver.resolve_scope(
                root_id,
                direction,
                max_depth=max_depth,
                include_self=not exclude_self,
                node_cap=node_cap if node_cap is not None else settings.node_cap,
            )
        )
    except (InvalidArgument, StoreUnavailable) as e:
        _fail(e)

    if as_json:
        console.print_json(json.dumps(result.to_response()))
        return

    table = Table(title=f"Scope of {root_id} ({direction.value})")
    table.add_column("#", style="dim")
    table.add_column("Member")
    for i, member in enumerate(result.members, start=1):
        table.add_row(str(i), member)
    console.print(table)

    status = "[yellow]truncated[/yellow]" if result.truncated else "[green]complete[/green]"
    console.print(
        Panel(
            f"Members: {result.member_count}\n"
            f"Depth reached: {result.depth_reached}\n"
            f"Status: {status}",
            title="Summary",
        )
    )


@app.command()
def preview(
    root_id: str = typer.Argument(..., help="Root entity id"),
    direction: DirectionPolicy = typer.Option(DirectionPolicy.BOTH, "--direction", "-d", help="Direction policy"),
    max_depth: int = typer.Option(2, "--max-depth", "-m", help="Maximum traversal depth"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
):
    """Estimate how many members the scope of ROOT_ID holds."""
    settings, store = _load(db)
    resolver = _resolver(settings, store)

    try:
        result = asyncio.run(
            resolver.preview(
                root_id,
                direction,
                max_depth=max(1, max_depth),
                node_cap=settings.node_cap,
            )
        )
    except (InvalidArgument, StoreUnavailable) as e:
        _fail(e)

    console.print_json(result.model_dump_json())


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()

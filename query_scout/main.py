"""Command-line entry point for Query Scout."""

from __future__ import annotations

import asyncio
import json
from typing import Awaitable, Callable, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from query_scout import __version__
from query_scout.config import Config
from query_scout.exceptions import QueryScoutError, StepBudgetExhaustedError
from query_scout.gatekeeper import Executed, ExecutionVerdict, NoStatementFound, Quarantined
from query_scout.logging import configure_logging
from query_scout.memory import MemoryStore
from query_scout.orchestrator import GenerationEvent, GenerationEventType, log_generation_event
from query_scout.service import QueryService

T = TypeVar("T")

app = typer.Typer(help="Query Scout - natural language to SQL with guarded execution")
memory_app = typer.Typer(help="Read and write persistent memory")
app.add_typer(memory_app, name="memory")

console = Console()
err_console = Console(stderr=True)


def _load_config(config_path: str, verbose: bool = False) -> Config:
    cfg = Config.load(config_path or None)
    if verbose:
        cfg.logging.level = "DEBUG"
    configure_logging(cfg)
    return cfg


def _print_event(event: GenerationEvent) -> None:
    """Show lifecycle events while a generation runs."""
    if event.type == GenerationEventType.TOOL_CALL_STARTED:
        err_console.print(f"[dim]step {event.step}[/dim] -> {event.tool_name} {json.dumps(event.arguments, default=str)}")
    elif event.type == GenerationEventType.TOOL_CALL_FINISHED:
        ok = bool((event.result or {}).get("success"))
        err_console.print(f"[dim]step {event.step}[/dim] <- {event.tool_name} {'ok' if ok else '[red]failed[/red]'}")


def _run(work: Callable[[], Awaitable[T]]) -> T:
    try:
        return asyncio.run(work())
    except StepBudgetExhaustedError as e:
        err_console.print(f"[red]Error:[/red] {e} (raise generation.max_steps to allow more exploration)")
        raise typer.Exit(code=1)
    except QueryScoutError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)


def _render_verdict(verdict: ExecutionVerdict) -> None:
    if isinstance(verdict, NoStatementFound):
        err_console.print("[yellow]No SQL statement found in the model's answer.[/yellow]")
        if verdict.text:
            console.print(verdict.text)
        return
    if isinstance(verdict, Quarantined):
        err_console.print("[bold red]NOT EXECUTED[/bold red]")
        console.print(verdict.render(), style="red", markup=False, highlight=False)
        return
    if isinstance(verdict, Executed):
        console.print(f"[bold]{verdict.statement}[/bold]")
        table = Table(show_header=True, header_style="bold")
        for column in verdict.columns:
            table.add_column(column)
        for row in verdict.rows:
            table.add_row(*["NULL" if value is None else str(value) for value in row])
        console.print(table)
        suffix = " (truncated)" if verdict.truncated else ""
        console.print(f"[dim]{verdict.row_count} row(s){suffix}[/dim]")


@app.command()
def generate(
    request: str = typer.Argument(..., help="What you want to know, in plain language"),
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Show tool calls and debug logging"),
) -> None:
    """Generate a statement for REQUEST and run it if it is read-only."""
    cfg = _load_config(config, verbose)

    async def work() -> ExecutionVerdict:
        observers = [log_generation_event, _print_event] if verbose else [log_generation_event]
        service = QueryService.from_config(cfg, observers=observers)
        try:
            return await service.generate_query(request)
        finally:
            await service.close()

    _render_verdict(_run(work))


@app.command()
def explain(
    subject: str = typer.Argument("", help="Statement or error text; defaults to the last generated statement"),
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Show tool calls and debug logging"),
) -> None:
    """Explain a statement or error in plain language."""
    cfg = _load_config(config, verbose)

    async def work() -> str:
        observers = [_print_event] if verbose else []
        service = QueryService.from_config(cfg, observers=observers)
        try:
            return await service.explain(subject)
        finally:
            await service.close()

    console.print(_run(work))


@app.command()
def ping(
    name: str = typer.Argument("there", help="Name to greet"),
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
) -> None:
    """Check connectivity by asking the model for a greeting."""
    cfg = _load_config(config)

    async def work() -> str:
        service = QueryService.from_config(cfg)
        try:
            return await service.greet(name)
        finally:
            await service.close()

    console.print(_run(work))


@memory_app.command("get")
def memory_get(
    category: str = typer.Argument(...),
    key: str = typer.Argument(...),
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
) -> None:
    """Print a stored memory value."""
    cfg = _load_config(config)

    async def work():
        store = MemoryStore(cfg.memory.path)
        try:
            return await store.get(category, key)
        finally:
            await store.close()

    entry = _run(work)
    if entry is None:
        err_console.print(f"[yellow]No memory stored for {category}/{key}[/yellow]")
        raise typer.Exit(code=1)
    console.print(entry.value)
    if entry.notes:
        console.print(f"[dim]{entry.notes}[/dim]")


@memory_app.command("set")
def memory_set(
    category: str = typer.Argument(...),
    key: str = typer.Argument(...),
    value: str = typer.Argument(...),
    notes: str = typer.Option("", "--notes", help="Optional notes"),
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
) -> None:
    """Store a memory value."""
    cfg = _load_config(config)

    async def work():
        store = MemoryStore(cfg.memory.path)
        try:
            return await store.set(category, key, value, notes=notes or None)
        finally:
            await store.close()

    entry = _run(work)
    console.print(f"Stored {entry.category}/{entry.key}")


@memory_app.command("list")
def memory_list(
    category: str = typer.Option("", "--category", help="Only this category"),
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
) -> None:
    """List stored memory entries."""
    cfg = _load_config(config)

    async def work():
        store = MemoryStore(cfg.memory.path)
        try:
            return await store.list_entries(category or None)
        finally:
            await store.close()

    entries = _run(work)
    table = Table("Category", "Key", "Value", "Updated")
    for entry in entries:
        table.add_row(entry.category, entry.key, entry.value, entry.updated_at)
    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"Query Scout v{__version__}")


if __name__ == "__main__":
    app()

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer
from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from .client import OpenCodeClient
from .config import CONFIG_DIR, ClientOptions, load_options, save_default_options
from .events import DecodeFailure
from .exceptions import ConnectionError, OpenCodeClientError
from .models import GlobalEvent

app = typer.Typer(add_completion=False, context_settings={"help_option_names": ["-h", "--help"]})
console = Console()

EVENT_STYLES = {
    "session": "cyan",
    "message": "green",
    "todo": "yellow",
    "file": "magenta",
}


def _options(ctx: typer.Context) -> ClientOptions:
    return ctx.obj["options"]


def _event_style(event_type: str) -> str:
    return EVENT_STYLES.get(event_type.split(".", 1)[0], "blue")


def print_event(event: GlobalEvent) -> None:
    style = _event_style(event.type)
    timestamp = datetime.now().strftime("%H:%M:%S")
    console.print(f"[dim]{timestamp}[/dim] [{style}]{event.type}[/{style}] [dim]{event.directory}[/dim]")
    if event.payload.data is not None:
        console.print(f"  [dim]{json.dumps(event.payload.data, default=str)[:200]}[/dim]")


def _report(e: OpenCodeClientError, options: ClientOptions) -> None:
    console.print(f"[red]Error:[/red] {e.message}")
    if isinstance(e, ConnectionError):
        console.print(f"[dim]Is the server running at {options.base_url}? Try: opencode serve --port 4096[/dim]")


@app.callback()
def main(
    ctx: typer.Context,
    url: Annotated[str | None, typer.Option("--url", "-u", help="OpenCode server URL")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    """Command-line client for an OpenCode server."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    options = load_options()
    if url:
        options.base_url = url
    ctx.obj = {"options": options}


@app.command(help="Write the default configuration file")
def init() -> None:
    path = save_default_options()
    console.print(f"[green]Config file: {path}[/green]")


@app.command(help="Stream global events until interrupted")
def events(
    ctx: typer.Context,
    timeout: Annotated[float | None, typer.Option("--timeout", help="Stop after this many seconds")] = None,
) -> None:
    """Print events from the server's global event stream."""
    options = _options(ctx)

    def on_decode_error(failure: DecodeFailure) -> None:
        console.print(f"[yellow]Skipped malformed event: {failure.payload[:80]}[/yellow]")

    async def run() -> int:
        count = 0
        async with OpenCodeClient(options) as client, client.create_event_stream(on_decode_error) as stream:
            if timeout is not None:
                asyncio.get_running_loop().call_later(timeout, stream.stop)
            async for event in stream:
                print_event(event)
                count += 1
        return count

    console.print(f"[bold]Listening for events on {options.base_url}[/bold] [dim](Ctrl+C to stop)[/dim]")
    try:
        count = asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Event stream stopped[/yellow]")
        return
    except OpenCodeClientError as e:
        _report(e, options)
        raise typer.Exit(code=1) from None
    console.print(f"[dim]Event stream ended after {count} events[/dim]")


@app.command(help="List sessions")
def sessions(
    ctx: typer.Context,
    directory: Annotated[str | None, typer.Option("--directory", "-d", help="Filter by working directory")] = None,
) -> None:
    options = _options(ctx)

    async def run():
        async with OpenCodeClient(options) as client:
            return await client.list_sessions(directory=directory)

    try:
        items = asyncio.run(run()) or []
    except OpenCodeClientError as e:
        _report(e, options)
        raise typer.Exit(code=1) from None

    if not items:
        console.print("[yellow]No sessions found[/yellow]")
        return

    table = Table(title="Sessions")
    table.add_column("ID", style="cyan")
    table.add_column("Title", style="green")
    table.add_column("Directory", style="magenta")
    table.add_column("Updated", style="blue")
    for s in items:
        updated = ""
        if s.time and s.time.updated:
            updated = datetime.fromtimestamp(s.time.updated / 1000).strftime("%Y-%m-%d %H:%M")
        table.add_row(s.id, s.title or "", s.directory or "", updated)
    console.print(table)


@app.command(help="List todos of a session")
def todos(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session ID")],
) -> None:
    options = _options(ctx)

    async def run():
        async with OpenCodeClient(options) as client:
            return await client.get_todos(session_id)

    try:
        items = asyncio.run(run()) or []
    except OpenCodeClientError as e:
        _report(e, options)
        raise typer.Exit(code=1) from None
    _print_todos(items)


def _print_todos(items) -> None:
    if not items:
        console.print("[yellow]No todos[/yellow]")
        return
    table = Table(title="Todos")
    table.add_column("Status", style="yellow")
    table.add_column("Priority", style="magenta")
    table.add_column("Content", style="green")
    for t in items:
        table.add_row(t.status, t.priority, t.content)
    console.print(table)


@app.command(help="Create a session and chat with it interactively")
def chat(
    ctx: typer.Context,
    title: Annotated[str | None, typer.Option("--title", help="Session title")] = None,
) -> None:
    options = _options(ctx)
    asyncio.run(_chat(options, title))


async def _chat(options: ClientOptions, title: str | None) -> None:
    async with OpenCodeClient(options) as client:
        try:
            session = await client.create_session(
                title or f"Example Session - {datetime.now():%Y-%m-%d %H:%M:%S}"
            )
        except OpenCodeClientError as e:
            _report(e, options)
            raise typer.Exit(code=1) from None
        if session is None:
            raise typer.Exit(code=1)

        console.print(f"[green]Session created: {session.id}[/green]")
        console.print("[dim]Commands: 'exit' to quit, 'todos' to show todos[/dim]")
        console.print()

        history_file = Path(CONFIG_DIR) / "history.txt"
        history_file.parent.mkdir(parents=True, exist_ok=True)
        prompt_session: PromptSession[str] = PromptSession(history=FileHistory(str(history_file)))

        while True:
            try:
                user_input = (await prompt_session.prompt_async("You: ")).strip()
            except (EOFError, KeyboardInterrupt):
                break

            if not user_input:
                continue
            if user_input.lower() in ["exit", "quit", "q"]:
                break
            if user_input.lower() == "todos":
                try:
                    _print_todos(await client.get_todos(session.id))
                except OpenCodeClientError as e:
                    _report(e, options)
                continue

            try:
                with console.status("Thinking..."):
                    reply = await client.send_prompt(session.id, user_input)
            except OpenCodeClientError as e:
                _report(e, options)
                continue
            if reply is not None:
                console.print(Panel(Markdown(reply.text or "_(no text)_"), title="Assistant", border_style="cyan"))

        console.print("[green]Goodbye![/green]")


if __name__ == "__main__":
    app()

"""Typer CLI entrypoint for plugin-ipc.

Commands:
  config show     — print the active configuration
  config set      — update host URL, request timeout or log level
  listen          — print events of one name until interrupted
  emit            — send one event
  watch-position  — stream geolocation updates until interrupted
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from typing import Any, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table
from websockets.exceptions import WebSocketException

from . import log_setup
from .config import CONFIG_FILE, Config, load_config, save_config
from .errors import IpcError
from .events import emit as emit_event
from .events import listen as listen_event
from .events import once as once_event
from .models import CommandErr, CommandOk, Event
from .plugins import geolocation
from .transport import WebSocketTransport

app = typer.Typer(
    name="plugin-ipc",
    help="Talk to a plugin host: follow event streams and emit events.",
    add_completion=False,
)
config_app = typer.Typer(help="Show or change the plugin-ipc configuration.")
app.add_typer(config_app, name="config")
console = Console()


def _run(coro: Any) -> None:
    """Run *coro*, mapping transport failures and Ctrl+C to CLI exits."""
    try:
        asyncio.run(coro)
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")
    except (IpcError, OSError, WebSocketException) as exc:
        console.print(f"[red]{type(exc).__name__}:[/red] {exc}")
        raise typer.Exit(1)


def _init_logging(config: Config, verbose: bool) -> None:
    log_setup.init_from_config(config, "cli", foreground=verbose)


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------

@config_app.command("show")
def config_show() -> None:
    """Print the configuration in effect."""
    config = load_config()

    table = Table(title="plugin-ipc config", show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="bold")
    table.add_column("Value")

    table.add_row("Config file", str(CONFIG_FILE) if CONFIG_FILE.exists() else "— (defaults)")
    table.add_row("Host URL", config.host_url)
    table.add_row(
        "Request timeout",
        f"{config.request_timeout:g}s" if config.request_timeout else "none",
    )
    table.add_row("Log level", config.log_level)
    table.add_row("Log dir", str(config.log_dir))

    console.print(table)


@config_app.command("set")
def config_set(
    host_url: Optional[str] = typer.Option(
        None, "--host-url", "-u", help="Host WebSocket URL (e.g. ws://127.0.0.1:18090)"
    ),
    request_timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", help="Seconds to wait for a response; 0 disables"
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG, INFO, …"),
) -> None:
    """Update and save the configuration."""
    config = load_config()
    updates: dict[str, Any] = {}
    if host_url is not None:
        updates["host_url"] = host_url
    if request_timeout is not None:
        updates["request_timeout"] = request_timeout or None
    if log_level is not None:
        updates["log_level"] = log_level.upper()
    if not updates:
        console.print("[yellow]Nothing to change.[/yellow]")
        return

    try:
        config = Config.model_validate({**config.model_dump(), **updates})
    except ValidationError as exc:
        for error in exc.errors():
            field = ".".join(str(part) for part in error["loc"])
            console.print(f"[red]Invalid {field}:[/red] {error['msg']}")
        raise typer.Exit(1)
    save_config(config)
    console.print(f"[green]Config saved to[/green] {CONFIG_FILE}")


# ---------------------------------------------------------------------------
# listen / emit
# ---------------------------------------------------------------------------

@app.command()
def listen(
    event: str = typer.Argument(..., help="Event name, e.g. store://change"),
    target: Optional[str] = typer.Option(None, "--target", help="Only events for this window label"),
    once: bool = typer.Option(False, "--once", help="Exit after the first event"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to the terminal"),
) -> None:
    """Print every EVENT as it arrives."""
    config = load_config()
    _init_logging(config, verbose)
    _run(_listen(config, event, target, once))


async def _listen(config: Config, event: str, target: str | None, once: bool) -> None:
    async with WebSocketTransport.from_config(config) as transport:
        done = asyncio.Event()

        def _print(evt: Event) -> None:
            console.print(
                f"[bold]{evt.event}[/bold] #{evt.id}", json.dumps(evt.payload)
            )
            if once:
                done.set()

        subscribe = once_event if once else listen_event
        unlisten = await subscribe(transport, event, _print, target=target)
        console.print(f"[green]Listening to[/green] {event} (Ctrl+C to stop)")
        try:
            await done.wait()
        finally:
            if not once:
                with contextlib.suppress(IpcError):
                    await unlisten()


@app.command()
def emit(
    event: str = typer.Argument(..., help="Event name"),
    payload: Optional[str] = typer.Argument(None, help="JSON payload"),
    target: Optional[str] = typer.Option(None, "--target", help="Only this window label"),
) -> None:
    """Emit EVENT with an optional JSON PAYLOAD."""
    try:
        data = json.loads(payload) if payload is not None else None
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"PAYLOAD is not valid JSON: {exc}") from exc
    config = load_config()
    _init_logging(config, False)
    _run(_emit(config, event, data, target))
    console.print(f"[green]Emitted[/green] {event}")


async def _emit(config: Config, event: str, data: Any, target: str | None) -> None:
    async with WebSocketTransport.from_config(config) as transport:
        await emit_event(transport, event, data, target=target)


# ---------------------------------------------------------------------------
# watch-position
# ---------------------------------------------------------------------------

@app.command("watch-position")
def watch_position(
    high_accuracy: bool = typer.Option(False, "--high-accuracy", help="Ask for GPS-grade fixes"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to the terminal"),
) -> None:
    """Print position updates until interrupted."""
    config = load_config()
    _init_logging(config, verbose)
    _run(_watch_position(config, high_accuracy))


async def _watch_position(config: Config, high_accuracy: bool) -> None:
    async with WebSocketTransport.from_config(config) as transport:

        def _print(update: geolocation.Position | str) -> None:
            if isinstance(update, str):
                console.print(f"[red]error:[/red] {update}")
                return
            c = update.coords
            console.print(
                f"{update.timestamp}  lat={c.latitude:.6f} lon={c.longitude:.6f} "
                f"±{c.accuracy:.0f}m"
            )

        options = geolocation.PositionOptions(enable_high_accuracy=high_accuracy)
        watch_id = await geolocation.watch_position(transport, options, _print)
        console.print("[green]Watching position[/green] (Ctrl+C to stop)")
        try:
            await asyncio.Event().wait()
        finally:
            with contextlib.suppress(IpcError):
                match await geolocation.clear_watch(transport, watch_id):
                    case CommandOk():
                        pass
                    case CommandErr(error=error):
                        console.print(f"[yellow]clear_watch failed: {error}[/yellow]")

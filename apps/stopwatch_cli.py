from __future__ import annotations

import signal
import threading
import time
from pathlib import Path
from typing import Any, Callable, List, Optional

import typer

from core.timing.stopwatch import start_link
from plugins.announcers.jsonl.impl import JsonlAnnouncer
from sdk.config import SDK_CONFIG
from sdk.registry import REGISTRY
from sdk.ids import new_ulid
from sdk.logging import configure_logging
from sdk.runtime import ActorStoppedError


app = typer.Typer(add_completion=False, no_args_is_help=True)


def _fan_out(sinks: List[Callable[[dict], Any]]) -> Callable[[dict], None]:
    def announce(snapshot: dict) -> None:
        for sink in sinks:
            sink(snapshot)
    return announce


@app.command()
def run(
    resolution: int = typer.Option(SDK_CONFIG.default_resolution_ms, min=1, help="Milliseconds per tick"),
    duration: Optional[float] = typer.Option(None, min=0.0, help="Stop after N seconds (default: until Ctrl+C)"),
    announcer: str = typer.Option("echo", help="Announcer plugin: echo | jsonl | null"),
    events: Optional[Path] = typer.Option(None, "--events", help="Also append announcements to this JSONL file"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print full state changes, not every tick"),
    log_level: str = typer.Option("WARNING", "--log-level", help="Diagnostic log level"),
) -> None:
    """Run a stopwatch in the terminal."""

    configure_logging(log_level)
    stopwatch_id = new_ulid()

    kwargs = {"ticks": not quiet} if announcer == "echo" else {}
    try:
        primary = REGISTRY.announcer(announcer, stopwatch_id, **kwargs)
    except (ImportError, AttributeError):
        typer.echo(f"[stopwatch] unknown announcer '{announcer}'", err=True)
        raise typer.Exit(code=2)
    sinks: List[Any] = [primary]
    if events is not None:
        sinks.append(JsonlAnnouncer(stopwatch_id, path=events))

    stopwatch = start_link(actor_id=stopwatch_id, resolution=resolution, announcer=_fan_out(sinks))
    stopwatch.go()

    # Graceful shutdown
    stop_event = threading.Event()

    def _stop(*_object: object) -> None:
        stop_event.set()

    previous = {sig: signal.signal(sig, _stop) for sig in (signal.SIGINT, signal.SIGTERM)}
    if duration is None:
        typer.echo("Press Ctrl+C to stop.")
    deadline = None if duration is None else time.monotonic() + duration
    try:
        while not stop_event.is_set():
            wait_for = 0.25 if deadline is None else min(0.25, deadline - time.monotonic())
            if wait_for <= 0:
                break
            stop_event.wait(wait_for)
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
        ticks = None
        try:
            stopwatch.stop()
            ticks = stopwatch.time()
        except ActorStoppedError:
            typer.echo(f"[stopwatch] stopwatch crashed: {stopwatch.crash_reason!r}", err=True)
        finally:
            stopwatch.terminate()
            for sink in sinks:
                if hasattr(sink, "close"):
                    sink.close()

    if ticks is None:
        raise typer.Exit(code=1)
    typer.echo(f"[stopwatch] final ticks={ticks} msec={ticks * resolution}")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address"),
    port: int = typer.Option(8000, help="Bind port"),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Serve the HTTP API with uvicorn."""

    import uvicorn

    configure_logging(log_level)
    uvicorn.run("apps.ui_api.main:app", host=host, port=port, log_level=log_level.lower())


if __name__ == "__main__":
    app()

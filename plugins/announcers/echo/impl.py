from __future__ import annotations
import typer

class EchoAnnouncer:
    """Print announcements to the terminal; tick-only ones can be skipped."""
    def __init__(self, stopwatch_id: str = "", *, ticks: bool = True, err: bool = False):
        self.stopwatch_id = stopwatch_id
        self.ticks = ticks
        self.err = err

    def format(self, snapshot: dict) -> str:
        label = f"[stopwatch {self.stopwatch_id[-6:]}]" if self.stopwatch_id else "[stopwatch]"
        if "resolution" in snapshot:
            state = "running" if snapshot["running"] else "stopped"
            return (f"{label} {state} ticks={snapshot['ticks']} "
                    f"resolution={snapshot['resolution']}ms msec={snapshot['msec']}")
        return f"{label} ticks={snapshot['ticks']} msec={snapshot['msec']}"

    def __call__(self, snapshot: dict) -> None:
        if "resolution" not in snapshot and not self.ticks:
            return
        typer.echo(self.format(snapshot), err=self.err)

    def close(self) -> None:
        pass

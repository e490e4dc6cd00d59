from __future__ import annotations
from pathlib import Path
from typing import Optional

from config.paths import get_paths
from core.events import Event, announcement_event, event_dump
from sdk.logging import JsonlWriter


class JsonlAnnouncer:
    """Append every announcement to ``<data_root>/stopwatches/<id>/events.jsonl``."""

    def __init__(self, stopwatch_id: str, path: Optional[Path] = None, flush_every: int = 1):
        self.stopwatch_id = stopwatch_id
        self.path = Path(path) if path is not None else get_paths().stopwatch_events_path(stopwatch_id)
        self.writer = JsonlWriter(self.path, flush_every=flush_every)
        self._meta("opened")

    def _meta(self, status: str) -> None:
        event = Event(kind="meta", stopwatch=self.stopwatch_id, data={"status": status})
        self.writer.write(event_dump(event))

    def __call__(self, snapshot: dict) -> None:
        self.writer.write(event_dump(announcement_event(self.stopwatch_id, snapshot)))

    def close(self) -> None:
        if self.writer.closed:
            return
        self._meta("closed")
        self.writer.close()

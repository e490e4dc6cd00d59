"""Event models written by announcer sinks."""

from __future__ import annotations

from typing import Any, Dict, Literal, Mapping

import time

import ulid
from pydantic import BaseModel, Field


def now_ts_ms() -> int:
    """Return the current timestamp in milliseconds."""

    return int(time.time() * 1000)


def new_event_id() -> str:
    """Generate a ULID based identifier for events."""

    return str(ulid.new())


EventKind = Literal["state", "tick", "meta"]


class Event(BaseModel):
    """Canonical event model for stopwatch announcements."""

    id: str = Field(default_factory=new_event_id)
    ts_ms: int = Field(default_factory=now_ts_ms)
    kind: EventKind
    stopwatch: str
    data: Dict[str, Any] = Field(default_factory=dict)


def announcement_kind(snapshot: Mapping[str, Any]) -> EventKind:
    """Full snapshots carry ``resolution``; tick-only ones do not."""

    return "state" if "resolution" in snapshot else "tick"


def announcement_event(stopwatch: str, snapshot: Mapping[str, Any]) -> Event:
    """Wrap an announcer snapshot into an :class:`Event`."""

    return Event(kind=announcement_kind(snapshot), stopwatch=stopwatch, data=dict(snapshot))


def event_dump(event: Event) -> Dict[str, Any]:
    """Return a serialisable representation of ``event``.

    Prefers the pydantic v2 ``model_dump`` API and falls back to ``dict`` on
    v1 installs, so call sites always get a plain ``dict``.
    """

    if hasattr(event, "model_dump"):
        return event.model_dump()  # type: ignore[return-value]
    return event.dict()  # type: ignore[return-value]


__all__ = [
    "Event",
    "EventKind",
    "announcement_event",
    "announcement_kind",
    "event_dump",
    "now_ts_ms",
    "new_event_id",
]

"""
Stopwatch actor.

Counts ticks of ``resolution`` milliseconds while running and announces its
state to a callback on every state-affecting transition. Besides the plain
commands (``go``/``stop``/``clear``/``time``) it accepts hub-style change
requests: an ordered list of ``(key, value)`` pairs for ``running``,
``ticks`` and ``resolution``. Unrecognised pairs are ignored.

Two announcement shapes reach the announcer:

- full: ``{"ticks", "resolution", "running", "msec"}`` on start, commands
  and effective hub changes
- tick-only: ``{"ticks", "msec"}`` from the periodic tick

The announcer runs inline on the actor thread, so a slow announcer delays
every later message. Callers that need isolation should hand the snapshot
off to their own queue.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple, Union

from sdk.config import SDK_CONFIG
from sdk.runtime import Actor

from .scheduler import ThreadingScheduler, TimerRef

logger = logging.getLogger(__name__)

DEFAULT_RESOLUTION_MS = 10
PUBLIC_STATE_KEYS = ("ticks", "resolution", "running")
START_OPTIONS = ("initializer", "ticks", "running", "resolution", "announcer")

Snapshot = Dict[str, Any]
Announcer = Callable[[Snapshot], Any]


class TimerInvariantError(AssertionError):
    """The scheduler refused to cancel a timer this stopwatch holds."""


def _no_announce(_snapshot: Snapshot) -> None:
    return None


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class StopwatchState:
    ticks: int = 0
    resolution: int = DEFAULT_RESOLUTION_MS
    running: bool = False
    timer_ref: Optional[TimerRef] = None
    announcer: Announcer = field(default=_no_announce, repr=False)

    @property
    def msec(self) -> int:
        return self.ticks * self.resolution

    def public(self) -> Snapshot:
        snapshot: Snapshot = {key: getattr(self, key) for key in PUBLIC_STATE_KEYS}
        snapshot["msec"] = self.msec
        return snapshot

    def time_only(self) -> Snapshot:
        return {"ticks": self.ticks, "msec": self.msec}


def _validate(state: StopwatchState) -> StopwatchState:
    if not _is_int(state.ticks) or state.ticks < 0:
        raise ValueError(f"ticks must be a non-negative int, got {state.ticks!r}")
    if not _is_int(state.resolution) or state.resolution <= 0:
        raise ValueError(f"resolution must be a positive int (ms), got {state.resolution!r}")
    if not isinstance(state.running, bool):
        raise ValueError(f"running must be a bool, got {state.running!r}")
    if not callable(state.announcer):
        raise ValueError("announcer must be callable")
    return state


# ---------------------------------------------------------------------------
# Hub changes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SetRunning:
    running: bool


@dataclass(frozen=True)
class ClearTicks:
    pass


@dataclass(frozen=True)
class SetResolution:
    resolution: int


@dataclass(frozen=True)
class Ignored:
    key: Any
    value: Any


Change = Union[SetRunning, ClearTicks, SetResolution, Ignored]
Changes = Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]


def parse_change(key: Any, value: Any) -> Change:
    """Map one ``(key, value)`` pair onto a recognised change, or :class:`Ignored`."""

    if key == "running" and isinstance(value, bool):
        return SetRunning(value)
    if key == "ticks" and _is_int(value) and value == 0:
        return ClearTicks()
    if key == "resolution" and _is_int(value) and value > 0:
        return SetResolution(value)
    return Ignored(key, value)


def parse_changes(changes: Changes) -> list[Change]:
    pairs = changes.items() if isinstance(changes, Mapping) else changes
    return [parse_change(key, value) for key, value in pairs]


# ---------------------------------------------------------------------------
# Actor
# ---------------------------------------------------------------------------


class Stopwatch(Actor):
    """
    Stopwatch actor. Build one with :func:`start_link`; the returned object is
    the handle callers keep.

    Holds at most one outstanding timer. Ticks from a timer that has since
    been cancelled or replaced are dropped on delivery.
    """

    def __init__(
        self,
        options: Optional[Mapping[str, Any]] = None,
        *,
        scheduler=None,
        name: Optional[str] = None,
        call_timeout: Optional[float] = None,
        actor_id: Optional[str] = None,
    ) -> None:
        super().__init__(name=name, call_timeout=call_timeout, actor_id=actor_id)
        options = dict(options or {})
        unknown = sorted(set(options) - set(START_OPTIONS))
        if unknown:
            raise TypeError(f"unknown stopwatch options: {', '.join(unknown)}")
        self._options = options
        self._owns_scheduler = scheduler is None
        self.scheduler = scheduler if scheduler is not None else ThreadingScheduler()
        self.state = StopwatchState(resolution=SDK_CONFIG.default_resolution_ms)
        self._setters: Dict[type, Callable[[Any], None]] = {
            SetRunning: self._set_running,
            ClearTicks: self._set_ticks_zero,
            SetResolution: self._set_resolution,
        }

    # ------------------------------------------------------------------
    # Client API
    # ------------------------------------------------------------------
    def go(self) -> None:
        """Start the stopwatch."""
        self.cast("go")

    def stop(self) -> None:
        """Stop the stopwatch."""
        self.cast("stop")

    def clear(self) -> None:
        """Clear the tick count; leaves running as is."""
        self.cast("clear")

    def time(self) -> int:
        """Current tick count (not milliseconds)."""
        return self.call("time")

    def snapshot(self) -> Snapshot:
        """Full public state, same shape as a full announcement."""
        return self.call("snapshot")

    def request(self, changes: Changes, path: Any = None, context: Any = None) -> str:
        """Apply hub-style changes left to right; replies ``"ok"``."""
        return self.call(("request", path, parse_changes(changes), context))

    def set_announcer(self, announcer: Announcer) -> None:
        if not callable(announcer):
            raise TypeError("announcer must be callable")
        self.cast(("set_announcer", announcer))

    # ------------------------------------------------------------------
    # Actor hooks
    # ------------------------------------------------------------------
    def init(self) -> None:
        options = {k: v for k, v in self._options.items() if v is not None}
        initializer = options.pop("initializer", None)
        if initializer is not None:
            initializer()
        self.state = _validate(replace(self.state, **options))
        self._announce()
        self.state.timer_ref = self._arm(self.state.resolution)

    def handle_cast(self, message: Any) -> None:
        if message == "go":
            self._go()
        elif message == "stop":
            self._stop()
        elif message == "clear":
            self.state.ticks = 0
            self._announce()
        elif isinstance(message, tuple) and message[0] == "set_announcer":
            self.state.announcer = message[1]
        else:
            super().handle_cast(message)

    def handle_call(self, message: Any) -> Any:
        if message == "time":
            return self.state.ticks
        if message == "snapshot":
            return self.state.public()
        if isinstance(message, tuple) and message[0] == "request":
            _, _path, changes, _context = message
            for change in changes:
                self.apply_change(change)
            return "ok"
        return super().handle_call(message)

    def handle_info(self, message: Any) -> None:
        if isinstance(message, tuple) and message[0] == "tick":
            self._tick(message[1])
        else:
            super().handle_info(message)

    def on_terminate(self) -> None:
        ref, self.state.timer_ref = self.state.timer_ref, None
        if ref is not None:
            self.scheduler.cancel(ref)
        if self._owns_scheduler:
            self.scheduler.shutdown()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def _go(self) -> None:
        if not self.state.running:
            self._cancel_timer()
            self.state.timer_ref = self._arm(self.state.resolution)
            self.state.running = True
        self._announce()

    def _stop(self) -> None:
        if self.state.running:
            self._cancel_timer()
            self.state.running = False
        self._announce()

    def apply_change(self, change: Change) -> None:
        """Run one hub change on the actor thread; unknown changes are no-ops."""
        self._setters.get(type(change), self._ignore)(change)

    def _ignore(self, change: Change) -> None:
        logger.debug("%s: ignoring change %r", self.name, change)

    def _set_running(self, change: SetRunning) -> None:
        if change.running == self.state.running:
            return
        if change.running:
            self._cancel_timer()
            self.state.timer_ref = self._arm(self.state.resolution)
            self.state.running = True
        else:
            self._cancel_timer()
            self.state.running = False
        self._announce()

    def _set_ticks_zero(self, _change: ClearTicks) -> None:
        self.state.ticks = 0
        self._announce()

    def _set_resolution(self, change: SetResolution) -> None:
        # keep elapsed time; integer division may drop a partial tick
        cur_msec = self.state.msec
        self._cancel_timer()
        if self.state.running:
            self.state.timer_ref = self._arm(change.resolution)
        self.state.resolution = change.resolution
        self.state.ticks = cur_msec // change.resolution
        self._announce()

    def _tick(self, ref: TimerRef) -> None:
        state = self.state
        if ref != state.timer_ref:
            logger.debug("%s: dropping stale tick %s", self.name, ref.seq)
            return
        if not state.running:
            # timer armed at start while stopped; consumed here
            state.timer_ref = None
            return
        state.timer_ref = self._arm(state.resolution)
        state.ticks += 1
        self._emit(state.time_only())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _arm(self, delay_ms: int) -> TimerRef:
        return self.scheduler.send_after(delay_ms, self._deliver_tick)

    def _deliver_tick(self, ref: TimerRef) -> None:
        self.send(("tick", ref))

    def _cancel_timer(self) -> None:
        ref = self.state.timer_ref
        if ref is not None and not self.scheduler.cancel(ref):
            raise TimerInvariantError(f"{self.name}: scheduler could not cancel timer {ref}")
        self.state.timer_ref = None

    def _announce(self) -> None:
        self._emit(self.state.public())

    def _emit(self, snapshot: Snapshot) -> None:
        try:
            self.state.announcer(snapshot)
        except Exception:
            logger.warning("%s: announcer failed for %r", self.name, snapshot, exc_info=True)


def start_link(
    params: Optional[Mapping[str, Any]] = None,
    *,
    scheduler=None,
    name: Optional[str] = None,
    call_timeout: Optional[float] = None,
    actor_id: Optional[str] = None,
    **options: Any,
) -> Stopwatch:
    """Create and start a stopwatch; ``params`` and ``options`` are merged."""

    merged = dict(params or {})
    merged.update(options)
    stopwatch = Stopwatch(
        merged, scheduler=scheduler, name=name, call_timeout=call_timeout, actor_id=actor_id
    )
    stopwatch.start()
    return stopwatch


__all__ = [
    "Announcer",
    "Change",
    "ClearTicks",
    "DEFAULT_RESOLUTION_MS",
    "Ignored",
    "PUBLIC_STATE_KEYS",
    "SetResolution",
    "SetRunning",
    "Snapshot",
    "Stopwatch",
    "StopwatchState",
    "TimerInvariantError",
    "parse_change",
    "parse_changes",
    "start_link",
]

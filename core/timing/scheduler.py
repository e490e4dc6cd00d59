"""Timer services used by stopwatch actors.

A scheduler hands out :class:`TimerRef` tokens from ``send_after`` and calls
``deliver(ref)`` once the delay has passed, unless the ref was cancelled
first. Delivery happens on whatever thread the scheduler fires on; actors
forward it into their own mailbox.

Cancellation is best-effort: a timer that is already firing cannot be
recalled, so receivers must tolerate late deliveries.
"""

from __future__ import annotations

import heapq
import itertools
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from sdk.ids import new_ulid


@dataclass(frozen=True)
class TimerRef:
    """Token for one scheduled delivery."""

    seq: int
    delay_ms: int
    owner: str


Deliver = Callable[[TimerRef], None]


def _check_delay(delay_ms: int) -> int:
    if isinstance(delay_ms, bool) or not isinstance(delay_ms, int):
        raise TypeError(f"delay_ms must be an int, got {delay_ms!r}")
    if delay_ms < 0:
        raise ValueError(f"delay_ms must be >= 0, got {delay_ms}")
    return delay_ms


class ThreadingScheduler:
    """Real-time scheduler backed by :class:`threading.Timer`."""

    def __init__(self) -> None:
        self.id = new_ulid()
        self._seq = itertools.count(1)
        self._timers: Dict[int, threading.Timer] = {}
        self._lock = threading.Lock()

    def send_after(self, delay_ms: int, deliver: Deliver) -> TimerRef:
        ref = TimerRef(next(self._seq), _check_delay(delay_ms), self.id)
        timer = threading.Timer(delay_ms / 1000.0, self._fire, args=(ref, deliver))
        timer.daemon = True
        with self._lock:
            self._timers[ref.seq] = timer
        timer.start()
        return ref

    def _fire(self, ref: TimerRef, deliver: Deliver) -> None:
        with self._lock:
            if self._timers.pop(ref.seq, None) is None:
                return  # cancelled
        deliver(ref)

    def cancel(self, ref: TimerRef) -> bool:
        """Cancel ``ref``; False only if the ref was not issued here."""

        if ref.owner != self.id:
            return False
        with self._lock:
            timer = self._timers.pop(ref.seq, None)
        if timer is not None:
            timer.cancel()
        return True

    def outstanding(self) -> int:
        with self._lock:
            return len(self._timers)

    def shutdown(self) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()


class ManualScheduler:
    """
    Virtual-clock scheduler. Nothing fires until :meth:`advance` (or
    :meth:`fire_next`) moves the clock forward, which makes tick sequences
    reproducible in tests and simulations.

    Delivery is synchronous but the receiver may not be: an actor re-arms its
    timer on its own thread, after ``deliver`` has returned. Pass ``settle``
    to :meth:`advance` (typically a call on the actor) so re-armed timers land
    before the next due timer is picked. Without it only timers armed inside
    ``deliver`` itself are sure to fire in the same call.
    """

    def __init__(self, now_ms: int = 0) -> None:
        self.id = new_ulid()
        self.now_ms = now_ms
        self._seq = itertools.count(1)
        self._heap: List[Tuple[int, int]] = []
        self._pending: Dict[int, Tuple[TimerRef, Deliver]] = {}
        self._lock = threading.Lock()

    def send_after(self, delay_ms: int, deliver: Deliver) -> TimerRef:
        with self._lock:
            ref = TimerRef(next(self._seq), _check_delay(delay_ms), self.id)
            self._pending[ref.seq] = (ref, deliver)
            heapq.heappush(self._heap, (self.now_ms + delay_ms, ref.seq))
        return ref

    def cancel(self, ref: TimerRef) -> bool:
        if ref.owner != self.id:
            return False
        with self._lock:
            self._pending.pop(ref.seq, None)
        return True

    def outstanding(self) -> int:
        with self._lock:
            return len(self._pending)

    def pending_delays(self) -> List[int]:
        """Delays (ms) of the outstanding timers, in arming order."""

        with self._lock:
            return [ref.delay_ms for ref, _ in sorted(self._pending.values(), key=lambda p: p[0].seq)]

    def _pop_due(self, until_ms: Optional[int]) -> Optional[Tuple[TimerRef, Deliver]]:
        with self._lock:
            while self._heap:
                due, seq = self._heap[0]
                if seq not in self._pending:
                    heapq.heappop(self._heap)  # cancelled
                    continue
                if until_ms is not None and due > until_ms:
                    return None
                heapq.heappop(self._heap)
                self.now_ms = max(self.now_ms, due)
                return self._pending.pop(seq)
            return None

    def fire_next(self) -> bool:
        """Jump to the earliest outstanding timer and fire it."""

        entry = self._pop_due(None)
        if entry is None:
            return False
        ref, deliver = entry
        deliver(ref)
        return True

    def advance(self, ms: int, settle: Optional[Callable[[], Any]] = None) -> int:
        """
        Move the clock forward ``ms`` and fire everything due; returns the count.

        ``settle`` runs after every delivery, before the next due timer is
        looked up. Timers armed by then fire in this same call when they fall
        due before the target time.
        """

        target = self.now_ms + _check_delay(ms)
        fired = 0
        while True:
            entry = self._pop_due(target)
            if entry is None:
                break
            ref, deliver = entry
            deliver(ref)
            fired += 1
            if settle is not None:
                settle()
        with self._lock:
            self.now_ms = target
        return fired

    def shutdown(self) -> None:
        with self._lock:
            self._pending.clear()
            self._heap.clear()


__all__ = ["TimerRef", "Deliver", "ThreadingScheduler", "ManualScheduler"]

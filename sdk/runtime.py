"""
Minimal actor runtime.

Every :class:`Actor` owns one mailbox drained by one worker thread, so its
handlers never run concurrently and actor state needs no locking. Messages
come in three flavours:

- ``cast``: fire-and-forget command (``handle_cast``)
- ``call``: request that waits for the handler's return value (``handle_call``)
- ``info``: out-of-band message such as a timer delivery (``handle_info``)

A handler that raises crashes the actor: the error is logged, the caller of
a pending ``call`` gets the exception, and anything still queued fails with
:class:`ActorStoppedError`. Restart policy is left to the caller.
"""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional

from .config import SDK_CONFIG
from .ids import new_ulid

logger = logging.getLogger(__name__)


class ActorStoppedError(RuntimeError):
    """Raised when messaging an actor that has terminated or crashed."""


class CallTimeoutError(TimeoutError):
    """Raised when a call gets no reply within its timeout."""


@dataclass
class _Envelope:
    kind: Literal["cast", "call", "info"]
    message: Any
    reply: Optional[Future] = None


_STOP = object()


class Actor:
    """Base class for mailbox-driven actors."""

    def __init__(
        self,
        *,
        name: Optional[str] = None,
        call_timeout: Optional[float] = None,
        actor_id: Optional[str] = None,
    ) -> None:
        self.id = actor_id or new_ulid()
        self.name = name or f"{type(self).__name__.lower()}-{self.id}"
        self.call_timeout = call_timeout if call_timeout is not None else SDK_CONFIG.call_timeout_s
        self.crash_reason: Optional[BaseException] = None
        self._mailbox: "queue.Queue[Any]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._gate = threading.Lock()
        self._alive = False

    # ------------------------------------------------------------------
    # Hooks for subclasses
    # ------------------------------------------------------------------
    def init(self) -> None:
        """Runs on the starting thread before the mailbox opens."""

    def handle_cast(self, message: Any) -> None:
        raise NotImplementedError(f"{self.name}: unexpected cast {message!r}")

    def handle_call(self, message: Any) -> Any:
        raise NotImplementedError(f"{self.name}: unexpected call {message!r}")

    def handle_info(self, message: Any) -> None:
        logger.debug("%s: ignoring info %r", self.name, message)

    def on_terminate(self) -> None:
        """Runs on the actor thread after the last message."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> "Actor":
        if self._thread is not None:
            raise RuntimeError(f"{self.name} already started")
        with self._gate:
            self._alive = True
        try:
            self.init()
        except Exception:
            with self._gate:
                self._alive = False
            raise
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        return self

    @property
    def alive(self) -> bool:
        return self._alive

    def terminate(self, timeout: float = 2.0) -> None:
        """Process what is already queued, then stop. Idempotent."""

        with self._gate:
            if self._alive:
                self._alive = False
                self._mailbox.put(_STOP)
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)

    def __enter__(self) -> "Actor":
        return self

    def __exit__(self, *_) -> None:
        self.terminate()

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------
    def _post(self, envelope: _Envelope) -> None:
        with self._gate:
            if not self._alive:
                raise ActorStoppedError(f"{self.name} is not running")
            self._mailbox.put(envelope)

    def cast(self, message: Any) -> None:
        self._post(_Envelope("cast", message))

    def call(self, message: Any, timeout: Optional[float] = None) -> Any:
        reply: Future = Future()
        self._post(_Envelope("call", message, reply))
        try:
            return reply.result(timeout=self.call_timeout if timeout is None else timeout)
        except FutureTimeoutError as exc:
            raise CallTimeoutError(f"{self.name}: no reply to {message!r}") from exc

    def send(self, message: Any) -> None:
        """Deliver an info message; dropped silently if the actor is gone."""

        with self._gate:
            if self._alive:
                self._mailbox.put(_Envelope("info", message))

    # ------------------------------------------------------------------
    # Worker loop
    # ------------------------------------------------------------------
    def _run(self) -> None:
        try:
            while True:
                envelope = self._mailbox.get()
                if envelope is _STOP:
                    break
                if not self._dispatch(envelope):
                    break
        finally:
            with self._gate:
                self._alive = False
            try:
                self.on_terminate()
            except Exception:
                logger.exception("%s: error during terminate", self.name)
            self._drain()

    def _dispatch(self, envelope: _Envelope) -> bool:
        try:
            if envelope.kind == "call":
                result = self.handle_call(envelope.message)
            elif envelope.kind == "cast":
                self.handle_cast(envelope.message)
                return True
            else:
                self.handle_info(envelope.message)
                return True
        except Exception as exc:
            logger.exception("%s crashed handling %r", self.name, envelope.message)
            self.crash_reason = exc
            if envelope.reply is not None:
                envelope.reply.set_exception(exc)
            return False
        envelope.reply.set_result(result)
        return True

    def _drain(self) -> None:
        while True:
            try:
                envelope = self._mailbox.get_nowait()
            except queue.Empty:
                return
            if isinstance(envelope, _Envelope) and envelope.reply is not None:
                envelope.reply.set_exception(ActorStoppedError(f"{self.name} stopped"))


class Runtime:
    """Table of live actors, addressed by their handle id."""

    def __init__(self) -> None:
        self._actors: Dict[str, Actor] = {}
        self._lock = threading.Lock()

    def spawn(self, actor: Actor) -> Actor:
        if not actor.alive:
            actor.start()
        with self._lock:
            self._actors[actor.id] = actor
        return actor

    def get(self, actor_id: str) -> Actor:
        with self._lock:
            return self._actors[actor_id]

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._actors)

    def terminate(self, actor_id: str) -> None:
        with self._lock:
            actor = self._actors.pop(actor_id)
        actor.terminate()

    def shutdown(self) -> None:
        with self._lock:
            actors = list(self._actors.values())
            self._actors.clear()
        for actor in actors:
            actor.terminate()


__all__ = ["Actor", "ActorStoppedError", "CallTimeoutError", "Runtime"]

"""JSONL event log writer and stdlib logger setup."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import Lock
from typing import IO, Optional, Union

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


class JsonlWriter:
    """
    Minimal, robust JSONL writer with periodic flush.
    Not thread-safe across processes, but thread-safe within a process.
    """
    def __init__(self, out_path: Path, flush_every: int = 50):
        ensure_dir(out_path.parent)
        self.path = out_path
        self._f: IO[str] = out_path.open("a", encoding="utf-8")
        self._n = 0
        self._flush_every = max(1, flush_every)
        self._lock = Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, obj) -> None:
        line = json.dumps(obj, ensure_ascii=False)
        with self._lock:
            if self._closed:
                raise ValueError(f"write to closed JsonlWriter: {self.path}")
            self._f.write(line + "\n")
            self._n += 1
            if self._n % self._flush_every == 0:
                self._f.flush()

    def flush(self) -> None:
        with self._lock:
            if not self._closed:
                self._f.flush()

    def close(self):
        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                self._f.flush()
            finally:
                self._f.close()


def ensure_dir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)


def configure_logging(level: Union[int, str] = logging.INFO, stream: Optional[IO[str]] = None) -> None:
    """Install a basic root handler; later calls only adjust the level."""

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"unknown log level: {level}")
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT, stream=stream)
    root.setLevel(level)


__all__ = ["JsonlWriter", "ensure_dir", "configure_logging", "LOG_FORMAT"]

from __future__ import annotations
class NullAnnouncer:
    def __init__(self, stopwatch_id: str = ""): self.stopwatch_id = stopwatch_id; self.count = 0
    def __call__(self, snapshot: dict) -> None: self.count += 1
    def close(self) -> None: pass

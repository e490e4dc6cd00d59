# config/paths.py
"""
Centralized, cross-platform path management for stopwatch event logs.

Design goals
- Single source of truth for data, logs and temp locations
- Honors these env vars (matching the SDK):
    STOPWATCH_DATA_ROOT, STOPWATCH_LOGS_ROOT
- Sensible OS defaults when env vars are not provided
- Safe directory creation with writeability checks
- Helpers for per-stopwatch event logs
- Prefer SDK config if available (sdk.config.SDK_CONFIG.paths)
"""

from __future__ import annotations

import errno
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


# ---------- OS defaults (used only if env vars not set) ----------

def _platform_default_base() -> Path:
    """
    Returns an OS-specific base directory for user data, following conventions:
    - Windows: %LOCALAPPDATA%/Stopwatch
    - macOS:   ~/Library/Application Support/Stopwatch
    - Linux:   ~/.local/share/stopwatch
    """
    if sys.platform.startswith("win"):
        base = os.getenv("LOCALAPPDATA") or os.getenv("APPDATA") or str(Path.home() / "AppData" / "Local")
        return Path(base) / "Stopwatch"
    elif sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "Stopwatch"
    else:
        return Path(os.getenv("XDG_DATA_HOME", Path.home() / ".local" / "share")) / "stopwatch"


# ---------- Environment overrides (aligned with SDK) ----------

def _env_or_default_data_root() -> Path:
    return Path(os.getenv("STOPWATCH_DATA_ROOT", _platform_default_base() / "data"))


def _env_or_default_logs_root() -> Path:
    return Path(os.getenv("STOPWATCH_LOGS_ROOT", _platform_default_base() / "logs"))


# ---------- Repo root detection ----------

def _detect_repo_root(start: Optional[Path] = None) -> Path:
    """
    Best-effort detection of the repository root: walk upwards looking for
    .git / pyproject.toml; fall back to one level above this package.
    """
    start = (start or Path(__file__)).resolve()
    cur = start.parent
    markers = {".git", "pyproject.toml"}
    for _ in range(8):  # avoid infinite climb
        if any((cur / m).exists() for m in markers):
            return cur
        if cur.parent == cur:
            break
        cur = cur.parent
    return Path(__file__).resolve().parents[1]


# ---------- Core dataclass ----------

@dataclass(frozen=True)
class Paths:
    """
    Canonical path container.

    Most callers should obtain a singleton instance via get_paths().
    """
    repo_root: Path
    data_root: Path
    logs_root: Path
    tmp_root: Path

    # ----- factories -----

    @staticmethod
    def from_env_and_repo(repo_root: Optional[Path] = None) -> "Paths":
        rr = _detect_repo_root(repo_root)
        return Paths(rr, _env_or_default_data_root(), _env_or_default_logs_root(), rr / ".tmp")

    @staticmethod
    def from_sdk_if_available() -> "Paths":
        """
        If the SDK is importable, derive from its AppConfig.paths.
        Otherwise, fall back to from_env_and_repo().
        """
        try:
            from sdk.config import SDK_CONFIG  # type: ignore
            rr = _detect_repo_root()
            data = Path(SDK_CONFIG.paths.data_root)
            logs = Path(SDK_CONFIG.paths.logs_root)
            return Paths(rr, data, logs, rr / ".tmp")
        except Exception:
            return Paths.from_env_and_repo()

    # ----- standard layout helpers -----

    @property
    def stopwatches_root(self) -> Path:
        return self.data_root / "stopwatches"

    def stopwatch_dir(self, stopwatch_id: str) -> Path:
        """Directory holding one stopwatch's event log."""
        return self.stopwatches_root / stopwatch_id

    def stopwatch_events_path(self, stopwatch_id: str) -> Path:
        return self.stopwatch_dir(stopwatch_id) / "events.jsonl"

    # ----- setup / validation -----

    def ensure_all(self) -> None:
        for p in [self.data_root, self.logs_root, self.stopwatches_root]:
            p.mkdir(parents=True, exist_ok=True)

    def verify_writeable(self) -> None:
        """
        Raise OSError if critical roots are not writeable.
        """
        for p in [self.data_root, self.logs_root]:
            try:
                p.mkdir(parents=True, exist_ok=True)
                test = p / ".write_test"
                test.write_text("ok", encoding="utf-8")
                test.unlink(missing_ok=True)
            except Exception as e:
                raise OSError(errno.EACCES, f"Not writeable: {p}", e)


# ---------- Singleton access ----------

_paths_singleton: Optional[Paths] = None

def get_paths(force_refresh: bool = False) -> Paths:
    """
    Return a cached Paths instance (prefers SDK integration when available).
    """
    global _paths_singleton
    if force_refresh or _paths_singleton is None:
        _paths_singleton = Paths.from_sdk_if_available()
        _paths_singleton.ensure_all()
    return _paths_singleton


def stopwatch_events_path(stopwatch_id: str) -> Path:
    return get_paths().stopwatch_events_path(stopwatch_id)


# ---------- CLI sanity check ----------

if __name__ == "__main__":
    p = get_paths(force_refresh=True)
    try:
        p.verify_writeable()
    except OSError as e:
        print(f"[WARN] Writeability check failed: {e}")

    print("Repo root:        ", p.repo_root)
    print("Data root:        ", p.data_root)
    print("Logs root:        ", p.logs_root)
    print("Tmp root:         ", p.tmp_root)
    print("Stopwatches root: ", p.stopwatches_root)

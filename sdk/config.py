from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from pathlib import Path
import os

def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default

def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default

class Paths(BaseModel):
    data_root: Path = Field(default_factory=lambda: Path(os.getenv('STOPWATCH_DATA_ROOT', 'data')))
    logs_root: Path = Field(default_factory=lambda: Path(os.getenv('STOPWATCH_LOGS_ROOT', 'logs')))

class AppConfig(BaseModel):
    model_config = ConfigDict(validate_default=True)

    paths: Paths = Field(default_factory=Paths)
    default_resolution_ms: int = Field(default_factory=lambda: _env_int("STOPWATCH_RESOLUTION_MS", 10), gt=0)
    call_timeout_s: float = Field(default_factory=lambda: _env_float("STOPWATCH_CALL_TIMEOUT", 5.0), gt=0)
    announcer: str = Field(default_factory=lambda: os.getenv("STOPWATCH_ANNOUNCER", "null"))
    plugins: dict = Field(default_factory=lambda: {
        "announcer.null": "plugins.announcers.null.impl:NullAnnouncer",
        "announcer.echo": "plugins.announcers.echo.impl:EchoAnnouncer",
        "announcer.jsonl": "plugins.announcers.jsonl.impl:JsonlAnnouncer",
    })

SDK_CONFIG = AppConfig()

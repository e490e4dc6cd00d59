from __future__ import annotations
from importlib import import_module
from .config import SDK_CONFIG
class Registry:
    def __init__(self, defaults: dict[str, str] | None = None):
        self._map: dict[str, str] = dict(defaults or {})
    def register(self, key: str, target: str) -> None:
        self._map[key] = target
    def target(self, key: str) -> str:
        return self._map.get(key, key)
    def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._map if k.startswith(prefix))
    def create(self, key: str, *args, **kwargs):
        target = self.target(key)
        mod_path, _, obj = target.partition(":")
        mod = import_module(mod_path)
        cls = getattr(mod, obj) if obj else mod
        return cls(*args, **kwargs)
    def announcer(self, name: str, *args, **kwargs):
        return self.create(f"announcer.{name}", *args, **kwargs)
REGISTRY = Registry(SDK_CONFIG.plugins)

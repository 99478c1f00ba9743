# hermione/config/store.py
from __future__ import annotations

from typing import Any, Callable, Literal

from .providers import ConfigProvider

__all__ = ["ConfigStore", "ConfigTarget"]

ConfigTarget = Literal["runtime", "user", "defaults"]



def _deepMerge(base: dict[str, Any], top: dict[str, Any]) -> dict[str, Any]:
    out = dict(base)
    for key, value in top.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _deepMerge(out[key], value)
        else:
            out[key] = value
    return out



class ConfigStore:
    """
    Minimal layered config store:
      - read: first hit from the topmost provider down
      - write: dispatch to a target provider (runtime/user)
      - validate: on set(), validate the *effective* merged document, roll back on failure
    """

    def __init__(
        self,
        *,
        namespace: str,
        validator: Callable[[dict[str, Any]], Any],
        providers: dict[ConfigTarget, ConfigProvider],
    ):
        self.namespace = namespace
        self._validator = validator
        # Bottom to top: defaults < user < runtime
        self._providers: dict[ConfigTarget, ConfigProvider] = {
            target: providers[target]
            for target in ("defaults", "user", "runtime")
            if target in providers
        }

    # ----- Helpers -----

    def _provider(self, target: ConfigTarget) -> ConfigProvider:
        if target not in self._providers:
            raise KeyError(f"No provider mapped for target '{target}' in {self.namespace}")
        return self._providers[target]

    def merged(self) -> dict[str, Any]:
        merged: dict[str, Any] = {}
        for provider in self._providers.values():
            merged = _deepMerge(merged, provider.to_dict())
        return merged

    # ----- Public API -----

    def get(self, key: str, default: Any | None = None) -> Any:
        for provider in reversed(list(self._providers.values())): # Topmost first precedence
            value = provider.get(key)
            if value is not None:
                return value
        return default

    def set(self, key: str, value: Any, *, target: ConfigTarget = "runtime") -> None:
        provider = self._provider(target)
        oldValue = provider.get(key)
        provider.set(key, value)

        try:
            self._validator(self.merged())
        except Exception:
            # rollback
            provider.set(key, oldValue)
            raise

    def validated(self) -> Any:
        return self._validator(self.merged())

    def save(self, target: ConfigTarget = "user") -> None:
        self._provider(target).save()

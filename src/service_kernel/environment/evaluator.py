from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from service_kernel.environment.facet import ConfigurationError, Definition, Lazy

_MISSING = object()


class UndefinedKeyError(ConfigurationError, AttributeError):
    # Raised on attribute-style access to a key the environment does not define.
    def __init__(self, key: str) -> None:
        super().__init__(f"Undefined configuration key: '{key}'")
        self.key = key


class CircularKeyError(ConfigurationError):
    # Raised when a key's value depends on itself.
    def __init__(self, chain: list[str]) -> None:
        super().__init__(f"Circular configuration key: {' -> '.join(chain)}")
        self.chain = chain


class Evaluator:
    # Memoizing read-only view of an environment; never share one between concurrent instances.
    __slots__ = ("_definitions", "_keys", "_cache", "_resolving")

    def __init__(self, definitions: Mapping[str, Definition]) -> None:
        self._definitions = definitions
        self._keys = tuple(name for name, definition in definitions.items() if definition.is_key)
        self._cache: dict[str, object] = {}
        self._resolving: list[str] = []

    def keys(self) -> tuple[str, ...]:
        return self._keys

    def key(self, name: str) -> bool:
        return name in self._keys

    def __contains__(self, name: object) -> bool:
        return name in self._keys

    def get(self, name: str, default: object = None) -> object:
        if name not in self._keys:
            return default
        return self._evaluate(name)

    def __getitem__(self, name: str) -> object:
        return self.get(name)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        definition = self._definitions.get(name)
        if definition is None:
            raise UndefinedKeyError(name)
        if not definition.is_key:
            return definition.resolve(self)
        return self._evaluate(name)

    def __dir__(self) -> list[str]:
        return sorted(set(super().__dir__()) | set(self._definitions))

    def to_dict(self) -> dict[str, object]:
        for name in self._keys:
            self._evaluate(name)
        return {name: self._cache[name] for name in self._keys}

    def to_json(self, **kwargs: Any) -> str:
        kwargs.setdefault("separators", (",", ":"))
        kwargs.setdefault("ensure_ascii", False)
        return json.dumps(self.to_dict(), **kwargs)

    def resolve_value(self, value: object) -> object:
        # Walk nested lists/tuples/dicts and resolve lazy leaves through this evaluator.
        while isinstance(value, Lazy):
            value = value.resolve(self)
        if isinstance(value, list):
            items = [self.resolve_value(item) for item in value]
            return items if any(a is not b for a, b in zip(items, value)) else value
        if isinstance(value, tuple):
            items = [self.resolve_value(item) for item in value]
            if not any(a is not b for a, b in zip(items, value)):
                return value
            return type(value)(*items) if hasattr(value, "_fields") else tuple(items)
        if isinstance(value, dict):
            resolved = {key: self.resolve_value(item) for key, item in value.items()}
            return resolved if any(resolved[key] is not value[key] for key in value) else value
        return value

    def __repr__(self) -> str:
        return f"<Evaluator {list(self._keys)}>"

    def _evaluate(self, name: str) -> object:
        value = self._cache.get(name, _MISSING)
        if value is not _MISSING:
            return value
        if name in self._resolving:
            raise CircularKeyError([*self._resolving[self._resolving.index(name):], name])
        self._resolving.append(name)
        try:
            value = self.resolve_value(self._definitions[name].resolve(self))
        finally:
            self._resolving.pop()
        self._cache[name] = value
        return value

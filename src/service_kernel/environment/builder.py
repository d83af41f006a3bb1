from __future__ import annotations

from collections.abc import Callable
from typing import Any

from service_kernel.environment.facet import (
    Constant,
    Definition,
    Facet,
    InvalidFacetError,
    Lazy,
    Method,
    Override,
    as_facet,
    merge_definitions,
    positional_arity,
)

Block = Callable[["Builder"], object]


class Builder:
    # Collects constants, lazy thunks and methods into a Facet; redefining a key shadows it.
    def __init__(self, name: str = "anonymous") -> None:
        self._name = name
        self._definitions: dict[str, Definition] = {}

    @classmethod
    def for_(cls, *facets: object, block: Block | None = None, **values: object) -> Facet:
        builder = cls()
        for target in facets:
            builder.include(target)
        for key, value in values.items():
            builder.define(key, value)
        if block is not None:
            block(builder)
        return builder.facet()

    def facet(self) -> Facet:
        return Facet(name=self._name, definitions=self._definitions)

    def include(self, target: object) -> Builder:
        resolved = as_facet(target)
        if resolved is not None:
            resolved.included(self._definitions)
            return self
        included = getattr(target, "included", None)
        if not callable(included):
            raise InvalidFacetError(f"Cannot include {target!r} into facet '{self._name}'")
        included(self._definitions)
        return self

    def define(self, key: str, value: object) -> Builder:
        definition = value if isinstance(value, Definition) else Constant(value)
        self._put(key, definition)
        return self

    def lazy(self, key: str | Callable[..., object], function: Callable[..., object] | None = None) -> Any:
        # Supports lazy("k", fn), @lazy("k") and bare @lazy (key taken from the function name).
        if callable(key):
            self._put(key.__name__, _lazy_definition(key))
            return key
        if function is None:
            def _decorate(target: Callable[..., object]) -> Callable[..., object]:
                self._put(key, _lazy_definition(target))
                return target

            return _decorate
        self._put(key, _lazy_definition(function))
        return self

    def method(self, key: str | Callable[..., object], function: Callable[..., object] | None = None) -> Any:
        if callable(key):
            self._put(key.__name__, Method(key))
            return key
        if function is None:
            def _decorate(target: Callable[..., object]) -> Callable[..., object]:
                self._put(key, Method(target))
                return target

            return _decorate
        self._put(key, Method(function))
        return self

    def __setitem__(self, key: str, value: object) -> None:
        self.define(key, value)

    def _put(self, key: str, definition: Definition) -> None:
        if not isinstance(key, str) or not key:
            raise InvalidFacetError("Configuration keys must be non-empty strings")
        merge_definitions(self._definitions, [(key, definition)])


def _lazy_definition(function: Callable[..., object]) -> Definition:
    arity = positional_arity(function)
    if arity == 0:
        return Lazy(lambda evaluator: function())
    if arity == 1:
        return Lazy(function)
    return Override(function)

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any


class ConfigurationError(ValueError):
    # Base error for invalid configuration composition or evaluation (fail fast).
    pass


class InvalidFacetError(ConfigurationError):
    # Raised when an object cannot be included into a facet.
    pass


class Definition:
    # A single facet entry: constant, lazy thunk, override of a previous value, or method.
    is_key = True

    def compose(self, base: Definition | None) -> Definition:
        # Full shadowing: the new definition replaces whatever it is placed over.
        _ = base
        return self

    def resolve(self, evaluator: Any) -> object:
        raise NotImplementedError("Definition.resolve must be implemented")


@dataclass(frozen=True, slots=True)
class Constant(Definition):
    value: object

    def resolve(self, evaluator: Any) -> object:
        _ = evaluator
        return self.value


@dataclass(frozen=True, slots=True)
class Lazy(Definition):
    # Thunk evaluated against the evaluator; also marks lazy leaves inside nested values.
    function: Callable[[Any], object]

    def resolve(self, evaluator: Any) -> object:
        return self.function(evaluator)


@dataclass(frozen=True, slots=True)
class Override(Definition):
    # Decorates the value it shadows: function(evaluator, previous_value).
    function: Callable[[Any, object], object]
    previous: Definition | None = None

    def compose(self, base: Definition | None) -> Definition:
        if base is None:
            return self
        if self.previous is None:
            return Override(self.function, base)
        return Override(self.function, self.previous.compose(base))

    def resolve(self, evaluator: Any) -> object:
        previous = None
        if self.previous is not None:
            previous = evaluator.resolve_value(self.previous.resolve(evaluator))
        return self.function(evaluator, previous)


@dataclass(frozen=True, slots=True)
class Method(Definition):
    # Callable with arguments; never memoized or enumerated as a key.
    function: Callable[..., object]
    is_key = False

    def resolve(self, evaluator: Any) -> object:
        function = self.function

        def bound(*args: object, **kwargs: object) -> object:
            return function(evaluator, *args, **kwargs)

        bound.__name__ = getattr(function, "__name__", "method")
        return bound


@dataclass(frozen=True, eq=False)
class Facet:
    # Named, immutable, ordered bundle of key definitions.
    name: str = "anonymous"
    definitions: Mapping[str, Definition] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for key, definition in self.definitions.items():
            if not isinstance(key, str) or not key:
                raise ConfigurationError(f"Facet '{self.name}' keys must be non-empty strings")
            if not isinstance(definition, Definition):
                raise ConfigurationError(f"Facet '{self.name}' key '{key}' is not a definition")
        object.__setattr__(self, "definitions", MappingProxyType(dict(self.definitions)))

    def keys(self) -> frozenset[str]:
        return frozenset(self.definitions)

    def included(self, table: dict[str, Definition]) -> None:
        merge_definitions(table, self.definitions.items())

    def __repr__(self) -> str:
        return f"Facet({self.name!r}, keys={list(self.definitions)})"


EMPTY_FACET = Facet(name="empty")


def merge_definitions(table: dict[str, Definition], items: Iterable[tuple[str, Definition]]) -> None:
    # Ordered merge: a redefined key moves to the end and shadows (or decorates) the old entry.
    for key, definition in items:
        table[key] = definition.compose(table.pop(key, None))


def definition_for_function(function: Callable[..., object]) -> Definition:
    # self-only functions are lazy keys; anything taking more arguments is a method.
    if positional_arity(function) <= 1:
        return Lazy(function)
    return Method(function)


def facet(target: type | None = None, *, name: str | None = None) -> Any:
    # self-only functions become lazy keys, wider ones methods, other public attributes constants; bases merge first.
    def _decorate(cls: type) -> Facet:
        table: dict[str, Definition] = {}
        for klass in reversed(cls.__mro__):
            if klass is object:
                continue
            merge_definitions(table, _class_definitions(klass))
        return Facet(name=name or cls.__name__, definitions=table)

    if target is not None:
        return _decorate(target)
    return _decorate


def as_facet(target: object) -> Facet | None:
    if isinstance(target, Facet):
        return target
    if isinstance(target, type):
        return facet(target)
    return None


def _class_definitions(cls: type) -> list[tuple[str, Definition]]:
    items: list[tuple[str, Definition]] = []
    for attr, value in vars(cls).items():
        if attr.startswith("_"):
            continue
        if isinstance(value, (staticmethod, classmethod)):
            raise InvalidFacetError(f"Facet '{cls.__name__}.{attr}' cannot be a static or class method")
        if isinstance(value, property):
            if value.fget is None:
                continue
            items.append((attr, Lazy(value.fget)))
        elif inspect.isfunction(value):
            items.append((attr, definition_for_function(value)))
        elif isinstance(value, Definition):
            items.append((attr, value))
        else:
            items.append((attr, Constant(value)))
    return items


def positional_arity(function: Callable[..., object]) -> int:
    try:
        signature = inspect.signature(function)
    except (TypeError, ValueError):
        return 1
    count = 0
    for parameter in signature.parameters.values():
        if parameter.kind is inspect.Parameter.VAR_POSITIONAL:
            return 2
        if parameter.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            count += 1
    return count

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from functools import cached_property
from types import MappingProxyType

from service_kernel.environment.builder import Builder
from service_kernel.environment.evaluator import Evaluator
from service_kernel.environment.facet import (
    EMPTY_FACET,
    Definition,
    Facet,
    InvalidFacetError,
    as_facet,
)


@dataclass(frozen=True, eq=False)
class Environment:
    # Immutable facet plus optional parent; the parent composes first so child keys win.
    facet: Facet = EMPTY_FACET
    parent: Environment | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.facet, Facet):
            raise InvalidFacetError(f"Environment facet must be a Facet, got {self.facet!r}")
        if self.parent is not None and not isinstance(self.parent, Environment):
            raise InvalidFacetError(f"Environment parent must be an Environment, got {self.parent!r}")

    @classmethod
    def build(
        cls,
        *facets: object,
        block: Callable[[Builder], object] | None = None,
        **values: object,
    ) -> Environment:
        return cls(Builder.for_(*facets, block=block, **values))

    def with_(
        self,
        *facets: object,
        block: Callable[[Builder], object] | None = None,
        **values: object,
    ) -> Environment:
        return type(self)(Builder.for_(*facets, block=block, **values), self)

    def included(self, table: dict[str, Definition]) -> None:
        # Inclusion contract used by Builder.include: parent chain first, then this facet.
        if self.parent is not None:
            self.parent.included(table)
        self.facet.included(table)

    @cached_property
    def definitions(self) -> Mapping[str, Definition]:
        table: dict[str, Definition] = {}
        self.included(table)
        return MappingProxyType(table)

    @cached_property
    def capabilities(self) -> frozenset[str]:
        return frozenset(self.definitions)

    def implements(self, capability: object) -> bool:
        if isinstance(capability, Environment):
            required = capability.capabilities
        else:
            resolved = as_facet(capability)
            if resolved is None:
                raise InvalidFacetError(f"Cannot check capability {capability!r}")
            required = resolved.keys()
        return required <= self.capabilities

    def evaluator(self) -> Evaluator:
        return Evaluator(self.definitions)

    def to_dict(self) -> dict[str, object]:
        return self.evaluator().to_dict()

    def __repr__(self) -> str:
        return f"<Environment {self.facet.name} keys={sorted(self.capabilities)}>"

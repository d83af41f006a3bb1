from .builder import Builder
from .environment import Environment
from .evaluator import CircularKeyError, Evaluator, UndefinedKeyError
from .facet import (
    EMPTY_FACET,
    ConfigurationError,
    Constant,
    Definition,
    Facet,
    InvalidFacetError,
    Lazy,
    Method,
    Override,
    facet,
)

__all__ = [
    "Builder",
    "CircularKeyError",
    "ConfigurationError",
    "Constant",
    "Definition",
    "EMPTY_FACET",
    "Environment",
    "Evaluator",
    "Facet",
    "InvalidFacetError",
    "Lazy",
    "Method",
    "Override",
    "UndefinedKeyError",
    "facet",
]

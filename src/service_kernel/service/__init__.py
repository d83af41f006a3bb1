from .formatting import format_count, format_load, format_ratio, format_statistics
from .generic import Service
from .health import run_health_loop
from .managed import ManagedEnvironment, ManagedService

__all__ = [
    "ManagedEnvironment",
    "ManagedService",
    "Service",
    "format_count",
    "format_load",
    "format_ratio",
    "format_statistics",
    "run_health_loop",
]

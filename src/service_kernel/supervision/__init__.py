from .container import Container, ContainerController, ExitStatus, Instance
from .policy import DEFAULT_POLICY, ContainerPolicy, Policy
from .statistics import Rate, Statistics

__all__ = [
    "Container",
    "ContainerController",
    "ContainerPolicy",
    "DEFAULT_POLICY",
    "ExitStatus",
    "Instance",
    "Policy",
    "Rate",
    "Statistics",
]

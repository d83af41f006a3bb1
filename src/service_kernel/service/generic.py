from __future__ import annotations

from service_kernel.environment.environment import Environment
from service_kernel.environment.evaluator import Evaluator
from service_kernel.environment.facet import ConfigurationError
from service_kernel.observability.adapters.logging import emit_log


class Service:
    # Generic service only logs its lifecycle and registers nothing with the container.
    def __init__(
        self,
        environment: Environment,
        evaluator: Evaluator | None = None,
        *,
        log_sink: object | None = None,
    ) -> None:
        self.environment = environment
        self.evaluator = evaluator if evaluator is not None else environment.evaluator()
        self.log_sink = log_sink

    @classmethod
    def wrap(cls, environment: Environment, *, log_sink: object | None = None) -> Service:
        evaluator = environment.evaluator()
        service_class = evaluator.get("service_class")
        if service_class is None:
            return cls(environment, evaluator, log_sink=log_sink)
        if not callable(service_class):
            raise ConfigurationError(
                f"service_class for '{evaluator.get('name')}' must be a class, got {service_class!r}"
            )
        return service_class(environment, evaluator, log_sink=log_sink)

    @property
    def name(self) -> str | None:
        name = self.evaluator.get("name")
        return None if name is None else str(name)

    def to_dict(self) -> dict[str, object]:
        return self.evaluator.to_dict()

    def start(self) -> None:
        emit_log(self.log_sink, "debug", "service.starting", service=self.name)

    def setup(self, container: object) -> None:
        _ = container
        emit_log(self.log_sink, "debug", "service.setting_up", service=self.name)

    def stop(self, graceful: bool = True) -> None:
        emit_log(self.log_sink, "debug", "service.stopping", service=self.name, graceful=graceful)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"

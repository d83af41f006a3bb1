from __future__ import annotations

import gc
import importlib
from collections.abc import Callable, Iterable, Sequence

from service_kernel.observability.adapters.logging import emit_log
from service_kernel.service.generic import Service
from service_kernel.supervision.container import Container, ContainerController
from service_kernel.supervision.policy import DEFAULT_POLICY, ContainerPolicy

_warmed_up = False


class Controller(ContainerController):
    # Starts services before the container, then sets them up; stop errors are logged per service.
    def __init__(
        self,
        services: Iterable[Service],
        *,
        policy: ContainerPolicy | None = None,
        container_class: Callable[..., Container] = Container,
        log_sink: object | None = None,
    ) -> None:
        super().__init__(container_class=container_class, log_sink=log_sink)
        self.services: list[Service] = list(services)
        self.policy = policy
        self._stopped = False

    @classmethod
    def for_(cls, *services: Service, **options: object) -> Controller:
        return cls(services, **options)  # type: ignore[arg-type]

    @staticmethod
    def warmup(modules: Sequence[str] = ()) -> None:
        # Once per process: import shared modules, then collect and freeze the heap for forked children.
        global _warmed_up
        if _warmed_up:
            return
        for module in modules:
            importlib.import_module(module)
        gc.collect()
        gc.freeze()
        _warmed_up = True

    def make_policy(self) -> ContainerPolicy:
        return self.policy if self.policy is not None else DEFAULT_POLICY

    def start(self) -> None:
        self._stopped = False
        for service in self.services:
            service.start()
        self.warmup()
        super().start()

    def setup(self, container: Container) -> Container:
        super().setup(container)
        for service in self.services:
            service.setup(container)
        return container

    def stop(self, graceful: bool = True) -> None:
        # Services are stopped once, whether stop comes from outside or from run() exiting.
        if self._stopped:
            return
        self._stopped = True
        for service in self.services:
            try:
                service.stop()
            except Exception as error:
                emit_log(
                    self.log_sink,
                    "error",
                    "controller.service_stop_failed",
                    service=getattr(service, "name", repr(service)),
                    error=repr(error),
                )
        super().stop(graceful)

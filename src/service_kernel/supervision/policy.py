from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from service_kernel.observability.adapters.logging import emit_log
from service_kernel.supervision.statistics import Statistics


class ContainerPolicy:
    # Baseline policy: records nothing and never stops the container.
    def child_spawn(self, container: object, child: object, *, name: str | None = None, key: object = None, **options: object) -> None:
        _ = (container, child, name, key, options)
        return None

    def child_exit(
        self,
        container: object,
        child: object,
        status: object,
        *,
        name: str | None = None,
        key: object = None,
        **options: object,
    ) -> None:
        _ = (container, child, status, name, key, options)
        return None

    def make_statistics(self) -> Statistics:
        return Statistics()

    def success(self, status: object) -> bool:
        # Accepts ExitStatus-like objects exposing `success` as attribute or callable.
        value = getattr(status, "success", False)
        if callable(value):
            value = value()
        return bool(value)


class Policy(BaseModel, ContainerPolicy):
    # Stops the container once the windowed failure rate exceeds maximum_failures / window per second.
    model_config = ConfigDict(frozen=True, extra="forbid")

    maximum_failures: int = Field(default=6, ge=0)
    window: float = Field(default=60, gt=0)

    @property
    def failure_rate_threshold(self) -> float:
        return self.maximum_failures / self.window

    def make_statistics(self) -> Statistics:
        return Statistics(window=self.window)

    def child_exit(
        self,
        container: object,
        child: object,
        status: object,
        *,
        name: str | None = None,
        key: object = None,
        **options: object,
    ) -> None:
        _ = (child, key, options)
        if self.success(status):
            return

        rate = container.statistics.failure_rate.per_second()  # type: ignore[attr-defined]
        threshold = self.failure_rate_threshold
        if rate <= threshold:
            return
        # Single-threaded event loop: check-then-stop cannot interleave with another exit.
        if container.stopping:  # type: ignore[attr-defined]
            return
        emit_log(
            getattr(container, "log_sink", None),
            "error",
            "policy.failure_rate_exceeded",
            name=name,
            rate=rate,
            threshold=threshold,
        )
        container.stop(True)  # type: ignore[attr-defined]


DEFAULT_POLICY = Policy()

from __future__ import annotations

import asyncio
import inspect
import os
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from service_kernel.observability.adapters.logging import emit_log
from service_kernel.supervision.policy import ContainerPolicy
from service_kernel.supervision.statistics import Statistics

RunBlock = Callable[["Instance"], Awaitable[object] | object]


@dataclass(frozen=True, slots=True)
class ExitStatus:
    # Outcome of one instance run; cancellation caused by a container stop counts as success.
    code: int = 0
    error: BaseException | None = None
    reason: str | None = None

    @property
    def success(self) -> bool:
        return self.code == 0


class Instance:
    # Handle passed to a run block: display name plus readiness/health/status signals.
    def __init__(self, name: str, key: object = None, clock: Callable[[], float] = time.monotonic) -> None:
        self.name = name
        self.key = key
        self._clock = clock
        self.spawned_at = clock()
        self.ready_at: float | None = None
        self.healthy_at: float | None = None
        self.status_text: str | None = None

    @property
    def is_ready(self) -> bool:
        return self.ready_at is not None

    def ready(self) -> None:
        self.ready_at = self._clock()

    def healthy(self) -> None:
        self.healthy_at = self._clock()

    def status(self, text: str) -> None:
        self.status_text = text

    def last_signal(self) -> float:
        return max(ts for ts in (self.spawned_at, self.ready_at, self.healthy_at) if ts is not None)

    def __repr__(self) -> str:
        return f"<Instance {self.name}>"


@dataclass(slots=True)
class _RunSpec:
    block: RunBlock
    name: str
    count: int
    restart: bool
    startup_timeout: float | None
    health_check_timeout: float | None


class Container:
    # In-process container: every instance is an asyncio task, supervised and restarted per run() options.
    def __init__(
        self,
        *,
        policy: ContainerPolicy | None = None,
        log_sink: object | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.policy = policy if policy is not None else ContainerPolicy()
        self.statistics: Statistics = self.policy.make_statistics()
        self.log_sink = log_sink
        self._clock = clock
        self._specs: list[_RunSpec] = []
        self._children: dict[asyncio.Task[object], Instance] = {}
        self._stopping = False
        self._running = False

    @property
    def stopping(self) -> bool:
        return self._stopping

    @property
    def running(self) -> bool:
        return self._running and not self._stopping

    def size(self) -> int:
        return sum(spec.count for spec in self._specs)

    def run(
        self,
        block: RunBlock,
        *,
        name: str | None = None,
        count: int | None = None,
        restart: bool = False,
        startup_timeout: float | None = None,
        health_check_timeout: float | None = None,
    ) -> None:
        if count is None:
            count = os.cpu_count() or 1
        if not isinstance(count, int) or count <= 0:
            raise ValueError("container run count must be a positive integer")
        for label, timeout in (("startup_timeout", startup_timeout), ("health_check_timeout", health_check_timeout)):
            if timeout is not None and timeout <= 0:
                raise ValueError(f"container run {label} must be > 0 when provided")
        self._specs.append(
            _RunSpec(
                block=block,
                name=name or f"instance-{len(self._specs) + 1}",
                count=count,
                restart=restart,
                startup_timeout=startup_timeout,
                health_check_timeout=health_check_timeout,
            )
        )

    async def wait(self) -> None:
        if self._stopping:
            return
        self._running = True
        supervisors = [
            asyncio.create_task(self._supervise(spec, index))
            for spec in self._specs
            for index in range(spec.count)
        ]
        try:
            await asyncio.gather(*supervisors)
        finally:
            self._running = False
            for task in supervisors:
                if not task.done():
                    task.cancel()

    def stop(self, graceful: bool = True) -> None:
        # In-process instances have no separate graceful path; both modes cancel running tasks.
        if not self._stopping:
            emit_log(self.log_sink, "info", "container.stopping", graceful=graceful, children=len(self._children))
        self._stopping = True
        for task in list(self._children):
            task.cancel()

    async def _supervise(self, spec: _RunSpec, index: int) -> None:
        key = (spec.name, index)
        while not self._stopping:
            instance = Instance(
                f"{spec.name}#{index + 1}" if spec.count > 1 else spec.name,
                key=key,
                clock=self._clock,
            )
            self.statistics.spawn()
            self.policy.child_spawn(self, instance, name=spec.name, key=key)
            task = asyncio.create_task(_invoke(spec.block, instance))
            self._children[task] = instance
            try:
                status = await self._watch(task, instance, spec)
            finally:
                self._children.pop(task, None)

            if not status.success:
                self.statistics.failure()
            emit_log(
                self.log_sink,
                "info" if status.success else "warning",
                "container.instance_exited",
                name=instance.name,
                code=status.code,
                reason=status.reason,
                error=repr(status.error) if status.error is not None else None,
            )
            self.policy.child_exit(self, instance, status, name=spec.name, key=key)
            if self._stopping or not spec.restart:
                return
            self.statistics.restart()

    async def _watch(self, task: asyncio.Task[object], instance: Instance, spec: _RunSpec) -> ExitStatus:
        interval = _watch_interval(spec)
        try:
            while True:
                done, _ = await asyncio.wait({task}, timeout=interval)
                if done:
                    return _exit_status(task, stopping=self._stopping)
                reason = self._hung(instance, spec)
                if reason is not None:
                    task.cancel()
                    await asyncio.gather(task, return_exceptions=True)
                    return ExitStatus(code=1, reason=reason)
        except asyncio.CancelledError:
            task.cancel()
            raise

    def _hung(self, instance: Instance, spec: _RunSpec) -> str | None:
        now = self._clock()
        if not instance.is_ready and spec.startup_timeout is not None:
            if now - instance.spawned_at > spec.startup_timeout:
                return "startup_timeout"
            return None
        if spec.health_check_timeout is not None and now - instance.last_signal() > spec.health_check_timeout:
            return "health_check_timeout"
        return None


class ContainerController:
    # Base lifecycle: create a container from the policy, set it up, run it, stop it.
    def __init__(
        self,
        *,
        container_class: Callable[..., Container] = Container,
        log_sink: object | None = None,
    ) -> None:
        self.container: Container | None = None
        self.log_sink = log_sink
        self._container_class = container_class

    def make_policy(self) -> ContainerPolicy:
        return ContainerPolicy()

    def create_container(self) -> Container:
        return self._container_class(policy=self.make_policy(), log_sink=self.log_sink)

    def setup(self, container: Container) -> Container:
        return container

    def start(self) -> None:
        container = self.create_container()
        self.setup(container)
        self.container = container

    def stop(self, graceful: bool = True) -> None:
        if self.container is not None:
            self.container.stop(graceful)

    async def run(self) -> None:
        self.start()
        assert self.container is not None
        try:
            await self.container.wait()
        finally:
            self.stop()


async def _invoke(block: RunBlock, instance: Instance) -> object:
    result = block(instance)
    if inspect.isawaitable(result):
        return await result
    return result


def _exit_status(task: asyncio.Task[object], *, stopping: bool) -> ExitStatus:
    if task.cancelled():
        return ExitStatus(code=0 if stopping else 1, reason="cancelled")
    error = task.exception()
    if error is None:
        return ExitStatus()
    return ExitStatus(code=1, error=error, reason=type(error).__name__)


def _watch_interval(spec: _RunSpec) -> float | None:
    timeouts = [timeout for timeout in (spec.startup_timeout, spec.health_check_timeout) if timeout is not None]
    if not timeouts:
        return None
    return min(timeouts) / 2

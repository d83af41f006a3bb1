from __future__ import annotations

import asyncio
import importlib
import inspect
import os
import runpy
from pathlib import Path
from typing import Any

from service_kernel.environment.evaluator import Evaluator
from service_kernel.environment.facet import facet
from service_kernel.observability.adapters.logging import emit_log
from service_kernel.service.generic import Service
from service_kernel.service.health import HealthCheck, run_health_loop

_UNSET: Any = object()


@facet
class ManagedEnvironment:
    # Defaults for services run by a container; every key can be overridden per service.

    def count(self):
        # None lets the container pick (one instance per CPU).
        return None

    def startup_timeout(self):
        return None

    def health_check_timeout(self):
        # None disables health checking.
        return 30

    def container_options(self):
        options = {
            "restart": True,
            "count": self.count,
            "startup_timeout": self.startup_timeout,
            "health_check_timeout": self.health_check_timeout,
        }
        return {key: value for key, value in options.items() if value is not None}

    def preload(self):
        return []

    def tags(self):
        return []

    def prepare(self, instance):
        # Called with the container instance before ManagedService.run.
        _ = instance
        return None


class ManagedService(Service):
    # run() returns the server (awaited when awaitable); the health check titles the instance from it.
    async def run(self, instance: Any, evaluator: Evaluator) -> object:
        _ = (instance, evaluator)
        return None

    def format_title(self, evaluator: Evaluator, server: object) -> str:
        name = evaluator.get("name")
        if server is None or inspect.isawaitable(server):
            return str(name)
        return f"{name} {server}"

    def preload(self) -> None:
        resources = self.evaluator.get("preload")
        if not resources:
            return
        if isinstance(resources, (str, os.PathLike)):
            resources = [resources]
        root = self.evaluator.get("root")
        for resource in resources:
            emit_log(self.log_sink, "info", "service.preloading", service=self.name, resource=str(resource))
            try:
                _load_resource(str(resource), root)
            except Exception as error:
                emit_log(
                    self.log_sink,
                    "warning",
                    "service.preload_failed",
                    service=self.name,
                    resource=str(resource),
                    error=repr(error),
                )

    def start(self) -> None:
        self.preload()
        super().start()

    def setup(self, container: Any) -> None:
        super().setup(container)
        options = dict(self.evaluator.container_options)
        health_check_timeout = options.get("health_check_timeout")

        async def _instance(instance: Any) -> None:
            await self._run_instance(instance, health_check_timeout)

        container.run(_instance, name=self.name, **options)

    def health_checker(self, instance: Any, timeout: float | None = _UNSET, check: HealthCheck | None = None) -> asyncio.Task[None] | None:
        if timeout is _UNSET:
            timeout = self.evaluator.get("health_check_timeout")
        return run_health_loop(instance, timeout, check)

    async def _run_instance(self, instance: Any, health_check_timeout: float | None) -> None:
        evaluator = self.environment.evaluator()
        prepare = getattr(evaluator, "prepare", None)
        if callable(prepare):
            prepare(instance)

        server = await self.run(instance, evaluator)
        instance.ready()

        def _refresh_title(target: Any) -> None:
            target.name = self.format_title(evaluator, server)

        health = self.health_checker(instance, health_check_timeout, _refresh_title)
        await _serve(server, health)


async def _serve(server: object, health: asyncio.Task[None] | None) -> None:
    # Wait for the server to finish; a failed health loop fails the instance.
    waiters: set[asyncio.Future[Any]] = set()
    if inspect.isawaitable(server):
        waiters.add(asyncio.ensure_future(server))
    if health is not None:
        waiters.add(health)
    try:
        if not waiters:
            await asyncio.Event().wait()
            return
        done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            task.result()
    finally:
        for task in waiters:
            if not task.done():
                task.cancel()


def _load_resource(resource: str, root: object) -> None:
    # Paths (".py" or containing a separator) are executed; anything else is imported as a module.
    if resource.endswith(".py") or "/" in resource or os.sep in resource:
        path = Path(resource)
        if root is not None and not path.is_absolute():
            path = Path(str(root)) / path
        runpy.run_path(str(path), run_name=f"__preload__.{path.stem}")
        return
    importlib.import_module(resource)

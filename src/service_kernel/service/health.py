from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

HealthCheck = Callable[[Any], object]


def run_health_loop(instance: Any, timeout: float | None, check: HealthCheck | None = None) -> asyncio.Task[None] | None:
    # Positive timeout: cancellable task looping check, healthy(), sleep(timeout / 2). Otherwise one synchronous signal.
    if not timeout:
        if check is not None:
            check(instance)
        instance.healthy()
        return None
    if timeout < 0:
        raise ValueError("health check timeout must be > 0 when provided")

    interval = timeout / 2

    async def _loop() -> None:
        while True:
            if check is not None:
                check(instance)
            instance.healthy()
            await asyncio.sleep(interval)

    return asyncio.get_running_loop().create_task(_loop(), name=f"health:{getattr(instance, 'name', instance)}")

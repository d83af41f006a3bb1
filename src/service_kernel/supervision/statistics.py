from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable


class Rate:
    # Sliding-window event rate: samples older than `window` seconds are dropped.
    def __init__(self, window: float = 60, clock: Callable[[], float] = time.monotonic) -> None:
        if window <= 0:
            raise ValueError("Rate.window must be > 0")
        self.window = window
        self._clock = clock
        self._samples: deque[tuple[float, float]] = deque()
        self.total = 0.0

    def add(self, value: float = 1) -> None:
        self._samples.append((self._clock(), value))
        self.total += value

    def per_second(self) -> float:
        self._expire()
        return sum(value for _, value in self._samples) / self.window

    def _expire(self) -> None:
        horizon = self._clock() - self.window
        while self._samples and self._samples[0][0] <= horizon:
            self._samples.popleft()


class Statistics:
    # Spawn/restart/failure counters shared by one container.
    def __init__(self, window: float = 60, clock: Callable[[], float] = time.monotonic) -> None:
        self.spawns = 0
        self.restarts = 0
        self.failures = 0
        self.failure_rate = Rate(window=window, clock=clock)

    def spawn(self) -> None:
        self.spawns += 1

    def restart(self) -> None:
        self.restarts += 1

    def failure(self) -> None:
        self.failures += 1
        self.failure_rate.add(1)

    def failed(self) -> bool:
        return self.failures > 0

    def to_dict(self) -> dict[str, object]:
        return {
            "spawns": self.spawns,
            "restarts": self.restarts,
            "failures": self.failures,
            "failure_rate": self.failure_rate.per_second(),
        }

from __future__ import annotations

import os
from collections.abc import Callable, Iterable, Iterator

from service_kernel.config.loader import Loader
from service_kernel.config.validator import ConfigError
from service_kernel.controller import Controller
from service_kernel.environment.environment import Environment
from service_kernel.service.generic import Service


class DuplicateServiceError(ConfigError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Service '{name}' is declared more than once")
        self.name = name


class Configuration:
    # Ordered service environments; services are wrapped lazily on each services() call.
    def __init__(self, environments: Iterable[Environment] = ()) -> None:
        self.environments: list[Environment] = []
        self._names: set[str] = set()
        for environment in environments:
            self.add(environment)

    @classmethod
    def build(
        cls,
        block: Callable[[Loader], object],
        root: str | os.PathLike[str] | None = None,
    ) -> Configuration:
        configuration = cls()
        block(Loader(configuration, root))
        return configuration

    @classmethod
    def for_(cls, *environments: Environment) -> Configuration:
        return cls(environments)

    def empty(self) -> bool:
        return not self.environments

    def add(self, environment: Environment, *, name: str | None = None) -> Configuration:
        if not isinstance(environment, Environment):
            raise ConfigError(f"Configuration entries must be environments, got {environment!r}")
        if name is not None:
            if name in self._names:
                raise DuplicateServiceError(name)
            self._names.add(name)
        self.environments.append(environment)
        return self

    def load_file(self, path: str | os.PathLike[str]) -> Configuration:
        Loader.load_path(self, path)
        return self

    def services(
        self,
        implementing: object | None = None,
        *,
        log_sink: object | None = None,
    ) -> Iterator[Service]:
        for environment in self.environments:
            if implementing is not None and not environment.implements(implementing):
                continue
            yield Service.wrap(environment, log_sink=log_sink)

    def controller(self, **options: object) -> Controller:
        log_sink = options.get("log_sink")
        return Controller(self.services(log_sink=log_sink), **options)  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self.environments)

    def __repr__(self) -> str:
        return f"<Configuration services={len(self.environments)}>"

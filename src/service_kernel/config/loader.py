from __future__ import annotations

import importlib
import os
import runpy
from pathlib import Path
from typing import TYPE_CHECKING

import yaml

from service_kernel.config.validator import ConfigError, validate_service_file
from service_kernel.environment.builder import Block
from service_kernel.environment.environment import Environment

if TYPE_CHECKING:
    from service_kernel.config.configuration import Configuration

_YAML_SUFFIXES = {".yml", ".yaml"}


def load_yaml_config(path: Path) -> dict[str, object]:
    # Raw mapping for validation; the root of a service file must be a mapping.
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping")
    return raw


def import_object(reference: str) -> object:
    # "package.module:Name" (attribute path after the colon may be dotted).
    module_name, sep, attribute = reference.partition(":")
    if not sep or not module_name or not attribute:
        raise ConfigError(f"Invalid object reference '{reference}', expected 'package.module:Name'")
    try:
        target: object = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"Cannot import module '{module_name}' for '{reference}': {exc}") from exc
    for part in attribute.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise ConfigError(f"Module '{module_name}' has no attribute '{attribute}'") from exc
    return target


class Loader:
    # DSL for service files: service(name, *facets, block=fn, **values); every service gets name and root keys.
    def __init__(self, configuration: Configuration, root: str | os.PathLike[str] | None = None) -> None:
        self.configuration = configuration
        self.root = str(root) if root is not None else os.getcwd()

    @classmethod
    def load_path(cls, configuration: Configuration, path: str | os.PathLike[str]) -> Loader:
        realpath = Path(os.path.realpath(path))
        if not realpath.is_file():
            raise ConfigError(f"Service file not found: {realpath}")
        loader = cls(configuration, realpath.parent)
        if realpath.suffix in _YAML_SUFFIXES:
            loader.load_yaml(realpath)
        else:
            runpy.run_path(str(realpath), init_globals=loader.namespace(), run_name="__service_file__")
        return loader

    def namespace(self) -> dict[str, object]:
        return {
            "service": self.service,
            "environment": self.environment,
            "load_file": self.load_file,
            "root": self.root,
            "configuration": self.configuration,
        }

    def load_file(self, path: str | os.PathLike[str]) -> Loader:
        # Relative paths resolve against this loader's root, not the process cwd.
        return type(self).load_path(self.configuration, Path(self.root) / path)

    def environment(self, *facets: object, block: Block | None = None, **values: object) -> Environment:
        return Environment.build(*facets, block=block, **values)

    def service(self, name: str, /, *facets: object, block: Block | None = None, **values: object) -> Environment:
        if not isinstance(name, str) or not name:
            raise ConfigError("service name must be a non-empty string")
        for key in ("name", "root"):
            if key in values:
                raise ConfigError(f"service '{name}' cannot set '{key}': it is set by the loader")
        environment = Environment.build(*facets, block=block, name=name, root=self.root, **values)
        self.configuration.add(environment, name=name)
        return environment

    def load_yaml(self, path: Path) -> None:
        services = validate_service_file(load_yaml_config(path))
        for name, entry in services.items():
            values = dict(entry)
            facets = [import_object(reference) for reference in values.pop("include")]  # type: ignore[union-attr]
            service_class = values.get("service_class")
            if service_class is not None:
                values["service_class"] = import_object(str(service_class))
            self.service(name, *facets, **values)

from __future__ import annotations

from service_kernel.environment.facet import ConfigurationError


class ConfigError(ConfigurationError):
    # Raised for invalid service configuration files (fail fast).
    pass


_SUPPORTED_ROOT_KEYS = {"services"}
_RESERVED_SERVICE_KEYS = {"name", "root", "block"}


def validate_service_file(raw: object) -> dict[str, dict[str, object]]:
    # Validate `services: {<name>: {include: [...], service_class: ref, <key>: value}}`.
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping")
    unsupported = sorted(str(key) for key in raw if key not in _SUPPORTED_ROOT_KEYS)
    if unsupported:
        raise ConfigError(
            f"Config root has unsupported keys: {unsupported}. Allowed keys: {sorted(_SUPPORTED_ROOT_KEYS)}"
        )

    services = raw.get("services", {})
    if services is None:
        services = {}
    if not isinstance(services, dict):
        raise ConfigError("services must be a mapping when provided")

    validated: dict[str, dict[str, object]] = {}
    for name, entry in services.items():
        if not isinstance(name, str) or not name:
            raise ConfigError("services keys must be non-empty strings")
        if entry is None:
            entry = {}
        if not isinstance(entry, dict):
            raise ConfigError(f"services.{name} must be a mapping")
        for key in entry:
            if not isinstance(key, str) or not key:
                raise ConfigError(f"services.{name} keys must be non-empty strings")
            if key in _RESERVED_SERVICE_KEYS:
                raise ConfigError(f"services.{name}.{key} is reserved")

        include = entry.get("include", [])
        if include is None:
            include = []
        if not isinstance(include, list):
            raise ConfigError(f"services.{name}.include must be a list")
        if not all(isinstance(item, str) and item for item in include):
            raise ConfigError(f"services.{name}.include entries must be non-empty strings")

        service_class = entry.get("service_class")
        if service_class is not None and (not isinstance(service_class, str) or not service_class):
            raise ConfigError(f"services.{name}.service_class must be a non-empty string when provided")

        normalized = dict(entry)
        normalized["include"] = list(include)
        validated[name] = normalized
    return validated

from .configuration import Configuration, DuplicateServiceError
from .loader import Loader, import_object, load_yaml_config
from .validator import ConfigError, validate_service_file

__all__ = [
    "ConfigError",
    "Configuration",
    "DuplicateServiceError",
    "Loader",
    "import_object",
    "load_yaml_config",
    "validate_service_file",
]

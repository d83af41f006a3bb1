from __future__ import annotations

import os
from pathlib import Path

import pytest

from service_kernel.config.configuration import Configuration, DuplicateServiceError
from service_kernel.config.loader import Loader, import_object
from service_kernel.config.validator import ConfigError
from service_kernel.controller import Controller
from service_kernel.environment.environment import Environment
from service_kernel.service.generic import Service
from service_kernel.service.managed import ManagedEnvironment, ManagedService


def test_build_declares_services_with_name_and_root(tmp_path: Path) -> None:
    # Every declared service knows its name and the directory it was declared in.
    configuration = Configuration.build(
        lambda loader: loader.service("a", block=lambda b: b.define("name", "x").define("count", 2)),
        root=tmp_path,
    )
    first = next(configuration.services())
    data = first.to_dict()
    assert data["name"] == "x"
    assert data["count"] == 2
    assert data["root"] == str(tmp_path)


def test_build_root_defaults_to_working_directory() -> None:
    configuration = Configuration.build(lambda loader: loader.service("a"))
    assert next(configuration.services()).evaluator.root == os.getcwd()


def test_duplicate_service_names_are_rejected() -> None:
    def block(loader: Loader) -> None:
        loader.service("web")
        loader.service("web")

    with pytest.raises(DuplicateServiceError) as excinfo:
        Configuration.build(block)
    assert excinfo.value.name == "web"


def test_reusable_environment_is_not_added() -> None:
    def block(loader: Loader) -> None:
        shared = loader.environment(log_level="info")
        loader.service("web", shared, port=80)

    configuration = Configuration.build(block)
    assert len(configuration) == 1
    assert next(configuration.services()).evaluator.log_level == "info"


def test_services_filter_by_capability() -> None:
    def block(loader: Loader) -> None:
        loader.service("managed", ManagedEnvironment)
        loader.service("plain")

    configuration = Configuration.build(block)
    assert [service.name for service in configuration.services()] == ["managed", "plain"]
    assert [service.name for service in configuration.services(ManagedEnvironment)] == ["managed"]


def test_empty_and_for() -> None:
    assert Configuration().empty()
    configuration = Configuration.for_(Environment.build(name="a"), Environment.build(name="b"))
    assert not configuration.empty()
    assert [service.name for service in configuration.services()] == ["a", "b"]


def test_add_rejects_non_environments() -> None:
    with pytest.raises(ConfigError):
        Configuration().add({"name": "a"})  # type: ignore[arg-type]


def test_load_python_service_file(tmp_path: Path) -> None:
    (tmp_path / "services.py").write_text(
        "\n".join(
            [
                "from service_kernel.service.managed import ManagedEnvironment, ManagedService",
                "",
                "def web(builder):",
                "    builder.define('count', 2)",
                "",
                "service('web', ManagedEnvironment, block=web, service_class=ManagedService)",
                "load_file('more/extra.py')",
            ]
        ),
        encoding="utf-8",
    )
    (tmp_path / "more").mkdir()
    (tmp_path / "more" / "extra.py").write_text("service('extra', port=81)\n", encoding="utf-8")

    configuration = Configuration().load_file(tmp_path / "services.py")
    web, extra = configuration.services()
    assert isinstance(web, ManagedService)
    assert web.evaluator.count == 2
    assert web.evaluator.root == str(tmp_path.resolve())
    assert type(extra) is Service
    assert extra.evaluator.root == str((tmp_path / "more").resolve())


def test_load_yaml_service_file(tmp_path: Path) -> None:
    path = tmp_path / "services.yml"
    path.write_text(
        "\n".join(
            [
                "services:",
                "  web:",
                "    include:",
                "      - service_kernel.service.managed:ManagedEnvironment",
                "    service_class: service_kernel.service.managed:ManagedService",
                "    count: 2",
                "    tags: [http]",
                "  docs:",
            ]
        ),
        encoding="utf-8",
    )
    configuration = Configuration().load_file(path)
    web, docs = configuration.services()
    assert isinstance(web, ManagedService)
    assert web.evaluator.container_options == {"restart": True, "count": 2, "health_check_timeout": 30}
    assert web.evaluator.tags == ["http"]
    assert docs.to_dict() == {"name": "docs", "root": str(tmp_path.resolve())}


def test_load_yaml_rejects_non_mapping_root(tmp_path: Path) -> None:
    path = tmp_path / "services.yaml"
    path.write_text("- web\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        Configuration().load_file(path)


def test_load_missing_file_fails(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        Configuration().load_file(tmp_path / "missing.py")


def test_import_object_resolves_references() -> None:
    assert import_object("service_kernel.service.managed:ManagedService") is ManagedService
    with pytest.raises(ConfigError):
        import_object("service_kernel.service.managed.ManagedService")
    with pytest.raises(ConfigError):
        import_object("service_kernel.service.managed:Missing")
    with pytest.raises(ConfigError):
        import_object("no_such_module_here:Thing")


def test_controller_wraps_configured_services() -> None:
    configuration = Configuration.build(lambda loader: loader.service("a"))
    controller = configuration.controller()
    assert isinstance(controller, Controller)
    assert [service.name for service in controller.services] == ["a"]


@pytest.mark.parametrize("key", ["name", "root"])
def test_service_rejects_keys_set_by_the_loader(key: str) -> None:
    with pytest.raises(ConfigError) as excinfo:
        Configuration.build(lambda loader: loader.service("a", **{key: "/x"}))
    assert f"'{key}'" in str(excinfo.value)


def test_yaml_service_cannot_set_block(tmp_path: Path) -> None:
    path = tmp_path / "services.yml"
    path.write_text("services:\n  web:\n    block: hello\n", encoding="utf-8")
    with pytest.raises(ConfigError) as excinfo:
        Configuration().load_file(path)
    assert "services.web.block" in str(excinfo.value)

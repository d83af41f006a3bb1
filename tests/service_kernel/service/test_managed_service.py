from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from service_kernel.environment.environment import Environment
from service_kernel.environment.facet import ConfigurationError
from service_kernel.observability.domain.logging import LogMessage
from service_kernel.service.generic import Service
from service_kernel.service.managed import ManagedEnvironment, ManagedService
from service_kernel.supervision.container import Container, Instance


class _RecordingSink:
    def __init__(self) -> None:
        self.messages: list[LogMessage] = []

    def emit(self, message: LogMessage) -> None:
        self.messages.append(message)

    def named(self, name: str) -> list[LogMessage]:
        return [message for message in self.messages if message.message == name]


class _FakeContainer:
    def __init__(self) -> None:
        self.calls: list[tuple[object, dict[str, object]]] = []

    def run(self, block: object, **options: object) -> None:
        self.calls.append((block, options))


class _EchoService(ManagedService):
    async def run(self, instance, evaluator):
        return f"listening on {evaluator.port}"


def test_managed_environment_defaults() -> None:
    evaluator = Environment.build(ManagedEnvironment, name="web").evaluator()
    assert evaluator.count is None
    assert evaluator.startup_timeout is None
    assert evaluator.health_check_timeout == 30
    assert evaluator.preload == []
    assert evaluator.tags == []
    assert evaluator.container_options == {"restart": True, "health_check_timeout": 30}


def test_container_options_follow_overrides_and_omit_none() -> None:
    environment = Environment.build(ManagedEnvironment, name="web", count=2, startup_timeout=5).with_(
        health_check_timeout=None
    )
    assert environment.evaluator().container_options == {"restart": True, "count": 2, "startup_timeout": 5}


def test_wrap_uses_service_class_or_generic_service() -> None:
    generic = Service.wrap(Environment.build(name="plain"))
    assert type(generic) is Service
    assert generic.name == "plain"

    managed = Service.wrap(Environment.build(ManagedEnvironment, name="echo", service_class=_EchoService))
    assert isinstance(managed, _EchoService)
    assert managed.evaluator.name == "echo"


def test_wrap_rejects_non_callable_service_class() -> None:
    with pytest.raises(ConfigurationError):
        Service.wrap(Environment.build(name="bad", service_class="not.a.class"))


def test_setup_registers_run_block_with_container_options() -> None:
    service = _EchoService(Environment.build(ManagedEnvironment, name="echo", count=3), log_sink=_RecordingSink())
    container = _FakeContainer()
    service.setup(container)
    [(block, options)] = container.calls
    assert callable(block)
    assert options == {"name": "echo", "restart": True, "count": 3, "health_check_timeout": 30}


def test_setup_requires_container_options() -> None:
    service = _EchoService(Environment.build(name="bare"), log_sink=_RecordingSink())
    with pytest.raises(ConfigurationError):
        service.setup(_FakeContainer())


def test_preload_runs_files_and_modules_and_warns_on_failure(tmp_path: Path) -> None:
    marker = tmp_path / "loaded.txt"
    (tmp_path / "warm.py").write_text(
        f"from pathlib import Path\nPath({str(marker)!r}).write_text('yes', encoding='utf-8')\n",
        encoding="utf-8",
    )
    sink = _RecordingSink()
    environment = Environment.build(
        ManagedEnvironment,
        name="web",
        root=str(tmp_path),
        preload=["warm.py", "json", "missing_module_for_preload"],
    )
    service = ManagedService(environment, log_sink=sink)
    service.start()
    assert marker.read_text(encoding="utf-8") == "yes"
    assert len(sink.named("service.preloading")) == 3
    [failed] = sink.named("service.preload_failed")
    assert failed.level == "warning"
    assert failed.fields["resource"] == "missing_module_for_preload"
    assert sink.named("service.starting")


def test_managed_instance_runs_prepare_run_and_health_loop() -> None:
    prepared: list[str] = []

    def block(builder) -> None:
        builder.define("port", 8080)
        builder.method("prepare", lambda evaluator, instance: prepared.append(instance.name))

    environment = Environment.build(ManagedEnvironment, name="echo", count=1, health_check_timeout=0.2, block=block)
    service = _EchoService(environment, log_sink=_RecordingSink())
    container = Container(log_sink=_RecordingSink())
    service.setup(container)

    async def _scenario() -> None:
        asyncio.get_running_loop().call_later(0.3, container.stop)
        await asyncio.wait_for(container.wait(), timeout=5)

    asyncio.run(_scenario())
    assert prepared == ["echo"]
    assert not container.statistics.failed()
    assert container.statistics.spawns == 1


def test_health_check_refreshes_instance_title() -> None:
    service = _EchoService(Environment.build(ManagedEnvironment, name="echo", port=1), log_sink=_RecordingSink())
    instance = Instance("echo")

    async def _scenario() -> None:
        task = asyncio.create_task(service._run_instance(instance, None))
        await asyncio.sleep(0.05)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    asyncio.run(_scenario())
    assert instance.is_ready
    assert instance.name == "echo listening on 1"
    assert instance.healthy_at is not None


def test_generic_service_lifecycle_logs_debug_events() -> None:
    sink = _RecordingSink()
    service = Service(Environment.build(name="plain"), log_sink=sink)
    service.start()
    service.setup(_FakeContainer())
    service.stop()
    assert [message.message for message in sink.messages] == [
        "service.starting",
        "service.setting_up",
        "service.stopping",
    ]
    assert all(message.level == "debug" for message in sink.messages)


def test_awaitable_server_keeps_plain_instance_title() -> None:
    # A coroutine returned by run() is awaited, never shown in the title.
    class _Awaiting(ManagedService):
        async def run(self, instance, evaluator):
            return asyncio.sleep(10)

    service = _Awaiting(Environment.build(ManagedEnvironment, name="w"), log_sink=_RecordingSink())
    instance = Instance("w")

    async def _scenario() -> None:
        task = asyncio.create_task(service._run_instance(instance, None))
        await asyncio.sleep(0.05)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    asyncio.run(_scenario())
    assert instance.is_ready
    assert instance.name == "w"

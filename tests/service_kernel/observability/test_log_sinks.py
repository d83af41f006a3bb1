from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from service_kernel.observability.adapters.logging import (
    JsonlLogSink,
    StdoutLogSink,
    default_log_sink,
    emit_log,
    log_sink_from_settings,
    set_default_log_sink,
)
from service_kernel.observability.domain.logging import LogMessage


def test_log_message_requires_known_level() -> None:
    with pytest.raises(ValueError):
        LogMessage(level="", message="")
    with pytest.raises(ValueError):
        LogMessage(level="fatal", message="x")


def test_stdout_sink_filters_by_level() -> None:
    stream = io.StringIO()
    sink = StdoutLogSink(level="info", stream=stream)
    emit_log(sink, "debug", "service.starting", service="web")
    emit_log(sink, "warning", "service.preload_failed", service="web")
    [line] = stream.getvalue().splitlines()
    record = json.loads(line)
    assert record["level"] == "warning"
    assert record["message"] == "service.preload_failed"
    assert record["fields"] == {"service": "web"}
    assert record["timestamp"].endswith("Z")


def test_jsonl_sink_appends_records(tmp_path: Path) -> None:
    path = tmp_path / "logs" / "service.jsonl"
    sink = JsonlLogSink(path)
    emit_log(sink, "debug", "service.starting", service="web", error=ValueError("x"))
    sink.close()
    [record] = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert record["fields"]["error"] == "x"


def test_sink_settings_select_sink(tmp_path: Path) -> None:
    assert isinstance(log_sink_from_settings({}), StdoutLogSink)
    sink = log_sink_from_settings({"level": "error", "path": str(tmp_path / "out.jsonl")})
    assert isinstance(sink, JsonlLogSink)
    sink.close()
    with pytest.raises(ValueError):
        log_sink_from_settings({"level": "loud"})


def test_emit_log_ignores_failing_sinks() -> None:
    class _Broken:
        def emit(self, message: LogMessage) -> None:
            raise OSError("disk full")

    emit_log(_Broken(), "error", "controller.service_stop_failed")
    emit_log(object(), "error", "controller.service_stop_failed")


def test_emit_log_uses_default_sink_when_none_given() -> None:
    stream = io.StringIO()
    previous = default_log_sink()
    set_default_log_sink(StdoutLogSink(level="debug", stream=stream))
    try:
        emit_log(None, "info", "container.stopping")
    finally:
        set_default_log_sink(previous)
    assert "container.stopping" in stream.getvalue()

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Protocol, TextIO, runtime_checkable

from service_kernel.observability.domain.logging import LogMessage, level_rank


@runtime_checkable
class LogSink(Protocol):
    def emit(self, message: LogMessage) -> None:
        raise NotImplementedError("LogSink.emit must be implemented")


class StdoutLogSink:
    # Compact JSON line per record on stdout, filtered by minimum level.
    def __init__(self, level: str = "info", stream: TextIO | None = None) -> None:
        self._min_rank = level_rank(level)
        self._stream = stream

    def emit(self, message: LogMessage) -> None:
        if level_rank(message.level) < self._min_rank:
            return
        stream = self._stream if self._stream is not None else sys.stdout
        print(_dumps(message), file=stream)


class JsonlLogSink:
    # File-backed structured log sink for lifecycle diagnostics.
    def __init__(self, path: Path, level: str = "debug") -> None:
        self._path = path
        self._min_rank = level_rank(level)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self._path.open("a", encoding="utf-8")

    def emit(self, message: LogMessage) -> None:
        if level_rank(message.level) < self._min_rank:
            return
        self._file.write(_dumps(message) + "\n")
        self._file.flush()

    def close(self) -> None:
        self._file.close()


def log_sink_from_settings(settings: dict[str, object]) -> LogSink:
    # settings: {"level": "info", "path": "..."}; a path selects the JSONL sink.
    level = settings.get("level", "info")
    if not isinstance(level, str) or not level:
        raise ValueError("logging.level must be a non-empty string")
    path = settings.get("path")
    if path is None:
        return StdoutLogSink(level=level)
    if not isinstance(path, str) or not path:
        raise ValueError("logging.path must be a non-empty string when provided")
    return JsonlLogSink(Path(path), level=level)


_default_sink: LogSink = StdoutLogSink()


def default_log_sink() -> LogSink:
    return _default_sink


def set_default_log_sink(sink: LogSink) -> None:
    global _default_sink
    _default_sink = sink


def emit_log(sink: object | None, level: str, message: str, **fields: object) -> None:
    # Logging must never break the lifecycle path: a missing or failing sink is ignored.
    target = sink if sink is not None else _default_sink
    emit = getattr(target, "emit", None)
    if not callable(emit):
        return
    try:
        emit(LogMessage(level=level, message=message, fields=dict(fields)))
    except Exception:
        return


def _dumps(message: LogMessage) -> str:
    payload = {
        "level": message.level,
        "message": message.message,
        "timestamp": message.timestamp.isoformat().replace("+00:00", "Z"),
        "fields": message.fields,
    }
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)

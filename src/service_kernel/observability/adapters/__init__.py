from .logging import (
    JsonlLogSink,
    LogSink,
    StdoutLogSink,
    default_log_sink,
    emit_log,
    log_sink_from_settings,
    set_default_log_sink,
)

__all__ = [
    "JsonlLogSink",
    "LogSink",
    "StdoutLogSink",
    "default_log_sink",
    "emit_log",
    "log_sink_from_settings",
    "set_default_log_sink",
]

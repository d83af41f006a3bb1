from .adapters import JsonlLogSink, LogSink, StdoutLogSink, default_log_sink, emit_log, set_default_log_sink
from .domain import LogMessage

__all__ = [
    "JsonlLogSink",
    "LogMessage",
    "LogSink",
    "StdoutLogSink",
    "default_log_sink",
    "emit_log",
    "set_default_log_sink",
]

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

LEVELS = ("debug", "info", "warning", "error")


@dataclass(frozen=True, slots=True)
class LogMessage:
    # Structured log record emitted by services, controller and policy.
    level: str
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    fields: dict[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.level or not self.message:
            raise ValueError("LogMessage requires non-empty level/message")
        if self.level not in LEVELS:
            raise ValueError(f"LogMessage.level must be one of: {list(LEVELS)}")


def level_rank(level: str) -> int:
    if level not in LEVELS:
        raise ValueError(f"log level must be one of: {list(LEVELS)}")
    return LEVELS.index(level)

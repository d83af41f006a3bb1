from __future__ import annotations

from collections.abc import Sequence

# Helpers for compact process/instance titles, e.g. "web C=1.2K/10K L=0.35".

UNITS: tuple[str | None, ...] = (None, "K", "M", "B", "T", "P", "E", "Z", "Y")


def format_count(value: float, units: Sequence[str | None] = UNITS) -> str:
    index = 0
    limit = len(units) - 1
    negative = value < 0
    value = abs(value)
    while value >= 1000 and index < limit:
        value = value / 1000.0
        index += 1
    result = "-" if negative else ""
    result += str(round(value, 2))
    if units[index]:
        result += str(units[index])
    return result


def format_ratio(current: float, total: float) -> str:
    return f"{format_count(current)}/{format_count(total)}"


def format_load(load: float) -> str:
    return str(round(load, 2))


def format_statistics(**pairs: object) -> str:
    parts: list[str] = []
    for key, value in pairs.items():
        label = key.upper()
        if isinstance(value, (list, tuple)):
            if len(value) == 2:
                parts.append(f"{label}={format_ratio(value[0], value[1])}")
            else:
                parts.append(f"{label}={'/'.join(str(item) for item in value)}")
        else:
            parts.append(f"{label}={format_count(value)}")  # type: ignore[arg-type]
    return " ".join(parts)

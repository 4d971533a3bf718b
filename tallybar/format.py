"""Human-friendly formatting of durations, byte sizes and counts."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import timedelta

_MICROSECOND = timedelta(microseconds=1)

SECOND = timedelta(seconds=1)
MINUTE = timedelta(minutes=1)
HOUR = timedelta(hours=1)
DAY = timedelta(days=1)
WEEK = timedelta(weeks=1)
YEAR = timedelta(days=365)

# (unit, singular name, short suffix), from largest to smallest.
UNITS: tuple[tuple[timedelta, str, str], ...] = (
    (YEAR, "year", "y"),
    (WEEK, "week", "w"),
    (DAY, "day", "d"),
    (HOUR, "hour", "h"),
    (MINUTE, "minute", "m"),
    (SECOND, "second", "s"),
)

_DECIMAL_PREFIXES = ("k", "M", "G", "T", "P", "E", "Z", "Y")
_BINARY_PREFIXES = ("Ki", "Mi", "Gi", "Ti", "Pi", "Ei", "Zi", "Yi")


def _check_duration(value: timedelta) -> None:
    if value < timedelta(0):
        raise ValueError(f"duration must not be negative: {value!r}")


def _check_unsigned(value: int) -> None:
    if value < 0:
        raise ValueError(f"value must not be negative: {value!r}")


def _micros(value: timedelta) -> int:
    return value // _MICROSECOND


def _round_half_away(x: float) -> int:
    whole = math.floor(x)
    return whole + 1 if x - whole >= 0.5 else whole


def _group_thousands(text: str) -> str:
    """Insert a comma between every three characters, counted from the right."""
    head = len(text) % 3 or 3
    chunks = [text[:head]]
    chunks.extend(text[i:i + 3] for i in range(head, len(text), 3))
    return ",".join(chunk for chunk in chunks if chunk)


def _format_bytes(amount: int, kilo: int, prefixes: tuple[str, ...]) -> str:
    number = float(amount)
    if number < kilo:
        return f"{number:.0f} B"
    level = 0
    while number >= kilo and level < len(prefixes):
        number /= kilo
        level += 1
    return f"{number:.2f} {prefixes[level - 1]}B"


@dataclass(frozen=True)
class FormattedDuration:
    """A duration rendered as ``HH:MM:SS``, with a day count when needed."""

    duration: timedelta

    def __post_init__(self) -> None:
        _check_duration(self.duration)

    def __str__(self) -> str:
        total = self.duration // SECOND
        total, seconds = divmod(total, 60)
        total, minutes = divmod(total, 60)
        days, hours = divmod(total, 24)
        clock = f"{hours:02}:{minutes:02}:{seconds:02}"
        return f"{days}d {clock}" if days > 0 else clock


@dataclass(frozen=True)
class HumanDuration:
    """A duration rounded to a single, intuitively sized unit.

    Formatting with the ``"#"`` spec yields the short form, such as ``3m``.
    """

    duration: timedelta

    def __post_init__(self) -> None:
        _check_duration(self.duration)

    def _parts(self) -> tuple[int, str, str]:
        value = _micros(self.duration)
        idx = len(UNITS) - 1
        for i, (cur, _, _) in enumerate(UNITS[:-1]):
            cur_us = _micros(cur)
            next_us = _micros(UNITS[i + 1][0])
            if value + next_us // 2 >= cur_us + cur_us // 2:
                idx = i
                break
        unit, name, alt = UNITS[idx]
        count = _round_half_away(value / _micros(unit))
        if idx < len(UNITS) - 1:
            count = max(count, 2)
        return count, name, alt

    def __str__(self) -> str:
        count, name, _ = self._parts()
        return f"{count} {name}" if count == 1 else f"{count} {name}s"

    def __format__(self, spec: str) -> str:
        if spec == "#":
            count, _, alt = self._parts()
            return f"{count}{alt}"
        return format(str(self), spec)


@dataclass(frozen=True)
class HumanBytes:
    """A byte count with binary (1024-based) prefixes."""

    amount: int

    def __post_init__(self) -> None:
        _check_unsigned(self.amount)

    def __str__(self) -> str:
        return _format_bytes(self.amount, 1024, _BINARY_PREFIXES)


@dataclass(frozen=True)
class DecimalBytes:
    """A byte count with SI (1000-based) prefixes."""

    amount: int

    def __post_init__(self) -> None:
        _check_unsigned(self.amount)

    def __str__(self) -> str:
        return _format_bytes(self.amount, 1000, _DECIMAL_PREFIXES)


@dataclass(frozen=True)
class BinaryBytes:
    """A byte count with ISO/IEC (1024-based) prefixes."""

    amount: int

    def __post_init__(self) -> None:
        _check_unsigned(self.amount)

    def __str__(self) -> str:
        return _format_bytes(self.amount, 1024, _BINARY_PREFIXES)


@dataclass(frozen=True)
class HumanCount:
    """An integer count with commas as thousands separators."""

    count: int

    def __post_init__(self) -> None:
        _check_unsigned(self.count)

    def __str__(self) -> str:
        return _group_thousands(str(self.count))


@dataclass(frozen=True)
class HumanFloatCount:
    """A float with thousands separators and at most four decimals."""

    count: float

    def __str__(self) -> str:
        text = f"{self.count:.4f}"
        if "." in text:
            int_part, frac_part = text.split(".", 1)
        else:
            if math.isnan(self.count):
                int_part = "NaN"
            else:
                int_part = "inf" if self.count > 0 else "-inf"
            frac_part = ""
        result = _group_thousands(int_part)
        frac = frac_part.rstrip("0")
        return f"{result}.{frac}" if frac else result
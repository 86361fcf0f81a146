from __future__ import annotations

import re
from datetime import timedelta


class DurationError(ValueError):
    """Raised when a duration string cannot be parsed."""


_DURATION_RE = re.compile(r"^[-+]?(?:(?:\d+(?:\.\d*)?|\.\d+)(?:ns|us|µs|μs|ms|s|m|h))+$")
_PART_RE = re.compile(r"(?P<value>\d+(?:\.\d*)?|\.\d+)(?P<unit>ns|us|µs|μs|ms|s|m|h)")
_UNIT_TO_MICROSECONDS = {
    "ns": 0.001,
    "us": 1,
    "µs": 1,
    "μs": 1,
    "ms": 1_000,
    "s": 1_000_000,
    "m": 60 * 1_000_000,
    "h": 60 * 60 * 1_000_000,
}
_MICROSECOND = timedelta(microseconds=1)


def parse_duration(text: str) -> timedelta:
    """Convert strings such as '90s', '1h30m' or '250ms' into a timedelta."""
    value = text.strip()
    if value in {"0", "+0", "-0"}:
        return timedelta(0)
    if not _DURATION_RE.match(value):
        raise DurationError(f"invalid duration: {text!r}")

    micros = 0.0
    for match in _PART_RE.finditer(value):
        micros += float(match.group("value")) * _UNIT_TO_MICROSECONDS[match.group("unit")]
    if value.startswith("-"):
        micros = -micros
    try:
        return timedelta(microseconds=round(micros))
    except OverflowError as exc:
        raise DurationError(f"invalid duration: {text!r}") from exc


def format_duration(delta: timedelta) -> str:
    """Render a timedelta the way parse_duration reads it back ('1h30m0s', '250ms')."""
    micros = delta // _MICROSECOND
    sign = "-" if micros < 0 else ""
    micros = abs(micros)
    if micros == 0:
        return "0s"
    if micros < 1_000:
        return f"{sign}{micros}µs"
    if micros < 1_000_000:
        whole, frac = divmod(micros, 1_000)
        return f"{sign}{whole}{_fraction(frac, 3)}ms"

    hours, rest = divmod(micros, 60 * 60 * 1_000_000)
    minutes, rest = divmod(rest, 60 * 1_000_000)
    whole, frac = divmod(rest, 1_000_000)
    text = f"{whole}{_fraction(frac, 6)}s"
    if hours:
        text = f"{hours}h{minutes}m{text}"
    elif minutes:
        text = f"{minutes}m{text}"
    return sign + text


def _fraction(value: int, digits: int) -> str:
    if not value:
        return ""
    return "." + f"{value:0{digits}d}".rstrip("0")

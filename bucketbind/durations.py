"""Parsing of Go-style duration strings such as ``"60s"``, ``"1h30m"`` or ``"1.5h"``."""

from __future__ import annotations

import math
import re
from datetime import timedelta

_COMPONENT_PATTERN = re.compile(r"(?P<value>\d+(?:\.\d*)?|\.\d+)(?P<unit>ns|us|µs|μs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1,
    "m": 60,
    "h": 3600,
}
# longest duration Go can represent, (2**63 - 1) nanoseconds
MAX_DURATION_SECONDS = (2**63 - 1) / 1e9


def parse_duration(raw_value: str, *, field_name: str = "duration") -> timedelta:
    """Parse a signed sequence of decimal numbers with unit suffixes.

    A bare ``"0"`` is accepted; any other value needs a unit on every
    component. Raises ``ValueError`` for anything else.
    """
    text = raw_value.strip()
    if not text:
        raise ValueError(f"{field_name} must not be blank")
    sign = 1
    if text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f"invalid {field_name} {raw_value!r}")

    seconds = 0.0
    pos = 0
    while pos < len(text):
        match = _COMPONENT_PATTERN.match(text, pos)
        if match is None:
            raise ValueError(
                f"invalid {field_name} {raw_value!r}, use a value like '60s', '10m' or '1h30m'"
            )
        seconds += float(match.group("value")) * _DURATION_UNITS[match.group("unit")]
        pos = match.end()
    if not math.isfinite(seconds) or seconds > MAX_DURATION_SECONDS:
        raise ValueError(f"invalid {field_name} {raw_value!r}, value out of range")
    return timedelta(seconds=sign * seconds)

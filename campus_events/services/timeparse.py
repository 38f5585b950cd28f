"""Numeric helpers shared by the conflict checker and the leveling engine."""

from __future__ import annotations

import math
import re

from campus_events.domain.errors import ValidationError

_HHMM = re.compile(r"^(\d{2}):(\d{2})$")


def parse_hhmm(value: str) -> int:
    """Convert a 24-hour ``HH:MM`` string to minutes since midnight.

    Raises ``ValidationError`` for anything that is not a valid wall-clock time.
    """
    match = _HHMM.match(value) if isinstance(value, str) else None
    if match is None:
        raise ValidationError(f"Invalid time {value!r}, expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValidationError(f"Invalid time {value!r}, expected HH:MM")
    return hours * 60 + minutes


def round_half_away(value: float) -> int:
    """Round to the nearest integer, ties away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))

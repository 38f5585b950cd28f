"""Level calculation from a point total."""

from __future__ import annotations

from campus_events.domain.models import LevelInfo
from campus_events.services.timeparse import round_half_away

BASE_POINTS_PER_LEVEL = 100
SCALING_FACTOR = 1.5
PROGRESS_CAP = 99


def level_threshold(level: int, base: int = BASE_POINTS_PER_LEVEL, scaling: float = SCALING_FACTOR) -> int:
    """Points needed to go from *level* to *level* + 1."""
    return round_half_away(base * scaling ** (level - 1))


def recompute_level(
    total: int,
    base: int = BASE_POINTS_PER_LEVEL,
    scaling: float = SCALING_FACTOR,
    cap: int = PROGRESS_CAP,
) -> LevelInfo:
    """Derive level, next threshold and percent progress from *total* alone.

    Each threshold is computed from the closed form rather than by repeated
    multiplication, so fixtures stay exact. Progress never reaches 100: a
    user one point short of the next level sees *cap*.
    """
    level = 1
    accumulated = 0
    threshold = base
    while accumulated + threshold <= total:
        accumulated += threshold
        level += 1
        threshold = level_threshold(level, base, scaling)

    progress = round_half_away((total - accumulated) / threshold * 100)
    return LevelInfo(
        current_level=level,
        points_to_next_level=threshold,
        level_progress=max(0, min(progress, cap)),
    )

"""State transitions on a single user's reward record.

These functions mutate the ``RewardState`` they are given and never touch a
repository; ``RewardService`` is responsible for locking and persistence.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from campus_events.config import settings
from campus_events.domain.errors import NotFoundError, ValidationError
from campus_events.domain.models import (
    Achievement,
    Badge,
    PointGrant,
    PointSource,
    RewardState,
)
from campus_events.services.leveling import recompute_level
from campus_events.services.timeparse import round_half_away

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    new_total: int
    expired_count: int


def refresh_level(state: RewardState) -> None:
    state.level_info = recompute_level(
        state.total,
        base=settings.base_points_per_level,
        scaling=settings.level_scaling_factor,
        cap=settings.level_progress_cap,
    )


def recompute_total(state: RewardState) -> int:
    """Sum of non-expired grant amounts, computed from scratch."""
    return sum(g.amount for g in state.history if not g.is_expired)


def add_points(state: RewardState, grant: PointGrant, now: datetime) -> None:
    """Append *grant* and fold it into the running total, skills and level."""
    state.history.append(grant)
    state.total += grant.amount
    for skill, points in grant.skills.items():
        state.skill_points[skill] = state.skill_points.get(skill, 0) + points
    refresh_level(state)
    state.updated_at = now
    logger.info(
        "points granted",
        extra={"user_id": state.user_id, "amount": grant.amount, "total": state.total},
    )


def sweep_expired(state: RewardState, now: datetime) -> SweepResult:
    """Retire grants whose expiry has passed and deduct them from the total.

    Each grant flips to expired at most once, so running the sweep again at
    the same *now* changes nothing.
    """
    deducted = 0
    expired_count = 0
    for grant in state.history:
        if grant.expires_at is None or grant.is_expired:
            continue
        if grant.expires_at <= now:
            grant.is_expired = True
            deducted += grant.amount
            expired_count += 1

    if expired_count:
        state.total -= deducted
        refresh_level(state)
        state.updated_at = now
        logger.info(
            "points expired",
            extra={
                "user_id": state.user_id,
                "expired_count": expired_count,
                "deducted": deducted,
            },
        )
    return SweepResult(new_total=state.total, expired_count=expired_count)


def add_badge(state: RewardState, badge: Badge, now: datetime) -> None:
    if any(b.name == badge.name for b in state.badges):
        raise ValidationError("User already has this badge")
    state.badges.append(badge)
    state.updated_at = now
    logger.info("badge awarded", extra={"user_id": state.user_id, "badge": badge.name})


def add_achievement(state: RewardState, achievement: Achievement) -> None:
    if achievement.progress.target <= 0:
        raise ValidationError("Achievement target must be a positive number")
    if any(a.title == achievement.title for a in state.achievements):
        raise ValidationError("Achievement already exists for this user")
    state.achievements.append(achievement)


def find_achievement(state: RewardState, title: str) -> Achievement:
    for achievement in state.achievements:
        if achievement.title == title:
            return achievement
    raise NotFoundError("Achievement not found")


def update_achievement(
    state: RewardState, title: str, increment: int, now: datetime
) -> bool:
    """Advance an achievement by *increment*.

    Returns False (and changes nothing) when the achievement is already
    completed. Completing it awards ``points_awarded`` exactly once.
    """
    achievement = find_achievement(state, title)
    if achievement.is_completed:
        return False

    progress = achievement.progress
    progress.current = max(0, min(progress.current + increment, progress.target))
    progress.percentage = round_half_away(progress.current / progress.target * 100)

    if progress.current >= progress.target:
        achievement.is_completed = True
        achievement.completed_at = now
        logger.info(
            "achievement completed",
            extra={"user_id": state.user_id, "achievement": title},
        )
        if achievement.points_awarded > 0:
            add_points(
                state,
                PointGrant(
                    amount=achievement.points_awarded,
                    reason=f"Completed achievement: {achievement.title}",
                    source=PointSource.ACHIEVEMENT,
                    timestamp=now,
                ),
                now,
            )

    state.updated_at = now
    return True

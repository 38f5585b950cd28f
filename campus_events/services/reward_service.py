"""Reward operations over the repositories: grants, badges, achievements,
history, leaderboards and the expiry sweep."""

from __future__ import annotations

import logging
import math
from collections import Counter
from datetime import datetime, timezone
from typing import Callable

from campus_events.domain.bus import EventBus
from campus_events.domain.errors import NotFoundError, ValidationError
from campus_events.domain.events import (
    AchievementCompleted,
    BadgeAwarded,
    PointsAwarded,
    PointsExpired,
)
from campus_events.domain.models import (
    Achievement,
    AchievementProgress,
    Badge,
    PointGrant,
    PointSource,
    RewardState,
    SourceKind,
)
from campus_events.repos.locks import KeyedLocks
from campus_events.repos.memory import (
    CertificateRepository,
    CommitteeRepository,
    EventRepository,
    RewardRepository,
    UserRepository,
)
from campus_events.services import rewards
from campus_events.services.timeparse import round_half_away

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _pagination(total: int, page: int, limit: int) -> dict:
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "pages": math.ceil(total / limit) if limit else 0,
    }


class SourceLookup:
    """Resolves a grant's ``(source_kind, source_id)`` to ``{id, name}``."""

    def __init__(
        self,
        event_repo: EventRepository,
        committee_repo: CommitteeRepository,
        certificate_repo: CertificateRepository,
    ) -> None:
        self._resolvers: dict[SourceKind, Callable[[str], dict | None]] = {
            SourceKind.EVENT: lambda sid: self._named(event_repo.get(sid), "title"),
            SourceKind.COMMITTEE: lambda sid: self._named(committee_repo.get(sid), "name"),
            SourceKind.CERTIFICATE: lambda sid: self._named(certificate_repo.get(sid), "title"),
        }

    @staticmethod
    def _named(record, attr: str) -> dict | None:
        if record is None:
            return None
        return {"id": record.id, "name": getattr(record, attr)}

    def resolve(self, kind: SourceKind | None, source_id: str | None) -> dict | None:
        if kind is None or source_id is None:
            return None
        return self._resolvers[kind](source_id)


class RewardService:
    """Mutations of a user's reward record run under that user's lock."""

    def __init__(
        self,
        reward_repo: RewardRepository,
        user_repo: UserRepository,
        bus: EventBus,
        sources: SourceLookup,
        locks: KeyedLocks | None = None,
    ) -> None:
        self.reward_repo = reward_repo
        self.user_repo = user_repo
        self.bus = bus
        self.sources = sources
        self.locks = locks or KeyedLocks()

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def _require_user(self, user_id: str) -> None:
        if self.user_repo.get(user_id) is None:
            raise NotFoundError("User not found")

    def get_or_create(self, user_id: str) -> RewardState:
        with self.locks.for_key(user_id):
            return self._get_or_create_locked(user_id)

    def _get_or_create_locked(self, user_id: str) -> RewardState:
        state = self.reward_repo.get(user_id)
        if state is None:
            state = RewardState(user_id=user_id)
            self.reward_repo.add(state)
        return state

    # ------------------------------------------------------------------
    # Points
    # ------------------------------------------------------------------

    def grant_points(
        self,
        user_id: str,
        amount: int,
        reason: str,
        source: PointSource,
        *,
        source_id: str | None = None,
        source_kind: SourceKind | None = None,
        skills: dict[str, int] | None = None,
        expires_at: datetime | None = None,
        added_by: str | None = None,
        now: datetime | None = None,
    ) -> RewardState:
        if not isinstance(amount, int) or amount == 0:
            raise ValidationError("Points amount must be a non-zero number")
        self._require_user(user_id)
        now = now or _utcnow()

        grant = PointGrant(
            amount=amount,
            reason=reason,
            source=source,
            source_id=source_id,
            source_kind=source_kind,
            skills=skills or {},
            timestamp=now,
            expires_at=expires_at,
            added_by=added_by,
        )
        with self.locks.for_key(user_id):
            state = self._get_or_create_locked(user_id)
            rewards.add_points(state, grant, now)

        self.bus.publish(
            PointsAwarded(user_id=user_id, amount=amount, reason=reason, added_by=added_by)
        )
        return state

    def spend_points(
        self,
        user_id: str,
        amount: int,
        reason: str,
        *,
        now: datetime | None = None,
    ) -> RewardState:
        """Deduct *amount* only if the user's current total covers it.

        The balance check and the deduction run under the user's lock.
        A zero cost records nothing.
        """
        if amount < 0:
            raise ValidationError("Points amount must not be negative")
        self._require_user(user_id)
        now = now or _utcnow()

        with self.locks.for_key(user_id):
            state = self._get_or_create_locked(user_id)
            if state.total < amount:
                raise ValidationError("Insufficient points")
            if amount == 0:
                return state
            grant = PointGrant(
                amount=-amount,
                reason=reason,
                source=PointSource.REDEMPTION,
                timestamp=now,
            )
            rewards.add_points(state, grant, now)

        self.bus.publish(PointsAwarded(user_id=user_id, amount=-amount, reason=reason))
        return state

    def expire_points(self, now: datetime | None = None) -> int:
        """Sweep every reward record; return how many users lost points."""
        now = now or _utcnow()
        updated = 0
        for state in self.reward_repo.list_all():
            with self.locks.for_key(state.user_id):
                result = rewards.sweep_expired(state, now)
            if result.expired_count:
                updated += 1
                self.bus.publish(
                    PointsExpired(
                        user_id=state.user_id,
                        expired_count=result.expired_count,
                        new_total=result.new_total,
                    )
                )
        logger.info("expiry sweep finished", extra={"users_updated": updated})
        return updated

    # ------------------------------------------------------------------
    # Badges and achievements
    # ------------------------------------------------------------------

    def award_badge(self, user_id: str, badge: Badge, now: datetime | None = None) -> Badge:
        self._require_user(user_id)
        now = now or _utcnow()
        badge = badge.model_copy(update={"unlocked_at": now})
        with self.locks.for_key(user_id):
            state = self._get_or_create_locked(user_id)
            rewards.add_badge(state, badge, now)

        self.bus.publish(
            BadgeAwarded(
                user_id=user_id,
                name=badge.name,
                description=badge.description,
                level=badge.level,
            )
        )
        return badge

    def add_achievement(
        self,
        user_id: str,
        title: str,
        description: str,
        category: str,
        target: int,
        points_awarded: int = 0,
    ) -> Achievement:
        self._require_user(user_id)
        achievement = Achievement(
            title=title,
            description=description,
            category=category,
            progress=AchievementProgress(current=0, target=target, percentage=0),
            points_awarded=max(points_awarded, 0),
        )
        with self.locks.for_key(user_id):
            state = self._get_or_create_locked(user_id)
            rewards.add_achievement(state, achievement)
        return achievement

    def progress_achievement(
        self, user_id: str, title: str, increment: int, now: datetime | None = None
    ) -> tuple[Achievement, bool]:
        """Advance an achievement; returns it plus whether anything changed."""
        self._require_user(user_id)
        now = now or _utcnow()
        with self.locks.for_key(user_id):
            state = self.reward_repo.get(user_id)
            if state is None:
                raise NotFoundError("User rewards not found")
            achievement = rewards.find_achievement(state, title)
            was_completed = achievement.is_completed
            updated = rewards.update_achievement(state, title, increment, now)

        if achievement.is_completed and not was_completed:
            self.bus.publish(
                AchievementCompleted(
                    user_id=user_id,
                    title=achievement.title,
                    description=achievement.description,
                    points_awarded=achievement.points_awarded,
                )
            )
        return achievement, updated

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def points_history(self, user_id: str, page: int = 1, limit: int = 20) -> dict:
        state = self.reward_repo.get(user_id)
        if state is None:
            raise NotFoundError("No rewards record found for this user")
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive")

        ordered = sorted(state.history, key=lambda g: g.timestamp, reverse=True)
        window = ordered[(page - 1) * limit : page * limit]
        entries = []
        for grant in window:
            entry = grant.model_dump(mode="json")
            entry["source_data"] = self.sources.resolve(grant.source_kind, grant.source_id)
            entries.append(entry)
        return {"history": entries, "pagination": _pagination(len(ordered), page, limit)}

    def leaderboard(self, limit: int = 10, page: int = 1, category: str | None = None) -> dict:
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive")

        states = self.reward_repo.list_all()
        if category:
            states = [s for s in states if s.skill_points.get(category, 0) > 0]
            states.sort(key=lambda s: (s.skill_points[category], s.total), reverse=True)
        else:
            states.sort(key=lambda s: s.total, reverse=True)

        rows = []
        for state in states[(page - 1) * limit : page * limit]:
            user = self.user_repo.get(state.user_id)
            rows.append(
                {
                    "user_id": state.user_id,
                    "name": user.name if user else None,
                    "points": state.skill_points[category] if category else state.total,
                    "level": state.level_info.current_level,
                    "badge_count": len(state.badges),
                    "achievements": {
                        "total": len(state.achievements),
                        "completed": sum(1 for a in state.achievements if a.is_completed),
                    },
                }
            )
        return {"leaderboard": rows, "pagination": _pagination(len(states), page, limit)}

    def stats(self) -> dict:
        states = self.reward_repo.list_all()
        total_users = self.user_repo.count()
        totals = [s.total for s in states]

        badge_levels: Counter[str] = Counter()
        achievement_categories: dict[str, dict[str, int]] = {}
        for state in states:
            badge_levels.update(str(b.level) for b in state.badges)
            for a in state.achievements:
                bucket = achievement_categories.setdefault(
                    a.category, {"total": 0, "completed": 0}
                )
                bucket["total"] += 1
                bucket["completed"] += int(a.is_completed)

        return {
            "user_coverage": {
                "total_users": total_users,
                "users_with_rewards": len(states),
                "percentage": (
                    round_half_away(len(states) / total_users * 100) if total_users else 0
                ),
            },
            "point_distribution": {
                "total_points": sum(totals),
                "avg_points": sum(totals) / len(totals) if totals else 0,
                "max_points": max(totals, default=0),
                "min_points": min(totals, default=0),
            },
            "badge_stats": dict(sorted(badge_levels.items())),
            "achievement_stats": dict(sorted(achievement_categories.items())),
        }

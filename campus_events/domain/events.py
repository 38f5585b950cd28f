"""Domain events published after booking and reward state changes."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel


class PointsAwarded(BaseModel):
    """Fired when points are granted to (or deducted from) a user."""

    user_id: str
    amount: int
    reason: str
    added_by: str | None = None


class BadgeAwarded(BaseModel):
    user_id: str
    name: str
    description: str
    level: str


class AchievementCompleted(BaseModel):
    """Fired once, when an achievement's progress first reaches its target."""

    user_id: str
    title: str
    description: str
    points_awarded: int


class PointsExpired(BaseModel):
    user_id: str
    expired_count: int
    new_total: int


class VenueBooked(BaseModel):
    """Fired when a live event is committed against a venue slot."""

    event_id: str
    venue_id: str
    title: str
    start_date: date
    end_date: date
    organizer_id: str | None = None

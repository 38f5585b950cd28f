"""Domain models for venues, event bookings and user rewards."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


class EventStatus(StrEnum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Statuses that hold a venue slot and can therefore conflict.
LIVE_STATUSES = frozenset(
    {EventStatus.PUBLISHED, EventStatus.ACTIVE, EventStatus.COMPLETED}
)


class VenueType(StrEnum):
    INDOOR = "indoor"
    OUTDOOR = "outdoor"
    CLASSROOM = "classroom"
    LAB = "lab"
    AUDITORIUM = "auditorium"
    STADIUM = "stadium"
    COURT = "court"
    OTHER = "other"


class VenueStatus(StrEnum):
    AVAILABLE = "available"
    MAINTENANCE = "maintenance"
    RESERVED = "reserved"


class PointSource(StrEnum):
    EVENT_PARTICIPATION = "event_participation"
    EVENT_ORGANIZATION = "event_organization"
    ACHIEVEMENT = "achievement"
    COMMITTEE_WORK = "committee_work"
    FEEDBACK = "feedback"
    SPECIAL_AWARD = "special_award"
    ADMIN_GRANT = "admin_grant"
    REDEMPTION = "redemption"
    OTHER = "other"


class SourceKind(StrEnum):
    """Record types a point grant can reference."""

    EVENT = "Event"
    COMMITTEE = "Committee"
    CERTIFICATE = "Certificate"


class BadgeCategory(StrEnum):
    PARTICIPATION = "participation"
    ORGANIZATION = "organization"
    ACHIEVEMENT = "achievement"
    SPECIAL = "special"


class BadgeLevel(StrEnum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"
    SPECIAL = "special"


class CatalogCategory(StrEnum):
    MERCHANDISE = "Merchandise"
    PRIVILEGE = "Privilege"
    SERVICE = "Service"
    OTHER = "Other"


class RedemptionStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Venues and bookings
# ---------------------------------------------------------------------------


class Venue(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str = Field(min_length=1)
    location: str = Field(min_length=1)
    capacity: int = Field(ge=1)
    type: VenueType
    status: VenueStatus = VenueStatus.AVAILABLE
    facilities: list[str] = Field(default_factory=list)
    description: str | None = None


class BookingWindow(BaseModel):
    """A proposed date range plus a daily ``HH:MM`` time window."""

    start_date: date
    end_date: date
    start_time: str
    end_time: str


class Event(BaseModel):
    """An event occupying a venue; doubles as the booking interval record."""

    id: str = Field(default_factory=_new_id)
    title: str
    description: str = ""
    venue_id: str
    start_date: date
    end_date: date
    start_time: str
    end_time: str
    status: EventStatus = EventStatus.DRAFT
    committee_id: str | None = None
    organizer_id: str | None = None
    participant_limit: int | None = Field(default=None, ge=1)
    created_at: datetime = Field(default_factory=_utcnow)

    def window(self) -> BookingWindow:
        return BookingWindow(
            start_date=self.start_date,
            end_date=self.end_date,
            start_time=self.start_time,
            end_time=self.end_time,
        )


class Committee(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str


class Certificate(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str
    user_id: str
    event_id: str | None = None


class User(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    email: str | None = None
    department: str | None = None


# ---------------------------------------------------------------------------
# Rewards
# ---------------------------------------------------------------------------


class PointGrant(BaseModel):
    id: str = Field(default_factory=_new_id)
    amount: int
    reason: str
    source: PointSource
    source_id: str | None = None
    source_kind: SourceKind | None = None
    skills: dict[str, int] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)
    expires_at: datetime | None = None
    is_expired: bool = False
    added_by: str | None = None

    @field_validator("timestamp", "expires_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class Badge(BaseModel):
    name: str
    description: str
    category: BadgeCategory
    level: BadgeLevel
    image_url: str | None = None
    unlocked_at: datetime = Field(default_factory=_utcnow)
    requirements: dict = Field(default_factory=dict)


class AchievementProgress(BaseModel):
    current: int = 0
    target: int
    percentage: int = 0


class Achievement(BaseModel):
    title: str
    description: str
    category: str
    progress: AchievementProgress
    is_completed: bool = False
    completed_at: datetime | None = None
    points_awarded: int = 0


class LevelInfo(BaseModel):
    current_level: int = 1
    points_to_next_level: int = 100
    level_progress: int = 0


class RewardState(BaseModel):
    """A user's reward record.

    ``total`` is maintained incrementally and must always equal the sum of
    ``amount`` over non-expired grants in ``history``.
    """

    user_id: str
    total: int = 0
    history: list[PointGrant] = Field(default_factory=list)
    badges: list[Badge] = Field(default_factory=list)
    achievements: list[Achievement] = Field(default_factory=list)
    skill_points: dict[str, int] = Field(default_factory=dict)
    level_info: LevelInfo = Field(default_factory=LevelInfo)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class CatalogReward(BaseModel):
    """Something a user can spend points on."""

    id: str = Field(default_factory=_new_id)
    title: str
    description: str
    image: str
    points: int = Field(ge=0)
    category: CatalogCategory
    quantity: int = Field(ge=0)
    available: bool = True


class Redemption(BaseModel):
    """One spend of points on a catalog reward.

    Starts ``pending``; moves once to ``completed`` or ``cancelled``.
    Cancelling refunds ``points`` and returns the item to stock.
    """

    id: str = Field(default_factory=_new_id)
    user_id: str
    reward_id: str
    points: int = Field(ge=0)
    status: RedemptionStatus = RedemptionStatus.PENDING
    redeemed_at: datetime = Field(default_factory=_utcnow)
    completed_at: datetime | None = None
    notes: str | None = None


class Notification(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    title: str
    message: str
    type: str = "achievement"
    priority: str = "normal"
    created_at: datetime = Field(default_factory=_utcnow)
    read: bool = False


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class VenueCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    location: str = Field(min_length=1)
    capacity: int = Field(ge=1)
    type: VenueType
    facilities: list[str] = Field(default_factory=list)
    description: str | None = None


class EventCreateRequest(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    venue_id: str
    start_date: date
    end_date: date
    start_time: str
    end_time: str
    status: EventStatus = EventStatus.DRAFT
    committee_id: str | None = None
    organizer_id: str | None = None
    participant_limit: int | None = Field(default=None, ge=1)


class EventUpdateRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    venue_id: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    start_time: str | None = None
    end_time: str | None = None
    status: EventStatus | None = None


class ConflictSummary(BaseModel):
    id: str
    title: str
    start_date: date
    end_date: date
    start_time: str
    end_time: str


class AvailabilityResponse(BaseModel):
    available: bool
    conflicts: list[ConflictSummary] = Field(default_factory=list)


class UserCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    email: str | None = None
    department: str | None = None


class GrantPointsRequest(BaseModel):
    user_id: str
    amount: int
    reason: str = Field(min_length=1)
    source: PointSource
    source_id: str | None = None
    source_kind: SourceKind | None = None
    skills: dict[str, int] = Field(default_factory=dict)
    expires_at: datetime | None = None
    added_by: str | None = None


class BadgeRequest(BaseModel):
    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    category: BadgeCategory
    level: BadgeLevel
    image_url: str | None = None
    requirements: dict = Field(default_factory=dict)


class AchievementCreateRequest(BaseModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    category: str = Field(min_length=1)
    target: int
    points_awarded: int = 0


class AchievementProgressRequest(BaseModel):
    progress: int


class VenueUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    location: str | None = Field(default=None, min_length=1)
    capacity: int | None = Field(default=None, ge=1)
    type: VenueType | None = None
    status: VenueStatus | None = None
    facilities: list[str] | None = None
    description: str | None = None


class CatalogRewardCreateRequest(BaseModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    image: str = Field(min_length=1)
    points: int = Field(ge=0)
    category: CatalogCategory
    quantity: int = Field(ge=0)
    available: bool = True


class CatalogRewardUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, min_length=1)
    image: str | None = Field(default=None, min_length=1)
    points: int | None = Field(default=None, ge=0)
    category: CatalogCategory | None = None
    quantity: int | None = Field(default=None, ge=0)
    available: bool | None = None


class RedeemRequest(BaseModel):
    user_id: str


class RedemptionStatusRequest(BaseModel):
    status: RedemptionStatus
    notes: str | None = None

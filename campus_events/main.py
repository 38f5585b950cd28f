"""FastAPI application: entry point for the campus events service."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from campus_events.config import settings
from campus_events.domain.bus import EventBus
from campus_events.domain.errors import ConflictError, DomainError, VenueInUseError
from campus_events.domain.handlers import NotificationHandlers
from campus_events.domain.models import (
    AchievementCreateRequest,
    AchievementProgressRequest,
    AvailabilityResponse,
    Badge,
    BadgeRequest,
    BookingWindow,
    CatalogReward,
    CatalogRewardCreateRequest,
    CatalogRewardUpdateRequest,
    ConflictSummary,
    Event,
    EventCreateRequest,
    EventUpdateRequest,
    GrantPointsRequest,
    Notification,
    RedeemRequest,
    Redemption,
    RedemptionStatusRequest,
    User,
    UserCreateRequest,
    Venue,
    VenueCreateRequest,
    VenueUpdateRequest,
)
from campus_events.repos.locks import KeyedLocks
from campus_events.repos.memory import (
    CatalogRepository,
    CertificateRepository,
    CommitteeRepository,
    EventRepository,
    NotificationRepository,
    RedemptionRepository,
    RewardRepository,
    UserRepository,
    VenueRepository,
)
from campus_events.services.booking import VenueBookingService
from campus_events.services.catalog import RewardCatalogService
from campus_events.services.reward_service import RewardService, SourceLookup

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)

# ── Singletons (created at import time for simplicity) ────────────────
event_bus = EventBus()
venue_repo = VenueRepository()
event_repo = EventRepository()
user_repo = UserRepository()
committee_repo = CommitteeRepository()
certificate_repo = CertificateRepository()
reward_repo = RewardRepository()
notification_repo = NotificationRepository()
catalog_repo = CatalogRepository()
redemption_repo = RedemptionRepository()

notification_handlers = NotificationHandlers(bus=event_bus, notification_repo=notification_repo)
booking_service = VenueBookingService(
    event_repo=event_repo, venue_repo=venue_repo, bus=event_bus, locks=KeyedLocks()
)
reward_service = RewardService(
    reward_repo=reward_repo,
    user_repo=user_repo,
    bus=event_bus,
    sources=SourceLookup(event_repo, committee_repo, certificate_repo),
    locks=KeyedLocks(),
)
catalog_service = RewardCatalogService(
    catalog_repo=catalog_repo,
    redemption_repo=redemption_repo,
    rewards=reward_service,
    locks=KeyedLocks(),
)


def _summarise(events: list[Event]) -> list[ConflictSummary]:
    return [
        ConflictSummary(
            id=e.id,
            title=e.title,
            start_date=e.start_date,
            end_date=e.end_date,
            start_time=e.start_time,
            end_time=e.end_time,
        )
        for e in events
    ]


# ── Error mapping ─────────────────────────────────────────────────────


@app.exception_handler(DomainError)
async def handle_domain_error(request: Request, exc: DomainError) -> JSONResponse:
    logger.info(
        "request rejected",
        extra={"path": request.url.path, "status": exc.status_code, "detail": exc.detail},
    )
    body: dict = {"detail": exc.detail}
    if isinstance(exc, ConflictError):
        body["conflicts"] = [c.model_dump(mode="json") for c in _summarise(exc.conflicts)]
    elif isinstance(exc, VenueInUseError):
        body["events"] = [{"id": e.id, "title": e.title} for e in exc.events]
    return JSONResponse(status_code=exc.status_code, content=body)


# ── Venues ────────────────────────────────────────────────────────────


@app.post("/venues", response_model=Venue, status_code=201)
def create_venue(payload: VenueCreateRequest) -> Venue:
    if venue_repo.get_by_name(payload.name) is not None:
        raise HTTPException(status_code=400, detail="Venue with this name already exists")
    venue = Venue(**payload.model_dump())
    venue_repo.add(venue)
    return venue


@app.get("/venues", response_model=list[Venue])
def list_venues() -> list[Venue]:
    return venue_repo.list_all()


@app.get("/venues/{venue_id}", response_model=Venue)
def get_venue(venue_id: str) -> Venue:
    venue = venue_repo.get(venue_id)
    if venue is None:
        raise HTTPException(status_code=404, detail="Venue not found")
    return venue


@app.put("/venues/{venue_id}", response_model=Venue)
def update_venue(venue_id: str, payload: VenueUpdateRequest) -> Venue:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    return booking_service.update_venue(venue_id, changes)


@app.delete("/venues/{venue_id}")
def delete_venue(venue_id: str) -> dict:
    """Refused with 400 while any unfinished event still uses the venue."""
    booking_service.delete_venue(venue_id)
    return {"detail": "Venue removed"}


@app.get(
    "/venues/{venue_id}/availability",
    response_model=AvailabilityResponse,
    response_model_exclude_defaults=True,
)
def venue_availability(
    venue_id: str,
    start_date: date = Query(alias="startDate"),
    end_date: date = Query(alias="endDate"),
    start_time: str = Query(alias="startTime"),
    end_time: str = Query(alias="endTime"),
    event_id: str | None = Query(default=None, alias="eventId"),
) -> AvailabilityResponse:
    """Report whether a venue is free for the given dates and daily window."""
    window = BookingWindow(
        start_date=start_date, end_date=end_date, start_time=start_time, end_time=end_time
    )
    conflicts = booking_service.check_availability(venue_id, window, exclude_id=event_id)
    return AvailabilityResponse(available=not conflicts, conflicts=_summarise(conflicts))


# ── Events ────────────────────────────────────────────────────────────


@app.post("/events", response_model=Event, status_code=201)
def create_event(payload: EventCreateRequest) -> Event:
    return booking_service.save_event(Event(**payload.model_dump()))


@app.get("/events", response_model=list[Event])
def list_events(status: str | None = None) -> list[Event]:
    events = event_repo.list_all()
    if status:
        events = [e for e in events if e.status == status]
    return sorted(events, key=lambda e: (e.start_date, e.start_time))


@app.get("/events/{event_id}", response_model=Event)
def get_event(event_id: str) -> Event:
    event = event_repo.get(event_id)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


@app.put("/events/{event_id}", response_model=Event)
def update_event(event_id: str, payload: EventUpdateRequest) -> Event:
    """Apply changes and re-check the venue; the event never conflicts with itself."""
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    return booking_service.update_event(event_id, changes)


@app.post("/events/{event_id}/cancel", response_model=Event)
def cancel_event(event_id: str) -> Event:
    return booking_service.cancel_event(event_id)


# ── Users ─────────────────────────────────────────────────────────────


@app.post("/users", response_model=User, status_code=201)
def create_user(payload: UserCreateRequest) -> User:
    user = User(**payload.model_dump())
    user_repo.add(user)
    return user


@app.get("/users/{user_id}", response_model=User)
def get_user(user_id: str) -> User:
    user = user_repo.get(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# ── Rewards ───────────────────────────────────────────────────────────


@app.get("/rewards/leaderboard")
def leaderboard(
    limit: int = settings.leaderboard_default_limit,
    page: int = 1,
    category: str | None = None,
) -> dict:
    return reward_service.leaderboard(limit=limit, page=page, category=category)


@app.get("/rewards/user-stats")
def user_stats() -> dict:
    return reward_service.stats()


@app.get("/rewards/user/{user_id}")
def get_user_rewards(user_id: str) -> dict:
    """Return a user's reward record, creating an empty one on first access."""
    user = user_repo.get(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    state = reward_service.get_or_create(user_id)
    return {"user_info": user.model_dump(mode="json"), "rewards": state.model_dump(mode="json")}


@app.post("/rewards/points")
def grant_points(payload: GrantPointsRequest) -> dict:
    state = reward_service.grant_points(
        payload.user_id,
        payload.amount,
        payload.reason,
        payload.source,
        source_id=payload.source_id,
        source_kind=payload.source_kind,
        skills=payload.skills,
        expires_at=payload.expires_at,
        added_by=payload.added_by,
    )
    verb = "added to" if payload.amount > 0 else "deducted from"
    return {
        "success": True,
        "points": state.total,
        "level_info": state.level_info.model_dump(),
        "message": f"{abs(payload.amount)} points {verb} user's account",
    }


@app.post("/rewards/badges/{user_id}")
def award_badge(user_id: str, payload: BadgeRequest) -> dict:
    badge = reward_service.award_badge(user_id, Badge(**payload.model_dump()))
    return {
        "success": True,
        "message": f'Badge "{badge.name}" awarded to user',
        "badge": badge.model_dump(mode="json"),
    }


@app.post("/rewards/achievements/{user_id}")
def add_achievement(user_id: str, payload: AchievementCreateRequest) -> dict:
    achievement = reward_service.add_achievement(
        user_id,
        title=payload.title,
        description=payload.description,
        category=payload.category,
        target=payload.target,
        points_awarded=payload.points_awarded,
    )
    return {
        "success": True,
        "message": f'Achievement "{achievement.title}" added for user',
        "achievement": achievement.model_dump(mode="json"),
    }


@app.put("/rewards/achievements/{user_id}/{title}")
def progress_achievement(
    user_id: str, title: str, payload: AchievementProgressRequest
) -> dict:
    achievement, updated = reward_service.progress_achievement(
        user_id, title, payload.progress
    )
    if not updated:
        raise HTTPException(
            status_code=400,
            detail="Failed to update achievement or achievement already completed",
        )
    return {"success": True, "achievement": achievement.model_dump(mode="json")}


@app.get("/rewards/points/history/{user_id}")
def points_history(
    user_id: str, page: int = 1, limit: int = settings.history_default_limit
) -> dict:
    return reward_service.points_history(user_id, page=page, limit=limit)


@app.post("/rewards/maintenance/update-expired")
def update_expired(now: datetime | None = None) -> dict:
    """Run the point-expiry sweep.

    Pass *now* as a query param to control the clock; defaults to
    ``datetime.now(timezone.utc)`` when omitted.
    """
    current_time = now or datetime.now(timezone.utc)
    if current_time.tzinfo is None:
        current_time = current_time.replace(tzinfo=timezone.utc)
    updated = reward_service.expire_points(current_time)
    return {
        "success": True,
        "updates_performed": updated,
        "message": f"Updated expired points for {updated} users",
    }


# ── Notifications ─────────────────────────────────────────────────────


@app.get("/notifications/{user_id}", response_model=list[Notification])
def list_notifications(user_id: str) -> list[Notification]:
    return notification_repo.list_for_user(user_id)


@app.get("/notifications/{user_id}/unread/count")
def unread_count(user_id: str) -> dict:
    return {"count": notification_repo.unread_count(user_id)}


@app.put("/notifications/{user_id}/read-all")
def mark_all_read(user_id: str) -> dict:
    return {"success": True, "count": notification_repo.mark_all_read(user_id)}


@app.put("/notifications/{notification_id}/read")
def mark_read(notification_id: str) -> dict:
    if notification_repo.mark_read(notification_id) is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"success": True}


@app.delete("/notifications/{notification_id}")
def delete_notification(notification_id: str) -> dict:
    if not notification_repo.delete(notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"success": True}


# ── Reward catalog ────────────────────────────────────────────────────


@app.get("/rewards/catalog", response_model=list[CatalogReward])
def list_catalog() -> list[CatalogReward]:
    return catalog_repo.list_available()


@app.get("/rewards/catalog/{reward_id}", response_model=CatalogReward)
def get_catalog_item(reward_id: str) -> CatalogReward:
    return catalog_service.get_item(reward_id)


@app.post("/rewards/catalog", response_model=CatalogReward, status_code=201)
def create_catalog_item(payload: CatalogRewardCreateRequest) -> CatalogReward:
    return catalog_service.add_item(CatalogReward(**payload.model_dump()))


@app.put("/rewards/catalog/{reward_id}", response_model=CatalogReward)
def update_catalog_item(reward_id: str, payload: CatalogRewardUpdateRequest) -> CatalogReward:
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    return catalog_service.update_item(reward_id, changes)


@app.delete("/rewards/catalog/{reward_id}")
def delete_catalog_item(reward_id: str) -> dict:
    catalog_service.delete_item(reward_id)
    return {"message": "Reward removed"}


@app.post("/rewards/catalog/{reward_id}/redeem")
def redeem(reward_id: str, payload: RedeemRequest) -> dict:
    redemption, remaining = catalog_service.redeem(reward_id, payload.user_id)
    return {
        "message": "Reward redeemed successfully",
        "redemption": redemption.model_dump(mode="json"),
        "remaining_points": remaining,
    }


@app.get("/rewards/redemptions/{user_id}")
def list_redemptions(user_id: str) -> list[dict]:
    return catalog_service.list_redemptions(user_id)


@app.put("/rewards/redemptions/{redemption_id}/status", response_model=Redemption)
def set_redemption_status(redemption_id: str, payload: RedemptionStatusRequest) -> Redemption:
    return catalog_service.set_status(redemption_id, payload.status, notes=payload.notes)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)

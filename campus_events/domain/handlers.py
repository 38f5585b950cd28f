"""Domain event handlers that turn domain activity into user notifications."""

from __future__ import annotations

from campus_events.domain.bus import EventBus
from campus_events.domain.events import (
    AchievementCompleted,
    BadgeAwarded,
    PointsAwarded,
    PointsExpired,
    VenueBooked,
)
from campus_events.domain.models import Notification
from campus_events.repos.memory import NotificationRepository


class NotificationHandlers:
    """Wires notification handlers to the bus."""

    def __init__(self, bus: EventBus, notification_repo: NotificationRepository) -> None:
        self.bus = bus
        self.notification_repo = notification_repo
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(PointsAwarded, self.on_points_awarded)
        self.bus.subscribe(BadgeAwarded, self.on_badge_awarded)
        self.bus.subscribe(AchievementCompleted, self.on_achievement_completed)
        self.bus.subscribe(PointsExpired, self.on_points_expired)
        self.bus.subscribe(VenueBooked, self.on_venue_booked)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_points_awarded(self, event: PointsAwarded) -> None:
        added = event.amount > 0
        self.notification_repo.add(
            Notification(
                user_id=event.user_id,
                title=f"Points {'Added' if added else 'Deducted'}",
                message=(
                    f"{abs(event.amount)} points have been "
                    f"{'added to' if added else 'deducted from'} your account. "
                    f"Reason: {event.reason}"
                ),
            )
        )

    def on_badge_awarded(self, event: BadgeAwarded) -> None:
        self.notification_repo.add(
            Notification(
                user_id=event.user_id,
                title="New Badge Earned",
                message=(
                    f"You have earned the {event.level} badge: {event.name}. "
                    f"{event.description}"
                ),
                priority="high",
            )
        )

    def on_achievement_completed(self, event: AchievementCompleted) -> None:
        self.notification_repo.add(
            Notification(
                user_id=event.user_id,
                title="Achievement Completed",
                message=(
                    f"You have completed the achievement: {event.title}. "
                    f"{event.description}"
                ),
                priority="high",
            )
        )

    def on_points_expired(self, event: PointsExpired) -> None:
        self.notification_repo.add(
            Notification(
                user_id=event.user_id,
                title="Points Expired",
                message=(
                    f"{event.expired_count} point grant(s) have expired. "
                    f"Your balance is now {event.new_total} points."
                ),
            )
        )

    def on_venue_booked(self, event: VenueBooked) -> None:
        if event.organizer_id is None:
            return
        self.notification_repo.add(
            Notification(
                user_id=event.organizer_id,
                title="Venue Booked",
                message=(
                    f"Your event {event.title} has been booked from "
                    f"{event.start_date.isoformat()} to {event.end_date.isoformat()}."
                ),
                type="event",
            )
        )

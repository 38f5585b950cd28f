"""In-memory repositories for venues, events, users, rewards and notifications."""

from __future__ import annotations

from campus_events.domain.models import (
    CatalogReward,
    Certificate,
    Committee,
    Event,
    Notification,
    Redemption,
    RewardState,
    User,
    Venue,
)
from campus_events.services.conflicts import is_live


class VenueRepository:
    """Dict-backed store for Venue instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Venue] = {}

    def add(self, venue: Venue) -> None:
        self._store[venue.id] = venue

    def get(self, venue_id: str) -> Venue | None:
        return self._store.get(venue_id)

    def get_by_name(self, name: str) -> Venue | None:
        for venue in self._store.values():
            if venue.name == name:
                return venue
        return None

    def list_all(self) -> list[Venue]:
        return sorted(self._store.values(), key=lambda v: v.name)

    def delete(self, venue_id: str) -> Venue | None:
        return self._store.pop(venue_id, None)


class EventRepository:
    """Dict-backed store for Event instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Event] = {}

    def add(self, event: Event) -> None:
        self._store[event.id] = event

    def get(self, event_id: str) -> Event | None:
        return self._store.get(event_id)

    def list_all(self) -> list[Event]:
        return list(self._store.values())

    def list_live_for_venue(self, venue_id: str) -> list[Event]:
        """Events at *venue_id* that are neither draft nor cancelled."""
        return [
            e for e in self._store.values() if e.venue_id == venue_id and is_live(e.status)
        ]

    def list_for_venue(self, venue_id: str) -> list[Event]:
        return [e for e in self._store.values() if e.venue_id == venue_id]


class UserRepository:
    """Dict-backed store for User instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, User] = {}

    def add(self, user: User) -> None:
        self._store[user.id] = user

    def get(self, user_id: str) -> User | None:
        return self._store.get(user_id)

    def count(self) -> int:
        return len(self._store)


class CommitteeRepository:
    def __init__(self) -> None:
        self._store: dict[str, Committee] = {}

    def add(self, committee: Committee) -> None:
        self._store[committee.id] = committee

    def get(self, committee_id: str) -> Committee | None:
        return self._store.get(committee_id)


class CertificateRepository:
    def __init__(self) -> None:
        self._store: dict[str, Certificate] = {}

    def add(self, certificate: Certificate) -> None:
        self._store[certificate.id] = certificate

    def get(self, certificate_id: str) -> Certificate | None:
        return self._store.get(certificate_id)


class RewardRepository:
    """Dict-backed store for RewardState instances, keyed by user id."""

    def __init__(self) -> None:
        self._store: dict[str, RewardState] = {}

    def add(self, state: RewardState) -> None:
        self._store[state.user_id] = state

    def get(self, user_id: str) -> RewardState | None:
        return self._store.get(user_id)

    def list_all(self) -> list[RewardState]:
        return list(self._store.values())

    def count(self) -> int:
        return len(self._store)


class NotificationRepository:
    """List-backed store for Notification instances."""

    def __init__(self) -> None:
        self._items: list[Notification] = []

    def add(self, notification: Notification) -> None:
        self._items.append(notification)

    def list_for_user(self, user_id: str) -> list[Notification]:
        """Newest first; insertion order breaks timestamp ties."""
        return [n for n in reversed(self._items) if n.user_id == user_id]

    def get(self, notification_id: str) -> Notification | None:
        for notification in self._items:
            if notification.id == notification_id:
                return notification
        return None

    def unread_count(self, user_id: str) -> int:
        return sum(1 for n in self._items if n.user_id == user_id and not n.read)

    def mark_read(self, notification_id: str) -> Notification | None:
        notification = self.get(notification_id)
        if notification is not None:
            notification.read = True
        return notification

    def mark_all_read(self, user_id: str) -> int:
        """Mark every unread notification for *user_id*; returns how many changed."""
        changed = 0
        for notification in self._items:
            if notification.user_id == user_id and not notification.read:
                notification.read = True
                changed += 1
        return changed

    def delete(self, notification_id: str) -> bool:
        notification = self.get(notification_id)
        if notification is None:
            return False
        self._items.remove(notification)
        return True


class CatalogRepository:
    """Dict-backed store for CatalogReward instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, CatalogReward] = {}

    def add(self, item: CatalogReward) -> None:
        self._store[item.id] = item

    def get(self, reward_id: str) -> CatalogReward | None:
        return self._store.get(reward_id)

    def delete(self, reward_id: str) -> CatalogReward | None:
        return self._store.pop(reward_id, None)

    def list_available(self) -> list[CatalogReward]:
        return sorted(
            (r for r in self._store.values() if r.available), key=lambda r: r.points
        )


class RedemptionRepository:
    """Dict-backed store for Redemption instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Redemption] = {}

    def add(self, redemption: Redemption) -> None:
        self._store[redemption.id] = redemption

    def get(self, redemption_id: str) -> Redemption | None:
        return self._store.get(redemption_id)

    def list_for_user(self, user_id: str) -> list[Redemption]:
        """Newest first."""
        return sorted(
            (r for r in self._store.values() if r.user_id == user_id),
            key=lambda r: r.redeemed_at,
            reverse=True,
        )

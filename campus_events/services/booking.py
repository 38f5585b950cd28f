"""Venue booking: availability checks and atomic check-and-commit saves."""

from __future__ import annotations

import logging
from contextlib import ExitStack, contextmanager
from typing import Any, Iterator

from campus_events.domain.bus import EventBus
from campus_events.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    VenueInUseError,
)
from campus_events.domain.events import VenueBooked
from campus_events.domain.models import BookingWindow, Event, EventStatus, Venue
from campus_events.repos.locks import KeyedLocks
from campus_events.repos.memory import EventRepository, VenueRepository
from campus_events.services.conflicts import find_conflicts, is_live, validate_window

logger = logging.getLogger(__name__)

# Events in these states no longer hold on to their venue.
_FINISHED_STATUSES = frozenset({EventStatus.COMPLETED, EventStatus.CANCELLED})


class VenueBookingService:
    def __init__(
        self,
        event_repo: EventRepository,
        venue_repo: VenueRepository,
        bus: EventBus,
        locks: KeyedLocks | None = None,
    ) -> None:
        self.event_repo = event_repo
        self.venue_repo = venue_repo
        self.bus = bus
        self.locks = locks or KeyedLocks()

    def _require_venue(self, venue_id: str) -> Venue:
        venue = self.venue_repo.get(venue_id)
        if venue is None:
            raise NotFoundError("Venue not found")
        return venue

    # ------------------------------------------------------------------
    # Venues
    # ------------------------------------------------------------------

    def update_venue(self, venue_id: str, changes: dict[str, Any]) -> Venue:
        with self.locks.for_key(venue_id):
            venue = self._require_venue(venue_id)
            new_name = changes.get("name")
            if new_name is not None and new_name != venue.name:
                if self.venue_repo.get_by_name(new_name) is not None:
                    raise ValidationError("Venue with this name already exists")
            updated = venue.model_copy(update=changes)
            self.venue_repo.add(updated)
        return updated

    def delete_venue(self, venue_id: str) -> None:
        """Remove a venue that no longer hosts any unfinished event."""
        with self.locks.for_key(venue_id):
            self._require_venue(venue_id)
            in_use = [
                e
                for e in self.event_repo.list_for_venue(venue_id)
                if e.status not in _FINISHED_STATUSES
            ]
            if in_use:
                raise VenueInUseError(
                    "Cannot delete venue as it is being used in active events", in_use
                )
            self.venue_repo.delete(venue_id)
        logger.info("venue removed", extra={"venue_id": venue_id})

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    def check_availability(
        self, venue_id: str, window: BookingWindow, exclude_id: str | None = None
    ) -> list[Event]:
        """Return live bookings that overlap *window*; empty means available.

        This is advisory only. ``save_event`` repeats the check under the
        venue lock before anything is committed.
        """
        self._require_venue(venue_id)
        live = self.event_repo.list_live_for_venue(venue_id)
        return find_conflicts(venue_id, window, live, exclude_id=exclude_id)

    def save_event(self, event: Event) -> Event:
        """Persist *event*, refusing it if it would double-book its venue.

        The conflict query and the write happen under one per-venue lock, so
        two concurrent requests for the same slot cannot both succeed.
        """
        validate_window(event.window())
        with self.locks.for_key(event.venue_id):
            self._commit(event)
        self._announce(event)
        return event

    def update_event(self, event_id: str, changes: dict[str, Any]) -> Event:
        """Apply *changes* to the stored event and re-check its venue.

        The stored copy is re-read with the venue locks held, so a cancel
        that lands first is never overwritten by a stale read.
        """
        target_venue = changes.get("venue_id")
        with self._locked_event(event_id, target_venue) as stored:
            updated = stored.model_copy(update=changes)
            validate_window(updated.window())
            self._commit(updated)
        self._announce(updated, previous=stored)
        return updated

    def cancel_event(self, event_id: str) -> Event:
        with self._locked_event(event_id) as stored:
            cancelled = stored.model_copy(update={"status": EventStatus.CANCELLED})
            self.event_repo.add(cancelled)
        logger.info("event cancelled", extra={"event_id": event_id})
        return cancelled

    @contextmanager
    def _locked_event(
        self, event_id: str, target_venue: str | None = None
    ) -> Iterator[Event]:
        """Hold the lock of the event's venue (and *target_venue*) and yield it.

        Locks are taken in sorted order. If the event moved venue while we
        waited, the locks are released and taken again for its new venue.
        """
        while True:
            current = self.event_repo.get(event_id)
            if current is None:
                raise NotFoundError("Event not found")
            venue_ids = sorted({current.venue_id, target_venue or current.venue_id})
            with ExitStack() as stack:
                for venue_id in venue_ids:
                    stack.enter_context(self.locks.for_key(venue_id))
                stored = self.event_repo.get(event_id)
                if stored is not None and stored.venue_id == current.venue_id:
                    yield stored
                    return

    def _commit(self, event: Event) -> None:
        """Check and store *event*; the caller holds its venue lock."""
        self._require_venue(event.venue_id)
        if is_live(event.status):
            live = self.event_repo.list_live_for_venue(event.venue_id)
            conflicts = find_conflicts(
                event.venue_id, event.window(), live, exclude_id=event.id
            )
            if conflicts:
                logger.warning(
                    "venue booking rejected",
                    extra={
                        "venue_id": event.venue_id,
                        "event_id": event.id,
                        "conflicting_event_ids": [c.id for c in conflicts],
                    },
                )
                raise ConflictError(
                    "Venue is already booked for the requested time",
                    conflicts,
                )
        self.event_repo.add(event)

    def _announce(self, event: Event, previous: Event | None = None) -> None:
        if not is_live(event.status):
            return
        if (
            previous is not None
            and is_live(previous.status)
            and previous.venue_id == event.venue_id
            and previous.window() == event.window()
        ):
            return
        logger.info(
            "venue booked",
            extra={"venue_id": event.venue_id, "event_id": event.id},
        )
        self.bus.publish(
            VenueBooked(
                event_id=event.id,
                venue_id=event.venue_id,
                title=event.title,
                start_date=event.start_date,
                end_date=event.end_date,
                organizer_id=event.organizer_id,
            )
        )

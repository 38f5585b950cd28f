"""Service for detecting venue double-bookings between events."""

from __future__ import annotations

from campus_events.domain.errors import ValidationError
from campus_events.domain.models import LIVE_STATUSES, BookingWindow, Event, EventStatus
from campus_events.services.timeparse import parse_hhmm


def is_live(status: EventStatus) -> bool:
    """Draft and cancelled events never hold a venue slot."""
    return status in LIVE_STATUSES


def validate_window(window: BookingWindow) -> tuple[int, int]:
    """Check a proposed window is well-formed and return its minute bounds."""
    start = parse_hhmm(window.start_time)
    end = parse_hhmm(window.end_time)
    if window.end_date < window.start_date:
        raise ValidationError("end_date must not be before start_date")
    if window.start_date == window.end_date and start >= end:
        raise ValidationError("end_time must be after start_time")
    return start, end


def _dates_overlap(candidate: BookingWindow, existing: Event) -> bool:
    return (
        candidate.start_date <= existing.end_date
        and existing.start_date <= candidate.end_date
    )


def _times_overlap(c_start: int, c_end: int, e_start: int, e_end: int) -> bool:
    return (
        (e_start <= c_start < e_end)
        or (e_start < c_end <= e_end)
        or (c_start <= e_start and c_end >= e_end)
    )


def find_conflicts(
    venue_id: str,
    candidate: BookingWindow,
    live_intervals: list[Event],
    exclude_id: str | None = None,
) -> list[Event]:
    """Return the live bookings of *venue_id* that overlap *candidate*.

    Two phases: a closed date-range overlap, then a half-open overlap of the
    daily time windows. A booking that ends exactly when the candidate starts
    (or vice versa) is NOT a conflict. Input order is preserved.
    """
    c_start, c_end = validate_window(candidate)

    conflicts: list[Event] = []
    for existing in live_intervals:
        if existing.id == exclude_id or existing.venue_id != venue_id:
            continue
        if not _dates_overlap(candidate, existing):
            continue
        e_start = parse_hhmm(existing.start_time)
        e_end = parse_hhmm(existing.end_time)
        if _times_overlap(c_start, c_end, e_start, e_end):
            conflicts.append(existing)
    return conflicts

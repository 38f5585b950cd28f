"""Errors raised by the booking and reward services."""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(DomainError):
    status_code = 400


class NotFoundError(DomainError):
    status_code = 404


class ConflictError(DomainError):
    """A live booking already holds the requested venue slot."""

    status_code = 409

    def __init__(self, detail: str, conflicts: list[Any]) -> None:
        super().__init__(detail)
        self.conflicts = conflicts


class VenueInUseError(ValidationError):
    """The venue still hosts events that are neither completed nor cancelled."""

    def __init__(self, detail: str, events: list[Any]) -> None:
        super().__init__(detail)
        self.events = events

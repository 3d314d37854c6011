# Services/errors.py
"""
Failures raised by the booking engine.

Validation errors are raised before anything is written. Conflict and
WholeDayBlocked are expected outcomes the caller shows to the member.
"""
from datetime import date, datetime
from typing import Optional


class BookingError(Exception):
    """Base class for every failure the booking engine reports."""


class InvalidInterval(BookingError):
    def __init__(self, message: str = "End time must be after start time"):
        super().__init__(message)


class InvalidRecurrenceRule(BookingError):
    pass


class Conflict(BookingError):
    """
    The requested interval overlaps an existing reservation.

    Attributes:
        owner_name: Display name of the member holding the blocking reservation
        start: Start of the blocking reservation
        end: End of the blocking reservation
        reservation_id: Id of the blocking reservation
        occurrence_start: Start of the requested occurrence that collided
    """

    def __init__(
        self,
        owner_name: str,
        start: datetime,
        end: datetime,
        reservation_id: Optional[str] = None,
        occurrence_start: Optional[datetime] = None,
    ):
        self.owner_name = owner_name
        self.start = start
        self.end = end
        self.reservation_id = reservation_id
        self.occurrence_start = occurrence_start
        message = (
            f"Already booked by {owner_name} "
            f"from {start:%Y-%m-%d %H:%M} to {end:%Y-%m-%d %H:%M}"
        )
        if occurrence_start is not None:
            message += f" (conflicts with the occurrence on {occurrence_start:%Y-%m-%d})"
        super().__init__(message)

    @property
    def occurrence_date(self) -> Optional[date]:
        return self.occurrence_start.date() if self.occurrence_start else None


class WholeDayBlocked(BookingError):
    def __init__(self, owner_name: str, day: date, reservation_id: Optional[str] = None):
        self.owner_name = owner_name
        self.day = day
        self.reservation_id = reservation_id
        super().__init__(f"{owner_name} has booked the whole day on {day:%Y-%m-%d}")


class NotFound(BookingError):
    pass


class StorageFailure(BookingError):
    """Opaque wrapper around an error raised by the database layer."""

    def __init__(self, original: Exception):
        self.original = original
        super().__init__(f"Storage failure: {original}")

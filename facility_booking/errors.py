from __future__ import annotations

from typing import Iterable, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Booking


class BookingError(Exception):
    """Base class for every error kind the booking engine reports to callers."""

    kind = "booking_error"


class ValidationError(BookingError, ValueError):
    kind = "validation_error"


class InvalidTransitionError(ValidationError):
    kind = "invalid_transition"


class NotFoundError(BookingError, LookupError):
    kind = "not_found"


class ConflictError(BookingError):
    kind = "conflict"

    def __init__(self, message: str, conflicts: Iterable[Booking] = ()) -> None:
        super().__init__(message)
        self.conflicts = frozenset(conflicts)


class ForbiddenError(BookingError, PermissionError):
    kind = "forbidden"


class BookingLockedError(ForbiddenError):
    kind = "booking_locked"


class BookingStorageError(RuntimeError):
    pass


class BookingConstraintViolation(BookingStorageError):
    def __init__(self, message: str, booking_ids: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.booking_ids = tuple(booking_ids)

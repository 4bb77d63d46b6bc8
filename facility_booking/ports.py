from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import date
from typing import Protocol

from .booking import TimeInterval
from .models import Booking, BookingStats, Facility


class FacilityLookup(Protocol):
    def get_active_facility(self, facility_id: str) -> Facility:
        """Return the facility or raise NotFoundError when it is absent or inactive."""
        ...


class BookingStore(Protocol):
    def save(self, booking: Booking) -> Booking: ...

    def find_by_id(self, booking_id: str) -> Booking: ...

    def find_conflicting(
        self,
        facility_id: str,
        booking_date: date,
        interval: TimeInterval,
        exclude_id: str | None = None,
    ) -> set[Booking]: ...

    def find_booked_on_date(self, facility_id: str, booking_date: date) -> list[Booking]: ...

    def find_by_user(self, user_id: str) -> list[Booking]: ...

    def find_all(self) -> list[Booking]: ...

    def aggregate_stats(self, user_id: str | None, today: date) -> BookingStats: ...

    def unit_of_work(self, facility_id: str, booking_date: date) -> AbstractContextManager[None]: ...


class Notifier(Protocol):
    def notify_created(self, booking: Booking) -> None: ...

    def notify_status_changed(self, booking: Booking) -> None: ...

    def notify_cancelled(self, booking: Booking) -> None: ...


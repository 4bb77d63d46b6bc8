from __future__ import annotations

import logging
from datetime import date

from .booking import TimeInterval
from .models import Booking
from .ports import BookingStore

logger = logging.getLogger(__name__)


class ConflictChecker:
    """Detects active bookings that overlap a candidate interval.

    Only CONFIRMED and PENDING bookings of the same facility and date take
    part; cancelled and rejected bookings never conflict. Intervals are
    half-open, so a booking ending at 10:00 leaves 10:00 free.
    """

    def __init__(self, store: BookingStore) -> None:
        self.store = store

    def find_conflicts(
        self,
        facility_id: str,
        booking_date: date,
        interval: TimeInterval,
        exclude_booking_id: str | None = None,
    ) -> set[Booking]:
        candidates = self.store.find_conflicting(facility_id, booking_date, interval, exclude_booking_id)
        conflicts = {
            booking
            for booking in candidates
            if booking.facility_id == facility_id
            and booking.date == booking_date
            and booking.status.is_active
            and booking.booking_id != exclude_booking_id
            and interval.overlaps(booking.interval)
        }

        if conflicts:
            logger.warning(
                "Found %d booking conflict(s) for facility %s on %s between %s",
                len(conflicts),
                facility_id,
                booking_date.isoformat(),
                interval,
            )
        return conflicts

    def has_conflict(
        self,
        facility_id: str,
        booking_date: date,
        interval: TimeInterval,
        exclude_booking_id: str | None = None,
    ) -> bool:
        return bool(self.find_conflicts(facility_id, booking_date, interval, exclude_booking_id))

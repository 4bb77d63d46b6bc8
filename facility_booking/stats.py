from __future__ import annotations

from datetime import date
from typing import Iterable

from .models import Booking, BookingStats, BookingStatus
from .ports import BookingStore


def summarize_bookings(bookings: Iterable[Booking], today: date) -> BookingStats:
    total = confirmed = pending = cancelled = upcoming = 0
    for booking in bookings:
        total += 1
        if booking.status is BookingStatus.CONFIRMED:
            confirmed += 1
            if booking.date >= today:
                upcoming += 1
        elif booking.status is BookingStatus.PENDING:
            pending += 1
        elif booking.status is BookingStatus.CANCELLED:
            cancelled += 1
    return BookingStats(
        total=total,
        confirmed=confirmed,
        pending=pending,
        cancelled=cancelled,
        upcoming=upcoming,
    )


class StatsAggregator:
    def __init__(self, store: BookingStore) -> None:
        self.store = store

    def stats(self, scope_user_id: str | None, today: date) -> BookingStats:
        """Counts by status for one user's bookings, or for all bookings when no user is given."""
        return self.store.aggregate_stats(scope_user_id, today)

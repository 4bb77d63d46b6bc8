from __future__ import annotations

from datetime import date, time, timedelta

import holidays as pyholidays

from .booking import add_minutes, has_time_overlap, parse_hhmm
from .config import GRID_END, GRID_GRANULARITY_MINUTES, GRID_START, WEEK_LENGTH_DAYS
from .errors import ValidationError
from .models import Booking, DailyGrid, DaySummary, Slot
from .ports import BookingStore, FacilityLookup

_HOLIDAY_CACHE: dict[tuple[str, int], dict[date, str]] = {}


class AvailabilityGridGenerator:
    """Derives fixed-granularity slot grids from the bookings of one facility.

    Grids are computed fresh on every call and never written back.
    """

    def __init__(
        self,
        facilities: FacilityLookup,
        store: BookingStore,
        holiday_country: str | None = None,
    ) -> None:
        self.facilities = facilities
        self.store = store
        self.holiday_country = holiday_country

    def daily_grid(
        self,
        facility_id: str,
        booking_date: date,
        range_start: str | time | None = None,
        range_end: str | time | None = None,
        granularity_minutes: int = GRID_GRANULARITY_MINUTES,
    ) -> DailyGrid:
        self.facilities.get_active_facility(facility_id)

        start = parse_hhmm(range_start, "start_time") if range_start is not None else GRID_START
        end = parse_hhmm(range_end, "end_time") if range_end is not None else GRID_END
        if start >= end:
            raise ValidationError("Availability range end must be after its start")
        if granularity_minutes <= 0:
            raise ValidationError("granularity_minutes must be greater than zero")

        slots = _build_slots(start, end, granularity_minutes)
        booked = self.store.find_booked_on_date(facility_id, booking_date)
        return DailyGrid(
            facility_id=facility_id,
            date=booking_date,
            slots=tuple(_overlay_bookings(slots, booked)),
        )

    def weekly_grid(self, facility_id: str, start_date: date) -> list[DaySummary]:
        self.facilities.get_active_facility(facility_id)

        days: list[DaySummary] = []
        for offset in range(WEEK_LENGTH_DAYS):
            day = start_date + timedelta(days=offset)
            slots = _overlay_bookings(
                _build_slots(GRID_START, GRID_END, GRID_GRANULARITY_MINUTES),
                self.store.find_booked_on_date(facility_id, day),
            )
            days.append(
                DaySummary(
                    date=day,
                    total=len(slots),
                    available=sum(1 for slot in slots if slot.is_available),
                    holiday=self.holiday_name(day),
                )
            )
        return days

    def holiday_name(self, target_date: date) -> str | None:
        if not self.holiday_country:
            return None
        return _holidays_for(self.holiday_country, target_date.year).get(target_date)


def _build_slots(range_start: time, range_end: time, granularity_minutes: int) -> list[Slot]:
    slots: list[Slot] = []
    cursor = range_start
    while True:
        slot_end = add_minutes(cursor, granularity_minutes)
        if slot_end is None or slot_end > range_end:
            break
        slots.append(Slot(start=cursor, end=slot_end))
        cursor = slot_end
    return slots


def _overlay_bookings(slots: list[Slot], bookings: list[Booking]) -> list[Slot]:
    # A slot covered by several bookings keeps the last one applied.
    overlaid = list(slots)
    for booking in bookings:
        if not booking.status.is_active:
            continue
        for index, slot in enumerate(overlaid):
            if has_time_overlap(slot.start, slot.end, booking.start_time, booking.end_time):
                overlaid[index] = Slot(
                    start=slot.start,
                    end=slot.end,
                    status=booking.status.value,
                    booking_id=booking.booking_id,
                )
    return overlaid


def _holidays_for(country: str, year: int) -> dict[date, str]:
    key = (country, year)
    if key not in _HOLIDAY_CACHE:
        holiday_map = pyholidays.country_holidays(country, years=[year])
        _HOLIDAY_CACHE[key] = {day: str(name) for day, name in holiday_map.items()}
    return _HOLIDAY_CACHE[key]

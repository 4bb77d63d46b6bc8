from __future__ import annotations

import logging
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Callable, Iterator, Mapping
from uuid import uuid4

from .booking import TimeInterval, parse_hhmm, parse_iso_date
from .config import MAX_BOOKING_MINUTES, MAX_PURPOSE_LENGTH
from .conflicts import ConflictChecker
from .errors import BookingConstraintViolation, ConflictError, ValidationError
from .lifecycle import BookingLifecycle
from .models import Actor, Booking, BookingStats, BookingStatus, BookingUpdate, Facility
from .notifications import NullNotifier
from .ports import BookingStore, FacilityLookup, Notifier
from .stats import StatsAggregator

logger = logging.getLogger(__name__)

CONFLICT_MESSAGE = "This facility is already booked during the requested time"
STALE_MESSAGE = "The booking was changed by another request, please retry"
STALE_RETRIES = 3


class _StaleBooking(Exception):
    pass


@dataclass(frozen=True)
class BookingListing:
    bookings: list[Booking]
    stats: BookingStats


class BookingOrchestrator:
    """Entry point for booking mutations.

    Each create, and each update that moves a booking in time, runs its
    conflict check and its save inside the store's unit of work for the
    target facility and date. A constraint violation raised by the store is
    treated as a lost race: the check is run once more before reporting a
    conflict.

    Updates and cancellations also hold the scope of the booking as it was
    read, and save only if the stored copy is still that version. A booking
    changed in between is read again and the change is re-applied through
    the lifecycle rules, so a concurrent cancel or reject is never undone.
    """

    def __init__(
        self,
        facilities: FacilityLookup,
        store: BookingStore,
        notifier: Notifier | None = None,
        now_provider: Callable[[], datetime] | None = None,
        lifecycle: BookingLifecycle | None = None,
    ) -> None:
        self.facilities = facilities
        self.store = store
        self.notifier: Notifier = notifier or NullNotifier()
        self.clock: Callable[[], datetime] = now_provider or datetime.now
        self.lifecycle = lifecycle or BookingLifecycle()
        self.conflicts = ConflictChecker(store)
        self.stats_aggregator = StatsAggregator(store)

    def create(
        self,
        actor: Actor,
        facility_id: str,
        booking_date: str | date,
        start_time: str | time,
        end_time: str | time,
        attendees: int | None = None,
        purpose: str | None = None,
    ) -> Booking:
        facility = self.facilities.get_active_facility(facility_id)

        start = parse_hhmm(start_time, "startTime")
        end = parse_hhmm(end_time, "endTime")
        interval = _validated_interval(start, end)

        day = parse_iso_date(booking_date)
        now = self.clock()
        if day < now.date():
            raise ValidationError("Booking date cannot be in the past")

        _validate_attendees(attendees, facility)
        _validate_purpose(purpose)

        booking = Booking(
            booking_id=str(uuid4()),
            facility_id=facility.facility_id,
            user_id=actor.user_id,
            date=day,
            start_time=interval.start,
            end_time=interval.end,
            status=self.lifecycle.initial_status(facility),
            created_at=now,
            updated_at=now,
            purpose=purpose,
            attendees=attendees,
        )

        saved = self._commit(booking, check_conflicts=True)
        logger.info(
            "Booking %s created for facility %s on %s (%s) as %s",
            saved.booking_id,
            saved.facility_id,
            saved.date.isoformat(),
            saved.interval,
            saved.status.value,
        )
        self._notify(self.notifier.notify_created, saved)
        return saved

    def update(self, actor: Actor, booking_id: str, changes: BookingUpdate | Mapping[str, Any]) -> Booking:
        if not isinstance(changes, BookingUpdate):
            changes = BookingUpdate.from_payload(changes)

        for _ in range(STALE_RETRIES):
            booking = self.store.find_by_id(booking_id)
            now = self.clock()
            updated = self._apply_update(actor, booking, changes, now)
            if updated == booking:
                return booking
            try:
                saved = self._commit(
                    updated.with_changes(updated_at=now),
                    check_conflicts=changes.touches_schedule,
                    based_on=booking,
                )
            except _StaleBooking:
                continue

            if saved.status is not booking.status:
                if actor.is_admin:
                    self._notify(self.notifier.notify_status_changed, saved)
                elif saved.status is BookingStatus.CANCELLED:
                    self._notify(self.notifier.notify_cancelled, saved)
            return saved
        raise ConflictError(STALE_MESSAGE)

    def cancel(self, actor: Actor, booking_id: str) -> Booking:
        for _ in range(STALE_RETRIES):
            booking = self.store.find_by_id(booking_id)
            cancelled = self.lifecycle.force_cancel(booking, actor, booking.is_owned_by(actor.user_id), self.clock())
            try:
                saved = self._commit(cancelled, check_conflicts=False, based_on=booking)
            except _StaleBooking:
                continue
            logger.info("Booking %s cancelled by %s (was %s)", saved.booking_id, actor.user_id, booking.status.value)
            self._notify(self.notifier.notify_cancelled, saved)
            return saved
        raise ConflictError(STALE_MESSAGE)

    def get(self, actor: Actor, booking_id: str) -> Booking:
        booking = self.store.find_by_id(booking_id)
        self.lifecycle.ensure_owner_or_admin(actor, booking.is_owned_by(actor.user_id))
        return booking

    def list_for(self, actor: Actor) -> BookingListing:
        if actor.is_admin:
            bookings = self.store.find_all()
            scope: str | None = None
        else:
            bookings = self.store.find_by_user(actor.user_id)
            scope = actor.user_id
        return BookingListing(bookings=bookings, stats=self.stats_aggregator.stats(scope, self.clock().date()))

    def _apply_update(self, actor: Actor, booking: Booking, changes: BookingUpdate, now: datetime) -> Booking:
        is_owner = booking.is_owned_by(actor.user_id)
        self.lifecycle.ensure_owner_or_admin(actor, is_owner)
        if changes.is_set("admin_notes"):
            self.lifecycle.ensure_can_set_admin_notes(actor)
        if changes.touches_details:
            self.lifecycle.ensure_editable(booking, actor, is_owner)

        field_changes: dict[str, Any] = {}

        if changes.touches_schedule:
            self.facilities.get_active_facility(booking.facility_id)
            start = parse_hhmm(changes.start_time, "startTime") if changes.is_set("start_time") else booking.start_time
            end = parse_hhmm(changes.end_time, "endTime") if changes.is_set("end_time") else booking.end_time
            interval = _validated_interval(start, end)

            day = parse_iso_date(changes.date) if changes.is_set("date") else booking.date
            if day != booking.date and day < now.date():
                raise ValidationError("Booking date cannot be in the past")

            field_changes.update(date=day, start_time=interval.start, end_time=interval.end)

        if changes.is_set("attendees"):
            _validate_attendees(changes.attendees, self.facilities.get_active_facility(booking.facility_id))
            field_changes["attendees"] = changes.attendees
        if changes.is_set("purpose"):
            _validate_purpose(changes.purpose)
            field_changes["purpose"] = changes.purpose
        if changes.is_set("admin_notes"):
            field_changes["admin_notes"] = changes.admin_notes

        updated = booking.with_changes(**field_changes) if field_changes else booking
        if changes.is_set("status"):
            updated = self.lifecycle.transition(updated, changes.status, actor, is_owner, now)
        return updated

    @contextmanager
    def _units_of_work(self, *bookings: Booking) -> Iterator[None]:
        # Scopes are always entered in sorted order so two moves never wait on each other.
        scopes = sorted({(booking.facility_id, booking.date) for booking in bookings})
        with ExitStack() as stack:
            for facility_id, booking_date in scopes:
                stack.enter_context(self.store.unit_of_work(facility_id, booking_date))
            yield

    def _commit(self, booking: Booking, check_conflicts: bool, based_on: Booking | None = None) -> Booking:
        """Check and save under the scope locks.

        When `based_on` is given, the stored booking must still equal it;
        otherwise `_StaleBooking` is raised and the caller rebuilds its
        change from a fresh read.
        """
        scoped = (booking,) if based_on is None else (booking, based_on)
        violation: BookingConstraintViolation | None = None
        for _ in range(2):
            with self._units_of_work(*scoped):
                if based_on is not None and self.store.find_by_id(based_on.booking_id) != based_on:
                    logger.info("Booking %s changed while it was being modified; re-reading", based_on.booking_id)
                    raise _StaleBooking(based_on.booking_id)
                if check_conflicts and booking.status.is_active:
                    conflicts = self.conflicts.find_conflicts(
                        booking.facility_id,
                        booking.date,
                        booking.interval,
                        exclude_booking_id=booking.booking_id,
                    )
                    if conflicts:
                        raise ConflictError(CONFLICT_MESSAGE, conflicts)
                try:
                    return self.store.save(booking)
                except BookingConstraintViolation as error:
                    logger.info("Store rejected booking %s as overlapping %s", booking.booking_id, error.booking_ids)
                    violation = error
                    check_conflicts = True
        raise ConflictError(CONFLICT_MESSAGE) from violation

    def _notify(self, send: Callable[[Booking], None], booking: Booking) -> None:
        try:
            send(booking)
        except Exception as error:
            logger.warning("Notification for booking %s failed: %s", booking.booking_id, error)


def _validated_interval(start: time, end: time) -> TimeInterval:
    if end <= start:
        raise ValidationError("End time must be after start time")
    interval = TimeInterval(start, end)
    if interval.duration_minutes > MAX_BOOKING_MINUTES:
        raise ValidationError("Booking duration cannot exceed 8 hours")
    return interval


def _validate_attendees(attendees: Any, facility: Facility) -> None:
    if attendees is None:
        return
    if isinstance(attendees, bool) or not isinstance(attendees, int) or attendees < 1:
        raise ValidationError("attendees must be a positive integer")
    if attendees > facility.capacity:
        raise ValidationError(f"Attendees ({attendees}) exceed facility capacity ({facility.capacity})")


def _validate_purpose(purpose: Any) -> None:
    if purpose is None:
        return
    if not isinstance(purpose, str):
        raise ValidationError("purpose must be text")
    if len(purpose) > MAX_PURPOSE_LENGTH:
        raise ValidationError(f"purpose must be at most {MAX_PURPOSE_LENGTH} characters")

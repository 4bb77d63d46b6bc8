from __future__ import annotations

from datetime import datetime

from .errors import BookingLockedError, ForbiddenError, InvalidTransitionError, ValidationError
from .models import Actor, Booking, BookingStatus, Facility

# (from, to) -> whether the owning user may trigger it; administrators may trigger every entry.
TRANSITIONS: dict[tuple[BookingStatus, BookingStatus], bool] = {
    (BookingStatus.PENDING, BookingStatus.CONFIRMED): False,
    (BookingStatus.CONFIRMED, BookingStatus.PENDING): False,
    (BookingStatus.PENDING, BookingStatus.REJECTED): False,
    (BookingStatus.PENDING, BookingStatus.CANCELLED): True,
    (BookingStatus.CONFIRMED, BookingStatus.CANCELLED): True,
}


def parse_status(value: str | BookingStatus) -> BookingStatus:
    if isinstance(value, BookingStatus):
        return value
    try:
        return BookingStatus(str(value).strip().lower())
    except ValueError as error:
        raise ValidationError(f"Invalid status: {value}") from error


class BookingLifecycle:
    def initial_status(self, facility: Facility) -> BookingStatus:
        return BookingStatus.PENDING if facility.requires_approval else BookingStatus.CONFIRMED

    def allowed_targets(self, current: BookingStatus, actor: Actor, is_owner: bool) -> set[BookingStatus]:
        targets: set[BookingStatus] = set()
        for (source, target), owner_allowed in TRANSITIONS.items():
            if source is not current:
                continue
            if actor.is_admin or (owner_allowed and is_owner):
                targets.add(target)
        return targets

    def transition(
        self,
        booking: Booking,
        target: str | BookingStatus,
        actor: Actor,
        is_owner: bool,
        now: datetime,
    ) -> Booking:
        target_status = parse_status(target)
        current = booking.status

        if not actor.is_admin:
            if not is_owner:
                raise ForbiddenError("Access denied")
            if target_status is not BookingStatus.CANCELLED:
                raise ForbiddenError("Only an administrator may change a booking status")

        if target_status is current:
            return booking
        if current.is_terminal:
            raise InvalidTransitionError(
                f"Booking {booking.booking_id} is {current.value} and cannot move to {target_status.value}"
            )

        if target_status not in self.allowed_targets(current, actor, is_owner):
            raise InvalidTransitionError(f"Invalid booking transition: {current.value} -> {target_status.value}")

        return booking.with_changes(status=target_status, updated_at=now)

    def ensure_editable(self, booking: Booking, actor: Actor, is_owner: bool) -> None:
        if actor.is_admin:
            return
        if not is_owner:
            raise ForbiddenError("Access denied")
        if booking.status is not BookingStatus.PENDING:
            raise BookingLockedError("Only pending bookings can be modified")

    def ensure_can_set_admin_notes(self, actor: Actor) -> None:
        if not actor.is_admin:
            raise ForbiddenError("Only an administrator may set admin notes")

    def ensure_owner_or_admin(self, actor: Actor, is_owner: bool) -> None:
        if not actor.is_admin and not is_owner:
            raise ForbiddenError("Access denied")

    def force_cancel(self, booking: Booking, actor: Actor, is_owner: bool, now: datetime) -> Booking:
        """Cancel regardless of the current status, including already terminal bookings."""
        self.ensure_owner_or_admin(actor, is_owner)
        return booking.with_changes(status=BookingStatus.CANCELLED, updated_at=now)

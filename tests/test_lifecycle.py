import unittest
from datetime import date, datetime, time

from facility_booking import (
    Actor,
    Booking,
    BookingLifecycle,
    BookingLockedError,
    BookingStatus,
    Facility,
    ForbiddenError,
    InvalidTransitionError,
    Role,
    ValidationError,
)
from facility_booking.lifecycle import parse_status

NOW = datetime(2026, 2, 24, 9, 0)
LATER = datetime(2026, 2, 24, 10, 0)
ADMIN = Actor("admin", Role.ADMIN)
OWNER = Actor("dave", Role.STUDENT)
STRANGER = Actor("eve", Role.FACULTY)


def _booking(status: BookingStatus) -> Booking:
    return Booking(
        booking_id="b1",
        facility_id="lab",
        user_id="dave",
        date=date(2026, 3, 1),
        start_time=time(9, 0),
        end_time=time(11, 0),
        status=status,
        created_at=NOW,
        updated_at=NOW,
    )


class TestInitialStatus(unittest.TestCase):
    def test_initial_status_follows_facility_policy(self) -> None:
        lifecycle = BookingLifecycle()
        self.assertIs(lifecycle.initial_status(Facility("aud", "Auditorium", 500, requires_approval=True)), BookingStatus.PENDING)
        self.assertIs(lifecycle.initial_status(Facility("lab", "Lab", 30, requires_approval=False)), BookingStatus.CONFIRMED)


class TestTransitions(unittest.TestCase):
    def setUp(self) -> None:
        self.lifecycle = BookingLifecycle()

    def test_admin_can_confirm_reject_and_reopen(self) -> None:
        confirmed = self.lifecycle.transition(_booking(BookingStatus.PENDING), "confirmed", ADMIN, False, LATER)
        self.assertIs(confirmed.status, BookingStatus.CONFIRMED)
        self.assertEqual(confirmed.updated_at, LATER)

        reopened = self.lifecycle.transition(confirmed, BookingStatus.PENDING, ADMIN, False, LATER)
        self.assertIs(reopened.status, BookingStatus.PENDING)

        rejected = self.lifecycle.transition(reopened, "REJECTED", ADMIN, False, LATER)
        self.assertIs(rejected.status, BookingStatus.REJECTED)

    def test_owner_can_cancel_pending_and_confirmed(self) -> None:
        for status in (BookingStatus.PENDING, BookingStatus.CONFIRMED):
            with self.subTest(status=status):
                cancelled = self.lifecycle.transition(_booking(status), "cancelled", OWNER, True, LATER)
                self.assertIs(cancelled.status, BookingStatus.CANCELLED)

    def test_owner_cannot_confirm(self) -> None:
        with self.assertRaises(ForbiddenError):
            self.lifecycle.transition(_booking(BookingStatus.PENDING), "confirmed", OWNER, True, LATER)

    def test_non_owner_cannot_cancel(self) -> None:
        with self.assertRaises(ForbiddenError):
            self.lifecycle.transition(_booking(BookingStatus.PENDING), "cancelled", STRANGER, False, LATER)

    def test_terminal_states_have_no_way_out(self) -> None:
        for status in (BookingStatus.CANCELLED, BookingStatus.REJECTED):
            for target in ("pending", "confirmed"):
                with self.subTest(status=status, target=target):
                    with self.assertRaises(InvalidTransitionError):
                        self.lifecycle.transition(_booking(status), target, ADMIN, False, LATER)

    def test_confirmed_cannot_be_rejected(self) -> None:
        with self.assertRaises(InvalidTransitionError):
            self.lifecycle.transition(_booking(BookingStatus.CONFIRMED), "rejected", ADMIN, False, LATER)

    def test_same_status_is_a_no_op(self) -> None:
        booking = _booking(BookingStatus.CONFIRMED)
        self.assertIs(self.lifecycle.transition(booking, "confirmed", ADMIN, False, LATER), booking)

    def test_unknown_status_literal_is_a_validation_error(self) -> None:
        with self.assertRaises(ValidationError):
            parse_status("archived")
        with self.assertRaises(ValidationError):
            self.lifecycle.transition(_booking(BookingStatus.PENDING), "done", ADMIN, False, LATER)

    def test_allowed_targets_depend_on_role(self) -> None:
        self.assertEqual(
            self.lifecycle.allowed_targets(BookingStatus.PENDING, ADMIN, False),
            {BookingStatus.CONFIRMED, BookingStatus.REJECTED, BookingStatus.CANCELLED},
        )
        self.assertEqual(self.lifecycle.allowed_targets(BookingStatus.CONFIRMED, OWNER, True), {BookingStatus.CANCELLED})
        self.assertEqual(self.lifecycle.allowed_targets(BookingStatus.CONFIRMED, STRANGER, False), set())
        self.assertEqual(self.lifecycle.allowed_targets(BookingStatus.REJECTED, ADMIN, False), set())


class TestEditRules(unittest.TestCase):
    def setUp(self) -> None:
        self.lifecycle = BookingLifecycle()

    def test_owner_may_edit_pending_booking(self) -> None:
        self.lifecycle.ensure_editable(_booking(BookingStatus.PENDING), OWNER, True)

    def test_confirmed_booking_is_locked_for_owner(self) -> None:
        with self.assertRaises(BookingLockedError):
            self.lifecycle.ensure_editable(_booking(BookingStatus.CONFIRMED), OWNER, True)

    def test_admin_may_edit_locked_booking(self) -> None:
        self.lifecycle.ensure_editable(_booking(BookingStatus.CONFIRMED), ADMIN, False)

    def test_stranger_may_not_edit(self) -> None:
        with self.assertRaises(ForbiddenError):
            self.lifecycle.ensure_editable(_booking(BookingStatus.PENDING), STRANGER, False)

    def test_only_admin_sets_admin_notes(self) -> None:
        self.lifecycle.ensure_can_set_admin_notes(ADMIN)
        with self.assertRaises(ForbiddenError):
            self.lifecycle.ensure_can_set_admin_notes(OWNER)


class TestForceCancel(unittest.TestCase):
    def test_force_cancel_accepts_terminal_bookings(self) -> None:
        lifecycle = BookingLifecycle()
        for status in BookingStatus:
            with self.subTest(status=status):
                self.assertIs(lifecycle.force_cancel(_booking(status), OWNER, True, LATER).status, BookingStatus.CANCELLED)

    def test_force_cancel_requires_owner_or_admin(self) -> None:
        with self.assertRaises(ForbiddenError):
            BookingLifecycle().force_cancel(_booking(BookingStatus.CONFIRMED), STRANGER, False, LATER)


if __name__ == "__main__":
    unittest.main()

import tempfile
import unittest
from datetime import date, datetime, time
from pathlib import Path

from facility_booking import Booking, BookingStatus, BookingYamlRepository, ConflictChecker, TimeInterval

NOW = datetime(2026, 2, 24, 9, 0)
DAY = date(2026, 3, 1)


def _booking(booking_id: str, start: time, end: time, status: BookingStatus, facility_id: str = "lab", day: date = DAY) -> Booking:
    return Booking(
        booking_id=booking_id,
        facility_id=facility_id,
        user_id="dave",
        date=day,
        start_time=start,
        end_time=end,
        status=status,
        created_at=NOW,
        updated_at=NOW,
    )


class TestConflictChecker(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_dir = tempfile.TemporaryDirectory()
        self.repo = BookingYamlRepository(Path(self._temp_dir.name) / "data")
        self.checker = ConflictChecker(self.repo)

    def tearDown(self) -> None:
        self._temp_dir.cleanup()

    def test_overlapping_confirmed_booking_conflicts(self) -> None:
        existing = self.repo.save(_booking("b1", time(9, 0), time(11, 0), BookingStatus.CONFIRMED))

        conflicts = self.checker.find_conflicts("lab", DAY, TimeInterval(time(10, 0), time(12, 0)))

        self.assertEqual(conflicts, {existing})
        self.assertTrue(self.checker.has_conflict("lab", DAY, TimeInterval(time(10, 0), time(12, 0))))

    def test_pending_booking_also_conflicts(self) -> None:
        self.repo.save(_booking("b1", time(9, 0), time(11, 0), BookingStatus.PENDING))
        self.assertTrue(self.checker.has_conflict("lab", DAY, TimeInterval(time(8, 0), time(9, 30))))

    def test_touching_boundary_does_not_conflict(self) -> None:
        self.repo.save(_booking("b1", time(9, 0), time(11, 0), BookingStatus.CONFIRMED))
        self.assertFalse(self.checker.has_conflict("lab", DAY, TimeInterval(time(11, 0), time(13, 0))))
        self.assertFalse(self.checker.has_conflict("lab", DAY, TimeInterval(time(7, 0), time(9, 0))))

    def test_cancelled_and_rejected_bookings_never_conflict(self) -> None:
        self.repo.save(_booking("b1", time(9, 0), time(11, 0), BookingStatus.CANCELLED))
        self.repo.save(_booking("b2", time(9, 0), time(11, 0), BookingStatus.REJECTED))

        for start, end in [(time(9, 0), time(11, 0)), (time(8, 0), time(22, 0)), (time(10, 0), time(10, 30))]:
            with self.subTest(start=start, end=end):
                self.assertFalse(self.checker.has_conflict("lab", DAY, TimeInterval(start, end)))

    def test_other_facility_or_date_is_ignored(self) -> None:
        self.repo.save(_booking("b1", time(9, 0), time(11, 0), BookingStatus.CONFIRMED, facility_id="auditorium"))
        self.repo.save(_booking("b2", time(9, 0), time(11, 0), BookingStatus.CONFIRMED, day=date(2026, 3, 2)))

        self.assertFalse(self.checker.has_conflict("lab", DAY, TimeInterval(time(9, 0), time(11, 0))))

    def test_excluded_booking_is_not_compared_with_itself(self) -> None:
        self.repo.save(_booking("b1", time(9, 0), time(11, 0), BookingStatus.CONFIRMED))

        self.assertFalse(
            self.checker.has_conflict("lab", DAY, TimeInterval(time(9, 30), time(11, 30)), exclude_booking_id="b1")
        )

    def test_returns_every_conflicting_booking(self) -> None:
        first = self.repo.save(_booking("b1", time(9, 0), time(10, 0), BookingStatus.CONFIRMED))
        second = self.repo.save(_booking("b2", time(10, 0), time(11, 0), BookingStatus.PENDING))
        self.repo.save(_booking("b3", time(12, 0), time(13, 0), BookingStatus.CONFIRMED))

        conflicts = self.checker.find_conflicts("lab", DAY, TimeInterval(time(9, 30), time(10, 30)))

        self.assertEqual(conflicts, {first, second})

    def test_unknown_facility_is_simply_free(self) -> None:
        self.assertEqual(self.checker.find_conflicts("nowhere", DAY, TimeInterval(time(9, 0), time(10, 0))), set())


if __name__ == "__main__":
    unittest.main()

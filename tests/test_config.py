import os
import unittest
from pathlib import Path
from unittest import mock

import pydantic

from facility_booking.config import BookingSettings


class TestBookingSettings(unittest.TestCase):
    def test_defaults_without_environment(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = BookingSettings()

        self.assertEqual(settings.data_dir, Path("data"))
        self.assertIsNone(settings.holiday_country)
        self.assertTrue(settings.notifications)
        self.assertEqual(settings.mail_from, "no-reply@campus-booking.local")
        self.assertEqual(settings.notification_workers, 2)

    def test_reads_prefixed_variables(self) -> None:
        environ = {
            "FACILITY_BOOKING_DATA_DIR": "/srv/booking",
            "FACILITY_BOOKING_HOLIDAY_COUNTRY": " us ",
            "FACILITY_BOOKING_NOTIFICATIONS": "off",
            "FACILITY_BOOKING_MAIL_FROM": "desk@example.edu",
            "FACILITY_BOOKING_NOTIFICATION_WORKERS": "4",
            "DATA_DIR": "/ignored",
        }
        with mock.patch.dict(os.environ, environ, clear=True):
            settings = BookingSettings()

        self.assertEqual(settings.data_dir, Path("/srv/booking"))
        self.assertEqual(settings.holiday_country, "US")
        self.assertFalse(settings.notifications)
        self.assertEqual(settings.mail_from, "desk@example.edu")
        self.assertEqual(settings.notification_workers, 4)

    def test_notification_flag_accepts_common_true_values(self) -> None:
        for value in ("1", "true", "YES", "on"):
            with self.subTest(value=value):
                with mock.patch.dict(os.environ, {"FACILITY_BOOKING_NOTIFICATIONS": value}, clear=True):
                    self.assertTrue(BookingSettings().notifications)

    def test_invalid_worker_count_names_the_field(self) -> None:
        for value in ("many", "0"):
            with self.subTest(value=value):
                with mock.patch.dict(os.environ, {"FACILITY_BOOKING_NOTIFICATION_WORKERS": value}, clear=True):
                    with self.assertRaisesRegex(pydantic.ValidationError, "notification_workers"):
                        BookingSettings()

    def test_explicit_values_override_environment(self) -> None:
        with mock.patch.dict(os.environ, {"FACILITY_BOOKING_NOTIFICATIONS": "0"}, clear=True):
            settings = BookingSettings(data_dir="/tmp/booking", notifications=True, holiday_country="")

        self.assertEqual(settings.data_dir, Path("/tmp/booking"))
        self.assertTrue(settings.notifications)
        self.assertIsNone(settings.holiday_country)

    def test_settings_are_immutable(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = BookingSettings()
        with self.assertRaises(pydantic.ValidationError):
            settings.mail_from = "other@example.edu"


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import shutil
import threading
import weakref
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Any, Iterator
from uuid import uuid4

import yaml

from .booking import TimeInterval
from .errors import BookingConstraintViolation, BookingStorageError, NotFoundError
from .models import Booking, BookingStats, BookingStatus, Facility
from .stats import summarize_bookings

_LOCK_REGISTRY_GUARD = threading.Lock()
# Entries disappear once no repository or unit of work holds the lock.
_LOCK_REGISTRY: weakref.WeakValueDictionary[tuple[str, ...], Any] = weakref.WeakValueDictionary()


def _shared_lock(*key: str) -> threading.RLock:
    with _LOCK_REGISTRY_GUARD:
        lock = _LOCK_REGISTRY.get(key)
        if lock is None:
            lock = threading.RLock()
            _LOCK_REGISTRY[key] = lock
        return lock


class BookingYamlRepository:
    """Facility lookup and booking store backed by YAML files.

    Every repository opened on the same directory within one process shares
    the same write lock and the same per facility+date scope locks, so a
    conflict check and the insert that follows it run as one unit of work.
    """

    def __init__(self, base_dir: str | Path = "data") -> None:
        self.base_dir = Path(base_dir)
        self.facilities_file = self.base_dir / "facilities.yaml"
        self.bookings_file = self.base_dir / "bookings.yaml"
        self.log_file = self.base_dir / "booking_events.yaml"
        self._lock_root = str(self.base_dir.resolve())
        self._write_lock = _shared_lock(self._lock_root, "__write__")
        self._ensure_files()

    def _ensure_files(self) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        for path in (self.facilities_file, self.bookings_file, self.log_file):
            if not path.exists():
                path.write_text("[]\n", encoding="utf-8")

    def _read_yaml_list(self, path: Path) -> list[dict[str, Any]]:
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            path.write_text("[]\n", encoding="utf-8")
            return []
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
            self._recover_corrupted_yaml(path, error)
            return []

        if payload is None:
            return []
        if not isinstance(payload, list):
            self._recover_corrupted_yaml(path, ValueError("top-level YAML is not a list"))
            return []

        sanitized: list[dict[str, Any]] = []
        for index, row in enumerate(payload):
            if isinstance(row, dict):
                sanitized.append(row)
            elif path != self.log_file:
                self.record_event(
                    "YAML_ROW_SKIPPED",
                    {
                        "file": str(path.name),
                        "index": index,
                        "reason": "row is not a mapping",
                    },
                )
        return sanitized

    def _write_yaml_list(self, path: Path, rows: list[dict[str, Any]]) -> None:
        temp_path = path.with_suffix(path.suffix + f".{uuid4().hex}.tmp")
        try:
            temp_path.write_text(yaml.safe_dump(rows, allow_unicode=True, sort_keys=False), encoding="utf-8")
            temp_path.replace(path)
        except OSError as error:
            raise BookingStorageError(f"Failed to write YAML file: {path}") from error
        finally:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)

    def _recover_corrupted_yaml(self, path: Path, error: Exception) -> None:
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        backup_path = path.with_name(f"{path.stem}.corrupt.{timestamp}{path.suffix}")
        try:
            if path.exists():
                shutil.copy2(path, backup_path)
        except OSError:
            backup_path = path

        path.write_text("[]\n", encoding="utf-8")
        if path != self.log_file:
            self.record_event(
                "YAML_RECOVERED",
                {
                    "file": str(path.name),
                    "backup": str(backup_path.name),
                    "reason": str(error),
                },
            )

    def record_event(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        timestamp = (event_time or datetime.now()).isoformat(timespec="seconds")
        with self._write_lock:
            events = self._read_yaml_list(self.log_file)
            events.append({"event_time": timestamp, "event_type": event_type, "payload": payload})
            self._write_yaml_list(self.log_file, events)

    def get_events(self, event_type: str | None = None) -> list[dict[str, Any]]:
        events = self._read_yaml_list(self.log_file)
        return [event for event in events if event_type is None or event.get("event_type") == event_type]

    # Facilities

    def upsert_facility(self, facility: Facility) -> Facility:
        with self._write_lock:
            rows = [row for row in self._read_yaml_list(self.facilities_file) if str(row.get("facility_id")) != facility.facility_id]
            rows.append(facility.to_dict())
            self._write_yaml_list(self.facilities_file, rows)
        return facility

    def get_facilities(self, include_inactive: bool = False) -> list[Facility]:
        facilities = [Facility.from_dict(row) for row in self._read_yaml_list(self.facilities_file)]
        return [facility for facility in facilities if include_inactive or facility.active]

    def get_active_facility(self, facility_id: str) -> Facility:
        for facility in self.get_facilities():
            if facility.facility_id == str(facility_id):
                return facility
        raise NotFoundError(f"Facility not found: {facility_id}")

    # Bookings

    @contextmanager
    def unit_of_work(self, facility_id: str, booking_date: date) -> Iterator[None]:
        scope_lock = _shared_lock(self._lock_root, str(facility_id), booking_date.isoformat())
        with scope_lock:
            yield

    def _read_bookings(self) -> list[Booking]:
        return [Booking.from_dict(row) for row in self._read_yaml_list(self.bookings_file)]

    def save(self, booking: Booking) -> Booking:
        with self._write_lock:
            rows = self._read_yaml_list(self.bookings_file)
            existing = [Booking.from_dict(row) for row in rows]

            if booking.status.is_active:
                clashing = [
                    other.booking_id
                    for other in existing
                    if other.booking_id != booking.booking_id
                    and other.facility_id == booking.facility_id
                    and other.date == booking.date
                    and other.status.is_active
                    and booking.interval.overlaps(other.interval)
                ]
                if clashing:
                    raise BookingConstraintViolation(
                        "Booking overlaps an active booking of the same facility and date.",
                        clashing,
                    )

            found_index = -1
            for index, row in enumerate(rows):
                if str(row.get("booking_id")) == booking.booking_id:
                    found_index = index
                    break

            if found_index < 0:
                rows.append(booking.to_dict())
                event_type = "BOOKING_CREATED"
            else:
                rows[found_index] = booking.to_dict()
                event_type = "BOOKING_UPDATED"
            self._write_yaml_list(self.bookings_file, rows)

            self.record_event(
                event_type,
                {
                    "booking_id": booking.booking_id,
                    "facility_id": booking.facility_id,
                    "user_id": booking.user_id,
                    "date": booking.date.isoformat(),
                    "interval": str(booking.interval),
                    "status": booking.status.value,
                },
                booking.updated_at,
            )
        return booking

    def find_by_id(self, booking_id: str) -> Booking:
        for booking in self._read_bookings():
            if booking.booking_id == str(booking_id):
                return booking
        raise NotFoundError(f"Booking not found: {booking_id}")

    def find_conflicting(
        self,
        facility_id: str,
        booking_date: date,
        interval: TimeInterval,
        exclude_id: str | None = None,
    ) -> set[Booking]:
        return {
            booking
            for booking in self._read_bookings()
            if booking.facility_id == facility_id
            and booking.date == booking_date
            and booking.status.is_active
            and booking.booking_id != exclude_id
            and booking.start_time < interval.end
            and booking.end_time > interval.start
        }

    def find_booked_on_date(self, facility_id: str, booking_date: date) -> list[Booking]:
        booked = [
            booking
            for booking in self._read_bookings()
            if booking.facility_id == facility_id and booking.date == booking_date and booking.status.is_active
        ]
        return sorted(booked, key=lambda booking: booking.start_time)

    def find_by_user(self, user_id: str) -> list[Booking]:
        owned = [booking for booking in self._read_bookings() if booking.user_id == user_id]
        return sorted(owned, key=lambda booking: booking.created_at, reverse=True)

    def find_all(self) -> list[Booking]:
        return sorted(self._read_bookings(), key=lambda booking: booking.created_at, reverse=True)

    def aggregate_stats(self, user_id: str | None, today: date) -> BookingStats:
        bookings = self.find_all() if user_id is None else self.find_by_user(user_id)
        return summarize_bookings(bookings, today)

    def seed_demo_data(self, now: datetime | None = None, overwrite: bool = True) -> list[Booking]:
        effective_now = now or datetime.now()
        facilities = generate_demo_facilities()
        bookings = generate_demo_bookings(effective_now)

        with self._write_lock:
            if overwrite:
                self._write_yaml_list(self.facilities_file, [])
                self._write_yaml_list(self.bookings_file, [])

            facility_rows = [
                row
                for row in self._read_yaml_list(self.facilities_file)
                if str(row.get("facility_id")) not in {facility.facility_id for facility in facilities}
            ]
            facility_rows.extend(facility.to_dict() for facility in facilities)
            self._write_yaml_list(self.facilities_file, facility_rows)

            booking_rows = self._read_yaml_list(self.bookings_file)
            booking_rows.extend(booking.to_dict() for booking in bookings)
            self._write_yaml_list(self.bookings_file, booking_rows)

        self.record_event(
            "DEMO_DATA_GENERATED",
            {
                "facilities": len(facilities),
                "bookings": len(bookings),
                "overwrite": overwrite,
            },
            effective_now,
        )
        return bookings


def generate_demo_facilities() -> list[Facility]:
    return [
        Facility("eng-lab-a", "Engineering Lab A", 30, False, location="Block A, Room 101", facility_type="lab"),
        Facility("main-auditorium", "Main Auditorium", 500, True, location="Central Building", facility_type="auditorium"),
        Facility("study-room-1", "Study Room 1", 8, False, location="Library, Floor 2", facility_type="study_room"),
        Facility("study-room-2", "Study Room 2", 6, False, location="Library, Floor 2", facility_type="study_room"),
        Facility("sports-hall", "Sports Hall", 100, True, location="Sports Complex", facility_type="sports"),
        Facility("seminar-room-b", "Seminar Room B", 40, False, location="Block B, Room 201", facility_type="room"),
        Facility("research-lab-3", "Research Lab 3", 20, True, location="Block C, Room 301", facility_type="lab"),
        Facility("fitness-centre", "Fitness Centre", 50, False, location="Sports Complex", facility_type="gym"),
    ]


def generate_demo_bookings(now: datetime) -> list[Booking]:
    today = now.date()
    plan = [
        ("dave", "eng-lab-a", 1, "09:00", "11:00", BookingStatus.CONFIRMED, "Lab project"),
        ("eve", "study-room-1", 1, "14:00", "16:00", BookingStatus.CONFIRMED, "Group study"),
        ("alice", "seminar-room-b", 2, "10:00", "12:00", BookingStatus.CONFIRMED, "Faculty meeting"),
        ("frank", "main-auditorium", 2, "13:00", "17:00", BookingStatus.PENDING, "Student presentation"),
        ("dave", "study-room-2", 3, "09:00", "10:00", BookingStatus.CONFIRMED, "Study session"),
        ("bob", "research-lab-3", 3, "11:00", "15:00", BookingStatus.PENDING, "Research work"),
        ("grace", "eng-lab-a", 5, "14:00", "16:00", BookingStatus.CONFIRMED, "Project work"),
        ("carol", "seminar-room-b", 5, "10:00", "12:00", BookingStatus.CONFIRMED, "Class prep"),
        ("eve", "sports-hall", 7, "08:00", "10:00", BookingStatus.PENDING, "Sports practice"),
        ("frank", "fitness-centre", 7, "17:00", "19:00", BookingStatus.CONFIRMED, "Workout"),
        ("alice", "main-auditorium", 7, "13:00", "15:00", BookingStatus.CONFIRMED, "Seminar"),
        ("dave", "study-room-1", -1, "10:00", "11:00", BookingStatus.CANCELLED, "Cancelled session"),
    ]

    records: list[Booking] = []
    for user_id, facility_id, day_offset, start, end, status, purpose in plan:
        records.append(
            Booking(
                booking_id=str(uuid4()),
                facility_id=facility_id,
                user_id=user_id,
                date=today + timedelta(days=day_offset),
                start_time=time.fromisoformat(start),
                end_time=time.fromisoformat(end),
                status=status,
                created_at=now,
                updated_at=now,
                purpose=purpose,
            )
        )
    return records

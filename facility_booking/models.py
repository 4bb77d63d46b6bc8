from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Mapping

from .booking import TimeInterval, format_hhmm, parse_hhmm, parse_iso_date
from .errors import ValidationError


class BookingStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES


ACTIVE_STATUSES = frozenset({BookingStatus.CONFIRMED, BookingStatus.PENDING})
TERMINAL_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.REJECTED})
WEEKDAY_NAMES = ("MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY", "SUNDAY")


class Role(Enum):
    STUDENT = "student"
    FACULTY = "faculty"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: str | Role) -> Role:
        if isinstance(value, Role):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as error:
            raise ValidationError(f"Unknown role: {value}") from error


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: Role = Role.STUDENT

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass(frozen=True)
class Facility:
    facility_id: str
    name: str
    capacity: int
    requires_approval: bool = False
    active: bool = True
    location: str | None = None
    facility_type: str | None = None

    def __post_init__(self) -> None:
        if self.capacity <= 0:
            raise ValidationError("Facility capacity must be a positive integer")

    def to_dict(self) -> dict[str, Any]:
        return {
            "facility_id": self.facility_id,
            "name": self.name,
            "capacity": self.capacity,
            "requires_approval": self.requires_approval,
            "active": self.active,
            "location": self.location,
            "facility_type": self.facility_type,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Facility":
        return Facility(
            facility_id=str(data["facility_id"]),
            name=str(data.get("name") or data["facility_id"]),
            capacity=int(data["capacity"]),
            requires_approval=bool(data.get("requires_approval", False)),
            active=bool(data.get("active", True)),
            location=(str(data["location"]) if data.get("location") is not None else None),
            facility_type=(str(data["facility_type"]) if data.get("facility_type") is not None else None),
        )


@dataclass(frozen=True)
class Booking:
    booking_id: str
    facility_id: str
    user_id: str
    date: date
    start_time: time
    end_time: time
    status: BookingStatus
    created_at: datetime
    updated_at: datetime
    purpose: str | None = None
    attendees: int | None = None
    admin_notes: str | None = None

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.start_time, self.end_time)

    def is_owned_by(self, user_id: str) -> bool:
        return self.user_id == user_id

    def with_changes(self, **changes: Any) -> "Booking":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "booking_id": self.booking_id,
            "facility_id": self.facility_id,
            "user_id": self.user_id,
            "date": self.date.isoformat(),
            "start_time": format_hhmm(self.start_time),
            "end_time": format_hhmm(self.end_time),
            "status": self.status.value,
            "created_at": self.created_at.isoformat(timespec="seconds"),
            "updated_at": self.updated_at.isoformat(timespec="seconds"),
        }
        if self.purpose is not None:
            payload["purpose"] = self.purpose
        if self.attendees is not None:
            payload["attendees"] = self.attendees
        if self.admin_notes is not None:
            payload["admin_notes"] = self.admin_notes
        return payload

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Booking":
        return Booking(
            booking_id=str(data["booking_id"]),
            facility_id=str(data["facility_id"]),
            user_id=str(data["user_id"]),
            date=parse_iso_date(str(data["date"])),
            start_time=parse_hhmm(str(data["start_time"]), "start_time"),
            end_time=parse_hhmm(str(data["end_time"]), "end_time"),
            status=BookingStatus(str(data["status"]).lower()),
            created_at=datetime.fromisoformat(str(data["created_at"])),
            updated_at=datetime.fromisoformat(str(data["updated_at"])),
            purpose=(str(data["purpose"]) if data.get("purpose") is not None else None),
            attendees=(int(data["attendees"]) if data.get("attendees") is not None else None),
            admin_notes=(str(data["admin_notes"]) if data.get("admin_notes") is not None else None),
        )


@dataclass(frozen=True)
class Slot:
    start: time
    end: time
    status: str = "available"
    booking_id: str | None = None

    @property
    def is_available(self) -> bool:
        return self.status == "available"

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": format_hhmm(self.start),
            "end": format_hhmm(self.end),
            "status": self.status,
            "bookingId": self.booking_id,
        }


@dataclass(frozen=True)
class GridSummary:
    total: int
    available: int

    @property
    def booked(self) -> int:
        return self.total - self.available

    def to_dict(self) -> dict[str, int]:
        return {"total": self.total, "available": self.available, "booked": self.booked}


@dataclass(frozen=True)
class DailyGrid:
    facility_id: str
    date: date
    slots: tuple[Slot, ...]

    @property
    def summary(self) -> GridSummary:
        available = sum(1 for slot in self.slots if slot.is_available)
        return GridSummary(total=len(self.slots), available=available)

    def to_dict(self) -> dict[str, Any]:
        return {
            "facilityId": self.facility_id,
            "date": self.date.isoformat(),
            "slots": [slot.to_dict() for slot in self.slots],
            "summary": self.summary.to_dict(),
        }


@dataclass(frozen=True)
class DaySummary:
    date: date
    total: int
    available: int
    holiday: str | None = None

    @property
    def day_of_week(self) -> str:
        return WEEKDAY_NAMES[self.date.weekday()]

    @property
    def booked(self) -> int:
        return self.total - self.available

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "dayOfWeek": self.day_of_week,
            "total": self.total,
            "available": self.available,
            "booked": self.booked,
            "holiday": self.holiday,
        }


@dataclass(frozen=True)
class BookingStats:
    total: int = 0
    confirmed: int = 0
    pending: int = 0
    cancelled: int = 0
    upcoming: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "confirmed": self.confirmed,
            "pending": self.pending,
            "cancelled": self.cancelled,
            "upcoming": self.upcoming,
        }


class _Unset:
    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()

_UPDATE_PAYLOAD_KEYS = {
    "date": "date",
    "startTime": "start_time",
    "start_time": "start_time",
    "endTime": "end_time",
    "end_time": "end_time",
    "purpose": "purpose",
    "attendees": "attendees",
    "status": "status",
    "adminNotes": "admin_notes",
    "admin_notes": "admin_notes",
}
_NOT_CLEARABLE = {"date", "start_time", "end_time", "status"}


@dataclass(frozen=True)
class BookingUpdate:
    """Partial update request.

    A field left as UNSET is not touched. An explicit None clears the
    optional fields (purpose, attendees, admin_notes).
    """

    date: Any = UNSET
    start_time: Any = UNSET
    end_time: Any = UNSET
    purpose: Any = UNSET
    attendees: Any = UNSET
    status: Any = UNSET
    admin_notes: Any = UNSET

    @staticmethod
    def from_payload(payload: Mapping[str, Any]) -> "BookingUpdate":
        values: dict[str, Any] = {}
        for key, value in payload.items():
            name = _UPDATE_PAYLOAD_KEYS.get(key)
            if name is None:
                continue
            if value is None and name in _NOT_CLEARABLE:
                raise ValidationError(f"{name} cannot be cleared")
            values[name] = value
        return BookingUpdate(**values)

    def provided(self) -> set[str]:
        return {item.name for item in fields(self) if getattr(self, item.name) is not UNSET}

    def is_set(self, name: str) -> bool:
        return getattr(self, name) is not UNSET

    @property
    def touches_schedule(self) -> bool:
        return bool(self.provided() & {"date", "start_time", "end_time"})

    @property
    def touches_details(self) -> bool:
        return bool(self.provided() & {"date", "start_time", "end_time", "purpose", "attendees"})

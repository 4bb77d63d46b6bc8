from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from .availability import AvailabilityGridGenerator
from .booking import format_hhmm, parse_iso_date
from .config import BookingSettings
from .errors import BookingError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from .models import Actor, Booking, Role
from .notifications import EventLogNotifier
from .orchestrator import BookingOrchestrator
from .ports import Notifier
from .yaml_store import BookingYamlRepository

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"
USER_ROLE_HEADER = "X-User-Role"

_STATUS_BY_ERROR: list[tuple[type[BookingError], int]] = [
    (ValidationError, 400),
    (ForbiddenError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
]
_REASONS = {400: "Bad Request", 401: "Unauthorized", 403: "Forbidden", 404: "Not Found", 409: "Conflict", 500: "Internal Server Error"}


def serialize_booking(booking: Booking) -> dict[str, Any]:
    return {
        "id": booking.booking_id,
        "userId": booking.user_id,
        "facilityId": booking.facility_id,
        "date": booking.date.isoformat(),
        "startTime": format_hhmm(booking.start_time),
        "endTime": format_hhmm(booking.end_time),
        "status": booking.status.value,
        "purpose": booking.purpose,
        "attendees": booking.attendees,
        "adminNotes": booking.admin_notes,
        "createdAt": booking.created_at.isoformat(timespec="seconds"),
        "updatedAt": booking.updated_at.isoformat(timespec="seconds"),
    }


def create_app(
    data_dir: str | Path | None = None,
    now_provider: Callable[[], datetime] | None = None,
    settings: BookingSettings | None = None,
    notifier: Notifier | None = None,
) -> Flask:
    app = Flask(__name__)
    effective_settings = settings or BookingSettings()
    repository = BookingYamlRepository(data_dir if data_dir is not None else effective_settings.data_dir)
    clock: Callable[[], datetime] = now_provider or datetime.now

    if notifier is None:
        notifier = EventLogNotifier(
            repository,
            sender=effective_settings.mail_from,
            enabled=effective_settings.notifications,
            max_workers=effective_settings.notification_workers,
        )

    orchestrator = BookingOrchestrator(repository, repository, notifier=notifier, now_provider=clock)
    grids = AvailabilityGridGenerator(repository, repository, holiday_country=effective_settings.holiday_country)

    app.extensions["facility_booking"] = {
        "repository": repository,
        "orchestrator": orchestrator,
        "grids": grids,
        "notifier": notifier,
    }

    def _error(status_code: int, message: str) -> Any:
        body = {
            "status": status_code,
            "error": _REASONS.get(status_code, "Error"),
            "message": message,
            "timestamp": clock().isoformat(timespec="seconds"),
        }
        return jsonify(body), status_code

    def _current_actor() -> Actor:
        user_id = str(request.headers.get(USER_ID_HEADER, "")).strip()
        if not user_id:
            raise _MissingIdentity()
        return Actor(user_id=user_id, role=Role.parse(request.headers.get(USER_ROLE_HEADER, Role.STUDENT.value)))

    @app.errorhandler(_MissingIdentity)
    def handle_missing_identity(error: _MissingIdentity) -> Any:
        return _error(401, "Authentication required")

    @app.errorhandler(BookingError)
    def handle_booking_error(error: BookingError) -> Any:
        for error_type, status_code in _STATUS_BY_ERROR:
            if isinstance(error, error_type):
                return _error(status_code, str(error))
        logger.error("Unmapped booking error: %s", error)
        return _error(500, "Internal server error")

    @app.errorhandler(Exception)
    def handle_unexpected(error: Exception) -> Any:
        if isinstance(error, HTTPException):
            return error
        logger.exception("Unhandled exception")
        return _error(500, "Internal server error")

    @app.get("/api/health")
    def health() -> Any:
        return jsonify({"status": "ok"})

    @app.get("/api/bookings")
    def list_bookings() -> Any:
        listing = orchestrator.list_for(_current_actor())
        return jsonify(
            {
                "data": [serialize_booking(booking) for booking in listing.bookings],
                "stats": listing.stats.to_dict(),
            }
        )

    @app.get("/api/bookings/<booking_id>")
    def get_booking(booking_id: str) -> Any:
        return jsonify(serialize_booking(orchestrator.get(_current_actor(), booking_id)))

    @app.post("/api/bookings")
    def create_booking() -> Any:
        actor = _current_actor()
        payload = request.get_json(silent=True) or {}
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")

        for key in ("facilityId", "date", "startTime", "endTime"):
            if payload.get(key) in (None, ""):
                raise ValidationError(f"{key} is required")

        created = orchestrator.create(
            actor,
            facility_id=str(payload["facilityId"]),
            booking_date=str(payload["date"]),
            start_time=str(payload["startTime"]),
            end_time=str(payload["endTime"]),
            attendees=payload.get("attendees"),
            purpose=payload.get("purpose"),
        )
        return jsonify(serialize_booking(created)), 201

    @app.put("/api/bookings/<booking_id>")
    def update_booking(booking_id: str) -> Any:
        actor = _current_actor()
        payload = request.get_json(silent=True) or {}
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")
        return jsonify(serialize_booking(orchestrator.update(actor, booking_id, payload)))

    @app.delete("/api/bookings/<booking_id>")
    def cancel_booking(booking_id: str) -> Any:
        orchestrator.cancel(_current_actor(), booking_id)
        return "", 204

    @app.get("/api/availability")
    def daily_availability() -> Any:
        facility_id = _required_arg("facility_id")
        target_date = parse_iso_date(_required_arg("date"))
        grid = grids.daily_grid(
            facility_id,
            target_date,
            range_start=request.args.get("start_time"),
            range_end=request.args.get("end_time"),
        )
        return jsonify({"data": grid.to_dict()})

    @app.get("/api/availability/week")
    def weekly_availability() -> Any:
        facility_id = _required_arg("facility_id")
        start_date: date = parse_iso_date(_required_arg("start_date"), "start_date")
        days = grids.weekly_grid(facility_id, start_date)
        return jsonify(
            {
                "data": {
                    "facilityId": facility_id,
                    "startDate": start_date.isoformat(),
                    "days": [day.to_dict() for day in days],
                }
            }
        )

    return app


class _MissingIdentity(Exception):
    pass


def _required_arg(name: str) -> str:
    value = str(request.args.get(name, "")).strip()
    if not value:
        raise ValidationError(f"{name} is required")
    return value


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app = create_app()
    app.run(host="127.0.0.1", port=5000, debug=False)

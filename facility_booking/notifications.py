from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable

from .booking import format_hhmm
from .models import Booking, BookingStatus
from .yaml_store import BookingYamlRepository

logger = logging.getLogger(__name__)

NOTICE_CREATED = "created"
NOTICE_STATUS_CHANGED = "status_changed"
NOTICE_CANCELLED = "cancelled"


@dataclass(frozen=True)
class BookingNotice:
    kind: str
    booking_id: str
    recipient: str
    sender: str
    subject: str
    body: str

    def to_dict(self) -> dict[str, str]:
        return {
            "kind": self.kind,
            "booking_id": self.booking_id,
            "recipient": self.recipient,
            "sender": self.sender,
            "subject": self.subject,
            "body": self.body,
        }


def build_notice(kind: str, booking: Booking, sender: str) -> BookingNotice:
    if kind == NOTICE_CREATED:
        label = "Confirmed" if booking.status is BookingStatus.CONFIRMED else "Submitted (Pending Approval)"
        subject = f"Booking {booking.booking_id} - {label} | {booking.facility_id}"
    elif kind == NOTICE_STATUS_CHANGED:
        subject = f"Booking {booking.booking_id} Status Updated: {booking.status.name} | {booking.facility_id}"
    elif kind == NOTICE_CANCELLED:
        subject = f"Booking {booking.booking_id} Cancelled | {booking.facility_id}"
    else:
        raise ValueError(f"Unknown notice kind: {kind}")

    lines = [
        f"Facility: {booking.facility_id}",
        f"Date: {booking.date.strftime('%B %d, %Y')}",
        f"Time: {format_hhmm(booking.start_time)} - {format_hhmm(booking.end_time)}",
        f"Status: {booking.status.name}",
    ]
    if kind == NOTICE_STATUS_CHANGED and booking.admin_notes:
        lines.append(f"Admin notes: {booking.admin_notes}")

    return BookingNotice(
        kind=kind,
        booking_id=booking.booking_id,
        recipient=booking.user_id,
        sender=sender,
        subject=subject,
        body="\n".join(lines),
    )


class NullNotifier:
    def notify_created(self, booking: Booking) -> None:
        pass

    def notify_status_changed(self, booking: Booking) -> None:
        pass

    def notify_cancelled(self, booking: Booking) -> None:
        pass


class EventLogNotifier:
    """Delivers booking notices in the background by appending them to the event log.

    Delivery never raises into the caller: failures are logged and dropped.
    """

    def __init__(
        self,
        repository: BookingYamlRepository,
        sender: str = "no-reply@campus-booking.local",
        enabled: bool = True,
        max_workers: int = 2,
        deliver: Callable[[BookingNotice], None] | None = None,
    ) -> None:
        self.repository = repository
        self.sender = sender
        self.enabled = enabled
        self._deliver = deliver or self._record
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="booking-notify")
        self._pending: set[Future[Any]] = set()
        self._pending_lock = threading.Lock()

    def notify_created(self, booking: Booking) -> None:
        self._submit(NOTICE_CREATED, booking)

    def notify_status_changed(self, booking: Booking) -> None:
        self._submit(NOTICE_STATUS_CHANGED, booking)

    def notify_cancelled(self, booking: Booking) -> None:
        self._submit(NOTICE_CANCELLED, booking)

    def flush(self, timeout: float | None = None) -> None:
        with self._pending_lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    def _submit(self, kind: str, booking: Booking) -> None:
        if not self.enabled:
            return
        try:
            future = self._executor.submit(self._send, kind, booking)
        except RuntimeError as error:
            logger.warning("Could not schedule %s notice for booking %s: %s", kind, booking.booking_id, error)
            return
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)

    def _forget(self, future: Future[Any]) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def _send(self, kind: str, booking: Booking) -> None:
        try:
            notice = build_notice(kind, booking, self.sender)
            self._deliver(notice)
            logger.debug("Notice sent to %s: %s", notice.recipient, notice.subject)
        except Exception as error:
            logger.warning("Failed to deliver %s notice for booking %s: %s", kind, booking.booking_id, error)

    def _record(self, notice: BookingNotice) -> None:
        self.repository.record_event("NOTIFICATION_SENT", notice.to_dict())

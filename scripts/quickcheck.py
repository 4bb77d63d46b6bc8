from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
import traceback

from facility_booking import (
    Actor,
    AvailabilityGridGenerator,
    BookingOrchestrator,
    BookingYamlRepository,
    ConflictError,
    EventLogNotifier,
)


def main() -> int:
    print("[INFO] Facility Booking Quick Check")
    print("[INFO] Seeding demo facilities and bookings...")

    repo = BookingYamlRepository("data")
    now = datetime.now().replace(second=0, microsecond=0)
    seeded = repo.seed_demo_data(now=now, overwrite=True)
    print(f"[OK] Demo data generated: {len(repo.get_facilities())} facilities, {len(seeded)} bookings")

    notifier = EventLogNotifier(repo)
    orchestrator = BookingOrchestrator(repo, repo, notifier=notifier, now_provider=lambda: now)
    tomorrow = now.date() + timedelta(days=1)

    try:
        orchestrator.create(Actor("eve"), "eng-lab-a", tomorrow, "10:00", "12:00", attendees=12)
        print("[ERROR] Overlapping booking was accepted.")
        return 1
    except ConflictError as error:
        print(f"[OK] Overlap rejected: {error}")

    created = orchestrator.create(Actor("eve"), "eng-lab-a", tomorrow, "11:00", "13:00", attendees=12, purpose="Quick check")
    print(f"[OK] Touching booking accepted: {created.booking_id} ({created.interval}, {created.status.value})")

    grids = AvailabilityGridGenerator(repo, repo)
    summary = grids.daily_grid("eng-lab-a", tomorrow).summary
    print(f"[OK] {tomorrow.isoformat()} slots: total={summary.total} available={summary.available} booked={summary.booked}")
    for day in grids.weekly_grid("eng-lab-a", now.date()):
        print(f"[OK] {day.date.isoformat()} {day.day_of_week:<9} available={day.available}/{day.total}")

    notifier.flush()
    notifier.shutdown()
    print(f"[OK] Bookings YAML: {Path('data/bookings.yaml').resolve()}")
    print(f"[OK] Event Log YAML: {Path('data/booking_events.yaml').resolve()}")

    print("[DONE] Quick check completed successfully.")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except Exception:
        print("[ERROR] Quick check failed.")
        traceback.print_exc()
        raise SystemExit(1)

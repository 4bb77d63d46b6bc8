from __future__ import annotations

from datetime import date, datetime

from mcp.server.fastmcp import FastMCP

from facility_booking import (
    Actor,
    AvailabilityGridGenerator,
    BookingOrchestrator,
    BookingYamlRepository,
    EventLogNotifier,
    Role,
    StatsAggregator,
)
from facility_booking.config import BookingSettings
from facility_booking.web_app import serialize_booking

mcp = FastMCP(
    "Facility Booking MCP Server",
    instructions="Expose facility availability, booking statistics and booking creation from the facility_booking engine.",
    json_response=True,
)

SETTINGS = BookingSettings()
REPOSITORY = BookingYamlRepository(SETTINGS.data_dir)
GRIDS = AvailabilityGridGenerator(REPOSITORY, REPOSITORY, holiday_country=SETTINGS.holiday_country)
ORCHESTRATOR = BookingOrchestrator(
    REPOSITORY,
    REPOSITORY,
    notifier=EventLogNotifier(REPOSITORY, sender=SETTINGS.mail_from, enabled=SETTINGS.notifications),
)


@mcp.resource("booking://facilities")
async def list_facilities() -> list[dict]:
    """List active facilities that can be booked."""
    return [facility.to_dict() for facility in REPOSITORY.get_facilities()]


@mcp.tool()
def daily_availability(facility_id: str, target_date: str, start_time: str | None = None, end_time: str | None = None) -> dict:
    """Return the 30-minute slot grid of one facility for one day."""
    grid = GRIDS.daily_grid(facility_id, date.fromisoformat(target_date), range_start=start_time, range_end=end_time)
    return grid.to_dict()


@mcp.tool()
def weekly_availability(facility_id: str, start_date: str) -> list[dict]:
    """Return seven per-day availability summaries starting at start_date."""
    return [day.to_dict() for day in GRIDS.weekly_grid(facility_id, date.fromisoformat(start_date))]


@mcp.tool()
def booking_stats(user_id: str | None = None) -> dict[str, int]:
    """Return booking counts for one user, or for everyone when user_id is omitted."""
    return StatsAggregator(REPOSITORY).stats(user_id, datetime.now().date()).to_dict()


@mcp.tool()
def create_booking(
    user_id: str,
    facility_id: str,
    booking_date: str,
    start_time: str,
    end_time: str,
    attendees: int | None = None,
    purpose: str | None = None,
    role: str = "student",
) -> dict:
    """Create a booking; facilities that require approval start as pending."""
    created = ORCHESTRATOR.create(
        Actor(user_id=user_id, role=Role.parse(role)),
        facility_id,
        booking_date,
        start_time,
        end_time,
        attendees=attendees,
        purpose=purpose,
    )
    return serialize_booking(created)


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()

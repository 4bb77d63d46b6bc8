from .booking import TimeInterval, has_time_overlap, parse_hhmm
from .availability import AvailabilityGridGenerator
from .conflicts import ConflictChecker
from .errors import (
	BookingConstraintViolation,
	BookingError,
	BookingLockedError,
	BookingStorageError,
	ConflictError,
	ForbiddenError,
	InvalidTransitionError,
	NotFoundError,
	ValidationError,
)
from .lifecycle import BookingLifecycle
from .models import (
	UNSET,
	Actor,
	Booking,
	BookingStats,
	BookingStatus,
	BookingUpdate,
	DailyGrid,
	DaySummary,
	Facility,
	Role,
	Slot,
)
from .notifications import EventLogNotifier, NullNotifier
from .orchestrator import BookingListing, BookingOrchestrator
from .stats import StatsAggregator, summarize_bookings
from .yaml_store import BookingYamlRepository, generate_demo_bookings, generate_demo_facilities

__all__ = [
	"TimeInterval",
	"has_time_overlap",
	"parse_hhmm",
	"AvailabilityGridGenerator",
	"ConflictChecker",
	"BookingConstraintViolation",
	"BookingError",
	"BookingLockedError",
	"BookingStorageError",
	"ConflictError",
	"ForbiddenError",
	"InvalidTransitionError",
	"NotFoundError",
	"ValidationError",
	"BookingLifecycle",
	"UNSET",
	"Actor",
	"Booking",
	"BookingStats",
	"BookingStatus",
	"BookingUpdate",
	"DailyGrid",
	"DaySummary",
	"Facility",
	"Role",
	"Slot",
	"EventLogNotifier",
	"NullNotifier",
	"BookingListing",
	"BookingOrchestrator",
	"StatsAggregator",
	"summarize_bookings",
	"BookingYamlRepository",
	"generate_demo_bookings",
	"generate_demo_facilities",
]

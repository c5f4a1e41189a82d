from .availability import AvailabilityWindow, replace_weekly_schedule, resolve_window, weekly_schedule
from .bookings import BookingMutator, ClientInfo
from .busy import collect_busy
from .errors import (
    AlreadyCancelledError,
    ExternalProviderError,
    InvalidStateError,
    NotFoundError,
    PastTimeError,
    SchedulingError,
    SlotUnavailableError,
    ValidationError,
)
from .intervals import Interval, merge_intervals, overlaps
from .results import IntegrationWarning, MutationResult
from .slots import DEFAULT_GRANULARITY_MINUTES, SlotSequence, generate_slots, month_overview, offerable_slots

__all__ = [
    "AvailabilityWindow",
    "replace_weekly_schedule",
    "resolve_window",
    "weekly_schedule",
    "BookingMutator",
    "ClientInfo",
    "collect_busy",
    "AlreadyCancelledError",
    "ExternalProviderError",
    "InvalidStateError",
    "NotFoundError",
    "PastTimeError",
    "SchedulingError",
    "SlotUnavailableError",
    "ValidationError",
    "Interval",
    "merge_intervals",
    "overlaps",
    "IntegrationWarning",
    "MutationResult",
    "DEFAULT_GRANULARITY_MINUTES",
    "SlotSequence",
    "generate_slots",
    "month_overview",
    "offerable_slots",
]

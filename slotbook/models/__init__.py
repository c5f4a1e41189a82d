from .host import Host, HostStatus
from .booking_type import BookingType
from .availability_rule import AvailabilityRule
from .booking import Booking, BookingStatus

__all__ = [
    "Host",
    "HostStatus",
    "BookingType",
    "AvailabilityRule",
    "Booking",
    "BookingStatus",
]

"""Failure taxonomy for the scheduling core.

Each error carries the HTTP status and machine-readable code the route layer
reports, so handlers never have to inspect message text.
"""


class SchedulingError(Exception):
    status_code = 400
    code = "scheduling_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"error": self.message, "code": self.code}


class ValidationError(SchedulingError):
    code = "invalid_request"


class NotFoundError(SchedulingError):
    status_code = 404
    code = "not_found"


class SlotUnavailableError(SchedulingError):
    status_code = 409
    code = "slot_unavailable"

    OUTSIDE_HOURS = "outside_hours"
    ALREADY_BOOKED = "already_booked"
    MISALIGNED = "misaligned"
    PAST = "past"

    def __init__(self, message: str, reason: str):
        super().__init__(message)
        self.reason = reason

    def to_dict(self):
        data = super().to_dict()
        data["reason"] = self.reason
        return data


class PastTimeError(SlotUnavailableError):
    code = "past_time"

    def __init__(self, message: str = "Cannot book time slots in the past"):
        super().__init__(message, SlotUnavailableError.PAST)


class InvalidStateError(SchedulingError):
    status_code = 409
    code = "invalid_state"


class AlreadyCancelledError(InvalidStateError):
    code = "already_cancelled"


class ExternalProviderError(SchedulingError):
    """A calendar or meeting provider call failed; never fatal to a booking."""

    status_code = 502
    code = "external_provider_error"

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider

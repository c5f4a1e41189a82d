from dataclasses import dataclass, field
from typing import List

from slotbook.models import Booking


@dataclass
class IntegrationWarning:
    provider: str
    action: str
    message: str

    def to_dict(self):
        return {"provider": self.provider, "action": self.action, "message": self.message}


@dataclass
class MutationResult:
    """Authoritative booking state plus whatever integrations degraded on the way."""

    booking: Booking
    warnings: List[IntegrationWarning] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)

    def warn(self, provider: str, action: str, message: str):
        self.warnings.append(IntegrationWarning(provider, action, message))

    def to_dict(self):
        return {
            "booking": self.booking.to_dict(),
            "warnings": [w.to_dict() for w in self.warnings],
        }

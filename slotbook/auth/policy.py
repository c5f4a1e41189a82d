from dataclasses import dataclass, field
from typing import FrozenSet, Mapping


@dataclass(frozen=True)
class AdminPolicy:
    """Who may use the admin endpoints, as configured for this deployment."""

    emails: FrozenSet[str] = field(default_factory=frozenset)
    external_ids: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_config(cls, config: Mapping) -> "AdminPolicy":
        def _split(value):
            if not value:
                return frozenset()
            if isinstance(value, str):
                value = value.split(",")
            return frozenset(v.strip().lower() for v in value if v and v.strip())

        return cls(
            emails=_split(config.get("ADMIN_EMAILS")),
            external_ids=_split(config.get("ADMIN_EXTERNAL_IDS")),
        )

    def allows(self, host) -> bool:
        if host is None or not getattr(host, "is_authenticated", False):
            return False
        if host.email and host.email.lower() in self.emails:
            return True
        return (host.external_id or "").lower() in self.external_ids

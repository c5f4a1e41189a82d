import enum
from datetime import datetime

from flask_login import UserMixin
from slugify import slugify

from slotbook import db
from slotbook.timeutils import DEFAULT_TIMEZONE


class HostStatus(str, enum.Enum):
    ACTIVE = "active"
    DELETED = "deleted"


class Host(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    # Opaque subject handed over by the identity provider
    external_id = db.Column(db.String(255), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), nullable=True, index=True)
    name = db.Column(db.String(120), nullable=False, default="")
    slug = db.Column(db.String(120), unique=True, nullable=False)
    timezone = db.Column(db.String(64), default=DEFAULT_TIMEZONE, nullable=False)
    status = db.Column(db.String(20), default=HostStatus.ACTIVE.value, nullable=False)
    google_credentials = db.Column(db.Text, nullable=True)  # JSON credentials
    zoom_enabled = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    booking_types = db.relationship("BookingType", back_populates="host", lazy="dynamic")
    availability_rules = db.relationship("AvailabilityRule", back_populates="host", lazy="dynamic")

    @property
    def is_active(self):
        return self.status == HostStatus.ACTIVE

    @property
    def calendar_connected(self) -> bool:
        return bool(self.google_credentials)

    def soft_delete(self):
        self.status = HostStatus.DELETED.value

    def restore(self):
        self.status = HostStatus.ACTIVE.value

    @staticmethod
    def generate_slug(name: str) -> str:
        base = slugify(name or "") or "host"
        slug = base
        i = 1
        while Host.query.filter_by(slug=slug).first() is not None:
            i += 1
            slug = f"{base}-{i}"
        return slug

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "slug": self.slug,
            "timezone": self.timezone,
            "status": self.status,
            "google_connected": self.calendar_connected,
            "zoom_enabled": self.zoom_enabled,
        }

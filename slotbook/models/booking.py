import enum
from datetime import datetime

from slotbook import db
from slotbook.timeutils import as_utc, isoformat_utc


class BookingStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Booking(db.Model):
    __table_args__ = (
        # Last line of defence against two confirmed bookings racing for one slot
        db.Index(
            "uq_booking_host_start_confirmed",
            "host_id",
            "start_utc",
            unique=True,
            sqlite_where=db.text("status = 'confirmed'"),
            postgresql_where=db.text("status = 'confirmed'"),
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    booking_type_id = db.Column(db.Integer, db.ForeignKey("booking_type.id"), nullable=False)
    host_id = db.Column(db.Integer, db.ForeignKey("host.id"), nullable=False, index=True)
    client_name = db.Column(db.String(120), nullable=False)
    client_email = db.Column(db.String(255), nullable=False, index=True)
    client_phone = db.Column(db.String(40), nullable=True)
    start_utc = db.Column(db.DateTime, nullable=False, index=True)
    end_utc = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.String(20), default=BookingStatus.CONFIRMED.value, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    google_event_id = db.Column(db.String(255), nullable=True)
    zoom_meeting_id = db.Column(db.String(64), nullable=True)
    zoom_join_url = db.Column(db.String(512), nullable=True)
    token = db.Column(db.String(64), nullable=False, index=True)  # for client reschedule/cancel links
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    host = db.relationship("Host")
    booking_type = db.relationship("BookingType")

    @property
    def start(self) -> datetime:
        return as_utc(self.start_utc)

    @property
    def end(self) -> datetime:
        return as_utc(self.end_utc)

    @property
    def duration_minutes(self) -> int:
        return int((self.end_utc - self.start_utc).total_seconds() // 60)

    def to_dict(self):
        return {
            "id": self.id,
            "host_id": self.host_id,
            "booking_type_id": self.booking_type_id,
            "booking_type": self.booking_type.name if self.booking_type else None,
            "client_name": self.client_name,
            "client_email": self.client_email,
            "client_phone": self.client_phone,
            "start": isoformat_utc(self.start_utc),
            "end": isoformat_utc(self.end_utc),
            "status": self.status,
            "notes": self.notes,
            "google_event_id": self.google_event_id,
            "zoom_meeting_id": self.zoom_meeting_id,
            "zoom_join_url": self.zoom_join_url,
        }

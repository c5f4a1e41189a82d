from datetime import datetime

from slotbook import db


class BookingType(db.Model):
    __tablename__ = "booking_type"

    id = db.Column(db.Integer, primary_key=True)
    host_id = db.Column(db.Integer, db.ForeignKey("host.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    host = db.relationship("Host", back_populates="booking_types")

    def to_dict(self):
        return {
            "id": self.id,
            "host_id": self.host_id,
            "name": self.name,
            "duration_minutes": self.duration_minutes,
            "description": self.description,
            "price": str(self.price) if self.price is not None else None,
            "is_active": self.is_active,
        }

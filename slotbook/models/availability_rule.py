from slotbook import db
from slotbook.timeutils import WEEKDAY_NAMES, format_hhmm


class AvailabilityRule(db.Model):
    __tablename__ = "availability_rule"
    __table_args__ = (db.UniqueConstraint("host_id", "day_of_week", name="uq_availability_host_day"),)

    id = db.Column(db.Integer, primary_key=True)
    host_id = db.Column(db.Integer, db.ForeignKey("host.id"), nullable=False, index=True)
    # 0=Sunday ... 6=Saturday
    day_of_week = db.Column(db.Integer, nullable=False)
    start_time = db.Column(db.Time, nullable=False)  # host-local wall clock
    end_time = db.Column(db.Time, nullable=False)
    is_available = db.Column(db.Boolean, default=True, nullable=False)

    host = db.relationship("Host", back_populates="availability_rules")

    def to_dict(self):
        return {
            "day_of_week": self.day_of_week,
            "day_name": WEEKDAY_NAMES[self.day_of_week],
            "start_time": format_hhmm(self.start_time),
            "end_time": format_hhmm(self.end_time),
            "is_available": self.is_available,
        }

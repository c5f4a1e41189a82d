import logging
from decimal import Decimal, InvalidOperation

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from slotbook import db
from slotbook.models import BookingType
from slotbook.scheduling.availability import host_timezone, replace_weekly_schedule, weekly_schedule
from slotbook.scheduling.errors import NotFoundError, ValidationError
from slotbook.timeutils import is_valid_timezone


log = logging.getLogger(__name__)

host_bp = Blueprint("host", __name__, url_prefix="/host")


@host_bp.before_request
@login_required
def require_login():
    pass


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Expected a JSON object body")
    return data


@host_bp.route("/settings", methods=["GET"])
def get_settings():
    return jsonify(current_user.to_dict())


@host_bp.route("/settings", methods=["PUT"])
def update_settings():
    data = _json_body()
    if "timezone" in data:
        tz = (data.get("timezone") or "").strip()
        if not is_valid_timezone(tz):
            raise ValidationError("Invalid time zone. Please choose a valid IANA time zone (e.g., America/New_York).")
        current_user.timezone = tz
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Name cannot be empty")
        current_user.name = name
    if "zoom_enabled" in data:
        current_user.zoom_enabled = bool(data["zoom_enabled"])
    db.session.commit()
    return jsonify(current_user.to_dict())


@host_bp.route("/availability", methods=["GET"])
def get_availability():
    rules = weekly_schedule(current_user.id)
    return jsonify({"timezone": host_timezone(current_user), "rules": [r.to_dict() for r in rules]})


@host_bp.route("/availability", methods=["PUT"])
def save_availability():
    data = _json_body()
    rules = data.get("rules")
    if not isinstance(rules, list) or not all(isinstance(r, dict) for r in rules):
        raise ValidationError("rules must be a list of objects")
    saved = replace_weekly_schedule(current_user.id, rules)
    return jsonify({"timezone": host_timezone(current_user), "rules": [r.to_dict() for r in saved]})


def _booking_type_fields(data: dict, partial: bool) -> dict:
    fields = {}
    if "name" in data or not partial:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Booking type name is required")
        fields["name"] = name
    if "duration_minutes" in data or not partial:
        try:
            duration = int(data.get("duration_minutes"))
        except (TypeError, ValueError):
            raise ValidationError("duration_minutes must be an integer")
        if not 0 < duration <= 24 * 60:
            raise ValidationError("duration_minutes must be between 1 and 1440")
        fields["duration_minutes"] = duration
    if "description" in data:
        fields["description"] = (data.get("description") or "").strip() or None
    if "price" in data:
        price = data.get("price")
        if price in (None, ""):
            fields["price"] = None
        else:
            try:
                fields["price"] = Decimal(str(price))
            except InvalidOperation:
                raise ValidationError("price must be a number")
            if fields["price"] < 0:
                raise ValidationError("price cannot be negative")
    if "is_active" in data:
        fields["is_active"] = bool(data["is_active"])
    return fields


def _own_booking_type(type_id: int) -> BookingType:
    booking_type = db.session.get(BookingType, type_id)
    if booking_type is None or booking_type.host_id != current_user.id:
        raise NotFoundError("Booking type not found")
    return booking_type


@host_bp.route("/booking-types", methods=["GET"])
def list_booking_types():
    query = BookingType.query.filter_by(host_id=current_user.id)
    if request.args.get("include_inactive", "0") != "1":
        query = query.filter_by(is_active=True)
    types = query.order_by(BookingType.name.asc()).all()
    return jsonify({"booking_types": [t.to_dict() for t in types]})


@host_bp.route("/booking-types", methods=["POST"])
def create_booking_type():
    fields = _booking_type_fields(_json_body(), partial=False)
    booking_type = BookingType(host_id=current_user.id, **fields)
    db.session.add(booking_type)
    db.session.commit()
    log.info("Host %s created booking type %s", current_user.id, booking_type.id)
    return jsonify(booking_type.to_dict()), 201


@host_bp.route("/booking-types/<int:type_id>", methods=["PATCH"])
def update_booking_type(type_id: int):
    booking_type = _own_booking_type(type_id)
    for key, value in _booking_type_fields(_json_body(), partial=True).items():
        setattr(booking_type, key, value)
    db.session.commit()
    return jsonify(booking_type.to_dict())


@host_bp.route("/booking-types/<int:type_id>/deactivate", methods=["POST"])
def deactivate_booking_type(type_id: int):
    # Existing bookings keep referencing the type; it just stops being offered
    booking_type = _own_booking_type(type_id)
    booking_type.is_active = False
    db.session.commit()
    return jsonify(booking_type.to_dict())

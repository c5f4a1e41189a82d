from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from slotbook.scheduling.errors import ValidationError
from slotbook.services import booking_mutator
from slotbook.timeutils import parse_iso_datetime


bookings_bp = Blueprint("bookings", __name__, url_prefix="/host/bookings")


@bookings_bp.before_request
@login_required
def require_login():
    pass


def parse_instant(value, field: str):
    try:
        return parse_iso_datetime(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field} format. Use ISO 8601 format.")


@bookings_bp.route("", methods=["GET"])
def list_bookings():
    start = request.args.get("start")
    end = request.args.get("end")
    limit = request.args.get("limit")
    if limit is not None:
        try:
            limit = int(limit)
        except ValueError:
            raise ValidationError("limit must be an integer")
    bookings = booking_mutator().list_bookings(
        current_user.id,
        status=request.args.get("status") or None,
        start=parse_instant(start, "start") if start else None,
        end=parse_instant(end, "end") if end else None,
        limit=limit,
    )
    return jsonify({"bookings": [b.to_dict() for b in bookings]})


@bookings_bp.route("/<int:booking_id>", methods=["GET"])
def get_booking(booking_id: int):
    booking = booking_mutator().get_booking(booking_id, host_id=current_user.id)
    return jsonify(booking.to_dict())


@bookings_bp.route("/<int:booking_id>/cancel", methods=["POST"])
def cancel_booking(booking_id: int):
    result = booking_mutator().cancel(booking_id, host_id=current_user.id)
    return jsonify(result.to_dict())


@bookings_bp.route("/<int:booking_id>/reschedule", methods=["POST"])
def reschedule_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    if not data.get("start"):
        raise ValidationError("Missing required field: start")
    result = booking_mutator().reschedule(
        booking_id,
        parse_instant(data["start"], "start"),
        host_id=current_user.id,
        notes=data.get("notes"),
    )
    return jsonify(result.to_dict())

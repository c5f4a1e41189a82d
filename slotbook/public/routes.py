import logging
import secrets

from flask import Blueprint, jsonify, request, url_for

from slotbook import db
from slotbook.host.booking_routes import parse_instant
from slotbook.models import Booking, BookingType, Host, HostStatus
from slotbook.scheduling.availability import host_timezone
from slotbook.scheduling.bookings import ClientInfo
from slotbook.scheduling.errors import NotFoundError, ValidationError
from slotbook.scheduling.slots import month_overview
from slotbook.services import booking_mutator, calendar_provider
from slotbook.timeutils import isoformat_utc, local_date, parse_date, utcnow


log = logging.getLogger(__name__)

public_bp = Blueprint("public", __name__, url_prefix="")

DEFAULT_DURATION_MINUTES = 60


def _host_by_slug(slug: str) -> Host:
    host = Host.query.filter_by(slug=slug, status=HostStatus.ACTIVE.value).first()
    if host is None:
        raise NotFoundError("Host not found")
    return host


def _duration_for(host: Host) -> int:
    type_id = request.args.get("booking_type_id")
    if type_id:
        try:
            booking_type = db.session.get(BookingType, int(type_id))
        except ValueError:
            raise ValidationError("booking_type_id must be an integer")
        if booking_type is None or booking_type.host_id != host.id or not booking_type.is_active:
            raise NotFoundError("Booking type not found or inactive")
        return booking_type.duration_minutes
    try:
        duration = int(request.args.get("duration", DEFAULT_DURATION_MINUTES))
    except ValueError:
        raise ValidationError("duration must be an integer")
    if duration <= 0:
        raise ValidationError("duration must be positive")
    return duration


def _booking_by_token(booking_id: int, token: str) -> Booking:
    booking = db.session.get(Booking, booking_id)
    if not booking or not secrets.compare_digest(booking.token, token):
        raise NotFoundError("Invalid booking link")
    return booking


@public_bp.route("/api/hosts/<slug>")
def host_card(slug):
    host = _host_by_slug(slug)
    types = (
        BookingType.query.filter_by(host_id=host.id, is_active=True)
        .order_by(BookingType.name.asc())
        .all()
    )
    return jsonify({
        "name": host.name,
        "slug": host.slug,
        "timezone": host_timezone(host),
        "booking_types": [t.to_dict() for t in types],
    })


@public_bp.route("/api/availability/<slug>")
def api_availability(slug):
    host = _host_by_slug(slug)
    tz_name = host_timezone(host)
    duration = _duration_for(host)

    day_str = request.args.get("date")  # YYYY-MM-DD, host-local
    try:
        day = parse_date(day_str) if day_str else local_date(utcnow(), tz_name)
    except ValueError:
        raise ValidationError("date must be YYYY-MM-DD")

    slots = booking_mutator().slots(host.id, day, duration)
    db.session.commit()  # keeps refreshed calendar credentials
    return jsonify({
        "date": day.isoformat(),
        "timezone": tz_name,
        "duration_minutes": duration,
        "window": slots.window.to_dict() if slots.window else None,
        "slots": [isoformat_utc(s) for s in slots],
    })


@public_bp.route("/api/availability/<slug>/month")
def api_month(slug):
    host = _host_by_slug(slug)
    duration = _duration_for(host)
    try:
        year = int(request.args.get("year"))
        month = int(request.args.get("month"))  # 1-12
    except (TypeError, ValueError):
        raise ValidationError("year and month are required integers")
    days = month_overview(host.id, year, month, duration, calendar=calendar_provider())
    db.session.commit()  # keeps refreshed calendar credentials
    return jsonify({"timezone": host_timezone(host), "days": days})


@public_bp.route("/api/book/<slug>", methods=["POST"])
def api_book(slug):
    host = _host_by_slug(slug)
    data = request.get_json(silent=True) or {}
    if not (data.get("booking_type_id") and data.get("start")):
        raise ValidationError("Missing fields: booking_type_id, start")
    try:
        booking_type_id = int(data["booking_type_id"])
    except (TypeError, ValueError):
        raise ValidationError("booking_type_id must be an integer")

    client = ClientInfo(
        name=data.get("name", ""),
        email=data.get("email", ""),
        phone=data.get("phone"),
        notes=data.get("notes"),
    )
    result = booking_mutator().create(host.id, booking_type_id, parse_instant(data["start"], "start"), client)
    body = result.to_dict()
    body["manage_url"] = url_for(
        "public.manage_booking", booking_id=result.booking.id, token=result.booking.token, _external=True
    )
    return jsonify(body), 201


@public_bp.route("/booking/<int:booking_id>/<token>")
def manage_booking(booking_id: int, token: str):
    booking = _booking_by_token(booking_id, token)
    data = booking.to_dict()
    data["timezone"] = host_timezone(booking.host)
    return jsonify(data)


@public_bp.route("/booking/<int:booking_id>/<token>/cancel", methods=["POST"])
def cancel_booking(booking_id: int, token: str):
    booking = _booking_by_token(booking_id, token)
    result = booking_mutator().cancel(booking.id)
    return jsonify(result.to_dict())


@public_bp.route("/booking/<int:booking_id>/<token>/reschedule", methods=["POST"])
def reschedule_booking(booking_id: int, token: str):
    booking = _booking_by_token(booking_id, token)
    data = request.get_json(silent=True) or {}
    if not data.get("start"):
        raise ValidationError("Missing start")
    result = booking_mutator().reschedule(booking.id, parse_instant(data["start"], "start"))
    return jsonify(result.to_dict())

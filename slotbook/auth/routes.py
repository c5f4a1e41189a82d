import logging
from functools import wraps

from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required
from sqlalchemy.exc import IntegrityError

from slotbook import db, login_manager
from slotbook.models import Host
from slotbook.services import admin_policy
from slotbook.timeutils import DEFAULT_TIMEZONE, is_valid_timezone


log = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _sync_host(subject: str, email: str, name: str) -> Host:
    """First authenticated request for an identity: create its Host row."""
    tz_name = current_app.config["DEFAULT_TIMEZONE"]
    display_name = name or (email.split("@")[0] if email else "Host")
    host = Host(
        external_id=subject,
        email=email or None,
        name=display_name,
        slug=Host.generate_slug(display_name),
        timezone=tz_name if is_valid_timezone(tz_name) else DEFAULT_TIMEZONE,
    )
    db.session.add(host)
    try:
        db.session.commit()
    except IntegrityError:
        # A concurrent first request for the same identity won
        db.session.rollback()
        existing = Host.query.filter_by(external_id=subject).first()
        if existing is None:
            raise
        return existing
    log.info("Created host %s for identity %s", host.id, subject)
    return host


@login_manager.request_loader
def load_host_from_request(req):
    # The identity provider sits in front of us and sets this header
    subject = (req.headers.get(current_app.config["IDENTITY_HEADER"]) or "").strip()
    if not subject:
        return None
    host = Host.query.filter_by(external_id=subject).first()
    if host is None:
        email = (req.headers.get("X-Auth-Email") or "").strip().lower()
        name = (req.headers.get("X-Auth-Name") or "").strip()
        host = _sync_host(subject, email, name)
    if not host.is_active:
        return None
    return host


@login_manager.user_loader
def load_host(host_id):
    host = db.session.get(Host, int(host_id))
    return host if host is not None and host.is_active else None


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Unauthorized", "code": "unauthorized"}), 401


def admin_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not current_user.is_authenticated:
            return unauthorized()
        if not admin_policy().allows(current_user):
            return jsonify({"error": "Forbidden", "code": "forbidden"}), 403
        return view(*args, **kwargs)

    return wrapped


@auth_bp.route("/me")
@login_required
def me():
    data = current_user.to_dict()
    data["is_admin"] = admin_policy().allows(current_user)
    return jsonify(data)

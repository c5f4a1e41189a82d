import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user
from sqlalchemy import or_

from slotbook import db
from slotbook.auth.routes import admin_required
from slotbook.models import Host, HostStatus
from slotbook.scheduling.errors import InvalidStateError, NotFoundError, ValidationError


log = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _get_host(host_id: int) -> Host:
    target = db.session.get(Host, host_id)
    if not target:
        raise NotFoundError("Host not found")
    return target


@admin_bp.route("/hosts")
@admin_required
def hosts_index():
    q = request.args.get("q", "").strip()
    status = request.args.get("status", "").strip()
    query = Host.query
    if q:
        like = f"%{q.lower()}%"
        query = query.filter(or_(Host.email.ilike(like), Host.name.ilike(like)))
    if status:
        if status not in {s.value for s in HostStatus}:
            raise ValidationError(f"Unknown host status {status!r}")
        query = query.filter(Host.status == status)
    hosts = query.order_by(Host.created_at.desc()).all()
    return jsonify({"hosts": [h.to_dict() for h in hosts]})


@admin_bp.route("/hosts/<int:host_id>/delete", methods=["POST"])
@admin_required
def hosts_delete(host_id: int):
    target = _get_host(host_id)
    if target.id == current_user.id:
        raise InvalidStateError("You cannot delete your own host account")
    if target.status == HostStatus.DELETED:
        raise InvalidStateError("Host is already deleted")
    # Soft delete only; bookings keep pointing at the row
    target.soft_delete()
    db.session.commit()
    log.info("Host %s deleted by %s", target.id, current_user.id)
    return jsonify(target.to_dict())


@admin_bp.route("/hosts/<int:host_id>/restore", methods=["POST"])
@admin_required
def hosts_restore(host_id: int):
    target = _get_host(host_id)
    if target.status == HostStatus.ACTIVE:
        raise InvalidStateError("Host is already active")
    target.restore()
    db.session.commit()
    log.info("Host %s restored by %s", target.id, current_user.id)
    return jsonify(target.to_dict())

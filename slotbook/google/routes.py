import json
import logging

import requests
from flask import Blueprint, current_app, jsonify, redirect, request, session, url_for
from flask_login import current_user, login_required
from google_auth_oauthlib.flow import Flow

from slotbook import db
from slotbook.integrations.google_service import SCOPES
from slotbook.scheduling.errors import InvalidStateError, ValidationError


log = logging.getLogger(__name__)

google_bp = Blueprint("google", __name__, url_prefix="/google")


def _flow(state=None) -> Flow:
    client_id = current_app.config.get("GOOGLE_CLIENT_ID")
    client_secret = current_app.config.get("GOOGLE_CLIENT_SECRET")
    if not client_id or not client_secret:
        raise ValidationError("Google OAuth is not configured. Please set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET.")
    return Flow.from_client_config(
        {
            "web": {
                "client_id": client_id,
                "client_secret": client_secret,
                "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                "token_uri": "https://oauth2.googleapis.com/token",
            }
        },
        scopes=SCOPES,
        state=state,
        redirect_uri=url_for("google.callback", _external=True),
    )


@google_bp.route("/connect")
@login_required
def connect():
    flow = _flow()
    auth_url, state = flow.authorization_url(
        access_type="offline", include_granted_scopes="true", prompt="consent"
    )
    session["google_oauth_state"] = state
    # PKCE verifier, presented again when the callback exchanges the code
    session["google_oauth_code_verifier"] = flow.code_verifier
    return redirect(auth_url)


@google_bp.route("/callback")
@login_required
def callback():
    state = session.pop("google_oauth_state", None)
    if not state or request.args.get("state") != state:
        raise ValidationError("Invalid OAuth state.")

    flow = _flow(state=state)
    flow.code_verifier = session.pop("google_oauth_code_verifier", None)
    flow.fetch_token(authorization_response=request.url)
    creds = flow.credentials
    data = {
        "token": creds.token,
        "refresh_token": creds.refresh_token,
        "token_uri": creds.token_uri,
        "client_id": creds.client_id,
        "client_secret": creds.client_secret,
        "scopes": creds.scopes,
    }
    current_user.google_credentials = json.dumps(data)
    db.session.commit()
    log.info("Google Calendar connected for host %s", current_user.id)
    return jsonify(current_user.to_dict())


@google_bp.route("/disconnect", methods=["POST"])
@login_required
def disconnect():
    if not current_user.google_credentials:
        raise InvalidStateError("Google Calendar is not connected.")

    # Attempt token revocation (best-effort)
    try:
        data = json.loads(current_user.google_credentials)
        token = data.get("refresh_token") or data.get("token")
        if token:
            requests.post(
                "https://oauth2.googleapis.com/revoke",
                params={"token": token},
                headers={"content-type": "application/x-www-form-urlencoded"},
                timeout=current_app.config["PROVIDER_TIMEOUT_SECONDS"],
            )
    except (ValueError, requests.RequestException) as e:
        log.warning("Google token revocation failed for host %s: %s", current_user.id, e)

    current_user.google_credentials = None
    db.session.commit()
    log.info("Google Calendar disconnected for host %s", current_user.id)
    return jsonify(current_user.to_dict())

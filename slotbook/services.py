"""Per-app provider instances and the booking mutator built from them."""
from flask import current_app

from slotbook.auth.policy import AdminPolicy
from slotbook.integrations.google_service import GoogleCalendarProvider
from slotbook.integrations.zoom_service import ZoomMeetingProvider
from slotbook.models import Host
from slotbook.scheduling.bookings import BookingMutator


def store_refreshed_credentials(account_ref: str, new_account_ref: str):
    """Swap refreshed Google credentials into the hosts holding the old ones.

    Only the session is touched; the change is saved with the caller's next commit.
    """
    for host in Host.query.filter_by(google_credentials=account_ref).all():
        host.google_credentials = new_account_ref


def init_services(app):
    timeout = app.config["PROVIDER_TIMEOUT_SECONDS"]
    app.extensions["slotbook"] = {
        "calendar": GoogleCalendarProvider(
            timeout=timeout,
            calendar_id=app.config["GOOGLE_CALENDAR_ID"],
            on_refresh=store_refreshed_credentials,
        ),
        "meetings": ZoomMeetingProvider(
            account_id=app.config["ZOOM_ACCOUNT_ID"],
            client_id=app.config["ZOOM_CLIENT_ID"],
            client_secret=app.config["ZOOM_CLIENT_SECRET"],
            timeout=timeout,
        ),
        "admin_policy": AdminPolicy.from_config(app.config),
    }


def calendar_provider():
    return current_app.extensions["slotbook"]["calendar"]


def meeting_provider():
    return current_app.extensions["slotbook"]["meetings"]


def admin_policy() -> AdminPolicy:
    return current_app.extensions["slotbook"]["admin_policy"]


def booking_mutator() -> BookingMutator:
    return BookingMutator(
        calendar=calendar_provider(),
        meetings=meeting_provider(),
        granularity_minutes=current_app.config["SLOT_GRANULARITY_MINUTES"],
    )

import json
import logging
from datetime import datetime, time
from typing import Callable, List, Optional

import google_auth_httplib2
import httplib2
import pytz
from google.auth.exceptions import GoogleAuthError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from slotbook.scheduling.errors import ExternalProviderError
from slotbook.scheduling.intervals import Interval
from slotbook.timeutils import isoformat_utc, parse_date, parse_iso_datetime


log = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/calendar",
]

PROVIDER = "google_calendar"

# Anything the client stack can throw for a failed or timed out call
_FAILURES = (HttpError, GoogleAuthError, httplib2.HttpLib2Error, OSError, ValueError, KeyError)


def load_credentials(account_ref: Optional[str]) -> Credentials:
    """Authorized-user credentials stored on the host; raises when the host never connected."""
    if not account_ref:
        raise ExternalProviderError(PROVIDER, "Google not connected")
    return Credentials.from_authorized_user_info(json.loads(account_ref), SCOPES)


def calendar_service(creds: Credentials, timeout: float):
    http = google_auth_httplib2.AuthorizedHttp(creds, http=httplib2.Http(timeout=timeout))
    return build("calendar", "v3", http=http, cache_discovery=False)


def list_freebusy(service, start: datetime, end: datetime, calendar_id: str = "primary") -> List[dict]:
    body = {
        "timeMin": isoformat_utc(start),
        "timeMax": isoformat_utc(end),
        "items": [{"id": calendar_id}],
    }
    resp = service.freebusy().query(body=body).execute()
    calendar = resp.get("calendars", {}).get(calendar_id, {})
    if calendar.get("errors"):
        raise ValueError(f"freebusy errors for {calendar_id}: {calendar['errors']}")
    return calendar.get("busy", [])


def list_events(service, start: datetime, end: datetime, calendar_id: str = "primary") -> List[dict]:
    """All event instances touching [start, end), recurring events expanded."""
    events, page_token = [], None
    while True:
        resp = service.events().list(
            calendarId=calendar_id,
            timeMin=isoformat_utc(start),
            timeMax=isoformat_utc(end),
            singleEvents=True,
            orderBy="startTime",
            pageToken=page_token,
        ).execute()
        events.extend(resp.get("items", []))
        page_token = resp.get("nextPageToken")
        if not page_token:
            return events


def _event_instant(edge: dict) -> datetime:
    if "dateTime" in edge:
        return parse_iso_datetime(edge["dateTime"])
    # All-day events carry a bare date in the event's zone
    tz = pytz.timezone(edge.get("timeZone") or "UTC")
    return tz.localize(datetime.combine(parse_date(edge["date"]), time.min)).astimezone(pytz.UTC)


def blocking_events(events: List[dict], exclude_event_id: Optional[str] = None) -> List[Interval]:
    """Intervals of events that make the calendar owner busy."""
    blocks = []
    for event in events:
        if event.get("id") == exclude_event_id:
            continue
        if event.get("status") == "cancelled" or event.get("transparency") == "transparent":
            continue
        blocks.append(Interval(_event_instant(event["start"]), _event_instant(event["end"])))
    return blocks


def event_body(summary: str, description: str, start: datetime, end: datetime, tz_name: str, attendees=None) -> dict:
    body = {
        "summary": summary,
        "description": description,
        "start": {"dateTime": isoformat_utc(start), "timeZone": tz_name},
        "end": {"dateTime": isoformat_utc(end), "timeZone": tz_name},
    }
    if attendees is not None:
        body["attendees"] = attendees
    return body


class GoogleCalendarProvider:
    """Google Calendar adapter used by the scheduling core.

    ``account_ref`` is the host's stored authorized-user credentials JSON. Every
    failure, including timeouts and token refresh problems, surfaces as
    ``ExternalProviderError``. When a call refreshes the access token,
    ``on_refresh(account_ref, new_account_ref)`` receives the updated JSON so
    it can be stored in place of the old one.
    """

    def __init__(self, timeout: float = 10, calendar_id: str = "primary",
                 on_refresh: Optional[Callable[[str, str], None]] = None):
        self.timeout = timeout
        self.calendar_id = calendar_id
        self.on_refresh = on_refresh

    def _run(self, account_ref: str, request):
        creds = load_credentials(account_ref)
        issued = creds.token
        result = request(calendar_service(creds, self.timeout))
        if creds.token != issued and self.on_refresh is not None:
            log.info("Google access token refreshed")
            self.on_refresh(account_ref, creds.to_json())
        return result

    def get_busy_intervals(self, account_ref: str, range_start: datetime, range_end: datetime) -> List[Interval]:
        try:
            busy = self._run(account_ref, lambda svc: list_freebusy(svc, range_start, range_end, self.calendar_id))
            return [Interval(parse_iso_datetime(b["start"]), parse_iso_datetime(b["end"])) for b in busy]
        except _FAILURES as e:
            raise ExternalProviderError(PROVIDER, f"freebusy query failed: {e}")

    def get_busy_intervals_excluding(self, account_ref: str, range_start: datetime, range_end: datetime,
                                     exclude_event_id: str) -> List[Interval]:
        """Busy time from the event list, leaving out one event (a booking's own)."""
        try:
            events = self._run(account_ref, lambda svc: list_events(svc, range_start, range_end, self.calendar_id))
            return blocking_events(events, exclude_event_id)
        except _FAILURES as e:
            raise ExternalProviderError(PROVIDER, f"event listing failed: {e}")

    def create_event(self, account_ref: str, summary: str, description: str, start: datetime,
                     end: datetime, tz_name: str, attendees: List[dict]) -> str:
        body = event_body(summary, description, start, end, tz_name, attendees)
        try:
            created = self._run(account_ref, lambda svc: svc.events().insert(
                calendarId=self.calendar_id, body=body, sendUpdates="all",
            ).execute())
        except _FAILURES as e:
            raise ExternalProviderError(PROVIDER, f"event creation failed: {e}")
        return created.get("id")

    def update_event(self, account_ref: str, event_id: str, summary: str, description: str,
                     start: datetime, end: datetime, tz_name: str) -> None:
        body = event_body(summary, description, start, end, tz_name)
        try:
            self._run(account_ref, lambda svc: svc.events().patch(
                calendarId=self.calendar_id, eventId=event_id, body=body, sendUpdates="all",
            ).execute())
        except _FAILURES as e:
            raise ExternalProviderError(PROVIDER, f"event update failed: {e}")

    def delete_event(self, account_ref: str, event_id: str) -> None:
        try:
            self._run(account_ref, lambda svc: svc.events().delete(
                calendarId=self.calendar_id, eventId=event_id, sendUpdates="all",
            ).execute())
        except HttpError as e:
            # Already gone on Google's side
            if getattr(e.resp, "status", None) in (404, 410):
                log.info("Calendar event %s already deleted", event_id)
                return
            raise ExternalProviderError(PROVIDER, f"event deletion failed: {e}")
        except _FAILURES as e:
            raise ExternalProviderError(PROVIDER, f"event deletion failed: {e}")

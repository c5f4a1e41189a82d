"""Shared fixtures: an in-memory app, data factories and fake providers."""

import json
from datetime import date, datetime, time

import pytest
import pytz

from slotbook import create_app, db
from slotbook.models import AvailabilityRule, Booking, BookingType, Host
from slotbook.scheduling.bookings import BookingMutator
from slotbook.scheduling.errors import ExternalProviderError
from slotbook.scheduling.intervals import Interval
from slotbook.timeutils import to_naive_utc

UTC = pytz.UTC

# 2030-01-07 is a Monday; Chicago is on CST (UTC-6) then.
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)
NOW = datetime(2030, 1, 1, 0, 0, tzinfo=UTC)

GOOGLE_CREDS = json.dumps({
    "token": "access",
    "refresh_token": "refresh",
    "client_id": "client",
    "client_secret": "secret",
})


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=UTC)


class FakeCalendar:
    """In-memory stand-in for the Google Calendar provider."""

    def __init__(self):
        self.busy = []
        self.fail = False
        self.calls = []
        self.events = {}
        self._next_id = 1

    def _call(self, action):
        self.calls.append(action)
        if self.fail:
            raise ExternalProviderError("google_calendar", f"{action} timed out")

    def _blocks(self, range_start, range_end, exclude_event_id=None):
        events = [Interval(e["start"], e["end"]) for eid, e in self.events.items() if eid != exclude_event_id]
        return [i for i in self.busy + events if i.overlaps(range_start, range_end)]

    def get_busy_intervals(self, account_ref, range_start, range_end):
        self._call("freebusy")
        return self._blocks(range_start, range_end)

    def get_busy_intervals_excluding(self, account_ref, range_start, range_end, exclude_event_id):
        self._call("list_events")
        return self._blocks(range_start, range_end, exclude_event_id)

    def create_event(self, account_ref, summary, description, start, end, tz_name, attendees):
        self._call("create_event")
        event_id = f"evt-{self._next_id}"
        self._next_id += 1
        self.events[event_id] = {"summary": summary, "start": start, "end": end, "tz": tz_name}
        return event_id

    def update_event(self, account_ref, event_id, summary, description, start, end, tz_name):
        self._call("update_event")
        self.events[event_id] = {"summary": summary, "start": start, "end": end, "tz": tz_name}

    def delete_event(self, account_ref, event_id):
        self._call("delete_event")
        self.events.pop(event_id, None)


class FakeMeetings:
    def __init__(self):
        self.fail = False
        self.meetings = {}
        self._next_id = 100

    def _check(self):
        if self.fail:
            raise ExternalProviderError("zoom", "Zoom credentials not configured")

    def create_meeting(self, topic, start, duration_minutes, tz_name):
        self._check()
        meeting_id = str(self._next_id)
        self._next_id += 1
        self.meetings[meeting_id] = {"topic": topic, "start": start, "duration": duration_minutes}
        return meeting_id, f"https://zoom.example/j/{meeting_id}"

    def update_meeting(self, meeting_id, topic, start, duration_minutes, tz_name):
        self._check()
        self.meetings[meeting_id] = {"topic": topic, "start": start, "duration": duration_minutes}

    def delete_meeting(self, meeting_id):
        self._check()
        self.meetings.pop(meeting_id, None)


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def meetings():
    return FakeMeetings()


@pytest.fixture
def app(calendar, meetings):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "ADMIN_EMAILS": "admin@example.com",
        "DEFAULT_TIMEZONE": "America/Chicago",
    })
    app.extensions["slotbook"]["calendar"] = calendar
    app.extensions["slotbook"]["meetings"] = meetings
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    """Push an app context for tests that talk to the models directly."""
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture
def mutator(ctx, calendar, meetings):
    return BookingMutator(calendar=calendar, meetings=meetings, clock=lambda: NOW)


@pytest.fixture
def make_host():
    counter = {"n": 0}

    def _make(name="Pat Host", tz_name="America/Chicago", google=False, zoom=False, email=None):
        counter["n"] += 1
        host = Host(
            external_id=f"idp|host-{counter['n']}",
            email=email or f"host{counter['n']}@example.com",
            name=name,
            slug=Host.generate_slug(name),
            timezone=tz_name,
            google_credentials=GOOGLE_CREDS if google else None,
            zoom_enabled=zoom,
        )
        db.session.add(host)
        db.session.commit()
        return host

    return _make


@pytest.fixture
def make_booking_type():
    def _make(host, duration=60, name="Consultation", active=True):
        booking_type = BookingType(host_id=host.id, name=name, duration_minutes=duration, is_active=active)
        db.session.add(booking_type)
        db.session.commit()
        return booking_type

    return _make


@pytest.fixture
def set_rule():
    def _set(host, day_of_week, start="09:00", end="17:00", available=True):
        h1, m1 = map(int, start.split(":"))
        h2, m2 = map(int, end.split(":"))
        rule = AvailabilityRule(
            host_id=host.id,
            day_of_week=day_of_week,
            start_time=time(h1, m1),
            end_time=time(h2, m2),
            is_available=available,
        )
        db.session.add(rule)
        db.session.commit()
        return rule

    return _set


@pytest.fixture
def add_booking():
    """Insert a booking row directly, bypassing availability checks."""

    def _add(host, booking_type, start, end, status="confirmed", **extra):
        booking = Booking(
            host_id=host.id,
            booking_type_id=booking_type.id,
            client_name="Existing Client",
            client_email="existing@example.com",
            start_utc=to_naive_utc(start),
            end_utc=to_naive_utc(end),
            status=status,
            token="t" * 32,
            **extra,
        )
        db.session.add(booking)
        db.session.commit()
        return booking

    return _add


@pytest.fixture
def chicago_host(ctx, make_host, make_booking_type, set_rule):
    """Chicago host, Mondays 09:00-17:00, one 60 minute booking type."""
    host = make_host(google=True)
    set_rule(host, 1)
    booking_type = make_booking_type(host)
    return host, booking_type


def busy(start: datetime, end: datetime) -> Interval:
    return Interval(start, end)

"""Booking lifecycle: create, cancel, reschedule and complete.

Every mutation that places a booking on the calendar re-runs the availability
computation at commit time; a slot list shown to a client earlier is only a
hint. Calendar and meeting sync happens after the local commit and can only
add warnings to the result, never undo the booking.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from slotbook import db
from slotbook.models import Booking, BookingStatus, BookingType, Host
from slotbook.scheduling.availability import host_timezone
from slotbook.scheduling.errors import (
    AlreadyCancelledError,
    ExternalProviderError,
    InvalidStateError,
    NotFoundError,
    PastTimeError,
    SchedulingError,
    SlotUnavailableError,
    ValidationError,
)
from slotbook.scheduling.results import MutationResult
from slotbook.scheduling.slots import DEFAULT_GRANULARITY_MINUTES, SlotSequence, offerable_slots
from slotbook.timeutils import as_utc, local_date, to_naive_utc, utcnow


log = logging.getLogger(__name__)


@dataclass
class ClientInfo:
    name: str
    email: str
    phone: Optional[str] = None
    notes: Optional[str] = None

    def __post_init__(self):
        self.name = (self.name or "").strip()
        self.email = (self.email or "").strip().lower()
        self.phone = (self.phone or "").strip() or None
        if not self.name or not self.email:
            raise ValidationError("Client name and email are required")
        if "@" not in self.email:
            raise ValidationError("Client email is not valid")


class BookingMutator:
    def __init__(self, calendar=None, meetings=None, clock=utcnow,
                 granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES):
        self.calendar = calendar
        self.meetings = meetings
        self.clock = clock
        self.granularity_minutes = granularity_minutes

    # -- reads -------------------------------------------------------------

    def slots(self, host_id: int, calendar_date, duration_minutes: int) -> SlotSequence:
        return offerable_slots(
            host_id,
            calendar_date,
            duration_minutes,
            calendar=self.calendar,
            now=self.clock(),
            granularity_minutes=self.granularity_minutes,
        )

    def get_booking(self, booking_id: int, host_id: Optional[int] = None) -> Booking:
        booking = db.session.get(Booking, booking_id) if booking_id is not None else None
        if booking is None or (host_id is not None and booking.host_id != host_id):
            raise NotFoundError("Booking not found")
        return booking

    def list_bookings(
        self,
        host_id: int,
        status: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Booking]:
        if db.session.get(Host, host_id) is None:
            raise NotFoundError("Host not found")
        query = Booking.query.filter(Booking.host_id == host_id)
        if status:
            if status not in {s.value for s in BookingStatus}:
                raise ValidationError(f"Unknown booking status {status!r}")
            query = query.filter(Booking.status == status)
        if start is not None:
            query = query.filter(Booking.start_utc >= to_naive_utc(start))
        if end is not None:
            query = query.filter(Booking.start_utc <= to_naive_utc(end))
        query = query.order_by(Booking.start_utc.asc(), Booking.id.asc())
        if limit is not None:
            if limit <= 0:
                raise ValidationError("limit must be positive")
            query = query.limit(limit)
        return query.all()

    # -- mutations ---------------------------------------------------------

    def create(self, host_id: int, booking_type_id: int, start_utc: datetime, client: ClientInfo) -> MutationResult:
        try:
            host = self._lock_host(host_id)
            booking_type = db.session.get(BookingType, booking_type_id)
            if booking_type is None or booking_type.host_id != host.id or not booking_type.is_active:
                raise NotFoundError("Booking type not found or inactive")

            start = as_utc(start_utc)
            end = start + timedelta(minutes=booking_type.duration_minutes)
            self._ensure_offerable(host, start, booking_type.duration_minutes)

            booking = Booking(
                booking_type_id=booking_type.id,
                host_id=host.id,
                client_name=client.name,
                client_email=client.email,
                client_phone=client.phone,
                notes=client.notes,
                start_utc=to_naive_utc(start),
                end_utc=to_naive_utc(end),
                status=BookingStatus.CONFIRMED.value,
                token=secrets.token_hex(16),
            )
            db.session.add(booking)
            self._commit_or_conflict()
        except SchedulingError:
            db.session.rollback()
            raise
        log.info("Booking %s confirmed for host %s at %s", booking.id, host.id, start.isoformat())

        result = MutationResult(booking)
        self._sync_created(result)
        return result

    def cancel(self, booking_id: int, host_id: Optional[int] = None) -> MutationResult:
        booking = self.get_booking(booking_id, host_id)
        if booking.status == BookingStatus.CANCELLED:
            raise AlreadyCancelledError("Booking is already cancelled")
        if booking.status != BookingStatus.CONFIRMED:
            raise InvalidStateError(f"Cannot cancel a {booking.status} booking")

        booking.status = BookingStatus.CANCELLED.value
        db.session.commit()
        log.info("Booking %s cancelled", booking.id)

        result = MutationResult(booking)
        host = booking.host
        if booking.google_event_id and self.calendar is not None and host.calendar_connected:
            self._best_effort(result, "google_calendar", "delete_event", self.calendar.delete_event,
                              host.google_credentials, booking.google_event_id)
        if booking.zoom_meeting_id and self.meetings is not None:
            self._best_effort(result, "zoom", "delete_meeting", self.meetings.delete_meeting,
                              booking.zoom_meeting_id)
        return self._finish_sync(result)

    def reschedule(self, booking_id: int, new_start_utc: datetime, host_id: Optional[int] = None,
                   notes: Optional[str] = None) -> MutationResult:
        booking = self.get_booking(booking_id, host_id)
        if booking.status != BookingStatus.CONFIRMED:
            raise InvalidStateError(f"Cannot reschedule a {booking.status} booking")
        new_start = as_utc(new_start_utc)
        if new_start <= self.clock():
            raise PastTimeError("Cannot reschedule into the past")

        duration = booking.duration_minutes
        try:
            host = self._lock_host(booking.host_id)
            # Neither the booking nor its linked calendar event may block its own move
            self._ensure_offerable(host, new_start, duration, exclude_booking_id=booking.id,
                                   exclude_event_id=booking.google_event_id)
            booking.start_utc = to_naive_utc(new_start)
            booking.end_utc = to_naive_utc(new_start + timedelta(minutes=duration))
            if notes is not None:
                booking.notes = notes
            self._commit_or_conflict()
        except SchedulingError:
            db.session.rollback()
            raise
        log.info("Booking %s rescheduled to %s", booking.id, new_start.isoformat())

        result = MutationResult(booking)
        tz_name = host_timezone(host)
        if booking.google_event_id and self.calendar is not None and host.calendar_connected:
            summary, description = self._event_text(booking)
            self._best_effort(result, "google_calendar", "update_event", self.calendar.update_event,
                              host.google_credentials, booking.google_event_id, summary, description,
                              booking.start, booking.end, tz_name)
        if booking.zoom_meeting_id and self.meetings is not None:
            self._best_effort(result, "zoom", "update_meeting", self.meetings.update_meeting,
                              booking.zoom_meeting_id, self._event_text(booking)[0], booking.start,
                              duration, tz_name)
        return self._finish_sync(result)

    def complete(self, booking_id: int) -> MutationResult:
        booking = self.get_booking(booking_id)
        if booking.status != BookingStatus.CONFIRMED:
            raise InvalidStateError(f"Cannot complete a {booking.status} booking")
        booking.status = BookingStatus.COMPLETED.value
        db.session.commit()
        return MutationResult(booking)

    def complete_elapsed(self, now: Optional[datetime] = None) -> int:
        """Complete every confirmed booking that ended at or before ``now``."""
        now = as_utc(now or self.clock())
        elapsed = Booking.query.filter(
            Booking.status == BookingStatus.CONFIRMED.value,
            Booking.end_utc <= to_naive_utc(now),
        ).all()
        for booking in elapsed:
            self.complete(booking.id)
        if elapsed:
            log.info("Completed %d elapsed bookings", len(elapsed))
        return len(elapsed)

    # -- helpers -----------------------------------------------------------

    def _lock_host(self, host_id: int) -> Host:
        # Serializes bookings per host where the store supports row locks
        host = Host.query.filter_by(id=host_id).with_for_update().first()
        if host is None or not host.is_active:
            raise NotFoundError("Host not found")
        return host

    def _ensure_offerable(self, host: Host, start: datetime, duration_minutes: int,
                          exclude_booking_id: Optional[int] = None,
                          exclude_event_id: Optional[str] = None) -> None:
        now = self.clock()
        if start <= now:
            raise PastTimeError()
        tz_name = host_timezone(host)
        day = local_date(start, tz_name)
        slots = offerable_slots(
            host.id,
            day,
            duration_minutes,
            calendar=self.calendar,
            now=now,
            granularity_minutes=self.granularity_minutes,
            exclude_booking_id=exclude_booking_id,
            exclude_event_id=exclude_event_id,
        )
        reason = slots.rejection(start)
        if reason is None:
            return
        if reason == SlotUnavailableError.PAST:
            raise PastTimeError()
        if reason == SlotUnavailableError.ALREADY_BOOKED:
            raise SlotUnavailableError("Time slot is already booked", reason)
        if reason == SlotUnavailableError.MISALIGNED:
            raise SlotUnavailableError(
                f"Start time must fall on a {self.granularity_minutes}-minute step of the available hours",
                reason,
            )
        if slots.window is None:
            raise SlotUnavailableError(f"No availability set for {day.isoformat()}", reason)
        window = slots.window.to_dict()
        raise SlotUnavailableError(
            f"Time slot is outside available hours ({window['start']} - {window['end']} {window['timezone']})",
            reason,
        )

    def _commit_or_conflict(self):
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            log.warning("Store rejected overlapping confirmed booking")
            raise SlotUnavailableError("Time slot is already booked", SlotUnavailableError.ALREADY_BOOKED)

    def _finish_sync(self, result: MutationResult) -> MutationResult:
        # Event ids and refreshed provider credentials picked up after the booking commit
        db.session.commit()
        return result

    def _best_effort(self, result: MutationResult, provider: str, action: str, fn, *args):
        try:
            return fn(*args)
        except ExternalProviderError as e:
            log.warning("%s %s failed for booking %s: %s", provider, action, result.booking.id, e)
            result.warn(provider, action, e.message)
            return None

    @staticmethod
    def _event_text(booking: Booking):
        type_name = booking.booking_type.name if booking.booking_type else "Appointment"
        summary = f"{type_name} - {booking.client_name}"
        description = (
            f"Booking with {booking.client_name}\n"
            f"Email: {booking.client_email}\n"
            f"Phone: {booking.client_phone or 'N/A'}\n"
            f"Notes: {booking.notes or 'N/A'}"
        )
        return summary, description

    def _sync_created(self, result: MutationResult):
        booking = result.booking
        host = booking.host
        tz_name = host_timezone(host)
        summary, description = self._event_text(booking)

        if self.calendar is not None and host.calendar_connected:
            attendees = [{"email": booking.client_email, "displayName": booking.client_name}]
            event_id = self._best_effort(result, "google_calendar", "create_event", self.calendar.create_event,
                                         host.google_credentials, summary, description, booking.start,
                                         booking.end, tz_name, attendees)
            if event_id:
                booking.google_event_id = event_id

        if host.zoom_enabled and self.meetings is not None:
            meeting = self._best_effort(result, "zoom", "create_meeting", self.meetings.create_meeting,
                                        summary, booking.start, booking.duration_minutes, tz_name)
            if meeting:
                booking.zoom_meeting_id, booking.zoom_join_url = meeting

        self._finish_sync(result)

"""Appointment service - Booking rules, SMS confirmation and staff workflow"""

import logging
import re
from datetime import datetime, timedelta
from typing import Callable, Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import BACKEND_URL, BRAND_NAME
from ...models import (
    APPOINTMENT_ACTIVE_STATUSES,
    APPOINTMENT_CANCELLED,
    APPOINTMENT_COMPLETED,
    APPOINTMENT_CONFIRMED,
    APPOINTMENT_PENDING,
    APPOINTMENT_PENDING_SMS,
    PROPERTY_STATUS_AVAILABLE,
    Appointment,
    User,
)
from ...security_utils import generate_confirmation_code
from ...services.messaging import MessagingGateway
from ...shared.validators import normalize_phone, parse_iso_date, parse_time_of_day
from .repository import AppointmentRepository
from .schemas import AppointmentCreate

logger = logging.getLogger(__name__)

# weekday() -> (opening hour, closing hour); Sunday is closed
BUSINESS_HOURS = {0: (9, 18), 1: (9, 18), 2: (9, 18), 3: (9, 18), 4: (9, 18), 5: (10, 14)}
BUSINESS_HOURS_LABEL = "Monday to Friday 9:00-18:00, Saturday 10:00-14:00"
SLOT_MINUTES = 30
MAX_ACTIVE_APPOINTMENTS = 2

AFFIRMATIVE_REPLIES = {"YES", "Y", "SI", "SÍ", "CONFIRM", "CONFIRMAR", "OK"}
NEGATIVE_REPLIES = {"NO", "N", "CANCEL", "CANCELAR"}

PENDING_STATUSES = (APPOINTMENT_PENDING_SMS, APPOINTMENT_PENDING)


def is_within_business_hours(when: datetime) -> bool:
    hours = BUSINESS_HOURS.get(when.weekday())
    if not hours:
        return False
    opening, closing = hours
    return opening <= when.hour < closing


def build_time_slot(when: datetime) -> str:
    """Slot key YYYY-MM-DD-HH:MM, always zero-padded"""
    return f"{when:%Y-%m-%d-%H:%M}"


def parse_reply(body: str) -> tuple[Optional[str], list[str]]:
    """Return ("yes" | "no" | None, tokens) for an inbound SMS body"""
    tokens = re.findall(r"\w+", (body or "").upper())
    for token in tokens:
        if token in AFFIRMATIVE_REPLIES:
            return "yes", tokens
        if token in NEGATIVE_REPLIES:
            return "no", tokens
    return None, tokens


def _history_entry(kind: str, status: str) -> dict:
    return {"type": kind, "sent_at": datetime.utcnow().isoformat(), "status": status}


def _append_note(existing: Optional[str], note: str) -> str:
    return f"{existing}\n{note}" if existing else note


class AppointmentService:
    """Service layer for appointment business logic"""

    def __init__(
        self,
        db: Session,
        messaging: MessagingGateway,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db = db
        self.messaging = messaging
        self.repo = AppointmentRepository()
        self.clock = clock

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    def _generate_unique_code(self) -> str:
        while True:
            code = generate_confirmation_code()
            if not self.repo.code_exists(self.db, code):
                return code

    def build_confirmation_sms(self, appointment: Appointment) -> str:
        link = f"{BACKEND_URL}/appointments/confirm/{appointment.id}/{appointment.confirmation_code}"
        return (
            f"{BRAND_NAME}: confirm your visit to \"{appointment.property.title}\" on "
            f"{appointment.appointment_date:%Y-%m-%d} at {appointment.appointment_time}. "
            f"Reply YES to confirm or NO to cancel. Code: {appointment.confirmation_code}. "
            f"Or confirm here: {link}"
        )

    async def create_appointment(self, data: AppointmentCreate, user: User) -> tuple[Appointment, bool]:
        """
        Book a visit and request SMS confirmation.

        Returns the appointment and whether a confirmation reply is still
        expected. When the confirmation message cannot be delivered the
        appointment is confirmed immediately.
        """
        prop = self.repo.get_property(self.db, data.propertyId)
        if not prop:
            raise HTTPException(status_code=404, detail="Property not found")
        if prop.status != PROPERTY_STATUS_AVAILABLE:
            raise HTTPException(status_code=400, detail="This property is not available for visits")

        hour, minute = parse_time_of_day(data.time)
        when = parse_iso_date(data.date).replace(hour=hour, minute=minute)
        if when <= self.clock():
            raise HTTPException(status_code=400, detail="Appointments must be scheduled in the future")
        if not is_within_business_hours(when):
            raise HTTPException(status_code=400, detail=f"Outside business hours: {BUSINESS_HOURS_LABEL}")

        time_slot = build_time_slot(when)
        if self.repo.is_slot_taken(self.db, prop.id, time_slot):
            raise HTTPException(status_code=400, detail="This time slot is already booked")

        if self.repo.count_active_for_user(self.db, user.id) >= MAX_ACTIVE_APPOINTMENTS:
            raise HTTPException(
                status_code=400,
                detail=f"You already have {MAX_ACTIVE_APPOINTMENTS} active appointments",
            )

        phone = data.phone or user.phone
        if not phone:
            raise HTTPException(status_code=400, detail="A phone number is required to book a visit")

        try:
            appointment = self.repo.create(
                self.db,
                property_id=prop.id,
                user_id=user.id,
                visitor_name=data.name or user.username,
                visitor_phone=normalize_phone(phone),
                visitor_email=data.email or user.email,
                appointment_date=when,
                appointment_time=data.time,
                time_slot=time_slot,
                status=APPOINTMENT_PENDING_SMS,
                confirmation_code=self._generate_unique_code(),
                notes=data.notes,
                notification_history=[],
            )
        except IntegrityError:
            # Lost a race for the same slot between the check and the insert
            self.db.rollback()
            logger.warning(f"⚠️ Slot {time_slot} for property {prop.id} taken concurrently")
            raise HTTPException(status_code=400, detail="This time slot is already booked")

        logger.info(f"📅 Appointment {appointment.id} created for property {prop.id} at {time_slot}")

        result = await self.messaging.send_sms(appointment.visitor_phone, self.build_confirmation_sms(appointment))
        if result.success:
            appointment.notification_history = [_history_entry("initial", "sent")]
            confirmation_required = True
        else:
            logger.warning(
                f"⚠️ Confirmation SMS failed for appointment {appointment.id} ({result.error}), auto-confirming"
            )
            appointment.notification_history = [_history_entry("initial", "failed")]
            appointment.status = APPOINTMENT_CONFIRMED
            appointment.confirmed_at = datetime.utcnow()
            confirmation_required = False

        self.db.commit()
        self.db.refresh(appointment)
        return appointment, confirmation_required

    def get_available_slots(self, property_id: int, date_str: str) -> list[dict]:
        if not self.repo.get_property(self.db, property_id):
            raise HTTPException(status_code=404, detail="Property not found")
        try:
            day = parse_iso_date(date_str)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        hours = BUSINESS_HOURS.get(day.weekday())
        if not hours:
            return []

        held = self.repo.get_held_slots(self.db, property_id, f"{day:%Y-%m-%d}")
        opening, closing = hours
        slots = []
        current = day.replace(hour=opening)
        end = day.replace(hour=closing)
        while current < end:
            time_str = f"{current:%H:%M}"
            if build_time_slot(current) not in held:
                slots.append({"time": time_str, "available": True})
            current += timedelta(minutes=SLOT_MINUTES)
        return slots

    # ------------------------------------------------------------------
    # Confirmation
    # ------------------------------------------------------------------

    def _confirm(self, appointment: Appointment, channel: str) -> Appointment:
        appointment.status = APPOINTMENT_CONFIRMED
        appointment.confirmed_at = datetime.utcnow()
        appointment.notification_history = list(appointment.notification_history or []) + [
            _history_entry("confirmation", channel)
        ]
        self.db.commit()
        self.db.refresh(appointment)
        logger.info(f"✅ Appointment {appointment.id} confirmed ({channel})")
        return appointment

    def _cancel(self, appointment: Appointment, note: str) -> Appointment:
        appointment.status = APPOINTMENT_CANCELLED
        appointment.notes = _append_note(appointment.notes, note)
        self.db.commit()
        self.db.refresh(appointment)
        logger.info(f"🚫 Appointment {appointment.id} cancelled: {note}")
        return appointment

    def _require_awaiting_reply(self, appointment: Appointment) -> None:
        if appointment.status != APPOINTMENT_PENDING_SMS:
            raise HTTPException(status_code=400, detail="This appointment is not awaiting confirmation")

    def confirm_by_link(self, appointment_id: int, code: str) -> Appointment:
        appointment = self.repo.get_by_id(self.db, appointment_id)
        if not appointment or appointment.confirmation_code != code:
            raise HTTPException(status_code=404, detail="Invalid confirmation link")
        self._require_awaiting_reply(appointment)
        return self._confirm(appointment, "link")

    def confirm_by_code(self, code: str, response: str) -> Appointment:
        appointment = self.repo.get_by_code(self.db, (code or "").strip().upper())
        if not appointment:
            raise HTTPException(status_code=404, detail="Invalid confirmation code")
        self._require_awaiting_reply(appointment)

        intent, _ = parse_reply(response)
        if intent == "yes":
            return self._confirm(appointment, "received")
        return self._cancel(appointment, "Cancelled by SMS: negative response")

    def handle_sms_reply(self, body: str, from_phone: str) -> Optional[Appointment]:
        """Apply an inbound SMS reply; returns the affected appointment, if any"""
        intent, tokens = parse_reply(body)
        if intent is None:
            logger.info(f"📱 Ignoring unrecognised SMS reply from {from_phone}: {body!r}")
            return None

        appointment = None
        for token in tokens:
            candidate = self.repo.get_by_code(self.db, token)
            if candidate and candidate.status == APPOINTMENT_PENDING_SMS:
                appointment = candidate
                break

        if appointment is None and from_phone:
            try:
                phone = normalize_phone(from_phone)
            except ValueError:
                phone = from_phone
            appointment = self.repo.get_latest_pending_for_phone(self.db, phone)

        if appointment is None:
            logger.info(f"📱 No appointment awaiting a reply from {from_phone}")
            return None

        if intent == "yes":
            return self._confirm(appointment, "received")
        return self._cancel(appointment, "Cancelled by SMS: negative response")

    # ------------------------------------------------------------------
    # Staff workflow
    # ------------------------------------------------------------------

    def get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.repo.get_by_id(self.db, appointment_id)
        if not appointment:
            raise HTTPException(status_code=404, detail="Appointment not found")
        return appointment

    def confirm_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.get_appointment(appointment_id)
        if appointment.status not in PENDING_STATUSES:
            raise HTTPException(
                status_code=400, detail=f"Cannot confirm an appointment that is {appointment.status}"
            )
        return self._confirm(appointment, "staff")

    def complete_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.get_appointment(appointment_id)
        if appointment.status != APPOINTMENT_CONFIRMED:
            raise HTTPException(
                status_code=400, detail=f"Cannot complete an appointment that is {appointment.status}"
            )
        appointment.status = APPOINTMENT_COMPLETED
        self.db.commit()
        self.db.refresh(appointment)
        logger.info(f"🏁 Appointment {appointment.id} completed")
        return appointment

    def cancel_appointment(self, appointment_id: int, user: User, reason: Optional[str] = None) -> Appointment:
        appointment = self.get_appointment(appointment_id)
        if not user.is_staff and appointment.user_id != user.id:
            raise HTTPException(status_code=403, detail="You can only cancel your own appointments")
        if appointment.status not in APPOINTMENT_ACTIVE_STATUSES:
            raise HTTPException(
                status_code=400, detail=f"Cannot cancel an appointment that is {appointment.status}"
            )
        return self._cancel(appointment, f"Cancelled: {reason or 'No reason given'}")

    async def assign_staff(self, appointment_id: int, staff_id: int) -> Appointment:
        appointment = self.get_appointment(appointment_id)
        if appointment.status != APPOINTMENT_CONFIRMED:
            raise HTTPException(status_code=400, detail="Only confirmed appointments can be assigned")

        staff = self.repo.get_user(self.db, staff_id)
        if not staff:
            raise HTTPException(status_code=404, detail="Staff member not found")
        if not staff.is_staff:
            raise HTTPException(status_code=400, detail="Assignee must be an admin or co-admin")

        appointment.assigned_to_id = staff.id
        appointment.assigned_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(appointment)

        contact = f" Contact: {staff.phone}." if staff.phone else ""
        message = (
            f"{BRAND_NAME}: your visit to \"{appointment.property.title}\" on "
            f"{appointment.appointment_date:%Y-%m-%d} at {appointment.appointment_time} "
            f"will be hosted by {staff.username}.{contact}"
        )
        result = await self.messaging.send_sms(appointment.visitor_phone, message)
        appointment.notification_history = list(appointment.notification_history or []) + [
            _history_entry("assignment", "sent" if result.success else "failed")
        ]
        self.db.commit()
        self.db.refresh(appointment)
        logger.info(f"👤 Appointment {appointment.id} assigned to user {staff.id}")
        return appointment

    def list_for_user(self, user: User) -> list[Appointment]:
        return self.repo.list_for_user(self.db, user.id)

    def list_all(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        property_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> list[Appointment]:
        try:
            start = parse_iso_date(start_date) if start_date else None
            end = parse_iso_date(end_date) + timedelta(days=1) - timedelta(microseconds=1) if end_date else None
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return self.repo.list_all(self.db, start, end, property_id, status)

    def purge_all(self) -> int:
        deleted = self.repo.delete_all(self.db)
        logger.warning(f"🗑️ Purged {deleted} appointments")
        return deleted

"""
Appointment Reminder Worker
Sends day-before SMS reminders for confirmed appointments
"""

import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session, joinedload

from ..config import BRAND_NAME, REMINDER_CHECK_INTERVAL_SECONDS, REMINDER_HOUR
from ..database import SessionLocal
from ..models import APPOINTMENT_CONFIRMED, Appointment
from ..services.messaging import MessagingGateway, build_messaging_gateway

logger = logging.getLogger(__name__)


def format_long_date(value: datetime) -> str:
    """Monday, June 2, 2025"""
    return f"{value:%A, %B} {value.day}, {value.year}"


def _address(appointment: Appointment) -> str:
    prop = appointment.property
    return f"{prop.street}, {prop.city}, {prop.state} {prop.zip_code}"


def build_client_reminder(appointment: Appointment) -> str:
    return (
        f"{BRAND_NAME} reminder: your visit to \"{appointment.property.title}\" is tomorrow, "
        f"{format_long_date(appointment.appointment_date)} at {appointment.appointment_time}. "
        f"Address: {_address(appointment)}."
    )


def build_staff_reminder(appointment: Appointment) -> str:
    return (
        f"Reminder: you are showing \"{appointment.property.title}\" tomorrow, "
        f"{format_long_date(appointment.appointment_date)} at {appointment.appointment_time}. "
        f"Address: {_address(appointment)}. "
        f"Client: {appointment.visitor_name}, {appointment.visitor_phone}, {appointment.visitor_email}."
    )


async def check_and_send_reminders(
    db: Session, messaging: MessagingGateway, now: Optional[datetime] = None
) -> dict:
    """
    Remind visitors (and assigned staff) about confirmed appointments tomorrow.

    An appointment is reminded at most once: a successful send to either party
    appends a "reminder" entry to its notification history, and appointments
    carrying that entry are skipped on later runs.
    """
    now = now or datetime.now()
    start = datetime.combine(now.date() + timedelta(days=1), datetime.min.time())
    end = start + timedelta(days=1)

    appointments = (
        db.query(Appointment)
        .options(joinedload(Appointment.property), joinedload(Appointment.assigned_to))
        .filter(
            Appointment.status == APPOINTMENT_CONFIRMED,
            Appointment.appointment_date >= start,
            Appointment.appointment_date < end,
        )
        .order_by(Appointment.appointment_date)
        .all()
    )
    due = [a for a in appointments if not a.has_notification("reminder")]

    summary = {"total": len(due), "sent": 0, "failed": 0}
    if not due:
        logger.info("✅ No appointment reminders due")
        return summary

    logger.info(f"⏰ Sending reminders for {len(due)} appointments on {start.date()}")

    for appointment in due:
        client_result = await messaging.send_sms(appointment.visitor_phone, build_client_reminder(appointment))
        if not client_result.success:
            logger.warning(f"⚠️ Client reminder failed for appointment {appointment.id}: {client_result.error}")

        staff_ok = False
        if appointment.assigned_to and appointment.assigned_to.phone:
            staff_result = await messaging.send_sms(
                appointment.assigned_to.phone, build_staff_reminder(appointment)
            )
            staff_ok = staff_result.success
            if not staff_ok:
                logger.warning(f"⚠️ Staff reminder failed for appointment {appointment.id}: {staff_result.error}")

        if client_result.success or staff_ok:
            appointment.notification_history = list(appointment.notification_history or []) + [
                {"type": "reminder", "sent_at": datetime.utcnow().isoformat(), "status": "sent"}
            ]
            db.commit()
            summary["sent"] += 1
        else:
            summary["failed"] += 1

    logger.info(f"📊 Reminders: {summary['sent']} sent, {summary['failed']} failed of {summary['total']}")
    return summary


class ReminderScheduler:
    """Polls the clock and runs the reminder check once a day at REMINDER_HOUR"""

    def __init__(
        self,
        messaging: MessagingGateway,
        hour: int = REMINDER_HOUR,
        interval_seconds: int = REMINDER_CHECK_INTERVAL_SECONDS,
        session_factory: Callable[[], Session] = SessionLocal,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.messaging = messaging
        self.hour = hour
        self.interval_seconds = interval_seconds
        self.session_factory = session_factory
        self.clock = clock
        self.last_run_date: Optional[date] = None

    def is_due(self, now: datetime) -> bool:
        return now.hour == self.hour and self.last_run_date != now.date()

    async def tick(self) -> Optional[dict]:
        now = self.clock()
        if not self.is_due(now):
            return None

        self.last_run_date = now.date()
        db = self.session_factory()
        try:
            return await check_and_send_reminders(db, self.messaging, now)
        finally:
            db.close()

    async def run(self) -> None:
        logger.info(f"🚀 Reminder scheduler started (daily at {self.hour:02d}:00)")
        while True:
            try:
                await self.tick()
            except Exception as e:
                logger.exception(f"❌ Error in reminder scheduler loop: {e}")
            await asyncio.sleep(self.interval_seconds)


async def run_reminder_worker():
    """Entry point for running the scheduler as its own process"""
    scheduler = ReminderScheduler(build_messaging_gateway())
    await scheduler.run()

from datetime import datetime, timedelta

from conftest import auth_headers, make_admin, make_co_admin, make_property, make_user

from propertyhub.database import SessionLocal
from propertyhub.models import APPOINTMENT_CONFIRMED, APPOINTMENT_PENDING_SMS, Appointment
from propertyhub.workers.reminder_worker import (
    ReminderScheduler,
    build_client_reminder,
    check_and_send_reminders,
    format_long_date,
)

NOW = datetime(2030, 6, 2, 9, 0)  # a Sunday
TOMORROW = datetime(2030, 6, 3)


def make_appointment(db, user, prop, when=TOMORROW, time="10:00", status=APPOINTMENT_CONFIRMED, staff=None):
    appointment = Appointment(
        property_id=prop.id,
        user_id=user.id,
        visitor_name=user.username,
        visitor_phone=user.phone,
        visitor_email=user.email,
        appointment_date=when.replace(hour=int(time[:2]), minute=int(time[3:])),
        appointment_time=time,
        time_slot=f"{when:%Y-%m-%d}-{time}",
        status=status,
        assigned_to_id=staff.id if staff else None,
        notification_history=[],
    )
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    return appointment


def test_reminder_text():
    assert format_long_date(datetime(2030, 6, 3, 10, 0)) == "Monday, June 3, 2030"


async def test_reminds_tomorrows_confirmed_appointments_once(db, messaging):
    prop = make_property(db)
    visitor = make_user(db)
    pending = make_user(db, "pending", phone="+15550000002")
    later = make_user(db, "later", phone="+15550000003")
    appointment = make_appointment(db, visitor, prop)
    make_appointment(db, pending, prop, time="11:00", status=APPOINTMENT_PENDING_SMS)
    make_appointment(db, later, prop, when=TOMORROW + timedelta(days=1))

    first = await check_and_send_reminders(db, messaging, now=NOW)
    second = await check_and_send_reminders(db, messaging, now=NOW)

    assert first == {"total": 1, "sent": 1, "failed": 0}
    assert second == {"total": 0, "sent": 0, "failed": 0}
    [sms] = messaging.sms.to(visitor.phone)
    assert sms == build_client_reminder(appointment)
    assert "Monday, June 3, 2030 at 10:00" in sms
    assert "123 Main St, Austin, TX 78701" in sms
    assert messaging.sms.to(pending.phone) == []
    assert messaging.sms.to(later.phone) == []
    assert appointment.has_notification("reminder")


async def test_assigned_staff_gets_client_details(db, messaging):
    prop = make_property(db)
    visitor = make_user(db)
    host = make_co_admin(db)
    make_appointment(db, visitor, prop, staff=host)

    await check_and_send_reminders(db, messaging, now=NOW)

    [staff_sms] = messaging.sms.to(host.phone)
    assert "Client: visitor, +15550000001, visitor@example.com." in staff_sms


async def test_failed_reminder_is_retried_on_next_run(db, messaging):
    prop = make_property(db)
    visitor = make_user(db)
    appointment = make_appointment(db, visitor, prop)
    messaging.sms.fail_all = True

    failed = await check_and_send_reminders(db, messaging, now=NOW)
    messaging.sms.fail_all = False
    retried = await check_and_send_reminders(db, messaging, now=NOW)

    assert failed == {"total": 1, "sent": 0, "failed": 1}
    assert retried == {"total": 1, "sent": 1, "failed": 0}
    assert appointment.has_notification("reminder")


def test_scheduler_is_due_once_per_day_at_the_hour(messaging):
    scheduler = ReminderScheduler(messaging, hour=9)

    assert scheduler.is_due(datetime(2030, 6, 2, 9, 15))
    assert not scheduler.is_due(datetime(2030, 6, 2, 10, 0))

    scheduler.last_run_date = datetime(2030, 6, 2).date()
    assert not scheduler.is_due(datetime(2030, 6, 2, 9, 45))
    assert scheduler.is_due(datetime(2030, 6, 3, 9, 0))


async def test_scheduler_tick_runs_check_with_own_session(db, messaging):
    prop = make_property(db)
    visitor = make_user(db)
    make_appointment(db, visitor, prop)
    ticks = iter([datetime(2030, 6, 2, 8, 59), NOW, NOW + timedelta(minutes=1)])
    scheduler = ReminderScheduler(messaging, hour=9, session_factory=SessionLocal, clock=lambda: next(ticks))

    assert await scheduler.tick() is None
    assert await scheduler.tick() == {"total": 1, "sent": 1, "failed": 0}
    assert await scheduler.tick() is None
    assert len(messaging.sms.to(visitor.phone)) == 1


def test_admin_can_trigger_reminder_run(client, db, messaging):
    admin = make_admin(db)
    visitor = make_user(db)

    res = client.post("/appointments/reminders/run", headers=auth_headers(admin))
    forbidden = client.post("/appointments/reminders/run", headers=auth_headers(visitor))

    assert res.json() == {"total": 0, "sent": 0, "failed": 0}
    assert forbidden.status_code == 403

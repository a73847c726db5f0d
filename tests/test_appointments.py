import pytest
from conftest import auth_headers, make_admin, make_co_admin, make_property, make_user, next_weekday
from fastapi import HTTPException

from propertyhub.domain.appointments.schemas import AppointmentCreate
from propertyhub.domain.appointments.service import AppointmentService, parse_reply
from propertyhub.models import PROPERTY_STATUS_SOLD, Appointment

MONDAY = next_weekday(0).isoformat()
SATURDAY = next_weekday(5).isoformat()
SUNDAY = next_weekday(6).isoformat()


def book(client, user, prop, day=MONDAY, time="10:00", **extra):
    payload = {"propertyId": prop.id, "date": day, "time": time, **extra}
    return client.post("/appointments", json=payload, headers=auth_headers(user))


def test_booking_waits_for_sms_confirmation(client, db, messaging):
    user = make_user(db)
    prop = make_property(db)

    res = book(client, user, prop)

    assert res.status_code == 201
    body = res.json()
    assert body["confirmationRequired"] is True
    appointment = body["appointment"]
    assert appointment["status"] == "pending_sms_confirmation"
    assert appointment["timeSlot"] == f"{MONDAY}-10:00"

    stored = db.query(Appointment).one()
    [sms] = messaging.sms.to(user.phone)
    assert stored.confirmation_code in sms
    assert f"/appointments/confirm/{stored.id}/{stored.confirmation_code}" in sms


def test_failed_confirmation_sms_auto_confirms(client, db, messaging):
    user = make_user(db)
    prop = make_property(db)
    messaging.sms.fail_all = True

    res = book(client, user, prop)

    assert res.status_code == 201
    assert res.json()["confirmationRequired"] is False
    assert res.json()["appointment"]["status"] == "confirmed"
    assert res.json()["appointment"]["confirmedAt"] is not None


def test_slot_cannot_be_double_booked(client, db):
    prop = make_property(db)
    first = make_user(db, "visitor1", phone="+15550000001")
    second = make_user(db, "visitor2", phone="+15550000002")

    assert book(client, first, prop).status_code == 201
    res = book(client, second, prop)

    assert res.status_code == 400
    assert res.json() == {"message": ["This time slot is already booked"]}
    assert db.query(Appointment).count() == 1


def test_unpadded_date_hits_the_same_slot(client, db):
    prop = make_property(db)
    first = make_user(db, "visitor1", phone="+15550000001")
    second = make_user(db, "visitor2", phone="+15550000002")

    assert book(client, first, prop, day="2030-03-04").status_code == 201
    res = book(client, second, prop, day="2030-3-4")

    assert res.status_code == 400
    assert res.json() == {"message": ["This time slot is already booked"]}
    assert db.query(Appointment).count() == 1
    assert db.query(Appointment).one().time_slot == "2030-03-04-10:00"

    slots = client.get("/appointments/available-slots", params={"propertyId": prop.id, "date": "2030-3-4"})
    assert slots.status_code == 200
    assert "10:00" not in [s["time"] for s in slots.json()["availableSlots"]]


def test_booking_date_is_normalised():
    data = AppointmentCreate(propertyId=1, date="2030-3-4", time="10:00")

    assert data.date == "2030-03-04"


async def test_insert_race_on_same_slot_is_reported_as_conflict(db, messaging, monkeypatch):
    prop = make_property(db)
    first = make_user(db, "visitor1", phone="+15550000001")
    second = make_user(db, "visitor2", phone="+15550000002")
    service = AppointmentService(db, messaging)
    data = AppointmentCreate(propertyId=prop.id, date=MONDAY, time="11:00")

    await service.create_appointment(data, first)
    # Simulate losing the race: the pre-check sees a free slot
    monkeypatch.setattr(service.repo, "is_slot_taken", lambda *args: False)

    with pytest.raises(HTTPException) as exc:
        await service.create_appointment(data, second)
    assert exc.value.status_code == 400
    assert db.query(Appointment).count() == 1


def test_cancelled_slot_can_be_booked_again(client, db):
    prop = make_property(db)
    first = make_user(db, "visitor1", phone="+15550000001")
    second = make_user(db, "visitor2", phone="+15550000002")

    appointment_id = book(client, first, prop).json()["appointment"]["id"]
    res = client.put(
        f"/appointments/{appointment_id}/cancel", json={"reason": "Change of plans"}, headers=auth_headers(first)
    )
    assert res.status_code == 200
    assert res.json()["status"] == "cancelled"
    assert "Change of plans" in res.json()["notes"]

    assert book(client, second, prop).status_code == 201


def test_active_appointment_limit(client, db):
    user = make_user(db)
    prop = make_property(db)

    first_id = book(client, user, prop, time="10:00").json()["appointment"]["id"]
    assert book(client, user, prop, time="10:30").status_code == 201
    res = book(client, user, prop, time="11:00")

    assert res.status_code == 400
    assert res.json()["message"] == ["You already have 2 active appointments"]

    cancelled = client.put(f"/appointments/{first_id}/cancel", headers=auth_headers(user))
    assert cancelled.status_code == 200
    assert book(client, user, prop, time="11:00").status_code == 201


@pytest.mark.parametrize(
    "day,time",
    [(MONDAY, "08:30"), (MONDAY, "18:00"), (SATURDAY, "14:00"), (SUNDAY, "11:00")],
)
def test_booking_outside_business_hours_is_rejected(client, db, day, time):
    user = make_user(db)
    prop = make_property(db)

    res = book(client, user, prop, day=day, time=time)

    assert res.status_code == 400
    assert res.json()["message"][0].startswith("Outside business hours")


def test_booking_in_the_past_is_rejected(client, db):
    user = make_user(db)
    prop = make_property(db)

    res = book(client, user, prop, day="2020-01-06")

    assert res.status_code == 400
    assert res.json()["message"] == ["Appointments must be scheduled in the future"]


def test_sold_property_cannot_be_visited(client, db):
    user = make_user(db)
    prop = make_property(db, status=PROPERTY_STATUS_SOLD, is_available=False)

    assert book(client, user, prop).status_code == 400


def test_co_admin_cannot_book(client, db):
    co_admin = make_co_admin(db)
    prop = make_property(db)

    res = book(client, co_admin, prop)

    assert res.status_code == 403


def test_booking_requires_authentication(client, db):
    prop = make_property(db)
    res = client.post("/appointments", json={"propertyId": prop.id, "date": MONDAY, "time": "10:00"})
    assert res.status_code == 401


def test_available_slots(client, db):
    user = make_user(db)
    prop = make_property(db)
    book(client, user, prop, time="09:30")

    weekday = client.get("/appointments/available-slots", params={"propertyId": prop.id, "date": MONDAY})
    saturday = client.get("/appointments/available-slots", params={"propertyId": prop.id, "date": SATURDAY})
    sunday = client.get("/appointments/available-slots", params={"propertyId": prop.id, "date": SUNDAY})

    times = [slot["time"] for slot in weekday.json()["availableSlots"]]
    assert times[0] == "09:00"
    assert times[-1] == "17:30"
    assert "09:30" not in times
    assert len(times) == 17
    assert [s["time"] for s in saturday.json()["availableSlots"]] == [
        "10:00", "10:30", "11:00", "11:30", "12:00", "12:30", "13:00", "13:30",
    ]
    assert sunday.json() == {"availableSlots": []}


def test_confirmation_link(client, db):
    user = make_user(db)
    prop = make_property(db)
    book(client, user, prop)
    appointment = db.query(Appointment).one()

    wrong = client.get(f"/appointments/confirm/{appointment.id}/ZZZZZZ")
    ok = client.get(f"/appointments/confirm/{appointment.id}/{appointment.confirmation_code}")
    again = client.get(f"/appointments/confirm/{appointment.id}/{appointment.confirmation_code}")

    assert wrong.status_code == 404
    assert ok.status_code == 200
    assert ok.json()["appointment"]["status"] == "confirmed"
    assert again.status_code == 400


def test_confirm_by_code_negative_answer_cancels(client, db):
    user = make_user(db)
    prop = make_property(db)
    book(client, user, prop)
    code = db.query(Appointment).one().confirmation_code

    res = client.post("/appointments/confirm-sms", json={"confirmationCode": code.lower(), "response": "no"})

    assert res.status_code == 200
    assert res.json()["appointment"]["status"] == "cancelled"


def test_sms_webhook_confirms_latest_pending_for_sender(client, db):
    user = make_user(db)
    prop = make_property(db)
    book(client, user, prop)

    res = client.post("/appointments/webhook/sms", data={"Body": "Si, confirmo", "From": user.phone})

    assert res.status_code == 200
    assert res.headers["content-type"].startswith("application/xml")
    assert "<Response></Response>" in res.text
    db.expire_all()
    appointment = db.query(Appointment).one()
    assert appointment.status == "confirmed"
    assert appointment.has_notification("confirmation")


def test_sms_webhook_matches_code_in_body(client, db):
    prop = make_property(db)
    first = make_user(db, "visitor1", phone="+15550000001")
    second = make_user(db, "visitor2", phone="+15550000002")
    book(client, first, prop, time="10:00")
    book(client, second, prop, time="10:30")
    target = db.query(Appointment).filter(Appointment.user_id == second.id).one()

    client.post("/appointments/webhook/sms", data={"Body": f"NO {target.confirmation_code}", "From": "+15551112222"})

    db.expire_all()
    statuses = {a.user_id: a.status for a in db.query(Appointment).all()}
    assert statuses == {first.id: "pending_sms_confirmation", second.id: "cancelled"}


@pytest.mark.parametrize("body,sender", [("what time is it?", "+15550000001"), ("YES", "+15557778888"), ("", "")])
def test_sms_webhook_always_acknowledges(client, db, body, sender):
    res = client.post("/appointments/webhook/sms", data={"Body": body, "From": sender})
    assert res.status_code == 200
    assert "<Response></Response>" in res.text


def test_staff_workflow(client, db, messaging):
    admin = make_admin(db)
    host = make_co_admin(db, phone="+15553334444")
    user = make_user(db)
    prop = make_property(db)
    appointment_id = book(client, user, prop).json()["appointment"]["id"]

    early_assign = client.put(
        f"/appointments/{appointment_id}/assign", json={"staffId": host.id}, headers=auth_headers(admin)
    )
    assert early_assign.status_code == 400

    confirm = client.put(f"/appointments/{appointment_id}/confirm", headers=auth_headers(admin))
    assert confirm.json()["status"] == "confirmed"

    not_staff = client.put(
        f"/appointments/{appointment_id}/assign", json={"staffId": user.id}, headers=auth_headers(admin)
    )
    assert not_staff.status_code == 400

    assign = client.put(
        f"/appointments/{appointment_id}/assign", json={"staffId": host.id}, headers=auth_headers(admin)
    )
    assert assign.status_code == 200
    assert assign.json()["assignedTo"]["id"] == host.id
    assert "coadmin" in messaging.sms.to(user.phone)[-1]

    complete = client.put(f"/appointments/{appointment_id}/complete", headers=auth_headers(host))
    assert complete.json()["status"] == "completed"

    cancel_completed = client.put(f"/appointments/{appointment_id}/cancel", headers=auth_headers(admin))
    assert cancel_completed.status_code == 400


def test_only_owner_or_staff_can_cancel(client, db):
    prop = make_property(db)
    owner = make_user(db, "visitor1", phone="+15550000001")
    other = make_user(db, "visitor2", phone="+15550000002")
    appointment_id = book(client, owner, prop).json()["appointment"]["id"]

    res = client.put(f"/appointments/{appointment_id}/cancel", headers=auth_headers(other))

    assert res.status_code == 403


def test_staff_listing_and_purge(client, db):
    admin = make_admin(db)
    user = make_user(db)
    prop = make_property(db)
    book(client, user, prop)

    assert client.get("/appointments", headers=auth_headers(user)).status_code == 403
    listed = client.get("/appointments", params={"startDate": MONDAY, "endDate": MONDAY}, headers=auth_headers(admin))
    assert len(listed.json()) == 1
    mine = client.get("/my-appointments", headers=auth_headers(user))
    assert len(mine.json()) == 1

    purge = client.delete("/appointments", headers=auth_headers(admin))
    assert purge.json()["deleted"] == 1
    assert db.query(Appointment).count() == 0


@pytest.mark.parametrize(
    "body,intent",
    [("yes", "yes"), ("Sí!", "yes"), ("ok thanks", "yes"), ("Cancelar por favor", "no"), ("maybe", None)],
)
def test_parse_reply(body, intent):
    assert parse_reply(body)[0] == intent

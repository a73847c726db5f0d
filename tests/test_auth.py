from datetime import datetime, timedelta

import pytest
from conftest import PASSWORD, auth_headers, make_admin, make_co_admin, make_user

from propertyhub.models import User
from propertyhub.services.verification_service import (
    CodeExpired,
    CodeMismatch,
    NoCodeIssued,
    issue_verification_code,
    verify_code,
)

REGISTRATION = {
    "username": "maria.lopez",
    "email": "Maria@Example.com",
    "phone": "(512) 555-0142",
    "password": "secret123",
}


def reload_user(db, email: str) -> User:
    db.expire_all()
    return db.query(User).filter(User.email == email).one()


def test_register_issues_code_over_both_channels(client, db, messaging):
    res = client.post("/register", json=REGISTRATION)

    assert res.status_code == 201
    body = res.json()
    assert body["email"] == "maria@example.com"
    assert body["phone"] == "+15125550142"
    assert body["role"] == "user"
    assert body["requiresVerification"] is True
    assert body["verification"]["smsSent"] is True
    assert body["verification"]["emailSent"] is True
    assert "token" in res.cookies

    user = reload_user(db, "maria@example.com")
    assert len(user.verification_code) == 6
    assert user.verification_code.isdigit()
    assert user.verification_code in messaging.sms.to("+15125550142")[0]
    assert messaging.email.sent[0][0] == "maria@example.com"


def test_register_rejects_duplicates(client, db):
    make_user(db, "maria.lopez", email="other@example.com")
    make_user(db, "someone", email="maria@example.com")

    same_email = client.post("/register", json={**REGISTRATION, "username": "newname"})
    same_username = client.post("/register", json={**REGISTRATION, "email": "fresh@example.com"})

    assert same_email.status_code == 400
    assert same_email.json() == {"message": ["Email is already registered"]}
    assert same_username.status_code == 400
    assert same_username.json() == {"message": ["Username is already taken"]}


def test_register_validation_errors_are_listed_per_field(client, db):
    res = client.post("/register", json={**REGISTRATION, "password": "123", "phone": "12"})

    assert res.status_code == 400
    messages = res.json()["message"]
    assert any(m.startswith("password:") for m in messages)
    assert any(m.startswith("phone:") for m in messages)


def test_register_still_succeeds_when_delivery_fails(client, db, messaging):
    messaging.sms.fail_all = True
    messaging.email.fail_all = True

    res = client.post("/register", json=REGISTRATION)

    assert res.status_code == 201
    assert res.json()["verification"]["smsSent"] is False
    assert reload_user(db, "maria@example.com").verification_code is not None


def test_unverified_user_cannot_log_in(client, db):
    user = make_user(db, verified=False)

    res = client.post("/login", json={"email": user.email, "password": PASSWORD})

    assert res.status_code == 403
    body = res.json()
    assert body["requiresVerification"] is True
    assert body["emailVerified"] is False
    assert "token" not in res.cookies


def test_login_with_username_or_email(client, db):
    user = make_user(db)

    by_email = client.post("/login", json={"email": user.email, "password": PASSWORD})
    client.cookies.clear()
    by_username = client.post("/login", json={"email": user.username, "password": PASSWORD})

    assert by_email.status_code == 200
    assert by_username.status_code == 200
    assert by_email.json()["token"]
    assert "token" in by_username.cookies


def test_login_failures(client, db):
    user = make_user(db)

    unknown = client.post("/login", json={"email": "nobody@example.com", "password": PASSWORD})
    wrong = client.post("/login", json={"email": user.email, "password": "wrong-password"})

    assert unknown.status_code == 400
    assert wrong.status_code == 400
    assert wrong.json() == {"message": ["Incorrect password"]}


@pytest.mark.parametrize("factory", [make_admin, make_co_admin])
def test_staff_bypass_verification(client, db, factory):
    staff = factory(db)
    staff.email_verified = False
    staff.phone_verified = False
    db.commit()

    res = client.post("/login", json={"email": staff.email, "password": PASSWORD})

    assert res.status_code == 200


def test_verify_code_flow(client, db):
    client.post("/register", json=REGISTRATION)
    client.cookies.clear()
    code = reload_user(db, "maria@example.com").verification_code
    bad_code = "000000" if code != "000000" else "111111"

    wrong = client.post("/verify-code", json={"email": "maria@example.com", "code": bad_code})
    right = client.post("/verify-code", json={"email": "maria@example.com", "code": code})
    reused = client.post("/verify-code", json={"email": "maria@example.com", "code": code})
    login = client.post("/login", json={"email": "maria@example.com", "password": "secret123"})

    assert wrong.status_code == 400
    assert wrong.json() == {"message": ["Incorrect code"]}
    assert right.status_code == 200
    assert right.json()["user"]["emailVerified"] is True
    assert right.json()["user"]["phoneVerified"] is True
    assert reused.status_code == 400
    assert login.status_code == 200


def test_resend_code_replaces_previous_code(client, db, messaging):
    user = make_user(db, verified=False)

    first = client.post("/resend-code", json={"email": user.email})
    first_code = reload_user(db, user.email).verification_code
    second = client.post("/resend-code", json={"email": user.email})
    second_user = reload_user(db, user.email)

    assert first.status_code == 200
    assert second.status_code == 200
    assert len(messaging.sms.to(user.phone)) == 2
    assert second_user.verification_code in messaging.sms.to(user.phone)[-1]
    assert first_code in messaging.sms.to(user.phone)[0]


def test_resend_code_for_unknown_or_verified_account(client, db):
    user = make_user(db)

    assert client.post("/resend-code", json={"email": "ghost@example.com"}).status_code == 404
    assert client.post("/resend-code", json={"email": user.email}).status_code == 400


def test_profile_and_token_check(client, db):
    user = make_user(db)

    assert client.get("/profile").status_code == 401
    assert client.get("/profile", headers={"Authorization": "Bearer not-a-token"}).status_code == 401
    profile = client.get("/profile", headers=auth_headers(user))
    verify = client.get("/verify", headers=auth_headers(user))

    assert profile.json()["username"] == user.username
    assert verify.json()["id"] == user.id


def test_logout_clears_cookie(client, db):
    user = make_user(db)
    client.post("/login", json={"email": user.email, "password": PASSWORD})
    assert client.get("/profile").status_code == 200

    client.post("/logout")

    assert client.get("/profile").status_code == 401


def test_profile_image_upload(client, db, storage):
    user = make_user(db)

    res = client.put(
        "/profile/image",
        files={"image": ("me.png", b"\x89PNG fake", "image/png")},
        headers=auth_headers(user),
    )
    rejected = client.put(
        "/profile/image",
        files={"image": ("me.txt", b"hello", "text/plain")},
        headers=auth_headers(user),
    )

    assert res.status_code == 200
    assert res.json()["profileImage"].startswith("/media/profiles/")
    assert rejected.status_code == 400


# ---------------------------------------------------------------------------
# verify_code unit behaviour
# ---------------------------------------------------------------------------


def test_verify_code_without_pending_code(db):
    user = make_user(db, verified=False)
    with pytest.raises(NoCodeIssued):
        verify_code(db, user, "123456")


async def test_verify_code_expired(db, messaging):
    user = make_user(db, verified=False)
    await issue_verification_code(db, user, messaging)

    later = datetime.utcnow() + timedelta(minutes=11)
    with pytest.raises(CodeExpired):
        verify_code(db, user, user.verification_code, now=later)
    assert user.email_verified is False


async def test_verify_code_mismatch_keeps_code(db, messaging):
    user = make_user(db, verified=False)
    await issue_verification_code(db, user, messaging)
    code = user.verification_code

    with pytest.raises(CodeMismatch):
        verify_code(db, user, "x" + code[1:])
    assert user.verification_code == code


async def test_verify_code_sets_both_flags(db, messaging):
    user = make_user(db, verified=False)
    result = await issue_verification_code(db, user, messaging)

    verify_code(db, user, user.verification_code)

    assert result["success"] is True
    assert user.email_verified is True
    assert user.phone_verified is True
    assert user.verification_code is None
    assert user.verification_code_expires_at is None


async def test_code_is_logged_when_both_channels_fail(db, messaging, caplog):
    user = make_user(db, verified=False)
    messaging.sms.fail_all = True
    messaging.email.fail_all = True

    result = await issue_verification_code(db, user, messaging)

    assert result["success"] is True
    assert result["sms_sent"] is False
    assert result["email_sent"] is False
    assert user.verification_code in caplog.text

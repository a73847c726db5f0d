import os
import tempfile
from datetime import date, timedelta

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REMINDERS_ENABLED"] = "false"
os.environ["CSRF_ENABLED"] = "false"
os.environ["GEOCODING_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "local"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["MEDIA_ROOT"] = tempfile.mkdtemp(prefix="propertyhub-media-")
for key in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "RESEND_API_KEY", "R2_ACCOUNT_ID", "SETUP_ADMIN_USERNAME"):
    os.environ.pop(key, None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from propertyhub.config import SETUP_ROLE_ADMIN, SETUP_ROLE_CO_ADMIN, SETUP_ROLE_USER  # noqa: E402
from propertyhub.database import Base, SessionLocal, engine  # noqa: E402
from propertyhub.initial_setup import seed_roles  # noqa: E402
from propertyhub.main import app  # noqa: E402
from propertyhub.models import Property, Role, User  # noqa: E402
from propertyhub.security_utils import create_jwt_token, hash_password_bcrypt  # noqa: E402
from propertyhub.services.messaging import DeliveryResult, EmailGateway, MessagingGateway, SMSGateway  # noqa: E402
from propertyhub.services.storage import LocalMediaStorage  # noqa: E402

PASSWORD = "secret123"
PASSWORD_HASH = hash_password_bcrypt(PASSWORD)


class RecordingSMS(SMSGateway):
    """Records every message; numbers in `fail_numbers` fail, `fail_all` fails everything"""

    mode = "fake"

    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.attempts: list[str] = []
        self.fail_numbers: set[str] = set()
        self.fail_all = False
        self.retryable = True

    async def send_sms(self, to: str, body: str) -> DeliveryResult:
        self.attempts.append(to)
        if self.fail_all or to in self.fail_numbers:
            return DeliveryResult(success=False, mode=self.mode, error="carrier rejected", retryable=self.retryable)
        self.sent.append((to, body))
        return DeliveryResult(success=True, mode=self.mode, sid=f"SM{len(self.sent)}")

    def to(self, phone: str) -> list[str]:
        return [body for number, body in self.sent if number == phone]


class RecordingEmail(EmailGateway):
    mode = "fake"

    def __init__(self):
        self.sent: list[tuple[str, str, str]] = []
        self.fail_all = False

    async def send_email(self, to: str, subject: str, mjml_content: str) -> DeliveryResult:
        if self.fail_all:
            return DeliveryResult(success=False, mode=self.mode, error="mailbox unavailable")
        self.sent.append((to, subject, mjml_content))
        return DeliveryResult(success=True, mode=self.mode)


@pytest.fixture
def messaging():
    return MessagingGateway(sms=RecordingSMS(), email=RecordingEmail())


@pytest.fixture
def storage(tmp_path):
    return LocalMediaStorage(root=str(tmp_path / "media"))


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    seed_roles(session)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db, messaging, storage):
    app.state.messaging = messaging
    app.state.storage = storage
    with TestClient(app) as test_client:
        yield test_client


def make_user(
    db,
    username: str = "visitor",
    role: str = SETUP_ROLE_USER,
    phone: str = "+15550000001",
    verified: bool = True,
    email: str = None,
) -> User:
    role_row = db.query(Role).filter(Role.name == role).first()
    user = User(
        username=username,
        email=email or f"{username}@example.com",
        phone=phone,
        password_hash=PASSWORD_HASH,
        role_id=role_row.id,
        email_verified=verified,
        phone_verified=verified,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_admin(db, username: str = "admin", phone: str = "+15559990000") -> User:
    return make_user(db, username=username, role=SETUP_ROLE_ADMIN, phone=phone)


def make_co_admin(db, username: str = "coadmin", phone: str = "+15559990001") -> User:
    return make_user(db, username=username, role=SETUP_ROLE_CO_ADMIN, phone=phone)


def make_property(db, **overrides) -> Property:
    values = {
        "title": "Casa Azul",
        "description": "Three bedroom house with a large yard",
        "business_mode": "sale",
        "street": "123 Main St",
        "city": "Austin",
        "state": "TX",
        "zip_code": "78701",
        "price_sale": 350000,
        "bedrooms": 3,
        "bathrooms": 2,
        "square_feet": 1800,
        "property_type": "house",
        "images": [],
        "documents": [],
        "videos": [],
        "amenities": [],
        "status_history": [],
    }
    values.update(overrides)
    prop = Property(**values)
    db.add(prop)
    db.commit()
    db.refresh(prop)
    return prop


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_jwt_token({'id': user.id})}"}


def next_weekday(weekday: int, min_days_ahead: int = 2) -> date:
    """First date at least `min_days_ahead` days out falling on `weekday` (Monday is 0)"""
    day = date.today() + timedelta(days=min_days_ahead)
    while day.weekday() != weekday:
        day += timedelta(days=1)
    return day

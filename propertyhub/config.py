import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./propertyhub.db")

# "local" issues SameSite=Lax cookies, anything else SameSite=None; Secure
ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

TOKEN_EXPIRE_MINUTES = int(os.getenv("TOKEN_EXPIRE_MINUTES", str(60 * 24)))
TOKEN_COOKIE_NAME = "token"

# Public URLs used for deep links in SMS and email
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:8000")
BRAND_NAME = os.getenv("BRAND_NAME", "FR Family Investments")

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
    if origin.strip()
]

# Twilio SMS Configuration
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER")
# Preferred over TWILIO_PHONE_NUMBER when both are set
TWILIO_MESSAGING_SERVICE_SID = os.getenv("TWILIO_MESSAGING_SERVICE_SID")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", f"{BRAND_NAME} <noreply@frfamilyinvestments.com>")

# Cloudflare R2 Configuration (local disk storage when unset)
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY")
R2_BUCKET_NAME = os.getenv("R2_BUCKET_NAME", "propertyhub")
# Public bucket domain; presigned URLs are used when unset
R2_PUBLIC_URL = os.getenv("R2_PUBLIC_URL")
MEDIA_ROOT = os.getenv("MEDIA_ROOT", "uploads")

# Mass SMS broadcast tuning
BROADCAST_BATCH_SIZE = int(os.getenv("BROADCAST_BATCH_SIZE", "50"))
BROADCAST_BATCH_INTERVAL_SECONDS = float(os.getenv("BROADCAST_BATCH_INTERVAL_SECONDS", "1.0"))
BROADCAST_MAX_RETRIES = int(os.getenv("BROADCAST_MAX_RETRIES", "3"))
BROADCAST_RETRY_BACKOFF_SECONDS = float(os.getenv("BROADCAST_RETRY_BACKOFF_SECONDS", "0.5"))
BROADCAST_MAX_PROCESSING_SECONDS = float(os.getenv("BROADCAST_MAX_PROCESSING_SECONDS", "600"))

# Daily appointment reminders
REMINDERS_ENABLED = _env_bool("REMINDERS_ENABLED", "true")
REMINDER_HOUR = int(os.getenv("REMINDER_HOUR", "9"))
REMINDER_CHECK_INTERVAL_SECONDS = int(os.getenv("REMINDER_CHECK_INTERVAL_SECONDS", "60"))

# Account verification codes
VERIFICATION_CODE_LENGTH = int(os.getenv("VERIFICATION_CODE_LENGTH", "6"))
VERIFICATION_CODE_TTL_MINUTES = int(os.getenv("VERIFICATION_CODE_TTL_MINUTES", "10"))

# Nominatim geocoding (OpenStreetMap)
GEOCODING_ENABLED = _env_bool("GEOCODING_ENABLED", "false")
NOMINATIM_BASE_URL = os.getenv("NOMINATIM_BASE_URL", "https://nominatim.openstreetmap.org")
NOMINATIM_USER_AGENT = os.getenv("NOMINATIM_USER_AGENT", "PropertyHub/1.0 (contact@frfamilyinvestments.com)")

CSRF_ENABLED = _env_bool("CSRF_ENABLED", "false")

# Initial setup: role names and bootstrap admin account
SETUP_ROLE_ADMIN = os.getenv("SETUP_ROLE_ADMIN", "admin")
SETUP_ROLE_USER = os.getenv("SETUP_ROLE_USER", "user")
SETUP_ROLE_CO_ADMIN = os.getenv("SETUP_ROLE_CO_ADMIN", "co-admin")
SETUP_ADMIN_USERNAME = os.getenv("SETUP_ADMIN_USERNAME")
SETUP_ADMIN_EMAIL = os.getenv("SETUP_ADMIN_EMAIL")
SETUP_ADMIN_PWD = os.getenv("SETUP_ADMIN_PWD")
SETUP_ADMIN_PHONE = os.getenv("SETUP_ADMIN_PHONE")

"""
Account verification codes.

A single numeric code is issued per request and delivered over SMS and email
at the same time. Entering it marks both the email and the phone as verified.
"""

import asyncio
import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from ..config import BRAND_NAME, VERIFICATION_CODE_LENGTH, VERIFICATION_CODE_TTL_MINUTES
from ..models import User
from ..security_utils import generate_numeric_code
from .email_templates import email_verification_template
from .messaging import MessagingGateway

logger = logging.getLogger(__name__)


class VerificationError(Exception):
    """Base class for code verification failures"""

    message = "Verification failed"

    def __str__(self):
        return self.message


class NoCodeIssued(VerificationError):
    message = "No verification code pending. Request a new one."


class CodeExpired(VerificationError):
    message = "The code has expired. Request a new one."


class CodeMismatch(VerificationError):
    message = "Incorrect code"


def _delivery_message(sms_sent: bool, email_sent: bool) -> str:
    if sms_sent and email_sent:
        return "Verification code sent by SMS and email"
    if sms_sent:
        return "Verification code sent by SMS"
    if email_sent:
        return "Verification code sent by email"
    return "Verification code generated. Contact support if it does not arrive."


async def issue_verification_code(db: Session, user: User, messaging: MessagingGateway) -> dict:
    """
    Generate, store and deliver a fresh verification code.

    Issuing always succeeds once the code is stored; channel outcomes are
    reported in the result but never raised.
    """
    code = generate_numeric_code(VERIFICATION_CODE_LENGTH)
    user.verification_code = code
    user.verification_code_expires_at = datetime.utcnow() + timedelta(minutes=VERIFICATION_CODE_TTL_MINUTES)
    db.commit()

    sms_body = f"{BRAND_NAME}: your verification code is {code}. It expires in {VERIFICATION_CODE_TTL_MINUTES} minutes."
    sms_result, email_result = await asyncio.gather(
        messaging.send_sms(user.phone, sms_body),
        messaging.send_email(
            user.email,
            "Verify your account",
            email_verification_template(user.username, code, VERIFICATION_CODE_TTL_MINUTES),
        ),
    )

    if not sms_result.success:
        logger.warning(f"⚠️ Verification SMS failed for user {user.id}: {sms_result.error}")
    if not email_result.success:
        logger.warning(f"⚠️ Verification email failed for user {user.id}: {email_result.error}")
    if not sms_result.success and not email_result.success:
        # Server log is the last-resort delivery channel
        logger.warning(f"🔑 Verification code for user {user.id} ({user.email}): {code}")

    logger.info(f"✅ Verification code issued for user {user.id}")
    return {
        "success": True,
        "message": _delivery_message(sms_result.success, email_result.success),
        "sms_sent": sms_result.success,
        "email_sent": email_result.success,
        "sms_error": sms_result.error,
        "email_error": email_result.error,
        "expires_at": user.verification_code_expires_at,
    }


def verify_code(db: Session, user: User, code: str, now: datetime = None) -> User:
    """Check a submitted code and mark the account verified on success"""
    now = now or datetime.utcnow()

    if not user.verification_code or not user.verification_code_expires_at:
        raise NoCodeIssued()

    if now > user.verification_code_expires_at:
        raise CodeExpired()

    if user.verification_code != (code or "").strip():
        logger.warning(f"⚠️ Incorrect verification code for user {user.id}")
        raise CodeMismatch()

    user.email_verified = True
    user.phone_verified = True
    user.verification_code = None
    user.verification_code_expires_at = None
    db.commit()
    db.refresh(user)

    logger.info(f"✅ User {user.id} verified email and phone")
    return user

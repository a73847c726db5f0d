"""
Messaging Gateway
SMS through the Twilio REST API and email through Resend, with logging-only
mock implementations selected when credentials are missing.

The gateway is built once at startup and injected into request handlers and
background jobs; callers never branch on whether delivery is live.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import httpx
import resend
from fastapi import Request
from mjml import mjml_to_html

from ..config import (
    EMAIL_FROM_ADDRESS,
    RESEND_API_KEY,
    TWILIO_ACCOUNT_SID,
    TWILIO_AUTH_TOKEN,
    TWILIO_MESSAGING_SERVICE_SID,
    TWILIO_PHONE_NUMBER,
)
from ..shared.validators import normalize_phone

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"

# Values shipped in sample .env files that must not count as configured
_PLACEHOLDER_VALUES = {"", "your_account_sid_here", "your_auth_token_here", "your_twilio_phone_number_here"}


@dataclass
class DeliveryResult:
    success: bool
    mode: str  # twilio, resend, mock
    error: Optional[str] = None
    sid: Optional[str] = None
    # False when retrying cannot help, e.g. a malformed number
    retryable: bool = True


class SMSGateway:
    mode = "abstract"

    async def send_sms(self, to: str, body: str) -> DeliveryResult:
        raise NotImplementedError


class EmailGateway:
    mode = "abstract"

    async def send_email(self, to: str, subject: str, mjml_content: str) -> DeliveryResult:
        raise NotImplementedError


class TwilioSMSGateway(SMSGateway):
    """Send SMS via the Twilio Messages API"""

    mode = "twilio"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: Optional[str] = None,
        messaging_service_sid: Optional[str] = None,
        timeout: float = 10.0,
    ):
        if not from_number and not messaging_service_sid:
            raise ValueError("Twilio requires a sender phone number or a messaging service SID")
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.messaging_service_sid = messaging_service_sid
        self.timeout = timeout

    async def send_sms(self, to: str, body: str) -> DeliveryResult:
        try:
            to_phone = normalize_phone(to)
        except ValueError as e:
            logger.warning(f"⚠️ Invalid phone number {to!r}: {e}")
            return DeliveryResult(success=False, mode=self.mode, error=str(e), retryable=False)
        if not to_phone:
            return DeliveryResult(success=False, mode=self.mode, error="No phone number provided", retryable=False)

        data = {"To": to_phone, "Body": body}
        if self.messaging_service_sid:
            data["MessagingServiceSid"] = self.messaging_service_sid
        else:
            data["From"] = self.from_number

        try:
            logger.info(f"🚀 Sending SMS to Twilio API for {to_phone}")
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json",
                    auth=(self.account_sid, self.auth_token),
                    data=data,
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Twilio request failed for {to_phone}: {e}")
            return DeliveryResult(success=False, mode=self.mode, error=str(e))

        logger.info(f"📡 Twilio API response status: {response.status_code}")
        if response.status_code in (200, 201):
            message_sid = response.json().get("sid")
            logger.info(f"✅ SMS sent successfully: {message_sid}")
            return DeliveryResult(success=True, mode=self.mode, sid=message_sid)

        try:
            error_message = response.json().get("message", response.text)
        except ValueError:
            error_message = response.text
        logger.error(f"❌ Twilio API error for {to_phone}: {error_message}")
        return DeliveryResult(success=False, mode=self.mode, error=error_message)


class MockSMSGateway(SMSGateway):
    """Logs the message instead of sending it"""

    mode = "mock"

    async def send_sms(self, to: str, body: str) -> DeliveryResult:
        try:
            to_phone = normalize_phone(to)
        except ValueError as e:
            return DeliveryResult(success=False, mode=self.mode, error=str(e), retryable=False)
        if not to_phone:
            return DeliveryResult(success=False, mode=self.mode, error="No phone number provided", retryable=False)
        logger.info(f"📱 [MOCK SMS] to={to_phone}: {body}")
        return DeliveryResult(success=True, mode=self.mode)


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    result = mjml_to_html(mjml_content)
    # mjml_to_html returns a dict-like object with 'html' and 'errors' keys
    if isinstance(result, dict):
        if result.get("errors"):
            logger.warning(f"MJML compilation warnings: {result['errors']}")
        return result.get("html", "")
    return getattr(result, "html", str(result))


class ResendEmailGateway(EmailGateway):
    mode = "resend"

    def __init__(self, api_key: str, from_address: str = EMAIL_FROM_ADDRESS):
        resend.api_key = api_key
        self.from_address = from_address

    async def send_email(self, to: str, subject: str, mjml_content: str) -> DeliveryResult:
        if not to:
            return DeliveryResult(success=False, mode=self.mode, error="No email address provided")
        try:
            html_content = compile_mjml_to_html(mjml_content)
            logger.info(f"📧 Sending email via Resend to: {to}")
            # The Resend SDK is synchronous
            response = await asyncio.to_thread(
                resend.Emails.send,
                {"from": self.from_address, "to": [to], "subject": subject, "html": html_content},
            )
        except Exception as e:
            logger.error(f"❌ Email send error to {to}: {e}")
            return DeliveryResult(success=False, mode=self.mode, error=str(e))

        email_id = response.get("id") if isinstance(response, dict) else None
        logger.info(f"✅ Email sent successfully via Resend: {email_id}")
        return DeliveryResult(success=True, mode=self.mode, sid=email_id)


class MockEmailGateway(EmailGateway):
    mode = "mock"

    async def send_email(self, to: str, subject: str, mjml_content: str) -> DeliveryResult:
        if not to:
            return DeliveryResult(success=False, mode=self.mode, error="No email address provided")
        logger.info(f"📧 [MOCK EMAIL] to={to}: {subject}")
        return DeliveryResult(success=True, mode=self.mode)


class MessagingGateway:
    """SMS and email delivery bundled behind one injectable object"""

    def __init__(self, sms: SMSGateway, email: EmailGateway):
        self.sms = sms
        self.email = email

    @property
    def live_sms(self) -> bool:
        return self.sms.mode != "mock"

    @property
    def live_email(self) -> bool:
        return self.email.mode != "mock"

    async def send_sms(self, to: str, body: str) -> DeliveryResult:
        try:
            return await self.sms.send_sms(to, body)
        except Exception as e:
            logger.exception(f"❌ Unexpected SMS gateway failure for {to}")
            return DeliveryResult(success=False, mode=self.sms.mode, error=str(e))

    async def send_email(self, to: str, subject: str, mjml_content: str) -> DeliveryResult:
        try:
            return await self.email.send_email(to, subject, mjml_content)
        except Exception as e:
            logger.exception(f"❌ Unexpected email gateway failure for {to}")
            return DeliveryResult(success=False, mode=self.email.mode, error=str(e))


def _configured(value: Optional[str]) -> bool:
    return bool(value) and value.strip() not in _PLACEHOLDER_VALUES


def build_messaging_gateway() -> MessagingGateway:
    """Pick live or mock transports from the environment"""
    if (
        _configured(TWILIO_ACCOUNT_SID)
        and _configured(TWILIO_AUTH_TOKEN)
        and (_configured(TWILIO_PHONE_NUMBER) or _configured(TWILIO_MESSAGING_SERVICE_SID))
    ):
        sms: SMSGateway = TwilioSMSGateway(
            TWILIO_ACCOUNT_SID,
            TWILIO_AUTH_TOKEN,
            from_number=TWILIO_PHONE_NUMBER if _configured(TWILIO_PHONE_NUMBER) else None,
            messaging_service_sid=(
                TWILIO_MESSAGING_SERVICE_SID if _configured(TWILIO_MESSAGING_SERVICE_SID) else None
            ),
        )
        logger.info("✅ Twilio SMS gateway configured")
    else:
        sms = MockSMSGateway()
        logger.warning("⚠️ Twilio credentials missing - SMS will be logged only (mock mode)")

    if _configured(RESEND_API_KEY):
        email: EmailGateway = ResendEmailGateway(RESEND_API_KEY)
        logger.info("✅ Resend email gateway configured")
    else:
        email = MockEmailGateway()
        logger.warning("⚠️ RESEND_API_KEY missing - emails will be logged only (mock mode)")

    return MessagingGateway(sms=sms, email=email)


def get_messaging(request: Request) -> MessagingGateway:
    """Dependency returning the gateway created during startup"""
    return request.app.state.messaging

"""
Mass SMS broadcast to verified users.

Recipients are processed in fixed-size batches sent concurrently, with a pause
between batches and per-recipient retries. Progress is committed after every
batch so the admin dashboard can follow a running broadcast, and a broadcast
that runs past its time limit is recorded as failed.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import (
    BRAND_NAME,
    BROADCAST_BATCH_INTERVAL_SECONDS,
    BROADCAST_BATCH_SIZE,
    BROADCAST_MAX_PROCESSING_SECONDS,
    BROADCAST_MAX_RETRIES,
    BROADCAST_RETRY_BACKOFF_SECONDS,
    FRONTEND_URL,
    SETUP_ROLE_ADMIN,
)
from ..database import SessionLocal
from ..models import Property, Role, User
from ..models_notification import Notification
from .messaging import DeliveryResult, MessagingGateway

logger = logging.getLogger(__name__)

SMS_MAX_LENGTH = 160


class BroadcastError(Exception):
    def __init__(self, message: str, notification_id: Optional[int] = None):
        super().__init__(message)
        self.notification_id = notification_id


class NoRecipientsError(BroadcastError):
    pass


class NoFailedRecipientsError(BroadcastError):
    pass


class BroadcastTimeoutError(BroadcastError):
    pass


@dataclass
class BroadcastSettings:
    batch_size: int = BROADCAST_BATCH_SIZE
    batch_interval: float = BROADCAST_BATCH_INTERVAL_SECONDS
    max_retries: int = BROADCAST_MAX_RETRIES
    retry_backoff: float = BROADCAST_RETRY_BACKOFF_SECONDS
    max_processing_seconds: float = BROADCAST_MAX_PROCESSING_SECONDS


@dataclass
class BatchOutcome:
    results: list[dict] = field(default_factory=list)

    @property
    def sent(self) -> list[dict]:
        return [r for r in self.results if r["success"]]

    @property
    def failed(self) -> list[dict]:
        return [r for r in self.results if not r["success"]]


# ============================================================================
# RECIPIENTS & MESSAGE TEMPLATES
# ============================================================================


def eligible_recipients_query(db: Session):
    """Users with a phone, both verification flags set, and not admins"""
    return (
        db.query(User)
        .outerjoin(Role, User.role_id == Role.id)
        .filter(
            User.phone.isnot(None),
            User.phone != "",
            User.email_verified.is_(True),
            User.phone_verified.is_(True),
            (Role.name.is_(None)) | (Role.name != SETUP_ROLE_ADMIN),
        )
    )


def get_eligible_recipients(db: Session) -> list[User]:
    return eligible_recipients_query(db).order_by(User.id).all()


def count_eligible_recipients(db: Session) -> int:
    return eligible_recipients_query(db).with_entities(func.count(User.id)).scalar() or 0


def format_price(prop: Property) -> str:
    if prop.price_sale:
        return f"${prop.price_sale:,.0f}"
    if prop.price_rent:
        return f"${prop.price_rent:,.0f}/month"
    return "Contact us"


def _format_bathrooms(value) -> str:
    if value is None:
        return "-"
    return f"{value:g}"


def build_property_message(prop: Property, kind: str = "new_property") -> str:
    """Render the broadcast SMS body for a property"""
    headline = "PROPERTY AVAILABLE AGAIN" if kind == "available_again" else "NEW PROPERTY AVAILABLE"
    return (
        f"{headline} - {BRAND_NAME}. "
        f"Property: {prop.title}. "
        f"Price: {format_price(prop)}. "
        f"Bedrooms: {prop.bedrooms}. "
        f"Bathrooms: {_format_bathrooms(prop.bathrooms)}. "
        f"Location: {prop.city}, {prop.state}. "
        f"See details: {FRONTEND_URL}/properties/{prop.id}"
    )


def preview_message(prop: Property, kind: str = "new_property") -> dict:
    message = build_property_message(prop, kind)
    return {"message": message, "length": len(message), "maxLength": SMS_MAX_LENGTH}


# ============================================================================
# BROADCASTER
# ============================================================================


class NotificationBroadcaster:
    """Runs a broadcast against the injected messaging gateway"""

    def __init__(
        self,
        db: Session,
        messaging: MessagingGateway,
        settings: Optional[BroadcastSettings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.db = db
        self.messaging = messaging
        self.settings = settings or BroadcastSettings()
        self.sleep = sleep
        self.clock = clock

    async def send_with_retry(self, phone: str, message: str) -> DeliveryResult:
        """Send one SMS, retrying with a linear backoff"""
        result = None
        for attempt in range(1, self.settings.max_retries + 1):
            result = await self.messaging.send_sms(phone, message)
            if result.success or not result.retryable:
                return result
            if attempt < self.settings.max_retries:
                logger.debug(f"🔁 Retry {attempt}/{self.settings.max_retries} for {phone}: {result.error}")
                await self.sleep(self.settings.retry_backoff * attempt)
        return result

    async def _deliver(self, user_id: Optional[int], phone: str, message: str) -> dict:
        result = await self.send_with_retry(phone, message)
        return {
            "user_id": user_id,
            "phone": phone,
            "success": result.success,
            "mode": result.mode,
            "error": result.error,
        }

    async def process_batch(self, batch: list[tuple[Optional[int], str]], message: str) -> BatchOutcome:
        results = await asyncio.gather(*(self._deliver(user_id, phone, message) for user_id, phone in batch))
        return BatchOutcome(results=list(results))

    async def _run_batches(
        self,
        notification: Notification,
        recipients: list[tuple[Optional[int], str]],
        on_batch: Callable[[BatchOutcome, int], None],
    ) -> None:
        size = max(1, self.settings.batch_size)
        batches = [recipients[i : i + size] for i in range(0, len(recipients), size)]
        started = self.clock()

        for index, batch in enumerate(batches):
            elapsed = self.clock() - started
            if elapsed > self.settings.max_processing_seconds:
                raise BroadcastTimeoutError(
                    f"Broadcast exceeded the {self.settings.max_processing_seconds:g}s processing limit",
                    notification.id,
                )

            outcome = await self.process_batch(batch, notification.message)
            processed = index * size + len(batch)
            on_batch(outcome, processed)
            self.db.commit()
            logger.info(
                f"📊 Broadcast {notification.id}: batch {index + 1}/{len(batches)} "
                f"({len(outcome.sent)} sent, {len(outcome.failed)} failed)"
            )

            if index < len(batches) - 1:
                await self.sleep(self.settings.batch_interval)

    def _finish(self, notification: Notification, status: str, error: Optional[str] = None) -> None:
        notification.status = status
        notification.error_message = error
        notification.completed_at = datetime.utcnow()
        if notification.started_at:
            notification.duration_seconds = (notification.completed_at - notification.started_at).total_seconds()
        self.db.commit()
        self.db.refresh(notification)

    async def send_mass_notification(
        self,
        prop: Optional[Property] = None,
        created_by: Optional[User] = None,
        kind: str = "new_property",
        message: Optional[str] = None,
    ) -> Notification:
        """Broadcast a property announcement (or a custom message) to every eligible user"""
        if message is None:
            if prop is None:
                raise ValueError("A property or a message is required")
            message = build_property_message(prop, kind)

        recipients = [(user.id, user.phone) for user in get_eligible_recipients(self.db)]
        if not recipients:
            raise NoRecipientsError("No verified users with a phone number to notify")

        notification = Notification(
            type=kind,
            property_id=prop.id if prop else None,
            message=message,
            total_users=len(recipients),
            status="in_progress",
            started_at=datetime.utcnow(),
            created_by_id=created_by.id if created_by else None,
            results=[],
            invalid_numbers=[],
        )
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        logger.info(f"📣 Broadcast {notification.id} started: {kind} to {len(recipients)} users")

        def record(outcome: BatchOutcome, _processed: int) -> None:
            notification.sent_count += len(outcome.sent)
            notification.failed_count += len(outcome.failed)
            notification.results = list(notification.results or []) + outcome.results
            notification.invalid_numbers = list(notification.invalid_numbers or []) + [
                {"phone": r["phone"], "user_id": r["user_id"], "error": r["error"]} for r in outcome.failed
            ]

        try:
            await self._run_batches(notification, recipients, record)
        except Exception as e:
            logger.error(f"❌ Broadcast {notification.id} failed: {e}")
            self.db.rollback()
            self._finish(notification, "failed", str(e))
            if isinstance(e, BroadcastError):
                raise
            raise BroadcastError(str(e), notification.id) from e

        self._finish(notification, "completed")
        logger.info(
            f"✅ Broadcast {notification.id} completed: {notification.sent_count} sent, "
            f"{notification.failed_count} failed in {notification.duration_seconds:.1f}s"
        )
        return notification

    async def resend_failed(self, notification: Notification) -> Notification:
        """Retry only the recipients that failed in a previous run"""
        failures = list(notification.invalid_numbers or [])
        if not failures:
            raise NoFailedRecipientsError("This notification has no failed recipients", notification.id)

        recipients = [(entry.get("user_id"), entry["phone"]) for entry in failures]
        pending = list(failures)
        new_failures: list[dict] = []

        notification.status = "in_progress"
        notification.error_message = None
        self.db.commit()
        logger.info(f"🔁 Resending broadcast {notification.id} to {len(recipients)} failed recipients")

        def record(outcome: BatchOutcome, processed: int) -> None:
            nonlocal pending
            pending = failures[processed:]
            new_failures.extend(
                {"phone": r["phone"], "user_id": r["user_id"], "error": r["error"]} for r in outcome.failed
            )
            notification.sent_count += len(outcome.sent)
            notification.failed_count -= len(outcome.sent)
            notification.results = list(notification.results or []) + outcome.results
            notification.invalid_numbers = new_failures + pending

        try:
            await self._run_batches(notification, recipients, record)
        except Exception as e:
            logger.error(f"❌ Resend for broadcast {notification.id} failed: {e}")
            self.db.rollback()
            self._finish(notification, "failed", str(e))
            if isinstance(e, BroadcastError):
                raise
            raise BroadcastError(str(e), notification.id) from e

        self._finish(notification, "completed")
        logger.info(
            f"✅ Resend for broadcast {notification.id} done: {notification.sent_count} sent, "
            f"{notification.failed_count} still failing"
        )
        return notification


async def run_property_broadcast(
    property_id: int,
    kind: str,
    messaging: MessagingGateway,
    created_by_id: Optional[int] = None,
    session_factory: Callable[[], Session] = SessionLocal,
) -> Optional[int]:
    """
    Background job: broadcast a property announcement with its own session.

    Failures are recorded on the notification row and logged; the request that
    scheduled the job has already completed.
    """
    db = session_factory()
    try:
        prop = db.query(Property).filter(Property.id == property_id).first()
        if not prop:
            logger.warning(f"⚠️ Property {property_id} vanished before its {kind} broadcast")
            return None
        created_by = db.query(User).filter(User.id == created_by_id).first() if created_by_id else None
        notification = await NotificationBroadcaster(db, messaging).send_mass_notification(
            prop, created_by=created_by, kind=kind
        )
        return notification.id
    except NoRecipientsError:
        logger.info(f"📭 No eligible recipients for {kind} broadcast of property {property_id}")
        return None
    except BroadcastError as e:
        logger.error(f"❌ {kind} broadcast for property {property_id} failed: {e}")
        return e.notification_id
    finally:
        db.close()

"""Notification service - Admin side of mass SMS broadcasts"""

import logging
import math
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import User
from ...models_notification import Notification
from ...services.messaging import MessagingGateway
from ...services.notification_service import (
    BroadcastError,
    NoFailedRecipientsError,
    NoRecipientsError,
    NotificationBroadcaster,
    count_eligible_recipients,
    preview_message,
)
from .repository import NotificationRepository
from .schemas import BroadcastRequest

logger = logging.getLogger(__name__)


class NotificationService:
    """Service layer for broadcast administration"""

    def __init__(self, db: Session, messaging: MessagingGateway, broadcaster: Optional[NotificationBroadcaster] = None):
        self.db = db
        self.repo = NotificationRepository()
        self.broadcaster = broadcaster or NotificationBroadcaster(db, messaging)

    def get_notification(self, notification_id: int) -> Notification:
        notification = self.repo.get_by_id(self.db, notification_id)
        if not notification:
            raise HTTPException(status_code=404, detail="Notification not found")
        return notification

    async def broadcast(self, data: BroadcastRequest, admin: User) -> Notification:
        prop = None
        if data.propertyId is not None:
            prop = self.repo.get_property(self.db, data.propertyId)
            if not prop:
                raise HTTPException(status_code=404, detail="Property not found")

        kind = data.type if prop else "general"
        message = data.message.strip() if data.message else None
        try:
            notification = await self.broadcaster.send_mass_notification(
                prop, created_by=admin, kind=kind, message=message
            )
        except NoRecipientsError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except BroadcastError as e:
            raise HTTPException(status_code=500, detail=f"Broadcast failed: {e}")
        return self.get_notification(notification.id)

    async def resend(self, notification_id: int) -> Notification:
        notification = self.get_notification(notification_id)
        if notification.status == "in_progress":
            raise HTTPException(status_code=400, detail="This broadcast is still running")
        try:
            await self.broadcaster.resend_failed(notification)
        except NoFailedRecipientsError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except BroadcastError as e:
            raise HTTPException(status_code=500, detail=f"Resend failed: {e}")
        return self.get_notification(notification.id)

    def stats(self) -> dict:
        recent, total = self.repo.list_recent(self.db, limit=10)
        return {
            "totalUsers": count_eligible_recipients(self.db),
            "totalNotifications": total,
            "recentNotifications": recent,
        }

    def history(self, page: int = 1, limit: int = 20) -> dict:
        notifications, total = self.repo.list_recent(self.db, offset=(page - 1) * limit, limit=limit)
        return {
            "notifications": notifications,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit) if total else 0,
            },
        }

    def preview(self, property_id: int, kind: str = "new_property") -> dict:
        prop = self.repo.get_property(self.db, property_id)
        if not prop:
            raise HTTPException(status_code=404, detail="Property not found")
        return {**preview_message(prop, kind), "recipients": count_eligible_recipients(self.db)}

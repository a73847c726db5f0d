"""Notification repository - Database operations for broadcast records"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Property
from ...models_notification import Notification


class NotificationRepository:
    """Repository for notification database operations"""

    @staticmethod
    def get_property(db: Session, property_id: int) -> Optional[Property]:
        return db.query(Property).filter(Property.id == property_id).first()

    @staticmethod
    def get_by_id(db: Session, notification_id: int) -> Optional[Notification]:
        return (
            db.query(Notification)
            .options(joinedload(Notification.property))
            .filter(Notification.id == notification_id)
            .first()
        )

    @staticmethod
    def list_recent(db: Session, offset: int = 0, limit: int = 10) -> tuple[list[Notification], int]:
        query = db.query(Notification)
        total = query.count()
        notifications = (
            query.options(joinedload(Notification.property))
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return notifications, total

"""Notification router - Admin endpoints for mass SMS broadcasts"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ...models import User
from ...services.messaging import MessagingGateway, get_messaging
from .schemas import BroadcastRequest, serialize_notification
from .service import NotificationService

router = APIRouter(prefix="/admin/notifications", tags=["Notifications"])


def get_notification_service(
    db: Session = Depends(get_db),
    messaging: MessagingGateway = Depends(get_messaging),
) -> NotificationService:
    """Dependency injection for NotificationService"""
    return NotificationService(db, messaging)


@router.post("/broadcast")
async def broadcast(
    data: BroadcastRequest,
    current_user: User = Depends(require_admin),
    service: NotificationService = Depends(get_notification_service),
):
    """Send a property announcement or a custom message to every verified user"""
    notification = await service.broadcast(data, current_user)
    return {
        "message": f"Broadcast completed: {notification.sent_count} sent, {notification.failed_count} failed",
        "notification": serialize_notification(notification),
    }


@router.get("/stats")
async def notification_stats(
    _: User = Depends(require_admin),
    service: NotificationService = Depends(get_notification_service),
):
    stats = service.stats()
    stats["recentNotifications"] = [serialize_notification(n) for n in stats["recentNotifications"]]
    return stats


@router.get("/history")
async def notification_history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    _: User = Depends(require_admin),
    service: NotificationService = Depends(get_notification_service),
):
    result = service.history(page=page, limit=limit)
    result["notifications"] = [serialize_notification(n) for n in result["notifications"]]
    return result


@router.get("/preview/{property_id}")
async def preview_notification(
    property_id: int,
    type: str = Query("new_property", pattern="^(new_property|available_again)$"),
    _: User = Depends(require_admin),
    service: NotificationService = Depends(get_notification_service),
):
    return service.preview(property_id, type)


@router.get("/{notification_id}")
async def get_notification(
    notification_id: int,
    _: User = Depends(require_admin),
    service: NotificationService = Depends(get_notification_service),
):
    return serialize_notification(service.get_notification(notification_id), include_results=True)


@router.post("/{notification_id}/resend")
async def resend_failed(
    notification_id: int,
    _: User = Depends(require_admin),
    service: NotificationService = Depends(get_notification_service),
):
    """Retry only the recipients that failed last time"""
    notification = await service.resend(notification_id)
    return {
        "message": f"Resend completed: {notification.failed_count} still failing",
        "notification": serialize_notification(notification, include_results=True),
    }

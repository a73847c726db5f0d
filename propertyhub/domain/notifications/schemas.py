"""Notification domain schemas - Pydantic models for validation"""

from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator


class BroadcastRequest(BaseModel):
    propertyId: Optional[int] = None
    message: Optional[str] = Field(default=None, max_length=1600)
    type: str = "new_property"

    @model_validator(mode="after")
    def check_target(self):
        if self.propertyId is None and not (self.message and self.message.strip()):
            raise ValueError("Provide a propertyId or a message")
        if self.type not in ("new_property", "available_again", "general"):
            raise ValueError("type must be new_property, available_again or general")
        return self


def serialize_notification(notification, include_results: bool = False) -> dict[str, Any]:
    data = {
        "id": notification.id,
        "type": notification.type,
        "propertyId": notification.property_id,
        "propertyTitle": notification.property.title if notification.property else None,
        "message": notification.message,
        "totalUsers": notification.total_users,
        "sentCount": notification.sent_count,
        "failedCount": notification.failed_count,
        "status": notification.status,
        "errorMessage": notification.error_message,
        "startedAt": notification.started_at,
        "completedAt": notification.completed_at,
        "durationSeconds": notification.duration_seconds,
        "createdBy": notification.created_by_id,
        "createdAt": notification.created_at,
    }
    if include_results:
        data["invalidNumbers"] = list(notification.invalid_numbers or [])
        data["results"] = list(notification.results or [])
    return data

"""Review domain schemas - Pydantic models for validation"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

ModerationAction = Literal["approve", "reject", "request_changes"]

MODERATION_STATUS = {
    "approve": "approved",
    "reject": "rejected",
    "request_changes": "changes_requested",
}


class Subcategories(BaseModel):
    location: Optional[int] = Field(default=None, ge=1, le=5)
    condition: Optional[int] = Field(default=None, ge=1, le=5)
    value: Optional[int] = Field(default=None, ge=1, le=5)
    service: Optional[int] = Field(default=None, ge=1, le=5)


class ReviewCreate(BaseModel):
    propertyId: int
    appointmentId: Optional[int] = None
    rating: int = Field(ge=1, le=5)
    comment: str = Field(min_length=10, max_length=1000)
    recommendation: bool = True
    subcategories: Subcategories = Subcategories()


class ModerationRequest(BaseModel):
    action: ModerationAction
    moderationNotes: Optional[str] = Field(default=None, max_length=1000)


def serialize_review(review, viewer_id: Optional[int] = None) -> dict[str, Any]:
    return {
        "id": review.id,
        "propertyId": review.property_id,
        "user": {"id": review.user.id, "username": review.user.username} if review.user else None,
        "appointmentId": review.appointment_id,
        "rating": review.rating,
        "subcategories": review.subcategories or {},
        "comment": review.comment,
        "recommendation": review.recommendation,
        "images": [{"id": i.get("id"), "url": i.get("url")} for i in review.images or []],
        "status": review.status,
        "moderationNotes": review.moderation_notes,
        "moderatedBy": review.moderated_by_id,
        "moderatedAt": review.moderated_at,
        "featured": review.featured,
        "helpfulCount": review.helpful_count,
        "votedHelpful": bool(
            viewer_id and any(v.get("user_id") == viewer_id for v in review.helpful_votes or [])
        ),
        "createdAt": review.created_at,
    }

"""Offer domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

OfferStatus = Literal["pending", "in_progress", "accepted", "rejected", "closed"]


class OfferCreate(BaseModel):
    propertyId: int
    offerAmount: float = Field(gt=0)
    message: str = Field(min_length=1, max_length=2000)


class OfferMessageCreate(BaseModel):
    content: str = Field(min_length=1, max_length=2000)


class OfferStatusUpdate(BaseModel):
    status: OfferStatus


class OfferMessageResponse(BaseModel):
    id: int
    sender: str
    senderId: Optional[int] = None
    content: str
    read: bool
    createdAt: Optional[datetime] = None


class OfferResponse(BaseModel):
    id: int
    propertyId: int
    propertyTitle: Optional[str] = None
    userId: int
    username: Optional[str] = None
    offerAmount: float
    status: str
    assignedTo: Optional[int] = None
    assignedAt: Optional[datetime] = None
    unreadUser: int
    unreadAdmin: int
    messages: list[OfferMessageResponse] = []
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, offer) -> "OfferResponse":
        return cls(
            id=offer.id,
            propertyId=offer.property_id,
            propertyTitle=offer.property.title if offer.property else None,
            userId=offer.user_id,
            username=offer.user.username if offer.user else None,
            offerAmount=offer.offer_amount,
            status=offer.status,
            assignedTo=offer.assigned_to_id,
            assignedAt=offer.assigned_at,
            unreadUser=offer.unread_user,
            unreadAdmin=offer.unread_admin,
            messages=[
                OfferMessageResponse(
                    id=m.id,
                    sender=m.sender,
                    senderId=m.sender_id,
                    content=m.content,
                    read=m.read,
                    createdAt=m.created_at,
                )
                for m in offer.messages
            ],
            createdAt=offer.created_at,
            updatedAt=offer.updated_at,
        )

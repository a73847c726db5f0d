"""Offer repository - Database operations for offers and their message threads"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload, selectinload

from ...models import OFFER_ACTIVE_STATUSES, Offer, OfferMessage, Property


class OfferRepository:
    """Repository for offer database operations"""

    @staticmethod
    def _query(db: Session):
        return db.query(Offer).options(
            joinedload(Offer.property), joinedload(Offer.user), selectinload(Offer.messages)
        )

    @staticmethod
    def get_property(db: Session, property_id: int) -> Optional[Property]:
        return db.query(Property).filter(Property.id == property_id).first()

    @staticmethod
    def get_by_id(db: Session, offer_id: int) -> Optional[Offer]:
        return OfferRepository._query(db).filter(Offer.id == offer_id).first()

    @staticmethod
    def get_active_for(db: Session, property_id: int, user_id: int) -> Optional[Offer]:
        return (
            db.query(Offer)
            .filter(
                Offer.property_id == property_id,
                Offer.user_id == user_id,
                Offer.status.in_(OFFER_ACTIVE_STATUSES),
            )
            .first()
        )

    @staticmethod
    def list_for_user(db: Session, user_id: int) -> list[Offer]:
        return OfferRepository._query(db).filter(Offer.user_id == user_id).order_by(Offer.updated_at.desc()).all()

    @staticmethod
    def list_unassigned(db: Session) -> list[Offer]:
        return (
            OfferRepository._query(db)
            .filter(Offer.assigned_to_id.is_(None), Offer.status == "pending")
            .order_by(Offer.created_at.asc())
            .all()
        )

    @staticmethod
    def list_assigned_to(db: Session, staff_id: int) -> list[Offer]:
        return (
            OfferRepository._query(db)
            .filter(Offer.assigned_to_id == staff_id)
            .order_by(Offer.updated_at.desc())
            .all()
        )

    @staticmethod
    def list_all(db: Session, status: Optional[str] = None) -> list[Offer]:
        query = OfferRepository._query(db)
        if status:
            query = query.filter(Offer.status == status)
        return query.order_by(Offer.created_at.desc()).all()

    @staticmethod
    def add_message(db: Session, offer: Offer, sender: str, sender_id: int, content: str) -> OfferMessage:
        message = OfferMessage(offer=offer, sender=sender, sender_id=sender_id, content=content, read=False)
        db.add(message)
        return message

    @staticmethod
    def mark_read(offer: Offer, sender: str) -> None:
        """Mark messages written by `sender` as read"""
        for message in offer.messages:
            if message.sender == sender and not message.read:
                message.read = True

"""Offer service - Purchase offers and negotiation threads"""

import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import Offer, User
from .repository import OfferRepository
from .schemas import OfferCreate

logger = logging.getLogger(__name__)


class OfferService:
    """Service layer for offer business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = OfferRepository()

    def _save(self, offer: Offer) -> Offer:
        self.db.commit()
        return self.repo.get_by_id(self.db, offer.id)

    def get_offer(self, offer_id: int) -> Offer:
        offer = self.repo.get_by_id(self.db, offer_id)
        if not offer:
            raise HTTPException(status_code=404, detail="Offer not found")
        return offer

    # ------------------------------------------------------------------
    # Buyer side
    # ------------------------------------------------------------------

    def create_offer(self, data: OfferCreate, user: User) -> Offer:
        prop = self.repo.get_property(self.db, data.propertyId)
        if not prop:
            raise HTTPException(status_code=404, detail="Property not found")

        if self.repo.get_active_for(self.db, prop.id, user.id):
            raise HTTPException(status_code=400, detail="You already have an active offer for this property")

        offer = Offer(
            property_id=prop.id,
            user_id=user.id,
            offer_amount=data.offerAmount,
            status="pending",
            unread_user=0,
            unread_admin=1,
        )
        self.db.add(offer)
        self.repo.add_message(self.db, offer, "user", user.id, data.message.strip())
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(status_code=400, detail="You already have an active offer for this property")

        logger.info(f"💰 Offer {offer.id} of {data.offerAmount} on property {prop.id} by user {user.id}")
        return self.repo.get_by_id(self.db, offer.id)

    def list_my_offers(self, user: User) -> list[Offer]:
        return self.repo.list_for_user(self.db, user.id)

    def get_my_offer(self, offer_id: int, user: User) -> Offer:
        """Opening a thread marks the staff messages in it as read"""
        offer = self.get_offer(offer_id)
        if offer.user_id != user.id:
            raise HTTPException(status_code=404, detail="Offer not found")
        self.repo.mark_read(offer, "admin")
        offer.unread_user = 0
        return self._save(offer)

    # ------------------------------------------------------------------
    # Messaging (either side)
    # ------------------------------------------------------------------

    def send_message(self, offer_id: int, user: User, content: str) -> Offer:
        offer = self.get_offer(offer_id)

        if offer.user_id == user.id:
            sender = "user"
            offer.unread_admin += 1
        elif user.is_staff and offer.assigned_to_id == user.id:
            sender = "admin"
            offer.unread_user += 1
        elif user.is_staff:
            raise HTTPException(status_code=403, detail="Take this offer before replying to it")
        else:
            raise HTTPException(status_code=404, detail="Offer not found")

        if offer.status not in ("pending", "in_progress"):
            raise HTTPException(status_code=400, detail=f"This offer is {offer.status} and no longer accepts messages")

        self.repo.add_message(self.db, offer, sender, user.id, content.strip())
        logger.info(f"💬 New {sender} message on offer {offer.id}")
        return self._save(offer)

    # ------------------------------------------------------------------
    # Staff side
    # ------------------------------------------------------------------

    def list_pending(self) -> list[Offer]:
        return self.repo.list_unassigned(self.db)

    def list_assigned(self, staff: User) -> list[Offer]:
        return self.repo.list_assigned_to(self.db, staff.id)

    def list_all(self, status: str = None) -> list[Offer]:
        return self.repo.list_all(self.db, status)

    def take_offer(self, offer_id: int, staff: User) -> Offer:
        offer = self.get_offer(offer_id)
        if offer.assigned_to_id:
            raise HTTPException(status_code=400, detail="This offer is already assigned")
        offer.assigned_to_id = staff.id
        offer.assigned_at = datetime.utcnow()
        offer.status = "in_progress"
        logger.info(f"🤝 Offer {offer.id} taken by user {staff.id}")
        return self._save(offer)

    def _get_assigned(self, offer_id: int, staff: User) -> Offer:
        offer = self.get_offer(offer_id)
        if offer.assigned_to_id != staff.id:
            raise HTTPException(status_code=403, detail="This offer is not assigned to you")
        return offer

    def get_assigned_offer(self, offer_id: int, staff: User) -> Offer:
        """Opening a thread marks the buyer messages in it as read"""
        offer = self._get_assigned(offer_id, staff)
        self.repo.mark_read(offer, "user")
        offer.unread_admin = 0
        return self._save(offer)

    def update_status(self, offer_id: int, status: str, staff: User) -> Offer:
        offer = self._get_assigned(offer_id, staff)
        offer.status = status
        logger.info(f"📌 Offer {offer.id} status set to {status} by user {staff.id}")
        return self._save(offer)

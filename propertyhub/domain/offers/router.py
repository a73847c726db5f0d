"""Offer router - FastAPI endpoints for offers and negotiation messages"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_staff
from ...database import get_db
from ...models import User
from .schemas import OfferCreate, OfferMessageCreate, OfferResponse, OfferStatusUpdate
from .service import OfferService

router = APIRouter(prefix="/offers", tags=["Offers"])


def get_offer_service(db: Session = Depends(get_db)) -> OfferService:
    """Dependency injection for OfferService"""
    return OfferService(db)


@router.post("", response_model=OfferResponse, status_code=201)
async def create_offer(
    data: OfferCreate,
    current_user: User = Depends(get_current_user),
    service: OfferService = Depends(get_offer_service),
):
    return OfferResponse.from_model(service.create_offer(data, current_user))


@router.get("/my-offers", response_model=list[OfferResponse])
async def list_my_offers(
    current_user: User = Depends(get_current_user),
    service: OfferService = Depends(get_offer_service),
):
    return [OfferResponse.from_model(o) for o in service.list_my_offers(current_user)]


@router.get("/my-offers/{offer_id}", response_model=OfferResponse)
async def get_my_offer(
    offer_id: int,
    current_user: User = Depends(get_current_user),
    service: OfferService = Depends(get_offer_service),
):
    return OfferResponse.from_model(service.get_my_offer(offer_id, current_user))


@router.post("/{offer_id}/messages", response_model=OfferResponse)
async def send_message(
    offer_id: int,
    data: OfferMessageCreate,
    current_user: User = Depends(get_current_user),
    service: OfferService = Depends(get_offer_service),
):
    return OfferResponse.from_model(service.send_message(offer_id, current_user, data.content))


@router.get("/pending", response_model=list[OfferResponse])
async def list_pending_offers(
    _: User = Depends(require_staff),
    service: OfferService = Depends(get_offer_service),
):
    """Offers nobody has taken yet"""
    return [OfferResponse.from_model(o) for o in service.list_pending()]


@router.get("/assigned", response_model=list[OfferResponse])
async def list_assigned_offers(
    current_user: User = Depends(require_staff),
    service: OfferService = Depends(get_offer_service),
):
    return [OfferResponse.from_model(o) for o in service.list_assigned(current_user)]


@router.get("/assigned/{offer_id}", response_model=OfferResponse)
async def get_assigned_offer(
    offer_id: int,
    current_user: User = Depends(require_staff),
    service: OfferService = Depends(get_offer_service),
):
    return OfferResponse.from_model(service.get_assigned_offer(offer_id, current_user))


@router.get("/all", response_model=list[OfferResponse])
async def list_all_offers(
    status: Optional[str] = Query(None),
    _: User = Depends(require_staff),
    service: OfferService = Depends(get_offer_service),
):
    return [OfferResponse.from_model(o) for o in service.list_all(status)]


@router.post("/{offer_id}/take", response_model=OfferResponse)
async def take_offer(
    offer_id: int,
    current_user: User = Depends(require_staff),
    service: OfferService = Depends(get_offer_service),
):
    return OfferResponse.from_model(service.take_offer(offer_id, current_user))


@router.put("/{offer_id}/status", response_model=OfferResponse)
async def update_offer_status(
    offer_id: int,
    data: OfferStatusUpdate,
    current_user: User = Depends(require_staff),
    service: OfferService = Depends(get_offer_service),
):
    return OfferResponse.from_model(service.update_status(offer_id, data.status, current_user))

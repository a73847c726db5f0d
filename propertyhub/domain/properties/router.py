"""Property router - FastAPI endpoints for listings"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Query, Request, UploadFile
from sqlalchemy.orm import Session

from ...auth import require_staff
from ...database import get_db
from ...models import User
from ...services.messaging import MessagingGateway, get_messaging
from ...services.notification_service import run_property_broadcast
from ...services.storage import MediaStorage, get_storage
from ...shared.forms import read_payload, validate_model
from .schemas import ImageCaptionUpdate, PropertyCreate, PropertyUpdate, StatusChangeRequest, serialize_property
from .service import PropertyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/properties", tags=["Properties"])


def get_property_service(
    db: Session = Depends(get_db),
    storage: MediaStorage = Depends(get_storage),
) -> PropertyService:
    """Dependency injection for PropertyService"""
    return PropertyService(db, storage)


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================


@router.get("/public")
async def list_public_properties(
    city: Optional[str] = Query(None),
    propertyType: Optional[str] = Query(None),
    businessMode: Optional[str] = Query(None),
    minBedrooms: Optional[int] = Query(None, ge=0),
    service: PropertyService = Depends(get_property_service),
):
    """Available listings only"""
    properties = service.list_public(
        city=city, property_type=propertyType, business_mode=businessMode, min_bedrooms=minBedrooms
    )
    return [serialize_property(p) for p in properties]


@router.get("/public/{property_id}")
async def get_public_property(property_id: int, service: PropertyService = Depends(get_property_service)):
    return serialize_property(service.get_property(property_id))


# ============================================================================
# STAFF ENDPOINTS
# ============================================================================


@router.get("")
async def list_properties(
    mine: bool = Query(False),
    status: Optional[str] = Query(None),
    current_user: User = Depends(require_staff),
    service: PropertyService = Depends(get_property_service),
):
    return [serialize_property(p) for p in service.list_admin(current_user, mine=mine, status=status)]


@router.post("", status_code=201)
async def create_property(
    request: Request,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_staff),
    service: PropertyService = Depends(get_property_service),
    messaging: MessagingGateway = Depends(get_messaging),
):
    """
    Create a listing from a JSON body or a multipart form.

    Multipart forms use dotted field names (address.city, price.sale, ...)
    and carry files under "images" and "documents" (and "videos").
    """
    fields, files = await read_payload(request)
    data = validate_model(PropertyCreate, fields)
    prop = await service.create_property(
        data,
        current_user,
        images=files.get("images"),
        documents=files.get("documents"),
        videos=files.get("videos"),
    )

    if data.notifyUsers:
        background_tasks.add_task(run_property_broadcast, prop.id, "new_property", messaging, current_user.id)

    return {
        "message": "Property created",
        "property": serialize_property(prop),
        "notificationScheduled": data.notifyUsers,
    }


@router.get("/{property_id}")
async def get_property(
    property_id: int,
    _: User = Depends(require_staff),
    service: PropertyService = Depends(get_property_service),
):
    return serialize_property(service.get_property(property_id))


@router.put("/{property_id}")
async def update_property(
    property_id: int,
    request: Request,
    current_user: User = Depends(require_staff),
    service: PropertyService = Depends(get_property_service),
):
    fields, _files = await read_payload(request)
    data = validate_model(PropertyUpdate, fields)
    return serialize_property(service.update_property(property_id, data, current_user))


@router.delete("/{property_id}")
async def delete_property(
    property_id: int,
    _: User = Depends(require_staff),
    service: PropertyService = Depends(get_property_service),
):
    service.delete_property(property_id)
    return {"message": "Property deleted"}


@router.put("/{property_id}/status")
async def change_property_status(
    property_id: int,
    data: StatusChangeRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_staff),
    service: PropertyService = Depends(get_property_service),
    messaging: MessagingGateway = Depends(get_messaging),
):
    prop, announce = service.change_status(property_id, data.status, current_user, data.reason)
    if announce:
        background_tasks.add_task(run_property_broadcast, prop.id, "available_again", messaging, current_user.id)
    return {
        "message": f"Status changed to {prop.status}",
        "property": serialize_property(prop),
        "notificationScheduled": announce,
    }


@router.get("/{property_id}/history")
async def get_status_history(
    property_id: int,
    _: User = Depends(require_staff),
    service: PropertyService = Depends(get_property_service),
):
    return {"propertyId": property_id, "history": service.get_status_history(property_id)}


# ============================================================================
# MEDIA ENDPOINTS
# ============================================================================


@router.post("/{property_id}/images")
async def add_images(
    property_id: int,
    images: list[UploadFile] = File(...),
    _: User = Depends(require_staff),
    service: PropertyService = Depends(get_property_service),
):
    return serialize_property(await service.add_images(property_id, images))


@router.delete("/{property_id}/images/{image_id}")
async def delete_image(
    property_id: int,
    image_id: str,
    _: User = Depends(require_staff),
    service: PropertyService = Depends(get_property_service),
):
    return serialize_property(service.delete_image(property_id, image_id))


@router.put("/{property_id}/images/{image_id}/main")
async def set_main_image(
    property_id: int,
    image_id: str,
    _: User = Depends(require_staff),
    service: PropertyService = Depends(get_property_service),
):
    return serialize_property(service.set_main_image(property_id, image_id))


@router.put("/{property_id}/images/{image_id}")
async def update_image_caption(
    property_id: int,
    image_id: str,
    data: ImageCaptionUpdate,
    _: User = Depends(require_staff),
    service: PropertyService = Depends(get_property_service),
):
    return serialize_property(service.update_image_caption(property_id, image_id, data.caption))


@router.post("/{property_id}/documents")
async def add_documents(
    property_id: int,
    documents: list[UploadFile] = File(...),
    _: User = Depends(require_staff),
    service: PropertyService = Depends(get_property_service),
):
    return serialize_property(await service.add_media(property_id, documents, "document"))


@router.delete("/{property_id}/documents/{document_id}")
async def delete_document(
    property_id: int,
    document_id: str,
    _: User = Depends(require_staff),
    service: PropertyService = Depends(get_property_service),
):
    return serialize_property(service.delete_media(property_id, document_id, "document"))


@router.post("/{property_id}/videos")
async def add_videos(
    property_id: int,
    videos: list[UploadFile] = File(...),
    _: User = Depends(require_staff),
    service: PropertyService = Depends(get_property_service),
):
    return serialize_property(await service.add_media(property_id, videos, "video"))


@router.delete("/{property_id}/videos/{video_id}")
async def delete_video(
    property_id: int,
    video_id: str,
    _: User = Depends(require_staff),
    service: PropertyService = Depends(get_property_service),
):
    return serialize_property(service.delete_media(property_id, video_id, "video"))

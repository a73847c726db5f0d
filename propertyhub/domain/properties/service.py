"""Property service - Listing management, media and status lifecycle"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from ...config import GEOCODING_ENABLED
from ...models import (
    PROPERTY_STATUS_AVAILABLE,
    PROPERTY_STATUS_SOLD,
    PROPERTY_STATUS_UNDER_CONTRACT,
    Property,
    User,
)
from ...services.geocoding import geocode_address
from ...services.storage import UPLOAD_RULES, MediaStorage, read_validated_uploads
from .repository import PropertyRepository
from .schemas import PropertyCreate, PropertyUpdate, check_pricing

logger = logging.getLogger(__name__)

MEDIA_FOLDERS = {"image": "properties/images", "document": "properties/documents", "video": "properties/videos"}
MEDIA_COLUMNS = {"image": "images", "document": "documents", "video": "videos"}


def should_announce_available_again(prop: Property, previous_status: str, new_status: str) -> bool:
    """A for-sale listing coming back from under contract is announced again"""
    return (
        previous_status == PROPERTY_STATUS_UNDER_CONTRACT
        and new_status == PROPERTY_STATUS_AVAILABLE
        and prop.business_mode in ("sale", "both")
    )


def _ensure_single_main(images: list[dict]) -> list[dict]:
    if images and not any(image.get("is_main") for image in images):
        images[0]["is_main"] = True
    return images


class PropertyService:
    """Service layer for property business logic"""

    def __init__(self, db: Session, storage: MediaStorage):
        self.db = db
        self.storage = storage
        self.repo = PropertyRepository()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_property(self, property_id: int) -> Property:
        prop = self.repo.get_by_id(self.db, property_id)
        if not prop:
            raise HTTPException(status_code=404, detail="Property not found")
        return prop

    def list_public(self, **filters) -> list[Property]:
        return self.repo.list_public(self.db, **filters)

    def list_admin(self, user: User, mine: bool = False, status: Optional[str] = None) -> list[Property]:
        return self.repo.list_admin(self.db, created_by_id=user.id if mine else None, status=status)

    def get_status_history(self, property_id: int) -> list[dict]:
        return list(self.get_property(property_id).status_history or [])

    # ------------------------------------------------------------------
    # Media helpers
    # ------------------------------------------------------------------

    def _store(self, uploads: list[tuple[UploadFile, bytes]], kind: str) -> list[dict]:
        entries = []
        for upload, content in uploads:
            stored = self.storage.save(content, MEDIA_FOLDERS[kind], upload.filename, upload.content_type)
            entries.append(
                {
                    "id": uuid.uuid4().hex,
                    "url": stored.url,
                    "key": stored.key,
                    "filename": stored.filename,
                    "content_type": stored.content_type,
                    "size": stored.size,
                    "uploaded_at": datetime.utcnow().isoformat(),
                }
            )
        return entries

    async def _read_uploads(self, files: list[UploadFile], kind: str, existing: int = 0) -> list[tuple]:
        rule = UPLOAD_RULES[kind]
        remaining = rule.max_files - existing
        if files and remaining <= 0:
            raise HTTPException(status_code=400, detail=f"This property already has the maximum of {rule.max_files} {kind}s")
        return await read_validated_uploads(files, kind, max_files=remaining)

    # ------------------------------------------------------------------
    # Create / update / delete
    # ------------------------------------------------------------------

    async def create_property(
        self,
        data: PropertyCreate,
        user: User,
        images: Optional[list[UploadFile]] = None,
        documents: Optional[list[UploadFile]] = None,
        videos: Optional[list[UploadFile]] = None,
    ) -> Property:
        image_uploads = await self._read_uploads(images or [], "image")
        document_uploads = await self._read_uploads(documents or [], "document")
        video_uploads = await self._read_uploads(videos or [], "video")

        latitude = data.address.coordinates.lat if data.address.coordinates else None
        longitude = data.address.coordinates.lng if data.address.coordinates else None
        if latitude is None and GEOCODING_ENABLED:
            coordinates = await geocode_address(
                data.address.street, data.address.city, data.address.state, data.address.zipCode
            )
            if coordinates:
                latitude, longitude = coordinates

        image_entries = self._store(image_uploads, "image")
        for index, entry in enumerate(image_entries):
            entry["is_main"] = index == 0
            entry["caption"] = None

        contact = data.contact
        prop = self.repo.create(
            self.db,
            title=data.title.strip(),
            description=data.description.strip(),
            business_mode=data.businessMode,
            street=data.address.street,
            city=data.address.city,
            state=data.address.state,
            zip_code=data.address.zipCode,
            latitude=latitude,
            longitude=longitude,
            price_sale=data.price.sale,
            price_rent=data.price.rent,
            price_deposit=data.price.deposit,
            price_taxes=data.price.taxes,
            deed_conditions=data.price.deedConditions,
            currency=data.price.currency,
            bedrooms=data.details.bedrooms,
            bathrooms=data.details.bathrooms,
            square_feet=data.details.squareFeet,
            property_type=data.details.propertyType,
            year_built=data.details.yearBuilt,
            parking=data.details.parking,
            pet_friendly=data.details.petFriendly,
            furnished=data.details.furnished,
            images=image_entries,
            documents=self._store(document_uploads, "document"),
            videos=self._store(video_uploads, "video"),
            amenities=data.amenities,
            is_available=data.availability.isAvailable,
            available_from=data.availability.availableFrom,
            lease_term=data.availability.leaseTerm,
            contact_phone=contact.phone if contact else None,
            contact_email=contact.email if contact else None,
            status=PROPERTY_STATUS_AVAILABLE,
            status_history=[],
            created_by_id=user.id,
            updated_by_id=user.id,
        )
        logger.info(f"🏠 Property {prop.id} created by user {user.id} with {len(image_entries)} images")
        return prop

    def update_property(self, property_id: int, data: PropertyUpdate, user: User) -> Property:
        prop = self.get_property(property_id)

        if data.title is not None:
            prop.title = data.title.strip()
        if data.description is not None:
            prop.description = data.description.strip()
        if data.businessMode is not None:
            prop.business_mode = data.businessMode
        if data.address is not None:
            address = data.address
            prop.street = address.street or prop.street
            prop.city = address.city or prop.city
            prop.state = address.state or prop.state
            prop.zip_code = address.zipCode or prop.zip_code
            if address.coordinates:
                prop.latitude = address.coordinates.lat
                prop.longitude = address.coordinates.lng
        if data.price is not None:
            fields = data.price.model_fields_set
            mapping = {
                "sale": "price_sale",
                "rent": "price_rent",
                "deposit": "price_deposit",
                "taxes": "price_taxes",
                "deedConditions": "deed_conditions",
                "currency": "currency",
            }
            for field_name, column in mapping.items():
                if field_name in fields:
                    setattr(prop, column, getattr(data.price, field_name))
        if data.details is not None:
            mapping = {
                "bedrooms": "bedrooms",
                "bathrooms": "bathrooms",
                "squareFeet": "square_feet",
                "propertyType": "property_type",
                "yearBuilt": "year_built",
                "parking": "parking",
                "petFriendly": "pet_friendly",
                "furnished": "furnished",
            }
            for field_name, column in mapping.items():
                value = getattr(data.details, field_name)
                if value is not None:
                    setattr(prop, column, value)
        if data.amenities is not None:
            prop.amenities = data.amenities
        if data.availability is not None:
            if data.availability.isAvailable is not None:
                prop.is_available = data.availability.isAvailable
            if "availableFrom" in data.availability.model_fields_set:
                prop.available_from = data.availability.availableFrom
            if "leaseTerm" in data.availability.model_fields_set:
                prop.lease_term = data.availability.leaseTerm
        if data.contact is not None:
            if "phone" in data.contact.model_fields_set:
                prop.contact_phone = data.contact.phone
            if "email" in data.contact.model_fields_set:
                prop.contact_email = data.contact.email

        try:
            check_pricing(prop.business_mode, prop.price_sale, prop.price_rent)
        except ValueError as e:
            self.db.rollback()
            raise HTTPException(status_code=400, detail=str(e))

        prop.updated_by_id = user.id
        prop = self.repo.save(self.db, prop)
        logger.info(f"✏️ Property {prop.id} updated by user {user.id}")
        return prop

    def delete_property(self, property_id: int) -> None:
        prop = self.get_property(property_id)
        for column in MEDIA_COLUMNS.values():
            for item in getattr(prop, column) or []:
                if item.get("key"):
                    self.storage.delete(item["key"])
        self.repo.delete(self.db, prop)
        logger.info(f"🗑️ Property {property_id} deleted")

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    async def add_images(self, property_id: int, files: list[UploadFile]) -> Property:
        prop = self.get_property(property_id)
        if not files:
            raise HTTPException(status_code=400, detail="No images uploaded")
        existing = [dict(image) for image in prop.images or []]
        uploads = await self._read_uploads(files, "image", existing=len(existing))

        new_entries = self._store(uploads, "image")
        for entry in new_entries:
            entry["is_main"] = False
            entry["caption"] = None
        prop.images = _ensure_single_main(existing + new_entries)
        return self.repo.save(self.db, prop)

    def _find_media(self, prop: Property, kind: str, media_id: str) -> dict:
        for item in getattr(prop, MEDIA_COLUMNS[kind]) or []:
            if item.get("id") == media_id:
                return item
        raise HTTPException(status_code=404, detail=f"{kind.capitalize()} not found")

    def delete_image(self, property_id: int, image_id: str) -> Property:
        prop = self.get_property(property_id)
        target = self._find_media(prop, "image", image_id)

        remaining = [dict(image) for image in prop.images if image.get("id") != image_id]
        if target.get("is_main") and remaining:
            for image in remaining:
                image["is_main"] = False
            remaining[0]["is_main"] = True
        prop.images = remaining

        if target.get("key"):
            self.storage.delete(target["key"])
        return self.repo.save(self.db, prop)

    def set_main_image(self, property_id: int, image_id: str) -> Property:
        prop = self.get_property(property_id)
        self._find_media(prop, "image", image_id)
        prop.images = [{**image, "is_main": image.get("id") == image_id} for image in prop.images]
        return self.repo.save(self.db, prop)

    def update_image_caption(self, property_id: int, image_id: str, caption: Optional[str]) -> Property:
        prop = self.get_property(property_id)
        self._find_media(prop, "image", image_id)
        prop.images = [
            {**image, "caption": caption} if image.get("id") == image_id else dict(image) for image in prop.images
        ]
        return self.repo.save(self.db, prop)

    # ------------------------------------------------------------------
    # Documents and videos
    # ------------------------------------------------------------------

    async def add_media(self, property_id: int, files: list[UploadFile], kind: str) -> Property:
        prop = self.get_property(property_id)
        if not files:
            raise HTTPException(status_code=400, detail=f"No {kind}s uploaded")
        column = MEDIA_COLUMNS[kind]
        existing = list(getattr(prop, column) or [])
        uploads = await self._read_uploads(files, kind, existing=len(existing))
        setattr(prop, column, existing + self._store(uploads, kind))
        return self.repo.save(self.db, prop)

    def delete_media(self, property_id: int, media_id: str, kind: str) -> Property:
        prop = self.get_property(property_id)
        target = self._find_media(prop, kind, media_id)
        column = MEDIA_COLUMNS[kind]
        setattr(prop, column, [item for item in getattr(prop, column) if item.get("id") != media_id])
        if target.get("key"):
            self.storage.delete(target["key"])
        return self.repo.save(self.db, prop)

    # ------------------------------------------------------------------
    # Status lifecycle
    # ------------------------------------------------------------------

    def change_status(
        self, property_id: int, new_status: str, user: User, reason: Optional[str] = None
    ) -> tuple[Property, bool]:
        """
        Move a property to a new status.

        The previous status is appended to the history before the change.
        Returns the property and whether an "available again" announcement
        should go out.
        """
        prop = self.get_property(property_id)
        previous_status = prop.status

        prop.status_history = list(prop.status_history or []) + [
            {
                "status": previous_status,
                "new_status": new_status,
                "changed_by": user.id,
                "reason": reason or "Status change",
                "changed_at": datetime.utcnow().isoformat(),
            }
        ]
        prop.status = new_status
        if new_status == PROPERTY_STATUS_SOLD:
            prop.is_available = False
        elif new_status == PROPERTY_STATUS_AVAILABLE:
            prop.is_available = True
        prop.updated_by_id = user.id
        prop = self.repo.save(self.db, prop)

        logger.info(f"🔄 Property {prop.id} status {previous_status} -> {new_status} by user {user.id}")
        return prop, should_announce_available_again(prop, previous_status, new_status)

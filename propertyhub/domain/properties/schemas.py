"""Property domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...shared.validators import normalize_phone, validate_email

BusinessMode = Literal["sale", "rent", "both"]
PropertyType = Literal["house", "apartment", "condo", "townhouse"]
PropertyStatus = Literal["DISPONIBLE", "EN_CONTRATO", "VENDIDA"]


def check_pricing(business_mode: str, sale: Optional[float], rent: Optional[float]) -> None:
    """Sale listings need a sale price, rentals a monthly rent, and "both" needs both"""
    if business_mode in ("sale", "both") and not (sale and sale > 0):
        raise ValueError("A sale price greater than 0 is required for properties for sale")
    if business_mode in ("rent", "both") and not (rent and rent > 0):
        raise ValueError("A monthly rent greater than 0 is required for properties for rent")


def split_amenities(value):
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


class Coordinates(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class AddressIn(BaseModel):
    street: str = Field(min_length=1, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=50)
    zipCode: str = Field(min_length=3, max_length=20)
    coordinates: Optional[Coordinates] = None


class PriceIn(BaseModel):
    sale: Optional[float] = Field(default=None, ge=0)
    rent: Optional[float] = Field(default=None, ge=0)
    deposit: Optional[float] = Field(default=None, ge=0)
    taxes: Optional[float] = Field(default=None, ge=0)
    deedConditions: Optional[str] = None
    currency: str = "USD"


class DetailsIn(BaseModel):
    bedrooms: int = Field(ge=0)
    bathrooms: float = Field(ge=0)
    squareFeet: int = Field(gt=0)
    propertyType: PropertyType
    yearBuilt: Optional[int] = Field(default=None, ge=1800, le=2100)
    parking: int = Field(default=0, ge=0)
    petFriendly: bool = False
    furnished: bool = False


class AvailabilityIn(BaseModel):
    isAvailable: bool = True
    availableFrom: Optional[datetime] = None
    leaseTerm: Optional[str] = None


class ContactIn(BaseModel):
    phone: Optional[str] = None
    email: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if v:
            return normalize_phone(v)
        return v

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        if v:
            return validate_email(v)
        return v


class PropertyCreate(BaseModel):
    title: str = Field(min_length=3, max_length=200)
    description: str = Field(min_length=10, max_length=5000)
    businessMode: BusinessMode = "sale"
    address: AddressIn
    price: PriceIn = PriceIn()
    details: DetailsIn
    amenities: list[str] = []
    availability: AvailabilityIn = AvailabilityIn()
    contact: Optional[ContactIn] = None
    notifyUsers: bool = False

    @field_validator("amenities", mode="before")
    @classmethod
    def parse_amenities(cls, v):
        return split_amenities(v)

    @model_validator(mode="after")
    def validate_pricing(self):
        check_pricing(self.businessMode, self.price.sale, self.price.rent)
        return self


class AddressUpdate(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipCode: Optional[str] = None
    coordinates: Optional[Coordinates] = None


class DetailsUpdate(BaseModel):
    bedrooms: Optional[int] = Field(default=None, ge=0)
    bathrooms: Optional[float] = Field(default=None, ge=0)
    squareFeet: Optional[int] = Field(default=None, gt=0)
    propertyType: Optional[PropertyType] = None
    yearBuilt: Optional[int] = Field(default=None, ge=1800, le=2100)
    parking: Optional[int] = Field(default=None, ge=0)
    petFriendly: Optional[bool] = None
    furnished: Optional[bool] = None


class AvailabilityUpdate(BaseModel):
    isAvailable: Optional[bool] = None
    availableFrom: Optional[datetime] = None
    leaseTerm: Optional[str] = None


class PropertyUpdate(BaseModel):
    """Partial update; pricing is re-checked against the merged result"""

    title: Optional[str] = Field(default=None, min_length=3, max_length=200)
    description: Optional[str] = Field(default=None, min_length=10, max_length=5000)
    businessMode: Optional[BusinessMode] = None
    address: Optional[AddressUpdate] = None
    price: Optional[PriceIn] = None
    details: Optional[DetailsUpdate] = None
    amenities: Optional[list[str]] = None
    availability: Optional[AvailabilityUpdate] = None
    contact: Optional[ContactIn] = None

    @field_validator("amenities", mode="before")
    @classmethod
    def parse_amenities(cls, v):
        if v is None:
            return v
        return split_amenities(v)


class StatusChangeRequest(BaseModel):
    status: PropertyStatus
    reason: Optional[str] = Field(default=None, max_length=500)


class ImageCaptionUpdate(BaseModel):
    caption: Optional[str] = Field(default=None, max_length=200)


def _media(items: list[dict]) -> list[dict[str, Any]]:
    return [
        {
            "id": item.get("id"),
            "url": item.get("url"),
            "filename": item.get("filename"),
            "contentType": item.get("content_type"),
            "size": item.get("size"),
            "uploadedAt": item.get("uploaded_at"),
        }
        for item in items or []
    ]


def serialize_property(prop) -> dict[str, Any]:
    """Public JSON shape of a property"""
    coordinates = None
    if prop.latitude is not None and prop.longitude is not None:
        coordinates = {"lat": prop.latitude, "lng": prop.longitude}
    return {
        "id": prop.id,
        "title": prop.title,
        "description": prop.description,
        "businessMode": prop.business_mode,
        "address": {
            "street": prop.street,
            "city": prop.city,
            "state": prop.state,
            "zipCode": prop.zip_code,
            "coordinates": coordinates,
        },
        "price": {
            "sale": prop.price_sale,
            "rent": prop.price_rent,
            "deposit": prop.price_deposit,
            "taxes": prop.price_taxes,
            "deedConditions": prop.deed_conditions,
            "currency": prop.currency,
        },
        "details": {
            "bedrooms": prop.bedrooms,
            "bathrooms": prop.bathrooms,
            "squareFeet": prop.square_feet,
            "propertyType": prop.property_type,
            "yearBuilt": prop.year_built,
            "parking": prop.parking,
            "petFriendly": prop.pet_friendly,
            "furnished": prop.furnished,
        },
        "images": [
            {
                "id": image.get("id"),
                "url": image.get("url"),
                "isMain": bool(image.get("is_main")),
                "caption": image.get("caption"),
            }
            for image in prop.images or []
        ],
        "documents": _media(prop.documents),
        "videos": _media(prop.videos),
        "amenities": prop.amenities or [],
        "availability": {
            "isAvailable": prop.is_available,
            "availableFrom": prop.available_from,
            "leaseTerm": prop.lease_term,
        },
        "contact": {"phone": prop.contact_phone, "email": prop.contact_email},
        "status": prop.status,
        "rating": {"average": prop.rating_average or 0, "count": prop.rating_count or 0},
        "createdBy": prop.created_by_id,
        "createdAt": prop.created_at,
        "updatedAt": prop.updated_at,
    }

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

# Property lifecycle
PROPERTY_STATUS_AVAILABLE = "DISPONIBLE"
PROPERTY_STATUS_UNDER_CONTRACT = "EN_CONTRATO"
PROPERTY_STATUS_SOLD = "VENDIDA"
PROPERTY_STATUSES = (PROPERTY_STATUS_AVAILABLE, PROPERTY_STATUS_UNDER_CONTRACT, PROPERTY_STATUS_SOLD)

# Appointment lifecycle
APPOINTMENT_PENDING_SMS = "pending_sms_confirmation"
APPOINTMENT_PENDING = "pending"
APPOINTMENT_CONFIRMED = "confirmed"
APPOINTMENT_CANCELLED = "cancelled"
APPOINTMENT_COMPLETED = "completed"
APPOINTMENT_ACTIVE_STATUSES = (APPOINTMENT_PENDING_SMS, APPOINTMENT_PENDING, APPOINTMENT_CONFIRMED)

# Offer lifecycle
OFFER_STATUSES = ("pending", "in_progress", "accepted", "rejected", "closed")
OFFER_ACTIVE_STATUSES = ("pending", "in_progress")


class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    users = relationship("User", back_populates="role")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(32), nullable=True)
    password_hash = Column(String(255), nullable=False)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=True)
    profile_image_url = Column(String(500), nullable=True)
    profile_image_key = Column(String(500), nullable=True)  # storage key, used for deletion
    email_verified = Column(Boolean, default=False, nullable=False)
    phone_verified = Column(Boolean, default=False, nullable=False)
    verification_code = Column(String(10), nullable=True)
    verification_code_expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    role = relationship("Role", back_populates="users", lazy="joined")

    @property
    def role_name(self):
        return self.role.name if self.role else None

    @property
    def is_admin(self) -> bool:
        from .config import SETUP_ROLE_ADMIN

        return self.role_name == SETUP_ROLE_ADMIN

    @property
    def is_co_admin(self) -> bool:
        from .config import SETUP_ROLE_CO_ADMIN

        return self.role_name == SETUP_ROLE_CO_ADMIN

    @property
    def is_staff(self) -> bool:
        return self.is_admin or self.is_co_admin

    @property
    def is_verified(self) -> bool:
        return bool(self.email_verified and self.phone_verified)


class Property(Base):
    __tablename__ = "properties"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    business_mode = Column(String(10), nullable=False, default="sale")  # sale, rent, both

    # Address
    street = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(50), nullable=False)
    zip_code = Column(String(20), nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # Pricing
    price_sale = Column(Float, nullable=True)
    price_rent = Column(Float, nullable=True)  # monthly
    price_deposit = Column(Float, nullable=True)
    price_taxes = Column(Float, nullable=True)
    deed_conditions = Column(Text, nullable=True)
    currency = Column(String(3), default="USD", nullable=False)

    # Details
    bedrooms = Column(Integer, nullable=False)
    bathrooms = Column(Float, nullable=False)
    square_feet = Column(Integer, nullable=False)
    property_type = Column(String(20), nullable=False)  # house, apartment, condo, townhouse
    year_built = Column(Integer, nullable=True)
    parking = Column(Integer, default=0)
    pet_friendly = Column(Boolean, default=False)
    furnished = Column(Boolean, default=False)

    # Media: ordered lists of {id, url, key, ...}
    images = Column(JSON, default=list, nullable=False)
    documents = Column(JSON, default=list, nullable=False)
    videos = Column(JSON, default=list, nullable=False)
    amenities = Column(JSON, default=list, nullable=False)

    # Availability
    is_available = Column(Boolean, default=True, nullable=False)
    available_from = Column(DateTime, nullable=True)
    lease_term = Column(String(100), nullable=True)

    contact_phone = Column(String(32), nullable=True)
    contact_email = Column(String(255), nullable=True)

    status = Column(String(20), default=PROPERTY_STATUS_AVAILABLE, nullable=False, index=True)
    # Append-only list of {status, new_status, changed_by, reason, changed_at}
    status_history = Column(JSON, default=list, nullable=False)

    rating_average = Column(Float, default=0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)

    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    created_by = relationship("User", foreign_keys=[created_by_id])

    @property
    def main_image(self):
        for image in self.images or []:
            if image.get("is_main"):
                return image
        return None


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        # One live booking per property slot; cancelled rows release the slot
        Index(
            "uq_appointments_property_slot_active",
            "property_id",
            "time_slot",
            unique=True,
            sqlite_where=text("status != 'cancelled'"),
            postgresql_where=text("status != 'cancelled'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # Visitor snapshot at booking time
    visitor_name = Column(String(255), nullable=False)
    visitor_phone = Column(String(32), nullable=False)
    visitor_email = Column(String(255), nullable=False)

    appointment_date = Column(DateTime, nullable=False, index=True)
    appointment_time = Column(String(5), nullable=False)  # HH:MM
    time_slot = Column(String(20), nullable=False)  # YYYY-MM-DD-HH:MM
    status = Column(String(30), default=APPOINTMENT_PENDING_SMS, nullable=False, index=True)
    confirmation_code = Column(String(12), unique=True, nullable=True)

    assigned_to_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    assigned_at = Column(DateTime, nullable=True)
    confirmed_at = Column(DateTime, nullable=True)

    # List of {type: initial|confirmation|assignment|reminder, sent_at, status}
    notification_history = Column(JSON, default=list, nullable=False)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    property = relationship("Property")
    user = relationship("User", foreign_keys=[user_id])
    assigned_to = relationship("User", foreign_keys=[assigned_to_id])

    def has_notification(self, kind: str) -> bool:
        return any(entry.get("type") == kind for entry in self.notification_history or [])


class Offer(Base):
    __tablename__ = "offers"
    __table_args__ = (
        Index(
            "uq_offers_property_user_active",
            "property_id",
            "user_id",
            unique=True,
            sqlite_where=text("status IN ('pending', 'in_progress')"),
            postgresql_where=text("status IN ('pending', 'in_progress')"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    offer_amount = Column(Float, nullable=False)
    status = Column(String(20), default="pending", nullable=False, index=True)
    assigned_to_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    assigned_at = Column(DateTime, nullable=True)
    unread_user = Column(Integer, default=0, nullable=False)
    unread_admin = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    property = relationship("Property")
    user = relationship("User", foreign_keys=[user_id])
    assigned_to = relationship("User", foreign_keys=[assigned_to_id])
    messages = relationship(
        "OfferMessage",
        back_populates="offer",
        cascade="all, delete-orphan",
        order_by="OfferMessage.id",
    )


class OfferMessage(Base):
    __tablename__ = "offer_messages"

    id = Column(Integer, primary_key=True, index=True)
    offer_id = Column(Integer, ForeignKey("offers.id", ondelete="CASCADE"), nullable=False, index=True)
    sender = Column(String(10), nullable=False)  # user, admin
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    content = Column(Text, nullable=False)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    offer = relationship("Offer", back_populates="messages")


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (UniqueConstraint("property_id", "user_id", name="uq_reviews_property_user"),)

    id = Column(Integer, primary_key=True, index=True)
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="SET NULL"), nullable=True)
    rating = Column(Integer, nullable=False)
    # {location, condition, value, service} each 1-5
    subcategories = Column(JSON, default=dict, nullable=False)
    comment = Column(Text, nullable=False)
    recommendation = Column(Boolean, default=True, nullable=False)
    images = Column(JSON, default=list, nullable=False)
    status = Column(String(20), default="pending", nullable=False, index=True)
    moderation_notes = Column(Text, nullable=True)
    moderated_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    moderated_at = Column(DateTime, nullable=True)
    featured = Column(Boolean, default=False, nullable=False)
    # List of {user_id, voted_at}
    helpful_votes = Column(JSON, default=list, nullable=False)
    helpful_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    property = relationship("Property")
    user = relationship("User", foreign_keys=[user_id])

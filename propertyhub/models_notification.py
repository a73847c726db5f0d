from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

NOTIFICATION_TYPES = ("new_property", "available_again", "general")


class Notification(Base):
    """Mass SMS broadcast record, one row per broadcast run"""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(30), nullable=False, default="new_property")
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="SET NULL"), nullable=True, index=True)
    message = Column(Text, nullable=False)

    total_users = Column(Integer, default=0, nullable=False)
    sent_count = Column(Integer, default=0, nullable=False)
    failed_count = Column(Integer, default=0, nullable=False)
    # List of {phone, user_id, error}
    invalid_numbers = Column(JSON, default=list, nullable=False)
    # List of {user_id, phone, success, mode, error}
    results = Column(JSON, default=list, nullable=False)

    status = Column(String(20), default="pending", nullable=False, index=True)  # pending, in_progress, completed, failed
    error_message = Column(Text, nullable=True)

    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Float, nullable=True)

    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)

    property = relationship("Property")
    created_by = relationship("User")

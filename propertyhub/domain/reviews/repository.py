"""Review repository - Database operations for reviews"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...models import Appointment, Property, Review


class ReviewRepository:
    """Repository for review database operations"""

    @staticmethod
    def get_property(db: Session, property_id: int) -> Optional[Property]:
        return db.query(Property).filter(Property.id == property_id).first()

    @staticmethod
    def get_appointment(db: Session, appointment_id: int) -> Optional[Appointment]:
        return db.query(Appointment).filter(Appointment.id == appointment_id).first()

    @staticmethod
    def get_by_id(db: Session, review_id: int) -> Optional[Review]:
        return db.query(Review).options(joinedload(Review.user)).filter(Review.id == review_id).first()

    @staticmethod
    def get_for_user(db: Session, property_id: int, user_id: int) -> Optional[Review]:
        return db.query(Review).filter(Review.property_id == property_id, Review.user_id == user_id).first()

    @staticmethod
    def list_approved(db: Session, property_id: int, offset: int, limit: int) -> tuple[list[Review], int]:
        query = db.query(Review).filter(Review.property_id == property_id, Review.status == "approved")
        total = query.count()
        reviews = (
            query.options(joinedload(Review.user))
            .order_by(Review.featured.desc(), Review.created_at.desc(), Review.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return reviews, total

    @staticmethod
    def approved_ratings(db: Session, property_id: int) -> list[tuple[int, bool]]:
        return (
            db.query(Review.rating, Review.recommendation)
            .filter(Review.property_id == property_id, Review.status == "approved")
            .all()
        )

    @staticmethod
    def rating_aggregate(db: Session, property_id: int) -> tuple[Optional[float], int]:
        average, count = (
            db.query(func.avg(Review.rating), func.count(Review.id))
            .filter(Review.property_id == property_id, Review.status == "approved")
            .one()
        )
        return average, count or 0

    @staticmethod
    def list_pending(db: Session) -> list[Review]:
        return (
            db.query(Review)
            .options(joinedload(Review.user), joinedload(Review.property))
            .filter(Review.status == "pending")
            .order_by(Review.created_at.asc())
            .all()
        )

"""Review service - Property reviews, moderation and rating aggregates"""

import logging
import math
import uuid
from datetime import datetime
from typing import Optional

from fastapi import HTTPException, UploadFile
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import Property, Review, User
from ...services.storage import MediaStorage, read_validated_uploads
from .repository import ReviewRepository
from .schemas import MODERATION_STATUS, ReviewCreate

logger = logging.getLogger(__name__)

MAX_REVIEW_IMAGES = 5
REVIEW_IMAGE_FOLDER = "reviews/images"


def compute_stats(ratings: list[tuple[int, bool]]) -> dict:
    distribution = {str(star): 0 for star in range(1, 6)}
    for rating, _ in ratings:
        distribution[str(rating)] += 1
    total = len(ratings)
    if not total:
        return {"average": 0.0, "total": 0, "distribution": distribution, "recommendationRate": 0.0}
    average = round(sum(r for r, _ in ratings) / total, 1)
    recommended = sum(1 for _, rec in ratings if rec)
    return {
        "average": average,
        "total": total,
        "distribution": distribution,
        "recommendationRate": round(recommended * 100 / total, 1),
    }


class ReviewService:
    """Service layer for review business logic"""

    def __init__(self, db: Session, storage: MediaStorage):
        self.db = db
        self.storage = storage
        self.repo = ReviewRepository()

    def get_review(self, review_id: int) -> Review:
        review = self.repo.get_by_id(self.db, review_id)
        if not review:
            raise HTTPException(status_code=404, detail="Review not found")
        return review

    def refresh_property_rating(self, prop: Property) -> Property:
        """Recompute a listing's rating from its approved reviews"""
        average, count = self.repo.rating_aggregate(self.db, prop.id)
        prop.rating_average = round(float(average), 1) if average is not None else 0
        prop.rating_count = count
        return prop

    async def create_review(self, data: ReviewCreate, user: User, images: Optional[list[UploadFile]] = None) -> Review:
        prop = self.repo.get_property(self.db, data.propertyId)
        if not prop:
            raise HTTPException(status_code=404, detail="Property not found")

        if self.repo.get_for_user(self.db, prop.id, user.id):
            raise HTTPException(status_code=400, detail="You have already reviewed this property")

        if data.appointmentId is not None:
            appointment = self.repo.get_appointment(self.db, data.appointmentId)
            if not appointment or appointment.property_id != prop.id or appointment.user_id != user.id:
                raise HTTPException(status_code=400, detail="Appointment does not match this property")

        uploads = await read_validated_uploads(images or [], "image", max_files=MAX_REVIEW_IMAGES)
        stored_images = []
        for upload, content in uploads:
            stored = self.storage.save(content, REVIEW_IMAGE_FOLDER, upload.filename, upload.content_type)
            stored_images.append({"id": uuid.uuid4().hex, "url": stored.url, "key": stored.key})

        review = Review(
            property_id=prop.id,
            user_id=user.id,
            appointment_id=data.appointmentId,
            rating=data.rating,
            subcategories=data.subcategories.model_dump(exclude_none=True),
            comment=data.comment.strip(),
            recommendation=data.recommendation,
            images=stored_images,
            status="pending",
            helpful_votes=[],
            helpful_count=0,
        )
        self.db.add(review)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            for image in stored_images:
                self.storage.delete(image["key"])
            raise HTTPException(status_code=400, detail="You have already reviewed this property")

        logger.info(f"⭐ Review {review.id} ({data.rating}/5) submitted for property {prop.id} by user {user.id}")
        return self.get_review(review.id)

    def list_property_reviews(self, property_id: int, page: int = 1, limit: int = 5) -> dict:
        if not self.repo.get_property(self.db, property_id):
            raise HTTPException(status_code=404, detail="Property not found")
        reviews, total = self.repo.list_approved(self.db, property_id, (page - 1) * limit, limit)
        return {
            "reviews": reviews,
            "stats": compute_stats(self.repo.approved_ratings(self.db, property_id)),
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit) if total else 0,
            },
        }

    def list_pending(self) -> list[Review]:
        return self.repo.list_pending(self.db)

    def moderate(self, review_id: int, action: str, notes: Optional[str], moderator: User) -> tuple[Review, Property]:
        review = self.get_review(review_id)
        review.status = MODERATION_STATUS[action]
        review.moderation_notes = notes
        review.moderated_by_id = moderator.id
        review.moderated_at = datetime.utcnow()
        self.db.flush()

        prop = self.refresh_property_rating(review.property)
        self.db.commit()
        logger.info(f"🛡️ Review {review.id} moderated as {review.status} by user {moderator.id}")
        return self.get_review(review.id), prop

    def toggle_featured(self, review_id: int) -> Review:
        review = self.get_review(review_id)
        review.featured = not review.featured
        self.db.commit()
        return self.get_review(review.id)

    def toggle_helpful(self, review_id: int, user: User) -> Review:
        """Vote a review helpful, or withdraw an existing vote"""
        review = self.get_review(review_id)
        votes = list(review.helpful_votes or [])
        remaining = [v for v in votes if v.get("user_id") != user.id]
        if len(remaining) == len(votes):
            remaining.append({"user_id": user.id, "voted_at": datetime.utcnow().isoformat()})
        review.helpful_votes = remaining
        review.helpful_count = len(remaining)
        self.db.commit()
        return self.get_review(review.id)

    def delete_review(self, review_id: int) -> None:
        review = self.get_review(review_id)
        prop = review.property
        for image in review.images or []:
            if image.get("key"):
                self.storage.delete(image["key"])
        self.db.delete(review)
        self.db.flush()
        self.refresh_property_rating(prop)
        self.db.commit()
        logger.info(f"🗑️ Review {review_id} deleted")

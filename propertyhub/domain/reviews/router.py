"""Review router - FastAPI endpoints for property reviews"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_admin, require_staff
from ...database import get_db
from ...models import User
from ...services.storage import MediaStorage, get_storage
from ...shared.forms import read_payload, validate_model
from .schemas import ModerationRequest, ReviewCreate, serialize_review
from .service import ReviewService

router = APIRouter(tags=["Reviews"])


def get_review_service(
    db: Session = Depends(get_db),
    storage: MediaStorage = Depends(get_storage),
) -> ReviewService:
    """Dependency injection for ReviewService"""
    return ReviewService(db, storage)


@router.post("/reviews", status_code=201)
async def create_review(
    request: Request,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    """
    Submit a review from JSON or a multipart form.

    Subcategory scores use dotted names (subcategories.location, ...) and up
    to five photos travel under "images". Reviews start out pending.
    """
    fields, files = await read_payload(request)
    data = validate_model(ReviewCreate, fields)
    review = await service.create_review(data, current_user, images=files.get("images"))
    return {"message": "Review submitted for moderation", "review": serialize_review(review, current_user.id)}


@router.get("/properties/{property_id}/reviews")
async def list_property_reviews(
    property_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(5, ge=1, le=50),
    service: ReviewService = Depends(get_review_service),
):
    result = service.list_property_reviews(property_id, page=page, limit=limit)
    result["reviews"] = [serialize_review(r) for r in result["reviews"]]
    return result


@router.get("/reviews/pending")
async def list_pending_reviews(
    _: User = Depends(require_staff),
    service: ReviewService = Depends(get_review_service),
):
    reviews = service.list_pending()
    return [
        {**serialize_review(r), "propertyTitle": r.property.title if r.property else None}
        for r in reviews
    ]


@router.put("/reviews/{review_id}/moderate")
async def moderate_review(
    review_id: int,
    data: ModerationRequest,
    current_user: User = Depends(require_staff),
    service: ReviewService = Depends(get_review_service),
):
    review, prop = service.moderate(review_id, data.action, data.moderationNotes, current_user)
    return {
        "message": f"Review {review.status}",
        "review": serialize_review(review),
        "propertyRating": {"average": prop.rating_average, "count": prop.rating_count},
    }


@router.put("/reviews/{review_id}/featured")
async def toggle_featured(
    review_id: int,
    _: User = Depends(require_admin),
    service: ReviewService = Depends(get_review_service),
):
    review = service.toggle_featured(review_id)
    return {"message": "Review featured" if review.featured else "Review unfeatured", "featured": review.featured}


@router.post("/reviews/{review_id}/helpful")
async def toggle_helpful(
    review_id: int,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    review = service.toggle_helpful(review_id, current_user)
    return serialize_review(review, current_user.id)


@router.delete("/reviews/{review_id}")
async def delete_review(
    review_id: int,
    _: User = Depends(require_staff),
    service: ReviewService = Depends(get_review_service),
):
    service.delete_review(review_id)
    return {"message": "Review deleted"}

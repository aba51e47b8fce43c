from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.deps import require_admin
from api.schemas import BatchStatusUpdate, envelope
from core.dependencies import get_logo_review_service
from models.user import User
from services.logo_review_service import LogoReviewService

router = APIRouter(prefix="/admin/logo-reviews", tags=["admin"])


@router.get("")
def list_reviews(
    status: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    admin: User = Depends(require_admin),
    reviews: LogoReviewService = Depends(get_logo_review_service),
):
    items, total = reviews.list_reviews(status, skip, limit)
    return envelope({"reviews": items, "total": total, "skip": skip, "limit": limit})


@router.put("/batch-update")
def batch_update(body: BatchStatusUpdate, admin: User = Depends(require_admin),
                 reviews: LogoReviewService = Depends(get_logo_review_service)):
    result = reviews.batch_status(body.review_ids, body.status, admin, body.comment)
    return envelope(result, f"Updated {len(result.updated)} of {len(body.review_ids)} logo reviews")


@router.get("/{review_id}")
def get_review(review_id: str, admin: User = Depends(require_admin),
               reviews: LogoReviewService = Depends(get_logo_review_service)):
    return envelope(reviews.get(review_id, admin))

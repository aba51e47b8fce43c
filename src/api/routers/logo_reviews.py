from fastapi import APIRouter, Depends

from api.deps import get_current_user, require_admin
from api.schemas import (
    ChecksUpdate,
    CommentRequest,
    CorrectedUrlUpdate,
    LogoReviewCreate,
    LogoStatusUpdate,
    PaletteUpdate,
    TotePreviewUpdate,
    envelope,
)
from core.dependencies import get_logo_review_service
from models.user import User
from services.logo_review_service import LogoReviewService, ReviewUpdate

router = APIRouter(prefix="/logo-reviews", tags=["logo-reviews"])


def _update_message(update: ReviewUpdate, message: str) -> str:
    if not update.sponsor_synced:
        return f"{message}, but the sponsorship could not be updated"
    return message


@router.post("", status_code=201)
def create_review(body: LogoReviewCreate, user: User = Depends(get_current_user),
                  reviews: LogoReviewService = Depends(get_logo_review_service)):
    update = reviews.create(body.campaign_id, body.sponsor_id, body.original_url, user)
    return envelope(update, _update_message(update, "Logo review created"))


@router.get("/{review_id}")
def get_review(review_id: str, user: User = Depends(get_current_user),
               reviews: LogoReviewService = Depends(get_logo_review_service)):
    return envelope(reviews.get(review_id, user))


@router.post("/{review_id}/comment", status_code=201)
def add_comment(review_id: str, body: CommentRequest, user: User = Depends(get_current_user),
                reviews: LogoReviewService = Depends(get_logo_review_service)):
    return envelope(reviews.add_comment(review_id, user, body.text, body.screenshot), "Comment added")


@router.put("/{review_id}/status")
def set_status(review_id: str, body: LogoStatusUpdate, admin: User = Depends(require_admin),
               reviews: LogoReviewService = Depends(get_logo_review_service)):
    update = reviews.set_status(review_id, body.status, admin, body.comment)
    return envelope(update, _update_message(update, f"Logo review status updated to {body.status}"))


@router.post("/{review_id}/run-checks")
def run_checks(review_id: str, _: User = Depends(require_admin),
               reviews: LogoReviewService = Depends(get_logo_review_service)):
    return envelope(reviews.run_checks(review_id), "Logo checks completed")


@router.put("/{review_id}/checks")
def replace_checks(review_id: str, body: ChecksUpdate, _: User = Depends(require_admin),
                   reviews: LogoReviewService = Depends(get_logo_review_service)):
    return envelope(reviews.replace_checks(review_id, body.checks), "Logo checks updated successfully")


@router.put("/{review_id}/corrected-url")
def set_corrected_url(review_id: str, body: CorrectedUrlUpdate, _: User = Depends(require_admin),
                      reviews: LogoReviewService = Depends(get_logo_review_service)):
    update = reviews.set_corrected_url(review_id, body.corrected_url)
    return envelope(update, _update_message(update, "Corrected URL updated"))


@router.put("/{review_id}/palette")
def set_palette(review_id: str, body: PaletteUpdate, _: User = Depends(require_admin),
                reviews: LogoReviewService = Depends(get_logo_review_service)):
    return envelope(reviews.set_palette(review_id, body.palette), "Logo palette updated successfully")


@router.put("/{review_id}/tote-preview")
def update_tote_preview(review_id: str, body: TotePreviewUpdate, user: User = Depends(get_current_user),
                        reviews: LogoReviewService = Depends(get_logo_review_service)):
    position = body.logo_position
    update = reviews.update_tote_preview(
        review_id,
        user,
        body.logo_size,
        position.x if position else None,
        position.y if position else None,
        body.preview_image_url,
    )
    return envelope(update, _update_message(update, "Tote preview updated"))


@router.post("/{review_id}/reconcile")
def reconcile(review_id: str, _: User = Depends(require_admin),
              reviews: LogoReviewService = Depends(get_logo_review_service)):
    return envelope(reviews.reconcile(review_id), "Sponsorship updated from logo review")

import logging

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel

from core.errors import AppError, PermissionDeniedError, ValidationError
from data_access.causes import CauseRepository
from data_access.logo_reviews import LogoReviewRepository
from models.logo_review import JUSTIFIED_STATUSES, LOGO_REVIEW_STATUS, LogoCheck, LogoReview
from models.user import User
from services.logo_analysis import LogoAnalyzer

logger = logging.getLogger(__name__)


class ReviewUpdate(BaseModel):
    review: LogoReview
    # False when the sponsor projection on the cause could not be written
    sponsor_synced: bool = True


class BatchResult(BaseModel):
    updated: list[str] = []
    failed: dict[str, str] = {}


class LogoReviewService:
    def __init__(self, reviews: LogoReviewRepository, causes: CauseRepository, analyzer: LogoAnalyzer):
        self.reviews = reviews
        self.causes = causes
        self.analyzer = analyzer

    def start(self, cause_id: str, sponsor_id: str, original_url: str, owner_id: str | None = None) -> ReviewUpdate:
        review = LogoReview.start(cause_id, sponsor_id, original_url, owner_id=owner_id)
        self.reviews.create(review)
        logger.info(f"Logo review {review.review_id} opened for sponsor {sponsor_id} on cause {cause_id}")
        return ReviewUpdate(review=review, sponsor_synced=self._project(review))

    def create(self, campaign_id: str, sponsor_id: str, original_url: str, user: User) -> ReviewUpdate:
        cause = self.causes.require(campaign_id)
        sponsor = cause.find_sponsor(sponsor_id)
        if user.role != "admin" and sponsor.user_id != user.user_id:
            raise PermissionDeniedError("Only the sponsor or an admin can submit this logo")
        return self.start(campaign_id, sponsor_id, original_url, owner_id=sponsor.user_id)

    def _ensure_access(self, review: LogoReview, user: User) -> None:
        if user.role != "admin" and review.owner_id != user.user_id:
            raise PermissionDeniedError("You do not have access to this logo review")

    def get(self, review_id: str, user: User) -> LogoReview:
        review = self.reviews.require(review_id)
        self._ensure_access(review, user)
        return review

    def list_reviews(self, status: str | None = None, skip: int = 0, limit: int = 20) -> tuple[list[LogoReview], int]:
        if status and status not in LOGO_REVIEW_STATUS.statuses:
            raise ValidationError(f"Invalid logo review status '{status}'")
        reviews = self.reviews.list_all(status)
        return reviews[skip:skip + limit], len(reviews)

    def add_comment(self, review_id: str, user: User, text: str, screenshot: str | None = None) -> LogoReview:
        if not text or not text.strip():
            raise ValidationError("Comment text is required")
        self._ensure_access(self.reviews.require(review_id), user)
        return self.reviews.mutate(review_id, lambda r: r.add_comment(user.name, text, screenshot))

    def set_status(self, review_id: str, status: str, admin: User, comment: str | None = None) -> ReviewUpdate:
        if status in JUSTIFIED_STATUSES and not (comment and comment.strip()):
            raise ValidationError(f"A comment is required when setting status to {status}")

        def apply(review: LogoReview):
            review.set_status(status)
            if comment:
                review.add_comment(admin.name, comment)

        review = self.reviews.mutate(review_id, apply)
        logger.info(f"Logo review {review_id} set to {status} by {admin.user_id}")
        return ReviewUpdate(review=review, sponsor_synced=self._project(review))

    def batch_status(self, review_ids: list[str], status: str, admin: User,
                     comment: str | None = None) -> BatchResult:
        result = BatchResult()
        for review_id in review_ids:
            try:
                self.set_status(review_id, status, admin, comment)
                result.updated.append(review_id)
            except AppError as e:
                result.failed[review_id] = e.message
        return result

    def run_checks(self, review_id: str) -> LogoReview:
        """Re-runs image analysis and replaces the checks; status is left alone."""
        current = self.reviews.require(review_id)
        # Download and analysis happen before the write, never while holding a version
        analysis = self.analyzer.analyze(current.current_url)

        def apply(review: LogoReview):
            review.checks = analysis.checks
            if not review.palette:
                review.palette = analysis.palette
            review.touch()

        return self.reviews.mutate(review_id, apply)

    def replace_checks(self, review_id: str, checks: list[LogoCheck]) -> LogoReview:
        def apply(review: LogoReview):
            review.checks = checks
            review.touch()

        return self.reviews.mutate(review_id, apply)

    def set_corrected_url(self, review_id: str, corrected_url: str) -> ReviewUpdate:
        if not corrected_url:
            raise ValidationError("Corrected URL is required")
        review = self.reviews.mutate(review_id, lambda r: r.resubmit(corrected_url))
        return ReviewUpdate(review=review, sponsor_synced=self._project(review))

    def set_palette(self, review_id: str, palette: list[str]) -> LogoReview:
        def apply(review: LogoReview):
            review.palette = palette
            review.touch()

        return self.reviews.mutate(review_id, apply)

    def update_tote_preview(self, review_id: str, user: User, logo_size: float | None, x: float | None,
                            y: float | None, preview_image_url: str | None = None) -> ReviewUpdate:
        if logo_size is None or x is None or y is None:
            raise ValidationError("Tote preview requires logo size and x/y position")
        self._ensure_access(self.reviews.require(review_id), user)
        review = self.reviews.mutate(
            review_id,
            lambda r: r.update_tote_preview(logo_size, x, y, preview_image_url),
        )
        return ReviewUpdate(review=review, sponsor_synced=self._project(review))

    def reconcile(self, review_id: str) -> LogoReview:
        """Writes the review's state onto its sponsor entry; errors propagate."""
        review = self.reviews.require(review_id)
        self.causes.mutate(review.campaign_id, lambda c: c.apply_logo_review(review.sponsor_id, review))
        logger.info(f"Logo review {review_id} reconciled into sponsor {review.sponsor_id}")
        return review

    def _project(self, review: LogoReview) -> bool:
        """Best-effort copy of the review onto the sponsor entry. Not retried."""
        try:
            self.causes.mutate(review.campaign_id, lambda c: c.apply_logo_review(review.sponsor_id, review))
        except (AppError, ClientError, BotoCoreError) as e:
            logger.error(
                f"Failed to sync logo review {review.review_id} into sponsor {review.sponsor_id} "
                f"on cause {review.campaign_id}: {e}"
            )
            return False
        return True

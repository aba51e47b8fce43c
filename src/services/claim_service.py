import logging
import math
from datetime import datetime, timezone
from typing import Callable

from pydantic import BaseModel

from core.errors import ConflictError, PermissionDeniedError, StaleWriteError, StateError, ValidationError
from data_access.causes import CauseRepository
from data_access.claims import ClaimRepository
from data_access.dynamodb import TransactionCancelled, retry_on_stale_write
from models.base import utcnow
from models.cause import Cause
from models.claim import CLAIM_STATUS, Claim, normalize_claim_status
from models.user import User
from services.notification_service import CLAIM_SHIPPED, NotificationQueue

logger = logging.getLogger(__name__)

CLAIMS_PER_PAGE = 20


class ClaimPage(BaseModel):
    claims: list[Claim]
    total: int
    page: int
    pages: int


class StatusUpdate(BaseModel):
    claim: Claim
    # None when the transition sends no email
    email_queued: bool | None = None


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def ensure_claimable(cause: Cause, user_id: str) -> None:
    if cause.status != "sponsored":
        raise StateError("This cause is not available for claiming")
    if not cause.is_claimable_by(user_id):
        raise StateError("This cause has already been claimed")


class ClaimService:
    def __init__(self, claims: ClaimRepository, causes: CauseRepository, queue: NotificationQueue,
                 clock: Callable[[], datetime] = utcnow):
        self.claims = claims
        self.causes = causes
        self.queue = queue
        self.clock = clock

    @retry_on_stale_write
    def create_claim(self, cause_id: str, user: User, details: dict) -> Claim:
        cause = self.causes.require(cause_id)
        ensure_claimable(cause, user.user_id)
        if self.claims.has_claimed(cause_id, user.user_id):
            raise ConflictError("You have already claimed this cause")

        claim = Claim.open(cause_id=cause_id, cause_title=cause.title, user_id=user.user_id, **details)
        try:
            self.claims.create_for_cause(claim)
        except TransactionCancelled:
            raise self.explain_cancellation(cause_id, user.user_id)
        return claim

    def explain_cancellation(self, cause_id: str, user_id: str) -> Exception:
        """Works out which precondition a cancelled claim transaction tripped."""
        if self.claims.has_claimed(cause_id, user_id):
            return ConflictError("You have already claimed this cause")
        try:
            ensure_claimable(self.causes.require(cause_id), user_id)
        except StateError as e:
            return e
        return StaleWriteError()

    def get(self, claim_id: str, user: User) -> Claim:
        claim = self.claims.require(claim_id)
        if user.role != "admin" and claim.user_id != user.user_id:
            raise PermissionDeniedError("Not authorized to view this claim")
        return claim

    def list_for_user(self, user_id: str, viewer: User) -> list[Claim]:
        if viewer.role != "admin" and viewer.user_id != user_id:
            raise PermissionDeniedError("Not authorized to view these claims")
        return self.claims.list_by_user(user_id)

    def list_all(self, status: str | None = None, cause_id: str | None = None,
                 start_date: datetime | None = None, end_date: datetime | None = None,
                 search: str | None = None, page: int = 1) -> ClaimPage:
        if status:
            status = normalize_claim_status(status)
            if status not in CLAIM_STATUS.statuses:
                raise ValidationError(f"Invalid claim status '{status}'")
        page = max(page, 1)
        start_date, end_date = _aware(start_date), _aware(end_date)

        claims = self.claims.list_all()
        if status:
            claims = [c for c in claims if c.status == status]
        if cause_id:
            claims = [c for c in claims if c.cause_id == cause_id]
        if start_date:
            claims = [c for c in claims if c.created_at >= start_date]
        if end_date:
            claims = [c for c in claims if c.created_at <= end_date]
        if search:
            needle = search.lower()
            claims = [
                c for c in claims
                if needle in c.full_name.lower()
                or needle in c.email.lower()
                or needle in (c.cause_title or "").lower()
            ]

        total = len(claims)
        start = (page - 1) * CLAIMS_PER_PAGE
        return ClaimPage(
            claims=claims[start:start + CLAIMS_PER_PAGE],
            total=total,
            page=page,
            pages=math.ceil(total / CLAIMS_PER_PAGE),
        )

    def update_status(self, claim_id: str, status: str, tracking_number: str | None = None,
                      tracking_url: str | None = None, note: str | None = None) -> StatusUpdate:
        status = normalize_claim_status(status)
        now = self.clock()
        claim = self.claims.mutate(
            claim_id,
            lambda c: c.transition(status, tracking_number, tracking_url, note, now=now),
        )
        logger.info(f"Claim {claim_id} moved to {status}")

        update = StatusUpdate(claim=claim)
        if status == "shipped":
            update.email_queued = self.queue.enqueue({
                "type": CLAIM_SHIPPED,
                "email_to": claim.email,
                "full_name": claim.full_name,
                "cause_title": claim.cause_title or "your cause",
                "tracking_number": claim.tracking_number,
                "tracking_url": claim.tracking_url,
            })
        return update

    def verify(self, claim_id: str) -> StatusUpdate:
        return self.update_status(claim_id, "verified", note="Claim verified by admin")

    def add_note(self, claim_id: str, text: str, author: User) -> Claim:
        if not text or not text.strip():
            raise ValidationError("Note text is required")
        return self.claims.mutate(claim_id, lambda c: c.add_note(text, author.name))

    def add_proof_of_impact(self, claim_id: str, user: User, images: list[str], description: str) -> Claim:
        claim = self.claims.require(claim_id)
        if claim.user_id != user.user_id:
            raise PermissionDeniedError("Only the claimant can submit proof of impact")
        claim = self.claims.mutate(claim_id, lambda c: c.submit_proof(images, description))
        logger.info(f"Proof of impact submitted for claim {claim_id}")
        return claim

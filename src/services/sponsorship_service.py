import logging

from data_access.causes import CauseRepository
from models.cause import Cause, PendingSponsorship, Sponsor
from models.order import SponsorshipDetails
from models.user import User
from services.logo_review_service import LogoReviewService

logger = logging.getLogger(__name__)


class SponsorshipService:
    """Sponsor entries live inside the cause document; every change here is a
    single versioned write of that document, so ``raised`` never drifts."""

    def __init__(self, causes: CauseRepository, logo_reviews: LogoReviewService,
                 tote_unit_price: int = 10, auto_approve_after_payment: bool = False):
        self.causes = causes
        self.logo_reviews = logo_reviews
        self.tote_unit_price = tote_unit_price
        self.auto_approve_after_payment = auto_approve_after_payment

    def add_sponsorship(self, cause_id: str, fields: dict, user: User | None = None) -> Sponsor:
        sponsor = Sponsor(**fields, user_id=user.user_id if user else None, status="pending")
        self.causes.mutate(cause_id, lambda c: c.add_sponsor(sponsor))
        logger.info(f"Pending sponsorship {sponsor.sponsor_id} of {sponsor.amount} added to cause {cause_id}")

        if sponsor.logo:
            self.logo_reviews.start(cause_id, sponsor.sponsor_id, sponsor.logo, owner_id=sponsor.user_id)
        return self.causes.require(cause_id).find_sponsor(sponsor.sponsor_id)

    def add_sponsorship_post_payment(self, cause_id: str, details: SponsorshipDetails, sponsor_id: str,
                                     order_id: str, user_id: str | None = None) -> Sponsor:
        """Records a paid sponsorship. Safe to call again for the same ``sponsor_id``."""
        sponsor = Sponsor(
            sponsor_id=sponsor_id,
            user_id=user_id,
            name=details.organization_name,
            email=details.email,
            phone=details.phone,
            logo=details.logo_url,
            message=details.message,
            amount=details.tote_quantity * self.tote_unit_price,
            tote_quantity=details.tote_quantity,
            status="approved" if self.auto_approve_after_payment else "pending",
            order_id=order_id,
        )

        created = []

        def apply(cause: Cause):
            created.clear()
            recorded = cause.add_paid_sponsor(sponsor)
            if recorded is sponsor:
                created.append(sponsor)

        cause = self.causes.mutate(cause_id, apply)
        if not created:
            logger.info(f"Sponsor {sponsor_id} for order {order_id} already recorded")
            return cause.find_sponsor(sponsor_id)

        logger.info(
            f"Paid sponsorship {sponsor_id} ({sponsor.status}) added to cause {cause_id}, raised {cause.raised}"
        )
        if sponsor.logo:
            self.logo_reviews.start(cause_id, sponsor_id, sponsor.logo, owner_id=user_id)
        return self.causes.require(cause_id).find_sponsor(sponsor_id)

    def approve_sponsor(self, cause_id: str, sponsor_id: str) -> Cause:
        cause = self.causes.mutate(cause_id, lambda c: c.approve_sponsor(sponsor_id))
        logger.info(f"Sponsor {sponsor_id} approved on cause {cause_id}, raised {cause.raised}, status {cause.status}")
        return cause

    def reject_sponsor(self, cause_id: str, sponsor_id: str, reason: str | None = None) -> Cause:
        cause = self.causes.mutate(cause_id, lambda c: c.reject_sponsor(sponsor_id, reason))
        logger.info(f"Sponsor {sponsor_id} rejected on cause {cause_id}, raised {cause.raised}")
        return cause

    def list_pending(self) -> list[PendingSponsorship]:
        return [
            PendingSponsorship(cause_id=cause.cause_id, cause_title=cause.title,
                               cause_status=cause.status, sponsor=sponsor)
            for cause in self.causes.list_with_pending_sponsors()
            for sponsor in cause.sponsors
            if sponsor.status == "pending"
        ]

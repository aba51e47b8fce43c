from datetime import datetime
from pydantic import BaseModel, Field, computed_field
from typing import Literal

from core.errors import NotFoundError, StateError
from models.base import Document, new_id, utcnow
from models.logo_review import LogoReview, LogoStatus, TotePreview
from models.status import StatusMachine

CauseStatus = Literal["pending", "open", "sponsored", "waitlist", "completed", "rejected"]
SponsorStatus = Literal["pending", "approved", "rejected"]

CAUSE_STATUS = StatusMachine("cause", {
    "pending": {"open", "rejected", "completed"},
    "open": {"sponsored", "waitlist", "completed"},
    "waitlist": {"open", "sponsored", "completed"},
    "sponsored": {"completed"},
    "completed": set(),
    "rejected": set(),
})

SPONSOR_STATUS = StatusMachine("sponsorship", {
    "pending": {"approved", "rejected"},
    "approved": {"rejected"},
    "rejected": {"approved"},
})

SPONSORABLE_STATUSES = {"open"}
# Statuses in which reaching the goal flips the cause to sponsored
FUNDING_STATUSES = {"open", "waitlist"}

# Descriptive fields an admin may edit directly
EDITABLE_FIELDS = {"title", "description", "story", "impact", "timeline", "image_url", "category", "goal"}


class Sponsor(BaseModel):
    sponsor_id: str = Field(default_factory=new_id)
    user_id: str | None = None
    name: str
    email: str | None = None
    phone: str | None = None
    logo: str | None = None
    message: str | None = None
    amount: int = Field(ge=0)
    tote_quantity: int | None = None
    status: SponsorStatus = "pending"
    rejection_reason: str | None = None
    order_id: str | None = None

    # Projection of the logo review, kept in sync best-effort
    logo_review_id: str | None = None
    logo_status: LogoStatus | None = None
    tote_preview: TotePreview | None = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @computed_field
    @property
    def display_logo(self) -> str | None:
        """Logo shown publicly, only once brand review approved it."""
        return self.logo if self.logo_status == "APPROVED" else None


class Cause(Document):
    cause_id: str = Field(default_factory=new_id)
    title: str
    description: str
    story: str
    impact: str | None = None
    timeline: str | None = None
    image_url: str
    category: str
    goal: int = Field(ge=0)
    raised: int = 0
    status: CauseStatus = "pending"
    rejection_reason: str | None = None
    is_online: bool = False
    created_by: str | None = None
    creator_name: str | None = None
    creator_email: str | None = None
    claimed_by: str | None = None
    waitlist_seq: int = 0
    sponsors: list[Sponsor] = Field(default_factory=list)

    @computed_field
    @property
    def pending_amount(self) -> int:
        """Unapproved sponsorship, reported alongside ``raised`` but never counted in it."""
        return sum(s.amount for s in self.sponsors if s.status == "pending")

    def _transition(self, target: str) -> None:
        CAUSE_STATUS.ensure(self.status, target)
        self.status = target
        self.touch()

    def approve(self) -> None:
        self._transition("open")
        self.is_online = True
        self.rejection_reason = None

    def reject(self, reason: str | None = None) -> None:
        self._transition("rejected")
        self.is_online = False
        self.rejection_reason = reason or "Rejected by administrator"

    def toggle_online(self) -> bool:
        self.is_online = not self.is_online
        self.touch()
        return self.is_online

    def force_close(self) -> None:
        self._transition("completed")

    def set_waitlist(self, enabled: bool) -> None:
        self._transition("waitlist" if enabled else "open")
        self.evaluate_goal()

    def update_details(self, fields: dict) -> None:
        for key, value in fields.items():
            if key in EDITABLE_FIELDS:
                setattr(self, key, value)
        self.touch()
        self.evaluate_goal()

    def find_sponsor(self, sponsor_id: str) -> Sponsor:
        for sponsor in self.sponsors:
            if sponsor.sponsor_id == sponsor_id:
                return sponsor
        raise NotFoundError("Sponsorship not found")

    def add_sponsor(self, sponsor: Sponsor) -> Sponsor:
        if self.status not in SPONSORABLE_STATUSES:
            raise StateError("This cause is not open for sponsorship")
        self.sponsors.append(sponsor)
        self.recompute_raised()
        return sponsor

    def add_paid_sponsor(self, sponsor: Sponsor) -> Sponsor:
        """Records a sponsorship that was already paid for.

        Idempotent on ``sponsor_id``. Payment has been taken, so the cause
        status does not gate it.
        """
        for existing in self.sponsors:
            if existing.sponsor_id == sponsor.sponsor_id:
                return existing
        self.sponsors.append(sponsor)
        self.recompute_raised()
        return sponsor

    def approve_sponsor(self, sponsor_id: str) -> Sponsor:
        sponsor = self.find_sponsor(sponsor_id)
        SPONSOR_STATUS.ensure(sponsor.status, "approved")
        sponsor.status = "approved"
        sponsor.rejection_reason = None
        sponsor.updated_at = utcnow()
        self.recompute_raised()
        return sponsor

    def reject_sponsor(self, sponsor_id: str, reason: str | None = None) -> Sponsor:
        sponsor = self.find_sponsor(sponsor_id)
        SPONSOR_STATUS.ensure(sponsor.status, "rejected")
        sponsor.status = "rejected"
        sponsor.rejection_reason = reason or "Sponsorship rejected by admin"
        sponsor.updated_at = utcnow()
        self.recompute_raised()
        return sponsor

    def recompute_raised(self) -> int:
        self.raised = sum(s.amount for s in self.sponsors if s.status == "approved")
        self.touch()
        self.evaluate_goal()
        return self.raised

    def evaluate_goal(self) -> None:
        # Never regresses: a sponsored cause stays sponsored if raised drops.
        if self.status in FUNDING_STATUSES and self.raised >= self.goal:
            self.status = "sponsored"

    def is_claimable_by(self, user_id: str) -> bool:
        return self.status == "sponsored" and self.claimed_by in (None, user_id)

    def apply_logo_review(self, sponsor_id: str, review: LogoReview) -> Sponsor:
        """Copies the review's current state onto the sponsor's projection."""
        sponsor = self.find_sponsor(sponsor_id)
        sponsor.logo = review.current_url
        sponsor.logo_review_id = review.review_id
        sponsor.logo_status = review.status
        sponsor.tote_preview = review.tote_preview
        sponsor.updated_at = utcnow()
        self.touch()
        return sponsor


class PendingSponsorship(BaseModel):
    """Admin queue item: a pending sponsor tagged with its cause."""
    cause_id: str
    cause_title: str
    cause_status: CauseStatus
    sponsor: Sponsor

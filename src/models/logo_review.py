from datetime import datetime
from pydantic import BaseModel, Field
from typing import Literal

from core.errors import ValidationError
from models.base import Document, new_id, utcnow
from models.status import StatusMachine

LogoStatus = Literal["PENDING", "APPROVED", "CHANGES_REQUESTED", "REJECTED"]

LOGO_REVIEW_STATUS = StatusMachine("logo review", {
    "PENDING": {"APPROVED", "CHANGES_REQUESTED", "REJECTED"},
    # Resubmission puts the review back in the queue; an admin still decides.
    "CHANGES_REQUESTED": {"PENDING", "APPROVED", "REJECTED"},
    "APPROVED": set(),
    "REJECTED": set(),
})

# Statuses an admin must justify with a comment
JUSTIFIED_STATUSES = {"CHANGES_REQUESTED", "REJECTED"}


# Size and position are percentages of the tote print area
class LogoPosition(BaseModel):
    x: float = Field(50, ge=0, le=100)
    y: float = Field(75, ge=0, le=100)


class TotePreview(BaseModel):
    logo_size: float = Field(20, gt=0, le=100)
    logo_position: LogoPosition = Field(default_factory=LogoPosition)
    preview_image_url: str | None = None
    updated_at: datetime = Field(default_factory=utcnow)


class LogoCheck(BaseModel):
    name: str
    passed: bool = False
    message: str


class LogoComment(BaseModel):
    by: str
    text: str
    screenshot: str | None = None
    at: datetime = Field(default_factory=utcnow)


class LogoReview(Document):
    review_id: str = Field(default_factory=new_id)
    campaign_id: str
    sponsor_id: str
    owner_id: str | None = None
    original_url: str
    corrected_url: str | None = None
    status: LogoStatus = "PENDING"
    checks: list[LogoCheck] = Field(default_factory=list)
    comments: list[LogoComment] = Field(default_factory=list)
    palette: list[str] = Field(default_factory=list)
    tote_preview: TotePreview | None = None

    @classmethod
    def start(cls, campaign_id: str, sponsor_id: str, original_url: str,
              owner_id: str | None = None) -> "LogoReview":
        return cls(
            campaign_id=campaign_id,
            sponsor_id=sponsor_id,
            owner_id=owner_id,
            original_url=original_url,
            tote_preview=TotePreview(preview_image_url=original_url),
        )

    @property
    def current_url(self) -> str:
        return self.corrected_url or self.original_url

    def add_comment(self, by: str, text: str, screenshot: str | None = None) -> LogoComment:
        comment = LogoComment(by=by, text=text, screenshot=screenshot)
        self.comments.append(comment)
        self.touch()
        return comment

    def set_status(self, status: str) -> None:
        LOGO_REVIEW_STATUS.ensure(self.status, status)
        self.status = status
        self.touch()

    def resubmit(self, corrected_url: str) -> None:
        """Record a corrected logo. A review awaiting changes goes back to PENDING."""
        if LOGO_REVIEW_STATUS.is_terminal(self.status):
            LOGO_REVIEW_STATUS.ensure(self.status, "PENDING")
        self.corrected_url = corrected_url
        if self.status == "CHANGES_REQUESTED":
            self.status = "PENDING"
        self.touch()

    def update_tote_preview(self, logo_size: float, x: float, y: float,
                            preview_image_url: str | None = None) -> TotePreview:
        if not 0 < logo_size <= 100 or not (0 <= x <= 100 and 0 <= y <= 100):
            raise ValidationError("Logo size and x/y position must be between 0 and 100")
        self.tote_preview = TotePreview(
            logo_size=logo_size,
            logo_position=LogoPosition(x=x, y=y),
            preview_image_url=preview_image_url or self.current_url,
        )
        self.touch()
        return self.tote_preview

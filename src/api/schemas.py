from pydantic import BaseModel, EmailStr, Field
from typing import Any, Literal, Optional

from models.claim import ShippingAddress
from models.logo_review import LogoCheck, LogoStatus
from models.order import SponsorshipDetails
from models.waitlist import WaitlistEntry, WaitlistStatus


def envelope(data: Any = None, message: Optional[str] = None) -> dict:
    """Success envelope shared by every route."""
    body: dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


def public_entry(entry: WaitlistEntry) -> dict:
    """Waitlist entry as returned to clients; the magic-link token only travels by email."""
    return entry.model_dump(mode="json", exclude={"magic_link_token"})


# Auth

class RegisterRequest(BaseModel):
    email: EmailStr
    name: str = Field(min_length=1)
    role: Literal["visitor", "sponsor", "claimer"] = "visitor"
    phone: Optional[str] = None

class OtpRequest(BaseModel):
    email: EmailStr

class VerifyOtpRequest(BaseModel):
    email: EmailStr
    otp: str = Field(min_length=1)
    name: Optional[str] = None
    role: Optional[str] = None

class AdminLoginRequest(BaseModel):
    email: EmailStr
    password: str

class RefreshRequest(BaseModel):
    refresh_token: str


# Causes and sponsorships

class CauseCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    story: str = Field(min_length=1)
    impact: Optional[str] = None
    timeline: Optional[str] = None
    image_url: str
    category: str
    goal: int = Field(gt=0)

class AdminCauseCreate(CauseCreate):
    is_online: bool = True

class CauseUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    story: Optional[str] = None
    impact: Optional[str] = None
    timeline: Optional[str] = None
    image_url: Optional[str] = None
    category: Optional[str] = None
    goal: Optional[int] = Field(default=None, gt=0)

class RejectRequest(BaseModel):
    reason: Optional[str] = None

class WaitlistToggleRequest(BaseModel):
    enabled: bool

class SponsorshipCreate(BaseModel):
    name: str = Field(min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    logo: Optional[str] = None
    message: Optional[str] = None
    amount: int = Field(ge=0)
    tote_quantity: Optional[int] = Field(default=None, gt=0)


# Logo reviews

class LogoReviewCreate(BaseModel):
    campaign_id: str
    sponsor_id: str
    original_url: str

class CommentRequest(BaseModel):
    text: str
    screenshot: Optional[str] = None

class LogoStatusUpdate(BaseModel):
    status: LogoStatus
    comment: Optional[str] = None

class BatchStatusUpdate(BaseModel):
    review_ids: list[str] = Field(min_length=1)
    status: LogoStatus
    comment: Optional[str] = None

class ChecksUpdate(BaseModel):
    checks: list[LogoCheck]

class CorrectedUrlUpdate(BaseModel):
    corrected_url: str

class PaletteUpdate(BaseModel):
    palette: list[str]

class PositionIn(BaseModel):
    x: Optional[float] = Field(None, ge=0, le=100)
    y: Optional[float] = Field(None, ge=0, le=100)

class TotePreviewUpdate(BaseModel):
    logo_size: Optional[float] = Field(None, gt=0, le=100)
    logo_position: Optional[PositionIn] = None
    preview_image_url: Optional[str] = None


# Claims and waitlist

class ClaimCreate(BaseModel):
    cause_id: str
    full_name: str = Field(min_length=1)
    email: EmailStr
    phone: str
    organization: str
    shipping_address: ShippingAddress

class ClaimStatusUpdate(BaseModel):
    status: str
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    note: Optional[str] = None

class NoteRequest(BaseModel):
    text: str

class ProofRequest(BaseModel):
    images: list[str] = []
    description: str = Field(min_length=1)

class WaitlistJoin(BaseModel):
    cause_id: str
    full_name: str = Field(min_length=1)
    email: EmailStr
    phone: str
    organization: str
    message: Optional[str] = None
    notify_email: bool = True
    notify_sms: bool = False

class WaitlistStatusUpdate(BaseModel):
    status: WaitlistStatus

class RedeemRequest(BaseModel):
    token: str
    shipping_address: ShippingAddress
    phone: Optional[str] = None
    organization: Optional[str] = None


# Payments and notifications

class CreateOrderRequest(BaseModel):
    cause_id: str
    sponsorship_details: SponsorshipDetails

class VerifyPaymentRequest(BaseModel):
    order_id: str

class SendEmailRequest(BaseModel):
    to: EmailStr
    subject: str = Field(min_length=1)
    template: str = Field(min_length=1)
    data: dict[str, Any] = {}

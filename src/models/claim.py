from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Literal

from core.errors import ValidationError
from models.base import Document, new_id, utcnow
from models.status import StatusMachine

ClaimStatus = Literal["pending", "verified", "processing", "shipped", "delivered", "rejected"]

CLAIM_STATUS = StatusMachine("claim", {
    "pending": {"verified", "processing", "rejected"},
    "verified": {"processing", "rejected"},
    "processing": {"shipped", "rejected"},
    "shipped": {"delivered"},
    "delivered": set(),
    "rejected": set(),
})

# Records written by the older claim model used an upper-case vocabulary.
LEGACY_STATUS_MAP = {
    "PENDING": "pending",
    "APPROVED": "verified",
    "REJECTED": "rejected",
    "SHIPPED": "shipped",
    "DELIVERED": "delivered",
}


def normalize_claim_status(value):
    if isinstance(value, str):
        return LEGACY_STATUS_MAP.get(value, value)
    return value


class ShippingAddress(BaseModel):
    address: str
    city: str
    state: str
    zip_code: str


class StatusChange(BaseModel):
    status: ClaimStatus
    date: datetime = Field(default_factory=utcnow)
    note: str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def map_legacy_status(cls, value):
        return normalize_claim_status(value)


class ClaimNote(BaseModel):
    text: str
    by: str
    at: datetime = Field(default_factory=utcnow)


class ProofOfImpact(BaseModel):
    images: list[str] = Field(default_factory=list)
    description: str
    submitted_at: datetime = Field(default_factory=utcnow)


class Claim(Document):
    claim_id: str = Field(default_factory=new_id)
    cause_id: str
    cause_title: str | None = None
    user_id: str
    full_name: str
    email: EmailStr
    phone: str
    organization: str
    shipping_address: ShippingAddress
    status: ClaimStatus = "pending"
    status_history: list[StatusChange] = Field(default_factory=list)
    tracking_number: str | None = None
    tracking_url: str | None = None
    notes: list[ClaimNote] = Field(default_factory=list)
    proof_of_impact: ProofOfImpact | None = None
    verified_at: datetime | None = None
    from_waitlist: bool = False

    @field_validator("status", mode="before")
    @classmethod
    def map_legacy_status(cls, value):
        return normalize_claim_status(value)

    @classmethod
    def open(cls, **fields) -> "Claim":
        claim = cls(**fields)
        claim.status_history.append(StatusChange(status=claim.status, note="Claim created"))
        return claim

    def transition(self, status: str, tracking_number: str | None = None,
                   tracking_url: str | None = None, note: str | None = None,
                   now: datetime | None = None) -> StatusChange:
        CLAIM_STATUS.ensure(self.status, status)
        if status == "shipped" and not (tracking_number or self.tracking_number):
            raise ValidationError("A tracking number is required to mark a claim as shipped")

        now = now or utcnow()
        if tracking_number:
            self.tracking_number = tracking_number
            self.tracking_url = tracking_url
        if status == "verified":
            self.verified_at = now

        self.status = status
        change = StatusChange(status=status, date=now, note=note or f"Status changed to {status}")
        self.status_history.append(change)
        self.touch(now)
        return change

    def add_note(self, text: str, by: str) -> ClaimNote:
        note = ClaimNote(text=text, by=by)
        self.notes.append(note)
        self.touch()
        return note

    def submit_proof(self, images: list[str], description: str) -> ProofOfImpact:
        self.proof_of_impact = ProofOfImpact(images=images, description=description)
        self.touch()
        return self.proof_of_impact

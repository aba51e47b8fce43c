from pydantic import BaseModel, EmailStr, Field
from typing import Literal

from models.base import Document

OrderStatus = Literal["created", "paid", "failed"]


class SponsorshipDetails(BaseModel):
    organization_name: str
    contact_name: str | None = None
    email: EmailStr | None = None
    phone: str | None = None
    tote_quantity: int = Field(gt=0)
    logo_url: str | None = None
    message: str | None = None


class Order(Document):
    order_id: str
    amount: int  # minor currency units, as charged by the gateway
    currency: str = "inr"
    status: OrderStatus = "created"
    payment_id: str | None = None
    cause_id: str
    user_id: str | None = None
    sponsorship_details: SponsorshipDetails
    # Linkage: the sponsor entry created on the cause for this order
    sponsor_id: str | None = None

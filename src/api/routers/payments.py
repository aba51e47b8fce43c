import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from api.deps import get_optional_user
from api.schemas import CreateOrderRequest, VerifyPaymentRequest, envelope
from core.dependencies import get_payment_service
from models.user import User
from services.payment_service import PaymentService

router = APIRouter(prefix="/payments", tags=["payments"])
logger = logging.getLogger(__name__)


@router.post("/create-order", status_code=201)
def create_order(body: CreateOrderRequest, user: Optional[User] = Depends(get_optional_user),
                 payment_service: PaymentService = Depends(get_payment_service)):
    return envelope(payment_service.create_order(body.cause_id, body.sponsorship_details, user))


@router.post("/verify")
def verify_payment(body: VerifyPaymentRequest, payment_service: PaymentService = Depends(get_payment_service)):
    order = payment_service.verify(body.order_id)
    return envelope(order, f"Payment {order.status}")


@router.post("/webhook")
async def handle_stripe_webhook(
    request: Request,
    stripe_signature: str = Header(...),
    payment_service: PaymentService = Depends(get_payment_service),
):
    """
    Receives webhook events from Stripe, validates them,
    and queues them in SQS for background processing.
    """
    payload = await request.body()
    payment_service.queue_payment_webhook(payload=payload, signature_header=stripe_signature)
    return envelope({"status": "queued"})

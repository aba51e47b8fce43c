import json
import logging

import stripe
from botocore.exceptions import ClientError
from pydantic import BaseModel

from core.errors import StateError, UpstreamError, ValidationError
from data_access.causes import CauseRepository
from data_access.orders import OrderRepository
from models.base import new_id
from models.cause import Sponsor
from models.order import Order, SponsorshipDetails
from models.user import User
from services.notification_service import RECEIPT, NotificationQueue
from services.sponsorship_service import SponsorshipService

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


class CreatedOrder(BaseModel):
    order_id: str
    client_secret: str
    amount: int
    currency: str


class PaymentService:
    """Sponsorship payments through Stripe PaymentIntents.

    The intent id is the order id. Webhook events are verified, queued on
    SQS and applied by the payment worker; ``verify`` applies the same
    result synchronously. Applying a paid order twice is a no-op.
    """

    def __init__(
        self,
        orders: OrderRepository,
        causes: CauseRepository,
        sponsorships: SponsorshipService,
        notifications: NotificationQueue,
        sqs_client,
        payment_queue_url: str,
        stripe_webhook_secret: str,
        tote_unit_price: int = 10,
        currency: str = "inr",
    ):
        self.orders = orders
        self.causes = causes
        self.sponsorships = sponsorships
        self.notifications = notifications
        self.sqs_client = sqs_client
        self.payment_queue_url = payment_queue_url
        self.stripe_webhook_secret = stripe_webhook_secret
        self.tote_unit_price = tote_unit_price
        self.currency = currency

    def create_order(self, cause_id: str, details: SponsorshipDetails, user: User | None = None) -> CreatedOrder:
        cause = self.causes.require(cause_id)
        if cause.status != "open":
            raise StateError("This cause is not open for sponsorship")

        # Minor currency units, as the gateway expects
        amount = details.tote_quantity * self.tote_unit_price * 100
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=self.currency,
                automatic_payment_methods={"enabled": True},
                metadata={
                    "cause_id": cause_id,
                    "user_id": user.user_id if user else "",
                    "tote_quantity": details.tote_quantity,
                },
            )
        except stripe.StripeError as e:
            logger.error(f"Error creating Stripe intent: {e}")
            raise UpstreamError("Failed to create payment order")

        order = Order(
            order_id=intent.id,
            amount=amount,
            currency=self.currency,
            cause_id=cause_id,
            user_id=user.user_id if user else None,
            sponsorship_details=details,
        )
        self.orders.create(order)
        logger.info(f"Created order {order.order_id} for cause {cause_id}, amount {amount}")
        return CreatedOrder(order_id=order.order_id, client_secret=intent.client_secret,
                            amount=amount, currency=self.currency)

    def verify(self, order_id: str) -> Order:
        """Asks the gateway for the intent's outcome and applies it."""
        order = self.orders.require(order_id)
        try:
            intent = stripe.PaymentIntent.retrieve(order_id)
        except stripe.StripeError as e:
            logger.error(f"Error retrieving Stripe intent {order_id}: {e}")
            raise UpstreamError("Payment verification failed")

        if intent.status == "succeeded":
            self.apply_payment(order_id, intent.id)
        elif intent.status == "canceled":
            self.mark_failed(order_id, intent.id)
        else:
            logger.info(f"Order {order_id} not settled yet, intent status {intent.status}")
            return order
        return self.orders.require(order_id)

    def queue_payment_webhook(self, payload: bytes, signature_header: str):
        try:
            stripe.Webhook.construct_event(
                payload=payload,
                sig_header=signature_header,
                secret=self.stripe_webhook_secret
            )
        except ValueError as e:
            logger.error(f"Webhook error: Invalid payload - {e}")
            raise ValidationError("Invalid payload")
        except stripe.SignatureVerificationError as e:
            logger.error(f"Webhook error: Invalid signature - {e}")
            raise ValidationError("Invalid signature")

        try:
            self.sqs_client.send_message(
                QueueUrl=self.payment_queue_url,
                MessageBody=payload.decode("utf-8") if isinstance(payload, bytes) else payload
            )
        except ClientError as e:
            logger.error(f"SQS Error: {e}")
            raise UpstreamError("Failed to queue payment event")

    def handle_payment_event(self, event_body: str):
        event = json.loads(event_body)
        intent = event['data']['object']
        if event["type"] in (PAYMENT_SUCCEEDED, PAYMENT_FAILED) and self.orders.get(intent["id"]) is None:
            logger.warning(f"Ignoring {event['type']} for unknown order {intent['id']}")
            return

        if event['type'] == PAYMENT_SUCCEEDED:
            self.apply_payment(intent['id'], intent['id'])
        elif event['type'] == PAYMENT_FAILED:
            self.mark_failed(intent['id'], intent['id'])
        else:
            logger.warning(f"Received unhandled event type: {event['type']}")

    def apply_payment(self, order_id: str, payment_id: str) -> Sponsor:
        """Marks the order paid and makes sure its sponsor is on the cause.

        Every step is idempotent, so a redelivered event or a verify racing
        the webhook ends in the same single sponsor entry.
        """
        paid = self.orders.mark_paid(order_id, payment_id)
        order = paid or self.orders.require(order_id)
        if paid is None:
            logger.info(f"Skipped duplicate processing for payment {payment_id}.")

        sponsor_id = self.orders.link_sponsor(order_id, new_id())
        sponsor = self.sponsorships.add_sponsorship_post_payment(
            order.cause_id,
            order.sponsorship_details,
            sponsor_id=sponsor_id,
            order_id=order_id,
            user_id=order.user_id,
        )

        if paid is not None and order.sponsorship_details.email:
            cause = self.causes.require(order.cause_id)
            self.notifications.enqueue({
                "type": RECEIPT,
                "email_to": order.sponsorship_details.email,
                "sponsor_name": order.sponsorship_details.contact_name or order.sponsorship_details.organization_name,
                "cause_title": cause.title,
                "amount_minor": order.amount,
                "currency": order.currency,
                "order_id": order_id,
            })
            logger.info(f"Successfully processed payment {payment_id}.")
        return sponsor

    def mark_failed(self, order_id: str, payment_id: str | None) -> None:
        if self.orders.mark_failed(order_id, payment_id):
            logger.warning(f"Payment failed for order {order_id}.")
        else:
            logger.info(f"Skipped duplicate processing for failed payment {order_id}.")

import json
from types import SimpleNamespace
from unittest.mock import patch

import pytest
import stripe
from botocore.exceptions import ClientError

from core.errors import StateError, UpstreamError, ValidationError
from models.order import SponsorshipDetails
from services.notification_service import RECEIPT
from services.payment_service import PAYMENT_FAILED, PAYMENT_SUCCEEDED

DETAILS = SponsorshipDetails(
    organization_name="Acme",
    contact_name="Jane Doe",
    email="jane@acme.com",
    tote_quantity=25,
)


def event_body(event_type, intent_id="pi_123"):
    return json.dumps({"type": event_type, "data": {"object": {"id": intent_id, "object": "payment_intent"}}})


@pytest.fixture
def cause(make_cause):
    return make_cause(goal=5000)


@pytest.fixture
def order(payment_service, cause):
    intent = SimpleNamespace(id="pi_123", client_secret="pi_123_secret_abc")
    with patch("stripe.PaymentIntent.create", return_value=intent):
        return payment_service.create_order(cause.cause_id, DETAILS)


class TestCreateOrder:

    def test_order_mirrors_intent(self, payment_service, orders, cause, make_user):
        user = make_user(role="sponsor")
        intent = SimpleNamespace(id="pi_999", client_secret="pi_999_secret")
        with patch("stripe.PaymentIntent.create", return_value=intent) as create:
            created = payment_service.create_order(cause.cause_id, DETAILS, user)

        assert created.order_id == "pi_999"
        assert created.client_secret == "pi_999_secret"
        assert created.amount == 25 * 10 * 100
        assert create.call_args.kwargs["amount"] == 25000
        assert create.call_args.kwargs["currency"] == "inr"

        stored = orders.require("pi_999")
        assert stored.status == "created"
        assert stored.user_id == user.user_id
        assert stored.sponsorship_details.tote_quantity == 25

    def test_cause_must_be_open(self, payment_service, make_cause):
        cause = make_cause(status="sponsored")
        with patch("stripe.PaymentIntent.create") as create:
            with pytest.raises(StateError):
                payment_service.create_order(cause.cause_id, DETAILS)
        create.assert_not_called()

    def test_gateway_failure(self, payment_service, orders, cause):
        with patch("stripe.PaymentIntent.create", side_effect=stripe.StripeError("card network down")):
            with pytest.raises(UpstreamError):
                payment_service.create_order(cause.cause_id, DETAILS)


class TestPaymentEvents:

    def test_success_adds_pending_sponsor(self, payment_service, orders, causes, queue, order):
        payment_service.handle_payment_event(event_body(PAYMENT_SUCCEEDED))

        stored = orders.require(order.order_id)
        assert stored.status == "paid"
        assert stored.sponsor_id is not None

        cause = causes.require(stored.cause_id)
        sponsor = cause.find_sponsor(stored.sponsor_id)
        assert sponsor.amount == 250
        assert sponsor.status == "pending"
        assert sponsor.order_id == order.order_id
        assert cause.raised == 0

        job = queue.enqueue.call_args[0][0]
        assert job["type"] == RECEIPT
        assert job["email_to"] == "jane@acme.com"
        assert job["amount_minor"] == 25000

    def test_duplicate_event_is_a_no_op(self, payment_service, orders, causes, queue, order):
        payment_service.handle_payment_event(event_body(PAYMENT_SUCCEEDED))
        payment_service.handle_payment_event(event_body(PAYMENT_SUCCEEDED))

        stored = orders.require(order.order_id)
        assert len(causes.require(stored.cause_id).sponsors) == 1
        assert queue.enqueue.call_count == 1

    def test_failure_marks_order(self, payment_service, orders, causes, order):
        payment_service.handle_payment_event(event_body(PAYMENT_FAILED))

        stored = orders.require(order.order_id)
        assert stored.status == "failed"
        assert causes.require(stored.cause_id).sponsors == []

    def test_unknown_order_is_ignored(self, payment_service, orders, order):
        payment_service.handle_payment_event(event_body(PAYMENT_SUCCEEDED, intent_id="pi_unknown"))
        assert orders.get("pi_unknown") is None
        assert orders.require(order.order_id).status == "created"

    def test_unhandled_event_type(self, payment_service, orders, order):
        payment_service.handle_payment_event(event_body("charge.refunded"))
        assert orders.require(order.order_id).status == "created"


class TestVerify:

    def test_succeeded_intent_applies_payment(self, payment_service, causes, order):
        with patch("stripe.PaymentIntent.retrieve", return_value=SimpleNamespace(id="pi_123", status="succeeded")):
            verified = payment_service.verify(order.order_id)

        assert verified.status == "paid"
        assert len(causes.require(verified.cause_id).sponsors) == 1

    def test_verify_and_webhook_race_to_one_sponsor(self, payment_service, causes, order):
        with patch("stripe.PaymentIntent.retrieve", return_value=SimpleNamespace(id="pi_123", status="succeeded")):
            payment_service.verify(order.order_id)
        payment_service.handle_payment_event(event_body(PAYMENT_SUCCEEDED))

        cause = causes.require(payment_service.orders.require(order.order_id).cause_id)
        assert len(cause.sponsors) == 1

    def test_unsettled_intent(self, payment_service, order):
        with patch("stripe.PaymentIntent.retrieve",
                   return_value=SimpleNamespace(id="pi_123", status="requires_payment_method")):
            assert payment_service.verify(order.order_id).status == "created"

    def test_gateway_failure(self, payment_service, order):
        with patch("stripe.PaymentIntent.retrieve", side_effect=stripe.StripeError("timeout")):
            with pytest.raises(UpstreamError):
                payment_service.verify(order.order_id)


class TestWebhook:

    def test_verified_payload_is_queued(self, payment_service, sqs_client):
        payload = event_body(PAYMENT_SUCCEEDED).encode()
        with patch("stripe.Webhook.construct_event") as construct:
            payment_service.queue_payment_webhook(payload, "t=1,v1=sig")

        construct.assert_called_once_with(payload=payload, sig_header="t=1,v1=sig", secret="whsec_dummy")
        sqs_client.send_message.assert_called_once()
        assert sqs_client.send_message.call_args.kwargs["MessageBody"] == payload.decode()

    def test_bad_signature(self, payment_service, sqs_client):
        error = stripe.SignatureVerificationError("No signatures found", "t=1,v1=bad")
        with patch("stripe.Webhook.construct_event", side_effect=error):
            with pytest.raises(ValidationError):
                payment_service.queue_payment_webhook(b"{}", "t=1,v1=bad")
        sqs_client.send_message.assert_not_called()

    def test_bad_payload(self, payment_service):
        with patch("stripe.Webhook.construct_event", side_effect=ValueError("not json")):
            with pytest.raises(ValidationError):
                payment_service.queue_payment_webhook(b"not json", "t=1,v1=sig")

    def test_queue_failure(self, payment_service, sqs_client):
        sqs_client.send_message.side_effect = ClientError(
            {"Error": {"Code": "AWS.SimpleQueueService.NonExistentQueue", "Message": "gone"}}, "SendMessage"
        )
        with patch("stripe.Webhook.construct_event"):
            with pytest.raises(UpstreamError):
                payment_service.queue_payment_webhook(b"{}", "t=1,v1=sig")

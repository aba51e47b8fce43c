import os
from datetime import timedelta
from unittest.mock import MagicMock

# Settings are read at import time by api.main and the workers
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_dummy")
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("NOTIFICATION_QUEUE_URL", "https://sqs.us-east-1.amazonaws.com/123456789012/notifications")
os.environ.setdefault("PAYMENT_QUEUE_URL", "https://sqs.us-east-1.amazonaws.com/123456789012/payments")
os.environ.setdefault("DYNAMODB_TABLE_NAME", "causeconnect-test")
os.environ.setdefault("SES_FROM_EMAIL", "no-reply@causeconnect.test")
os.environ.setdefault("JWT_SECRET", "test-secret")

import boto3
import pytest
from moto import mock_aws

from core.security import TokenIssuer
from data_access.causes import CauseRepository
from data_access.claims import ClaimRepository
from data_access.dynamodb import DynamoDataAccess, create_table
from data_access.logo_reviews import LogoReviewRepository
from data_access.orders import OrderRepository
from data_access.users import UserRepository
from data_access.waitlist import WaitlistRepository
from models.base import utcnow
from models.cause import Cause
from models.user import User
from services.auth_service import AuthService
from services.cause_service import CauseService
from services.claim_service import ClaimService
from services.logo_analysis import LogoAnalyzer
from services.logo_review_service import LogoReviewService
from services.notification_service import NotificationQueue, NotificationService
from services.payment_service import PaymentService
from services.sponsorship_service import SponsorshipService
from services.waitlist_service import WaitlistService

REGION = "us-east-1"
TABLE_NAME = "causeconnect-test"


class Clock:
    """Settable time source for services that take a ``clock``."""

    def __init__(self, now=None):
        self.now = now or utcnow()

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def aws():
    with mock_aws():
        yield


@pytest.fixture
def table(aws):
    return create_table(boto3.resource("dynamodb", region_name=REGION), TABLE_NAME)


@pytest.fixture
def data_access(table):
    return DynamoDataAccess(table)


@pytest.fixture
def clock():
    return Clock()


# Repositories

@pytest.fixture
def users(data_access):
    return UserRepository(data_access)


@pytest.fixture
def causes(data_access):
    return CauseRepository(data_access)


@pytest.fixture
def claims(data_access):
    return ClaimRepository(data_access)


@pytest.fixture
def entries(data_access):
    return WaitlistRepository(data_access)


@pytest.fixture
def reviews(data_access):
    return LogoReviewRepository(data_access)


@pytest.fixture
def orders(data_access):
    return OrderRepository(data_access)


# Collaborators that reach outside the table

@pytest.fixture
def notifications():
    return MagicMock(spec=NotificationService)


@pytest.fixture
def queue():
    mock_queue = MagicMock(spec=NotificationQueue)
    mock_queue.enqueue.return_value = True
    return mock_queue


@pytest.fixture
def analyzer():
    return MagicMock(spec=LogoAnalyzer)


@pytest.fixture
def tokens():
    return TokenIssuer(secret="test-secret")


# Services

@pytest.fixture
def auth_service(users, notifications, tokens, clock):
    return AuthService(users, notifications, tokens, otp_ttl=timedelta(minutes=10), clock=clock)


@pytest.fixture
def cause_service(causes):
    return CauseService(causes)


@pytest.fixture
def logo_review_service(reviews, causes, analyzer):
    return LogoReviewService(reviews, causes, analyzer)


@pytest.fixture
def sponsorship_service(causes, logo_review_service):
    return SponsorshipService(causes, logo_review_service, tote_unit_price=10)


@pytest.fixture
def claim_service(claims, causes, queue, clock):
    return ClaimService(claims, causes, queue, clock=clock)


@pytest.fixture
def waitlist_service(entries, causes, claims, claim_service, queue, clock):
    return WaitlistService(
        entries, causes, claims, claim_service, queue,
        frontend_url="https://app.causeconnect.test/",
        link_ttl=timedelta(hours=48),
        clock=clock,
    )


@pytest.fixture
def sqs_client():
    return MagicMock()


@pytest.fixture
def payment_service(orders, causes, sponsorship_service, queue, sqs_client):
    return PaymentService(
        orders=orders,
        causes=causes,
        sponsorships=sponsorship_service,
        notifications=queue,
        sqs_client=sqs_client,
        payment_queue_url="https://sqs.us-east-1.amazonaws.com/123456789012/payments",
        stripe_webhook_secret="whsec_dummy",
        tote_unit_price=10,
        currency="inr",
    )


# Factories

@pytest.fixture
def make_user(users):
    counter = {"n": 0}

    def factory(role="claimer", name=None, email=None):
        counter["n"] += 1
        n = counter["n"]
        return users.create(User(
            email=email or f"user{n}@example.com",
            name=name or f"User {n}",
            role=role,
            email_verified=True,
        ))

    return factory


@pytest.fixture
def make_cause(causes):
    def factory(status="open", goal=5000, is_online=True, **fields):
        cause = Cause(
            title=fields.pop("title", "Clean Water"),
            description="Wells for rural schools",
            story="Every school deserves clean water.",
            image_url="https://img.example.com/water.png",
            category="environment",
            goal=goal,
            status=status,
            is_online=is_online,
            **fields,
        )
        return causes.create(cause)

    return factory

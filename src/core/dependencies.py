import boto3
import stripe
from botocore.config import Config
from datetime import timedelta
from functools import lru_cache

from core.config import get_settings
from core.security import TokenIssuer
from data_access.causes import CauseRepository
from data_access.claims import ClaimRepository
from data_access.dynamodb import DynamoDataAccess
from data_access.logo_reviews import LogoReviewRepository
from data_access.orders import OrderRepository
from data_access.users import UserRepository
from data_access.waitlist import WaitlistRepository
from services.auth_service import AuthService
from services.cause_service import CauseService
from services.claim_service import ClaimService
from services.claimer_service import ClaimerService
from services.logo_analysis import LogoAnalyzer
from services.logo_review_service import LogoReviewService
from services.notification_service import NotificationQueue, NotificationService
from services.payment_service import PaymentService
from services.sponsorship_service import SponsorshipService
from services.waitlist_service import WaitlistService


@lru_cache()
def get_boto_session() -> boto3.Session:
    settings = get_settings()
    return boto3.Session(
        region_name=settings.AWS_REGION,
        profile_name=settings.AWS_PROFILE
    )


@lru_cache()
def get_boto_config() -> Config:
    timeout = get_settings().HTTP_TIMEOUT_SECONDS
    return Config(connect_timeout=timeout, read_timeout=timeout, retries={"max_attempts": 3, "mode": "standard"})


def _client(service: str):
    return get_boto_session().client(
        service,
        endpoint_url=get_settings().AWS_ENDPOINT_URL,
        config=get_boto_config(),
    )


@lru_cache()
def get_dynamo_table() -> DynamoDataAccess:
    settings = get_settings()
    dynamo_resource = get_boto_session().resource(
        'dynamodb',
        endpoint_url=settings.AWS_ENDPOINT_URL,
        config=get_boto_config(),
    )
    table = dynamo_resource.Table(settings.DYNAMODB_TABLE_NAME)
    return DynamoDataAccess(table=table)


@lru_cache()
def get_sqs_client():
    return _client('sqs')


@lru_cache()
def get_user_repository() -> UserRepository:
    return UserRepository(get_dynamo_table())


@lru_cache()
def get_cause_repository() -> CauseRepository:
    return CauseRepository(get_dynamo_table())


@lru_cache()
def get_claim_repository() -> ClaimRepository:
    return ClaimRepository(get_dynamo_table())


@lru_cache()
def get_waitlist_repository() -> WaitlistRepository:
    return WaitlistRepository(get_dynamo_table())


@lru_cache()
def get_logo_review_repository() -> LogoReviewRepository:
    return LogoReviewRepository(get_dynamo_table())


@lru_cache()
def get_order_repository() -> OrderRepository:
    return OrderRepository(get_dynamo_table())


@lru_cache()
def get_notification_service() -> NotificationService:
    return NotificationService(
        client=_client('ses'),
        from_email=get_settings().SES_FROM_EMAIL
    )


@lru_cache()
def get_notification_queue() -> NotificationQueue:
    return NotificationQueue(
        sqs_client=get_sqs_client(),
        queue_url=get_settings().NOTIFICATION_QUEUE_URL
    )


@lru_cache()
def get_token_issuer() -> TokenIssuer:
    settings = get_settings()
    return TokenIssuer(
        secret=settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
        access_ttl=timedelta(minutes=settings.ACCESS_TOKEN_TTL_MINUTES),
        refresh_ttl=timedelta(days=settings.REFRESH_TOKEN_TTL_DAYS),
    )


@lru_cache()
def get_auth_service() -> AuthService:
    settings = get_settings()
    return AuthService(
        users=get_user_repository(),
        notifications=get_notification_service(),
        tokens=get_token_issuer(),
        otp_ttl=timedelta(minutes=settings.OTP_TTL_MINUTES),
        admin_email=settings.ADMIN_EMAIL,
        admin_password_hash=settings.ADMIN_PASSWORD_HASH,
    )


@lru_cache()
def get_cause_service() -> CauseService:
    return CauseService(get_cause_repository())


@lru_cache()
def get_logo_analyzer() -> LogoAnalyzer:
    settings = get_settings()
    return LogoAnalyzer(
        timeout=settings.HTTP_TIMEOUT_SECONDS,
        max_bytes=settings.LOGO_MAX_BYTES,
        min_dimension=settings.LOGO_MIN_DIMENSION,
        max_pixels=settings.LOGO_MAX_PIXELS,
    )


@lru_cache()
def get_logo_review_service() -> LogoReviewService:
    return LogoReviewService(
        reviews=get_logo_review_repository(),
        causes=get_cause_repository(),
        analyzer=get_logo_analyzer(),
    )


@lru_cache()
def get_sponsorship_service() -> SponsorshipService:
    settings = get_settings()
    return SponsorshipService(
        causes=get_cause_repository(),
        logo_reviews=get_logo_review_service(),
        tote_unit_price=settings.TOTE_UNIT_PRICE,
        auto_approve_after_payment=settings.SPONSOR_AUTO_APPROVE_AFTER_PAYMENT,
    )


@lru_cache()
def get_claim_service() -> ClaimService:
    return ClaimService(
        claims=get_claim_repository(),
        causes=get_cause_repository(),
        queue=get_notification_queue(),
    )


@lru_cache()
def get_waitlist_service() -> WaitlistService:
    settings = get_settings()
    return WaitlistService(
        entries=get_waitlist_repository(),
        causes=get_cause_repository(),
        claims=get_claim_repository(),
        claim_service=get_claim_service(),
        queue=get_notification_queue(),
        frontend_url=settings.FRONTEND_URL,
        link_ttl=timedelta(hours=settings.MAGIC_LINK_TTL_HOURS),
    )


@lru_cache()
def get_payment_service() -> PaymentService:
    settings = get_settings()
    stripe.api_key = settings.STRIPE_SECRET_KEY
    stripe.max_network_retries = 2
    stripe.default_http_client = stripe.RequestsClient(timeout=settings.HTTP_TIMEOUT_SECONDS)

    return PaymentService(
        orders=get_order_repository(),
        causes=get_cause_repository(),
        sponsorships=get_sponsorship_service(),
        notifications=get_notification_queue(),
        sqs_client=get_sqs_client(),
        payment_queue_url=settings.PAYMENT_QUEUE_URL,
        stripe_webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
        tote_unit_price=settings.TOTE_UNIT_PRICE,
        currency=settings.PAYMENT_CURRENCY,
    )


@lru_cache()
def get_claimer_service() -> ClaimerService:
    return ClaimerService(
        causes=get_cause_repository(),
        claims=get_claim_repository(),
    )

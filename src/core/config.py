from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

class Settings(BaseSettings):

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    API_PREFIX: str = "/api/v1"
    CORS_ORIGINS: list[str] = ["http://localhost:8080", "http://localhost:5173"]
    FRONTEND_URL: str = "http://localhost:8080"

    STRIPE_SECRET_KEY: str
    STRIPE_WEBHOOK_SECRET: str
    PAYMENT_CURRENCY: str = "inr"

    AWS_REGION: str
    AWS_PROFILE: str | None = None
    AWS_ENDPOINT_URL: str | None = None
    NOTIFICATION_QUEUE_URL: str
    PAYMENT_QUEUE_URL: str
    DYNAMODB_TABLE_NAME: str
    SES_FROM_EMAIL: str

    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_TTL_MINUTES: int = 15
    REFRESH_TOKEN_TTL_DAYS: int = 7
    OTP_TTL_MINUTES: int = 10
    MAGIC_LINK_TTL_HOURS: int = 48

    ADMIN_EMAIL: str | None = None
    ADMIN_PASSWORD_HASH: str | None = None

    # Price of one tote in whole currency units
    TOTE_UNIT_PRICE: int = 10
    SPONSOR_AUTO_APPROVE_AFTER_PAYMENT: bool = False

    HTTP_TIMEOUT_SECONDS: float = 10.0
    LOGO_MIN_DIMENSION: int = 500
    LOGO_MAX_BYTES: int = 5 * 1024 * 1024
    LOGO_MAX_PIXELS: int = 25_000_000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() in {"prod", "production"}

@lru_cache()
def get_settings() -> Settings:
    return Settings()

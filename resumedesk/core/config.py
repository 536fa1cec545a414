# resumedesk/core/config.py
from typing import Optional
from pydantic import AnyUrl
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # App
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    # public origin used to build gateway return URLs
    SITE_URL: str = "http://localhost:5000"

    # Database (any SQLAlchemy URL; sqlite file by default for local dev)
    DATABASE_URL: str = "sqlite:///./resumedesk.db"

    # Identity provider (Supabase issues HS256 JWTs signed with the project secret)
    SUPABASE_JWT_SECRET: Optional[str] = None
    AUTH_AUDIENCE: str = "authenticated"

    # Stripe
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None

    # Paymob (Accept API)
    PAYMOB_BASE_URL: str = "https://accept.paymob.com"
    PAYMOB_API_KEY: Optional[str] = None
    PAYMOB_INTEGRATION_ID: Optional[int] = None
    PAYMOB_IFRAME_ID: Optional[str] = None
    PAYMOB_HMAC_SECRET: Optional[str] = None

    # Outbound gateway calls: bounded timeout, at most one retry
    GATEWAY_TIMEOUT_SEC: float = 15.0
    GATEWAY_RETRIES: int = 1

    # S3 / R2
    S3_PROVIDER: str = "cloudflare"
    S3_BUCKET: Optional[str] = None
    S3_ENDPOINT: Optional[AnyUrl] = None
    S3_REGION: Optional[str] = None
    S3_ACCESS_KEY: Optional[str] = None
    S3_SECRET_KEY: Optional[str] = None

    # MinIO dev fallback
    MINIO_ENDPOINT: Optional[str] = None
    MINIO_ACCESS_KEY: Optional[str] = None
    MINIO_SECRET_KEY: Optional[str] = None

    # local directory used when no bucket credentials are configured
    LOCAL_UPLOAD_DIR: str = "uploads"
    UPLOAD_MAX_BYTES: int = 10 * 1024 * 1024

    # Submissions linked to an order require that order to be PAID
    REQUIRE_PAID_ORDER_FOR_SUBMISSION: bool = True

    # Pydantic v2 settings: read from .env file
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

# single shared settings instance
settings = Settings()

"""
Application configuration.
All settings are loaded from environment variables.
Use env.example as a reference for required variables.
"""
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Credentials have no defaults - they MUST be set in .env file.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    # CORS: comma-separated (e.g. http://localhost:3000,https://notes.example.com). Empty = default list in code.
    cors_origins: str = ""

    # ===========================================
    # DATABASE (PostgreSQL)
    # ===========================================
    database_url: str  # Required, no default

    # ===========================================
    # REDIS & CELERY
    # ===========================================
    redis_url: str  # Required, no default
    celery_broker_url: str  # Required, no default
    celery_result_backend: str  # Required, no default

    # ===========================================
    # PAYMENT GATEWAY (Razorpay)
    # ===========================================
    razorpay_key_id: str  # Required, public checkout key
    razorpay_key_secret: str  # Required, signs client confirmations
    razorpay_webhook_secret: str  # Required, signs webhook bodies (must differ from key secret)
    razorpay_api_base: str = "https://api.razorpay.com/v1"
    gateway_timeout: float = 10.0

    # ===========================================
    # ORDERS
    # ===========================================
    order_amount_min: int = 500  # minor units (paise)
    order_amount_max: int = 5000
    order_currency: str = "INR"
    content_title_max_length: int = 100
    purchase_rate_limit: int = 5  # max orders per window per user
    purchase_rate_window_seconds: int = 60

    # ===========================================
    # IDENTITY PROVIDER (JWT bearer tokens)
    # ===========================================
    # HS256 shared secret. If empty, tokens are verified against the JWKS below.
    identity_jwt_secret: str = ""
    identity_jwks_url: str = (
        "https://www.googleapis.com/service_accounts/v1/jwk/securetoken@system.gserviceaccount.com"
    )
    identity_algorithms: str = "RS256"
    identity_audience: str | None = None  # Firebase project id
    identity_issuer: str | None = None  # https://securetoken.google.com/<project id>

    # ===========================================
    # ADMIN API
    # ===========================================
    admin_api_key: str | None = None  # Optional, but recommended

    # ===========================================
    # RECONCILIATION
    # ===========================================
    reconcile_batch_size: int = 500

    # ===========================================
    # CIRCUIT BREAKER
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30

    # ===========================================
    # LOGGING
    # ===========================================
    log_level: str = "INFO"
    request_id_header: str = "X-Request-Id"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("order_currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("razorpay_key_secret", "razorpay_webhook_secret")
    @classmethod
    def validate_gateway_secret(cls, v: str) -> str:
        """Ensure gateway secrets are set."""
        if not v.strip():
            raise ValueError("gateway secrets must not be empty")
        return v

    @model_validator(mode="after")
    def validate_secrets_distinct(self) -> "Settings":
        if self.razorpay_key_secret == self.razorpay_webhook_secret:
            raise ValueError("razorpay_webhook_secret must differ from razorpay_key_secret")
        if self.order_amount_min > self.order_amount_max:
            raise ValueError("order_amount_min must not exceed order_amount_max")
        return self

    @property
    def identity_algorithms_list(self) -> list[str]:
        return [alg.strip() for alg in self.identity_algorithms.split(",") if alg.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()

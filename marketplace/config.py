"""Application configuration using Pydantic Settings"""

from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # App
    app_name: str = "Grocery Marketplace API"
    debug: bool = False
    cors_origins: List[str] = ["*"]

    # Database
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "marketplace"

    # Security
    jwt_secret: str
    jwt_algorithm: str = "HS256"

    # Stripe
    stripe_secret_key: str
    currency: str = "krw"  # zero-decimal currency, amounts are whole won

    # Email
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_start_tls: bool = True
    smtp_timeout_seconds: int = 10
    email_from: str = "Grocery Marketplace <no-reply@marketplace.local>"

    # Returns
    return_window_days: int = 7

    # Refund calls to the payment provider
    refund_max_attempts: int = 3
    refund_backoff_seconds: float = 0.5
    refund_timeout_seconds: int = 10

    # Seconds before an unfinished refund claim on an order or return may be taken over
    claim_lease_seconds: int = 300

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()

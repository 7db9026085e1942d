"""Settings for the consultations API."""

from typing import Optional

from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings for the consultations API.

    [pydantic.BaseSettings](https://docs.pydantic.dev/latest/concepts/pydantic_settings/) reads,
    validates and types configuration values from a variety of sources.

    This class automatically reads from:
    1. Environment variables (production)
    2. .env file (local development)

    Environment variable names are treated case-insensitively.
    """

    # Database
    database_url: Optional[str] = None
    """PostgreSQL connection string for the consultation workflow database. Workflow routes are disabled without it."""

    db_pool_min_size: int = 1
    """Minimum number of pooled connections."""

    db_pool_max_size: int = 10
    """Maximum number of pooled connections."""

    # Logging
    log_level: str = "INFO"
    """Minimum level written to stdout."""

    json_logs: bool = False
    """Emit one JSON document per log line instead of the coloured console format."""

    # Workflow policy
    platform_fee_bps: int = 3000
    """Platform commission in basis points applied on release (3000 = 30%, advisor keeps 70%)."""

    initial_offer_fanout: int = 3
    """Number of ranked advisors offered a request when it is created or re-matched."""

    offer_ttl_minutes: int = 1440
    """Age after which an unanswered offer may be expired by the expiry trigger."""

    default_currency: str = "KWD"
    """Currency recorded on requests and orders."""

    max_summary_length: int = 2000
    """Maximum length of a consultation summary."""

    # Payment gateway
    payment_gateway: str = "placeholder"
    """Gateway implementation: 'placeholder' (records a pending reservation only) or 'http'."""

    payment_gateway_name: str = "myfatoorah"
    """Gateway name recorded on orders."""

    payment_gateway_url: Optional[str] = None
    """Base URL of the HTTP payment gateway."""

    payment_gateway_api_key: Optional[str] = None
    """Bearer token sent to the HTTP payment gateway."""

    payment_gateway_timeout_seconds: float = 10.0
    """Timeout for gateway calls."""

    payment_webhook_secret: Optional[str] = None
    """Shared secret expected in the X-Webhook-Secret header of payment confirmations."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",  # Load from .env file if it exists (local development)
        env_file_encoding="utf-8",
        extra="ignore",
        validate_default=True,
    )

"""Application settings and configuration.

This module defines all configuration options for the wallet session service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Secrets default to ``None`` so the application can be imported without
    them; the services that need a secret raise ``ConfigurationError`` when
    it is missing at use time.
    """

    # Application metadata
    app_name: str = Field(default="Wallet Session", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # Database configuration (session request log used for rate limiting)
    database_url: str = Field(default="sqlite:///./wallet_session.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Service signing identity
    provider_private_key: str | None = Field(default=None, alias="PROVIDER_PRIVATE_KEY")

    # Community configuration lookup
    communities_config_url: str | None = Field(default=None, alias="COMMUNITIES_CONFIG_URL")
    communities_cache_seconds: int = Field(default=300, alias="COMMUNITIES_CACHE_SECONDS")

    # Transaction relay
    relay_url: str | None = Field(default=None, alias="RELAY_URL")
    relay_api_key: str | None = Field(default=None, alias="RELAY_API_KEY")
    relay_timeout_seconds: float = Field(default=15.0, alias="RELAY_TIMEOUT_SECONDS")

    # Ledger reads
    ledger_timeout_seconds: float = Field(default=10.0, alias="LEDGER_TIMEOUT_SECONDS")

    # Challenge issuance
    challenge_ttl_seconds: int = Field(default=120, alias="CHALLENGE_TTL_SECONDS")
    otp_digits: int = Field(default=6, alias="OTP_DIGITS")

    # Request throttling per (salt, alias); 0 disables a window
    rate_limit_immediate: int = Field(default=2, alias="RATE_LIMIT_IMMEDIATE")
    rate_limit_recent: int = Field(default=5, alias="RATE_LIMIT_RECENT")
    rate_limit_daily: int = Field(default=20, alias="RATE_LIMIT_DAILY")

    # Brevo OTP delivery
    notifier_timeout_seconds: float = Field(default=10.0, alias="NOTIFIER_TIMEOUT_SECONDS")
    brevo_base_url: str = Field(default="https://api.brevo.com", alias="BREVO_BASE_URL")
    brevo_api_key: str | None = Field(default=None, alias="BREVO_API_KEY")
    brevo_sender_email: str | None = Field(default=None, alias="BREVO_SENDER_EMAIL")
    brevo_sender_name: str | None = Field(default=None, alias="BREVO_SENDER_NAME")
    brevo_email_template_id: int = Field(default=2, alias="BREVO_EMAIL_TEMPLATE_ID")
    brevo_email_subject: str = Field(default="Login Code", alias="BREVO_EMAIL_SUBJECT")
    brevo_sms_sender: str = Field(default="wallet", alias="BREVO_SMS_SENDER")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PATCH", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def rate_limit_windows(self) -> dict[int, int]:
        """Return throttling thresholds keyed by window length in seconds.

        Returns:
            Mapping of window seconds to the maximum number of requests allowed
        """
        return {
            30: self.rate_limit_immediate,
            10 * 60: self.rate_limit_recent,
            24 * 60 * 60: self.rate_limit_daily,
        }


settings = Settings()

"""
Application settings using Pydantic Settings.

Loads configuration from environment variables and .env file.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

IDENTITY_MODES = {"device", "ip"}
RESET_POLICIES = {"calendar_day", "rolling_24h"}
REPUTATION_PROVIDERS = {"ip-api", "ipinfo"}
URL_STRATEGIES = {"direct", "rehost"}


class Settings(BaseSettings):
    """Application settings with validation and defaults."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        # MODEL_TYPE is a backend setting, not a pydantic attribute
        protected_namespaces=(),
    )

    # Server
    host: str = Field(default="0.0.0.0", description="Server bind address")
    port: int = Field(default=3000, ge=1, le=65535, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="", description="Optional log file path")
    version: str = Field(default="1.0.0", description="Reported service version")

    # Record store
    database_url: str = Field(
        default="sqlite:///./data/promptgate.db", description="Database connection URL"
    )

    # Identity & quota
    identity_mode: str = Field(
        default="device",
        description="What keys quota state: 'device' (16-hex id) or 'ip'",
    )
    quota_reset_policy: str = Field(
        default="calendar_day",
        description="Quota window: 'calendar_day' (UTC date change) or 'rolling_24h'",
    )
    free_daily_limit: int = Field(default=3, ge=0, description="Generations per window for FREE tier")
    premium_duration_days: int = Field(default=30, ge=1, description="Length of a premium upgrade")

    # Reputation lookup
    reputation_enabled: bool = Field(default=True, description="Check client IPs against a reputation service")
    reputation_provider: str = Field(default="ip-api", description="ip-api or ipinfo")
    reputation_base_url: str = Field(
        default="", description="Override the provider's base URL (empty for provider default)"
    )
    ipinfo_token: str = Field(default="", description="ipinfo.io API token")
    reputation_timeout_seconds: float = Field(
        default=10.0, gt=0, le=120, description="Reputation lookup timeout"
    )

    # Generation backend
    generation_backend_url: str = Field(default="", description="Image generation endpoint URL")
    generation_cookies: str = Field(default="", description="Session cookie header sent to the backend")
    model_type: str = Field(default="", description="Backend model selector")
    status_uuid: str = Field(default="", description="Backend session status UUID")
    generation_image_base_url: str = Field(
        default="https://images.playground.com", description="CDN base for returned image keys"
    )
    generation_timeout_seconds: float = Field(
        default=60.0, gt=0, le=600, description="Generation request timeout"
    )

    # Image hosting
    image_url_strategy: str = Field(
        default="direct", description="'direct' returns the backend URL, 'rehost' copies into Qiniu"
    )
    qiniu_access_key: str = Field(default="", description="Qiniu access key")
    qiniu_secret_key: str = Field(default="", description="Qiniu secret key")
    qiniu_bucket: str = Field(default="", description="Qiniu bucket name")
    qiniu_domain: str = Field(default="", description="Public domain bound to the bucket")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"log_level must be one of {valid}")
        return upper

    @field_validator("identity_mode")
    @classmethod
    def validate_identity_mode(cls, v: str) -> str:
        lower = v.lower()
        if lower not in IDENTITY_MODES:
            raise ValueError(f"identity_mode must be one of {IDENTITY_MODES}")
        return lower

    @field_validator("quota_reset_policy")
    @classmethod
    def validate_quota_reset_policy(cls, v: str) -> str:
        lower = v.lower()
        if lower not in RESET_POLICIES:
            raise ValueError(f"quota_reset_policy must be one of {RESET_POLICIES}")
        return lower

    @field_validator("reputation_provider")
    @classmethod
    def validate_reputation_provider(cls, v: str) -> str:
        lower = v.lower()
        if lower not in REPUTATION_PROVIDERS:
            raise ValueError(f"reputation_provider must be one of {REPUTATION_PROVIDERS}")
        return lower

    @field_validator("image_url_strategy")
    @classmethod
    def validate_image_url_strategy(cls, v: str) -> str:
        lower = v.lower()
        if lower not in URL_STRATEGIES:
            raise ValueError(f"image_url_strategy must be one of {URL_STRATEGIES}")
        return lower


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()

"""
Application configuration loaded from environment variables.
"""
from functools import lru_cache
from typing import Optional

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mailhook.utils.errors import ConfigurationError

# Graph's maximum lifetime for subscriptions on Outlook messages (just under 7 days)
MAX_SUBSCRIPTION_MINUTES = 10070

REQUIRED_FIELDS = ("client_id", "client_secret", "host")


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Microsoft identity platform app registration
    client_id: str
    client_secret: str
    authority: str = "https://login.microsoftonline.com/common"

    # Public base URL, used for the redirect URI and the webhook URL
    host: str

    # Fixed client state for all subscriptions. When unset every account
    # gets its own generated value.
    client_state: Optional[str] = None

    # Session
    session_secret: str = "dev-secret-change-in-production"
    session_expire_hours: int = 24
    session_cookie_name: str = "session"

    # Pending sign-ins, bound to the browser by a short-lived cookie
    auth_state_cookie_name: str = "auth_state"
    auth_flow_ttl_minutes: int = 10
    identity_timeout_seconds: float = 30.0

    # Microsoft Graph
    graph_base_url: str = "https://graph.microsoft.com/v1.0"
    graph_timeout_seconds: float = 30.0

    # Subscriptions
    subscription_resource: str = "/me/messages"
    subscription_change_type: str = "created"
    subscription_expiration_minutes: int = 4230
    subscription_delete_concurrency: int = 5

    debug: bool = False

    @field_validator("client_id", "client_secret", "host")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value.strip()

    @field_validator("host")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("subscription_expiration_minutes")
    @classmethod
    def within_provider_limit(cls, value: int) -> int:
        if value <= 0 or value > MAX_SUBSCRIPTION_MINUTES:
            raise ValueError(f"must be between 1 and {MAX_SUBSCRIPTION_MINUTES} minutes")
        return value

    @field_validator("subscription_delete_concurrency")
    @classmethod
    def positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @property
    def scopes(self) -> list[str]:
        # MSAL adds openid/profile/offline_access itself and rejects them here
        return ["User.Read", "Mail.Read"]

    @property
    def redirect_uri(self) -> str:
        return f"{self.host}/auth/callback"

    @property
    def notification_url(self) -> str:
        return f"{self.host}/hook/notification"


def load_settings(**overrides) -> Settings:
    """
    Build settings, turning validation failures into a ConfigurationError
    that names the offending environment variables.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]).upper() for err in e.errors() if err.get("loc")})
        missing = [f for f in fields if f.lower() in REQUIRED_FIELDS]
        raise ConfigurationError(
            f"Invalid or missing configuration: {', '.join(fields)}",
            missing=missing or fields,
        ) from e


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return load_settings()

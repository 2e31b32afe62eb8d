from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Core
    ENVIRONMENT: str = Field(default="production")
    SERVICE_NAME: str = Field(default="twilio-notification-extension")
    LOG_LEVEL: str = Field(default="INFO")
    PUBLIC_BASE_URL: str = Field(default="")  # public URL Twilio can reach for direct status callbacks

    # Server (uvicorn)
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8080)
    WEB_CONCURRENCY: int = Field(default=1)

    # Host runtime
    EXTENSION_SIGNING_SECRET: str = Field(default="")
    SIGNATURE_TOLERANCE_SECONDS: int = Field(default=300)
    HOST_EVENT_TIMEOUT_SECONDS: float = Field(default=5.0)

    # Operator endpoints
    ADMIN_API_TOKEN: str = Field(default="")

    # Twilio (host secrets override these per request)
    TWILIO_ACCOUNT_SID: str = Field(default="")
    TWILIO_AUTH_TOKEN: str = Field(default="")
    TWILIO_PHONE_NUMBER: str = Field(default="")
    DEFAULT_COUNTRY_CODE: str = Field(default="US")
    REQUIRE_OPT_IN: bool = Field(default=True)
    ENABLE_DELIVERY_TRACKING: bool = Field(default=True)
    VOICE_NAME: str = Field(default="Polly.Joanna")

    # Limits
    RATE_LIMIT_PER_MINUTE: int = Field(default=10)
    RATE_LIMIT_WINDOW_SECONDS: int = Field(default=60)
    MAX_SMS_LENGTH: int = Field(default=1600)
    MAX_MEDIA_URLS: int = Field(default=10)

    # Delivery log
    DELIVERY_LOG_BACKEND: str = Field(default="memory")  # memory | firestore
    FIRESTORE_PROJECT_ID: str = Field(default="")


settings = Settings()

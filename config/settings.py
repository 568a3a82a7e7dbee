"""Centralized configuration using Pydantic Settings."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field, HttpUrl, TypeAdapter, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

# Domain suffix appended to bare phone numbers
DEFAULT_ADDRESS_DOMAIN = "s.whatsapp.net"

_HTTP_URL = TypeAdapter(HttpUrl)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ==================== Server ====================
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=3000, validation_alias="PORT")

    # ==================== Logging ====================
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str = Field(default="gateway.log", validation_alias="LOG_FILE")

    # ==================== Transport ====================
    # Format: "package.module:ClassName" of a TransportSession implementation
    transport_backend: str | None = Field(
        default=None, validation_alias="TRANSPORT_BACKEND"
    )
    auth_dir: str = Field(default="./auth_info", validation_alias="AUTH_DIR")
    connect_timeout: float = Field(default=30.0, validation_alias="CONNECT_TIMEOUT")
    reconnect_delay_ms: int = Field(default=2000, validation_alias="RECONNECT_DELAY_MS")
    reconnect_max_delay_ms: int = Field(
        default=30000, validation_alias="RECONNECT_MAX_DELAY_MS"
    )
    default_domain: str = Field(
        default=DEFAULT_ADDRESS_DOMAIN, validation_alias="DEFAULT_DOMAIN"
    )

    # ==================== Dispatch ====================
    default_delay_ms: int = Field(default=10000, validation_alias="DEFAULT_DELAY_MS")
    send_timeout: float = Field(default=30.0, validation_alias="SEND_TIMEOUT")
    job_history_size: int = Field(default=100, validation_alias="JOB_HISTORY_SIZE")

    # ==================== Events (SSE) ====================
    sse_retry_ms: int = Field(default=10000, validation_alias="SSE_RETRY_MS")
    sse_keepalive: float = Field(default=15.0, validation_alias="SSE_KEEPALIVE")
    observer_buffer_size: int = Field(
        default=256, validation_alias="OBSERVER_BUFFER_SIZE"
    )

    # ==================== Webhook ====================
    webhook_url: str | None = Field(default=None, validation_alias="WEBHOOK_URL")
    webhook_timeout: float = Field(default=10.0, validation_alias="WEBHOOK_TIMEOUT")

    # Handle empty strings for optional string fields
    @field_validator("transport_backend", "webhook_url", mode="before")
    @classmethod
    def parse_optional_str(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("transport_backend")
    @classmethod
    def validate_transport_backend(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if v.count(":") != 1 or not all(part.strip() for part in v.split(":")):
            raise ValueError(
                f"transport_backend must look like 'package.module:ClassName', got {v!r}"
            )
        return v

    @field_validator("webhook_url")
    @classmethod
    def validate_webhook_url(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            _HTTP_URL.validate_python(v)
        except ValidationError as e:
            raise ValueError(f"webhook_url must be an http(s) URL, got {v!r}") from e
        return v

    @field_validator(
        "default_delay_ms", "reconnect_delay_ms", "reconnect_max_delay_ms"
    )
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"delay must be >= 0, got {v}")
        return v

    @field_validator("observer_buffer_size", "job_history_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"size must be >= 1, got {v}")
        return v

    @property
    def reconnect_delay(self) -> float:
        """Base reconnect backoff in seconds."""
        return self.reconnect_delay_ms / 1000.0

    @property
    def reconnect_max_delay(self) -> float:
        """Upper bound for the reconnect backoff in seconds."""
        return max(self.reconnect_max_delay_ms, self.reconnect_delay_ms) / 1000.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

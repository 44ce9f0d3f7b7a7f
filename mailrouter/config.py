"""Application configuration using Pydantic settings."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Addresses
    DOMAIN: str = "example.com"
    ADMIN_EMAIL: str = "admin@example.com"
    DESTINATION_EMAIL: str = "admin@example.com"
    CONTACT_FROM: str = "contact@example.com"
    REPLY_LOCAL_PART: str = "reply"

    # Public contact endpoint
    CONTACT_PATH: str = "/api/contact"
    ALLOWED_ORIGINS: str = ""
    # Trusted as-is: set to "" unless a proxy such as Cloudflare overwrites it.
    CLIENT_IP_HEADER: str = "CF-Connecting-IP"
    DEFAULT_SUBJECT: str = "Website contact"

    # Thread store / rate limiting
    THREAD_TTL_SECONDS: int = 60 * 60 * 24 * 30
    RATE_WINDOW_SECONDS: int = 60
    RATE_MAX_PER_WINDOW: int = 5

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    THREADS_REDIS_DB: int = 0
    RATE_REDIS_DB: int = 1

    # Bot verification (Cloudflare Turnstile)
    TURNSTILE_SECRET: str = ""
    TURNSTILE_VERIFY_URL: str = "https://challenges.cloudflare.com/turnstile/v0/siteverify"

    # Transactional API (admin -> visitor)
    RESEND_API_KEY: str = ""
    RESEND_FROM_EMAIL: str = "contact@example.com"
    RESEND_API_URL: str = "https://api.resend.com/emails"

    # Notification channel (visitor -> admin mailbox)
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 25
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_STARTTLS: bool = False

    # Inbound mail
    INBOUND_SECRET: str = ""
    INBOUND_MAX_BYTES: int = 10 * 1024 * 1024
    SMTPD_HOST: str = "127.0.0.1"
    SMTPD_PORT: int = 8025

    # HTTP
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8080
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""
    LOG_MAX_BYTES: int = 10_485_760
    LOG_BACKUP_COUNT: int = 5

    @property
    def allowed_origins_list(self) -> list[str]:
        """Parse allowed origins into a list."""
        if not self.ALLOWED_ORIGINS:
            return []
        return [
            origin.strip()
            for origin in self.ALLOWED_ORIGINS.split(",")
            if origin.strip()
        ]

    @property
    def threads_redis_url(self) -> str:
        """Get Redis URL for the thread store."""
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.THREADS_REDIS_DB}"

    @property
    def rate_redis_url(self) -> str:
        """Get Redis URL for rate counters."""
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.RATE_REDIS_DB}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience alias
settings = get_settings()

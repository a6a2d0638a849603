"""Application configuration settings."""

from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Venue Booking API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str | None = None
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USER: str = "root"
    DB_PASSWORD: str = "password"
    DB_NAME: str = "venue_booking"

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: str | None = None
    REDIS_DB: int = 0
    REDIS_MAX_CONNECTIONS: int = 50
    REDIS_SOCKET_TIMEOUT_SECONDS: float = 5.0

    # Booking rules
    CURRENCY: str = "USD"
    INSTALLMENT_RATIO: Decimal = Decimal("0.5")
    INSTALLMENT_ROUNDING_UNIT: Decimal = Decimal("1")
    TRANSACTION_TIMEOUT_SECONDS: float = 10.0
    COMPLETION_SWEEP_INTERVAL_SECONDS: int = 300

    # Distributed Lock settings
    LOCK_TIMEOUT_SECONDS: int = 30
    LOCK_RETRY_DELAY_MS: int = 100
    LOCK_MAX_RETRIES: int = 50

    # Credentials
    TOKEN_TTL_SECONDS: int = 3600
    TOKEN_REFRESH_WINDOW_SECONDS: int = 600
    ALLOW_HEADER_AUTH: bool = True

    # Payment gateway
    PAYMENT_GATEWAY_URL: str | None = None
    PAYMENT_GATEWAY_KEY: str | None = None
    PAYMENT_GATEWAY_TIMEOUT_SECONDS: float = 10.0

    @property
    def database_url(self) -> str:
        """Get async database URL."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"mysql+aiomysql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    @property
    def redis_url(self) -> str:
        """Get Redis URL."""
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    @property
    def payment_gateway_enabled(self) -> bool:
        """Whether a real payment gateway is configured."""
        return bool(self.PAYMENT_GATEWAY_URL and self.PAYMENT_GATEWAY_KEY)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

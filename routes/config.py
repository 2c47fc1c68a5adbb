"""
Application configuration settings.

This module manages all application settings, loading sensitive values
from environment variables and providing defaults for others.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    Sensitive values are loaded from .env file while public
    configuration can be hardcoded with defaults.
    """

    # Runtime
    ENVIRONMENT: str = "development"  # "development" or "production"
    LOG_LEVEL: str = "INFO"
    API_PREFIX: str = "/api/v1"
    CLIENT_URL: str = "http://localhost:3000"

    # Database
    DATABASE_URL: str = "sqlite:///./mindcare.db"

    # Security and Authentication
    SECRET_KEY: str  # JWT secret key (from .env)
    ALGORITHM: str = "HS256"  # JWT algorithm
    JWT_EXPIRE_DAYS: int = 7
    JWT_COOKIE_EXPIRE_DAYS: int = 7
    BCRYPT_ROUNDS: int = 12

    # Rate limiting (per client address)
    RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    RATE_LIMIT_MAX_REQUESTS: int = 100
    AUTH_RATE_LIMIT_MAX_REQUESTS: int = 10

    # Email Configuration
    EMAIL_HOST: str = "smtp.gmail.com"
    EMAIL_PORT: int = 587
    EMAIL_USERNAME: str = ""  # email username (from .env)
    EMAIL_APP_PASSWORD: str = ""  # app password (from .env)
    EMAIL_FROM: str = "noreply@mindcare.com"
    EMAIL_FROM_NAME: str = "MindCare"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


# Global settings instance
settings = Settings()

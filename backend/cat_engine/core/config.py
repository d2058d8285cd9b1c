"""
Application configuration settings.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Literal, Self


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "CAT Engine API"
    APP_VERSION: str = "0.1.0"
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API
    API_V1_PREFIX: str = "/v1"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8080",
    ]

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # CAT stopping rules
    CAT_MIN_ITEMS: int = Field(
        default=5,
        ge=0,
        description="Responses required before any stopping rule may fire",
    )
    CAT_MAX_ITEMS: int = Field(
        default=30,
        ge=1,
        description="Hard cap on session length when the caller does not supply one",
    )
    CAT_SE_THRESHOLD: float = Field(
        default=0.30,
        description="Stop once SE(theta) is at or below this value",
    )
    CAT_STABILITY_MIN_ITEMS: int = 10  # Responses before the stability check applies
    CAT_STABILITY_WINDOW: int = 5  # Prefix estimates compared by the stability check
    CAT_STABILITY_SD_THRESHOLD: float = 0.1

    # CAT item selection
    CAT_RECENT_TOPIC_WINDOW: int = Field(
        default=3,
        ge=0,
        description="Trailing responses whose topics count as recently seen",
    )
    # 1 = always administer the single most informative item
    CAT_RANDOMESQUE_K: int = Field(default=1, ge=1)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env not defined in Settings
    )

    @model_validator(mode="after")
    def validate_item_limits(self) -> Self:
        """Minimum exposure must fit inside the default session length."""
        if self.CAT_MIN_ITEMS > self.CAT_MAX_ITEMS:
            raise ValueError(
                f"CAT_MIN_ITEMS ({self.CAT_MIN_ITEMS}) must not exceed "
                f"CAT_MAX_ITEMS ({self.CAT_MAX_ITEMS})"
            )
        return self

    @model_validator(mode="after")
    def validate_se_threshold(self) -> Self:
        """SE target must be positive."""
        if self.CAT_SE_THRESHOLD <= 0:
            raise ValueError(
                f"CAT_SE_THRESHOLD must be positive, got {self.CAT_SE_THRESHOLD}"
            )
        return self


settings = Settings()

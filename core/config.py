"""
Application settings and configuration management using Pydantic Settings.
"""
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from domain.enums import UsagePolicy


PROJECT_ROOT = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="BOOKING_",
        case_sensitive=False,
        extra="ignore"
    )

    # Application Settings
    app_name: str = Field(default="Restaurant Booking Wizard", description="Application name")
    app_env: str = Field(default="development", description="Environment (development, staging, production)")
    log_level: str = Field(default="INFO", description="Logging level")

    # Restaurant Configuration
    timezone: str = Field(default="Pacific/Auckland", description="Restaurant timezone")
    catalog_file_path: Path = Field(
        default=PROJECT_ROOT / "data" / "catalog.json",
        description="JSON file holding restaurants, sessions, experiences and add-ons"
    )

    # Booking Rules
    default_party_size: int = Field(default=2, ge=1, description="Party size a new booking starts with")
    max_party_size: int = Field(default=20, ge=1, description="Largest party the wizard accepts")
    max_option_quantity: int = Field(default=10, ge=1, description="Upper bound for per-party option quantity")
    default_menu_policy: UsagePolicy = Field(
        default=UsagePolicy.OPTIONAL,
        description="Policy used when the session or experience is unknown"
    )
    currency_symbol: str = Field(default="$", description="Symbol used when formatting prices")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed_levels:
            raise ValueError(f"log_level must be one of {allowed_levels}")
        return v_upper

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate environment is one of the allowed values."""
        allowed_envs = ["development", "staging", "production"]
        v_lower = v.lower()
        if v_lower not in allowed_envs:
            raise ValueError(f"app_env must be one of {allowed_envs}")
        return v_lower

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"


# Global settings instance
settings = Settings()

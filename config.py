"""
Configuration module for the salon reminder engine.
Loads environment variables and provides typed configuration.
"""

from datetime import time
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file
env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Telegram admin bot
    bot_token: Optional[str] = None

    # Supabase
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    # Salon
    salon_timezone: str = "Europe/Rome"

    # Reminder cadence
    reminder_fire_time: time = time(9, 0)
    reminder_days_ahead: int = 1  # 1 = remind the day before the appointment
    reminder_catch_up_on_start: bool = False

    # Phone normalization
    default_country_code: str = "39"
    mobile_prefixes: str = "3"  # Comma-separated leading digits of domestic mobiles

    # Dispatch
    dispatch_concurrency: int = 4
    notifier_timeout_seconds: float = 15.0
    notifier_backend: str = "log"  # log, whatsapp

    # WhatsApp Cloud API
    whatsapp_api_url: str = "https://graph.facebook.com/v19.0"
    whatsapp_phone_number_id: Optional[str] = None
    whatsapp_access_token: Optional[str] = None

    # Admin Settings
    admin_telegram_ids: str = (
        ""  # Comma-separated Telegram user IDs (e.g., "123456,789012")
    )

    environment: str = "development"  # development, staging, production

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("default_country_code")
    @classmethod
    def validate_country_code(cls, v: str) -> str:
        """Country code is stored without the leading '+'."""
        v = v.strip().lstrip("+")
        if not v.isdigit() or not 1 <= len(v) <= 3:
            raise ValueError(f"Invalid country code: {v!r}")
        return v

    @field_validator("dispatch_concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("dispatch_concurrency must be at least 1")
        return v

    @property
    def mobile_prefix_list(self) -> tuple[str, ...]:
        """Mobile prefixes as a tuple, ready for str.startswith."""
        return tuple(p.strip() for p in self.mobile_prefixes.split(",") if p.strip())

    def is_admin(self, telegram_id: int) -> bool:
        """
        Check if a Telegram user ID is an admin.

        Args:
            telegram_id: Telegram user ID to check

        Returns:
            True if user is admin, False otherwise
        """
        if not self.admin_telegram_ids:
            return False
        admin_ids = [
            int(id.strip()) for id in self.admin_telegram_ids.split(",") if id.strip()
        ]
        return telegram_id in admin_ids

    def validate_all_required(self) -> None:
        """
        Validate that all required settings are present.

        Raises:
            ValueError: If required fields are missing or invalid
        """
        required_fields = ["supabase_url", "supabase_key"]
        if self.notifier_backend == "whatsapp":
            required_fields += ["whatsapp_phone_number_id", "whatsapp_access_token"]

        missing = []
        for field in required_fields:
            value = getattr(self, field, None)

            # Check if value is missing or placeholder
            if not value or str(value).lower().startswith("your_"):
                missing.append(field)

        if self.notifier_backend not in ("log", "whatsapp"):
            missing.append("notifier_backend")

        if missing:
            raise ValueError(
                f"Missing or invalid required configuration: "
                f"{', '.join(missing)}. "
                f"Please check your .env file and ensure all required "
                f"values are set."
            )


# Global settings instance
settings = Settings()

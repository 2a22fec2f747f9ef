# clubcourt/core/config.py
from decimal import Decimal
import logging
import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).resolve().parents[2] / ".env"
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    """Runtime configuration for the reservation engine."""

    environment: Literal["development", "test", "production"] = "development"

    # Storage
    database_url: str = Field(
        default="sqlite:///./clubcourt.db",
        description="SQLAlchemy URL for the primary database",
    )
    db_echo: bool = False
    db_retry_attempts: int = Field(default=3, ge=1, le=10)
    sqlite_busy_timeout_seconds: float = Field(default=15.0, gt=0)

    # Club clock
    club_timezone: str = "Asia/Manila"

    # Cash rates (per hour, per participant)
    rate_standard: Decimal = Field(default=Decimal("50"), description="Non-homeowner rate")
    rate_reduced: Decimal = Field(default=Decimal("25"), description="Homeowner rate")
    minimum_total_per_hour: Decimal = Decimal("100")
    amount_epsilon: Decimal = Decimal("0.01")

    # Coins
    booking_coin_cost_per_hour: int = Field(default=10, ge=0)
    welcome_coins: int = Field(default=100, ge=0)
    premium_feature_cost: int = Field(default=5, ge=0)
    coin_price: Decimal = Field(default=Decimal("1"), gt=0, description="Cash price of one coin")

    # Booking and schedule limits
    max_booking_hours: int = Field(default=8, ge=1, le=17)
    max_schedule_days: int = Field(default=14, ge=1)
    notes_max_length: int = 500
    max_open_play_players: int = 8

    # Monitoring
    slow_operation_seconds: float = 1.0

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("rate_standard", "rate_reduced", "minimum_total_per_hour")
    @classmethod
    def _validate_positive_money(cls, value: Decimal) -> Decimal:
        if value <= 0:
            raise ValueError("rates must be positive")
        return value

    @field_validator("amount_epsilon")
    @classmethod
    def _validate_epsilon(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError("amount_epsilon cannot be negative")
        return value

    @model_validator(mode="after")
    def _check_test_environment(self) -> "Settings":
        if is_running_tests() and self.environment == "production":
            logger.warning("Production settings loaded while running tests")
        return self

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


settings = Settings()

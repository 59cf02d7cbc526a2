"""Application configuration management."""
from pydantic import model_validator, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from sqlalchemy.engine.url import make_url, URL
from typing import Optional
import logging

SQLITE_LOCAL_URL = "sqlite+aiosqlite:///./arena.db"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = SQLITE_LOCAL_URL
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # Redis (optional, falls back to in-memory locks)
    redis_url: str = ""

    # Application
    environment: str = "development"
    secret_key: str = "dev-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"  # Tokens are minted by the identity service with the shared key

    # Admin access
    admin_emails: set[str] = set()

    # Games
    games: list[str] = ["Ludo King", "Free Fire", "PUBG"]
    multiplayer_games: list[str] = ["Free Fire", "PUBG"]  # Games allowed on 4/8/50-player tiers

    # Bets (whole taka)
    min_bet_amount: int = 10
    max_bet_amount: int = 10000

    # Scheduling
    schedule_min_lead_minutes: int = 30
    schedule_max_lead_days: int = 7
    schedule_separation_minutes: int = 30
    min_match_duration_minutes: int = 15
    max_match_duration_minutes: int = 120
    default_match_duration_minutes: int = 30

    # Expiry
    challenge_expiry_hours: int = 24
    max_extension_hours: int = 72
    max_challenge_lifetime_hours: int = 168

    # 50-player dynamic duration
    large_match_base_minutes: int = 30
    large_match_minutes_per_player: int = 2
    large_match_min_counted_players: int = 10
    large_match_max_minutes: int = 120

    # Pot tiers (multipliers of the bet amount)
    tier_2_fee_multiplier: float = 1.5
    tier_2_payout_multiplier: float = 1.5
    tier_4_fee_multiplier: float = 3.0
    tier_4_payout_multiplier: float = 3.0
    tier_8_fee_multiplier: float = 4.0
    tier_8_payout_multiplier: float = 4.0
    tier_50_fee_multiplier: float = 5.0
    tier_50_payout_share: float = 0.6  # Fraction of (bet x filled participants)

    # Room codes and proofs
    room_code_max_length: int = 32
    screenshot_ref_max_length: int = 500
    dispute_reason_max_length: int = 1000

    # Expiration sweeper
    expiration_sweep_interval_seconds: int = 60
    expiration_sweep_batch_size: int = 100
    expiration_sweep_startup_delay_seconds: int = 10

    # Locks
    challenge_lock_timeout_seconds: int = 30
    wallet_lock_timeout_seconds: int = 10

    @field_validator("admin_emails", mode="before")
    @classmethod
    def parse_admin_emails(cls, value):
        """Parse comma-separated admin emails from environment variables."""
        if value is None:
            return set()
        if isinstance(value, str):
            items = [item.strip().lower() for item in value.split(",") if item.strip()]
        elif isinstance(value, (list, tuple, set)):
            items = [str(item).strip().lower() for item in value if str(item).strip()]
        else:
            raise TypeError("admin_emails must be provided as a string or sequence")
        return set(items)

    def is_admin_email(self, email: str | None) -> bool:
        """Determine if the provided email belongs to an administrator."""
        if not email:
            return False
        return email.strip().lower() in self.admin_emails

    @model_validator(mode="after")
    def validate_all_config(self):
        """Validate security and economics configuration and normalize Postgres URLs."""
        logger = logging.getLogger(__name__)

        if self.environment == "production":
            if self.secret_key == "dev-secret-key-change-in-production":
                raise ValueError("secret_key must be changed from default value in production")

        if self.jwt_algorithm not in ["HS256", "HS384", "HS512"]:
            raise ValueError(f"Unsupported JWT algorithm: {self.jwt_algorithm}. Use HS256, HS384, or HS512.")

        if self.min_bet_amount < 1 or self.min_bet_amount > self.max_bet_amount:
            raise ValueError("min_bet_amount must be positive and not exceed max_bet_amount")

        for field_name in (
            "tier_2_fee_multiplier",
            "tier_2_payout_multiplier",
            "tier_4_fee_multiplier",
            "tier_4_payout_multiplier",
            "tier_8_fee_multiplier",
            "tier_8_payout_multiplier",
            "tier_50_fee_multiplier",
        ):
            if getattr(self, field_name) <= 0:
                raise ValueError(f"{field_name} must be positive")

        if not 0 < self.tier_50_payout_share <= 1:
            raise ValueError("tier_50_payout_share must be in (0, 1]")

        if self.expiration_sweep_interval_seconds < 1:
            raise ValueError("expiration_sweep_interval_seconds must be at least 1 second")

        # Database URL normalization
        url = self.database_url
        if not url:
            logger.warning("Empty DATABASE_URL, using SQLite fallback")
            self.database_url = SQLITE_LOCAL_URL
            return self

        parsed: Optional[URL] = None
        try:
            parsed = make_url(url)
        except Exception as e:
            logger.error(f"Failed to parse DATABASE_URL: {e}")
            logger.warning("Invalid DATABASE_URL; falling back to default sqlite database.")
            self.database_url = SQLITE_LOCAL_URL
            return self

        drivername = parsed.drivername
        if drivername.startswith("postgres") and "+asyncpg" not in drivername:
            parsed = parsed.set(drivername="postgresql+asyncpg")
            logger.info(f"Driver normalized: {drivername} -> {parsed.drivername}")
        # render_as_string re-encodes special characters in the password
        self.database_url = parsed.render_as_string(hide_password=False)

        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

"""Service for managing the versioned platform policy."""
from dataclasses import dataclass, fields
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging

from arena.config import get_settings
from arena.models.system_config import SystemConfig

logger = logging.getLogger(__name__)

POLICY_VERSION_KEY = "policy_version"


@dataclass(frozen=True)
class PlatformPolicy:
    """Immutable snapshot of the economics and scheduling rules.

    Operations read one snapshot at their start so a concurrent admin change
    never mixes two policies inside a single unit of work.
    """
    version: int
    min_bet_amount: int
    max_bet_amount: int
    schedule_min_lead_minutes: int
    schedule_max_lead_days: int
    schedule_separation_minutes: int
    min_match_duration_minutes: int
    max_match_duration_minutes: int
    default_match_duration_minutes: int
    challenge_expiry_hours: int
    max_extension_hours: int
    max_challenge_lifetime_hours: int
    large_match_base_minutes: int
    large_match_minutes_per_player: int
    large_match_min_counted_players: int
    large_match_max_minutes: int
    tier_2_fee_multiplier: float
    tier_2_payout_multiplier: float
    tier_4_fee_multiplier: float
    tier_4_payout_multiplier: float
    tier_8_fee_multiplier: float
    tier_8_payout_multiplier: float
    tier_50_fee_multiplier: float
    tier_50_payout_share: float

    def large_match_duration(self, participant_count: int) -> int:
        """Match length for a filled 50-player lobby, in minutes."""
        counted = max(
            self.large_match_min_counted_players,
            min(participant_count, 50),
        )
        return min(
            self.large_match_base_minutes + self.large_match_minutes_per_player * counted,
            self.large_match_max_minutes,
        )


class SystemConfigService:
    """Service for managing system configuration values."""

    # Define all configurable keys with their metadata
    CONFIG_SCHEMA: Dict[str, Dict[str, Any]] = {
        # Economics - bets
        "min_bet_amount": {
            "type": "int",
            "category": "economics",
            "description": "Smallest accepted bet amount",
            "min": 1,
            "max": 1000,
        },
        "max_bet_amount": {
            "type": "int",
            "category": "economics",
            "description": "Largest accepted bet amount",
            "min": 10,
            "max": 1000000,
        },

        # Scheduling
        "schedule_min_lead_minutes": {
            "type": "int",
            "category": "scheduling",
            "description": "Minimum minutes between creation and the scheduled match",
            "min": 0,
            "max": 1440,
        },
        "schedule_max_lead_days": {
            "type": "int",
            "category": "scheduling",
            "description": "Furthest a match may be scheduled ahead, in days",
            "min": 1,
            "max": 30,
        },
        "schedule_separation_minutes": {
            "type": "int",
            "category": "scheduling",
            "description": "Minimum gap between a challenger's match windows",
            "min": 0,
            "max": 240,
        },
        "min_match_duration_minutes": {
            "type": "int",
            "category": "scheduling",
            "description": "Shortest allowed match duration",
            "min": 5,
            "max": 120,
        },
        "max_match_duration_minutes": {
            "type": "int",
            "category": "scheduling",
            "description": "Longest allowed match duration",
            "min": 15,
            "max": 480,
        },
        "default_match_duration_minutes": {
            "type": "int",
            "category": "scheduling",
            "description": "Match duration used when none is requested",
            "min": 5,
            "max": 480,
        },

        # Expiry
        "challenge_expiry_hours": {
            "type": "int",
            "category": "expiry",
            "description": "Hours a pending challenge stays open after creation",
            "min": 1,
            "max": 168,
        },
        "max_extension_hours": {
            "type": "int",
            "category": "expiry",
            "description": "Largest single extension of a pending challenge",
            "min": 1,
            "max": 168,
        },
        "max_challenge_lifetime_hours": {
            "type": "int",
            "category": "expiry",
            "description": "Absolute cap on expiry measured from creation",
            "min": 1,
            "max": 720,
        },

        # 50-player duration
        "large_match_base_minutes": {
            "type": "int",
            "category": "tiers",
            "description": "Base duration of a 50-player match",
            "min": 5,
            "max": 240,
        },
        "large_match_minutes_per_player": {
            "type": "int",
            "category": "tiers",
            "description": "Minutes added per counted participant in a 50-player match",
            "min": 0,
            "max": 10,
        },
        "large_match_min_counted_players": {
            "type": "int",
            "category": "tiers",
            "description": "Participant floor used for 50-player duration",
            "min": 0,
            "max": 50,
        },
        "large_match_max_minutes": {
            "type": "int",
            "category": "tiers",
            "description": "Cap on 50-player match duration",
            "min": 15,
            "max": 480,
        },

        # Pot tiers
        "tier_2_fee_multiplier": {
            "type": "float",
            "category": "tiers",
            "description": "Match fee multiplier for 1v1 challenges",
            "min": 0.1,
            "max": 100.0,
        },
        "tier_2_payout_multiplier": {
            "type": "float",
            "category": "tiers",
            "description": "Winner payout multiplier for 1v1 challenges",
            "min": 0.1,
            "max": 100.0,
        },
        "tier_4_fee_multiplier": {
            "type": "float",
            "category": "tiers",
            "description": "Match fee multiplier for 4-player challenges",
            "min": 0.1,
            "max": 100.0,
        },
        "tier_4_payout_multiplier": {
            "type": "float",
            "category": "tiers",
            "description": "Pot multiplier shared by 4-player winners",
            "min": 0.1,
            "max": 100.0,
        },
        "tier_8_fee_multiplier": {
            "type": "float",
            "category": "tiers",
            "description": "Match fee multiplier for 8-player challenges",
            "min": 0.1,
            "max": 100.0,
        },
        "tier_8_payout_multiplier": {
            "type": "float",
            "category": "tiers",
            "description": "Winner payout multiplier for 8-player challenges",
            "min": 0.1,
            "max": 100.0,
        },
        "tier_50_fee_multiplier": {
            "type": "float",
            "category": "tiers",
            "description": "Match fee multiplier for 50-player challenges",
            "min": 0.1,
            "max": 100.0,
        },
        "tier_50_payout_share": {
            "type": "float",
            "category": "tiers",
            "description": "Share of (bet x filled participants) paid to the 50-player winner",
            "min": 0.01,
            "max": 1.0,
        },
    }

    def __init__(self, session: AsyncSession):
        """Initialize the service with a database session."""
        self.session = session

    async def get_config_value(self, key: str) -> Optional[Any]:
        """
        Get a configuration value from the database, falling back to environment settings.

        Args:
            key: Configuration key

        Returns:
            Configuration value, or None if not found
        """
        result = await self.session.execute(
            select(SystemConfig).where(SystemConfig.key == key)
        )
        config_entry = result.scalar_one_or_none()

        if config_entry:
            return self.deserialize_value(config_entry.value, config_entry.value_type)

        settings = get_settings()
        return getattr(settings, key, None)

    async def set_config_value(
        self,
        key: str,
        value: Any,
        updated_by: Optional[str] = None
    ) -> SystemConfig:
        """
        Set a configuration value in the database and bump the policy version.

        Args:
            key: Configuration key
            value: New value
            updated_by: Player ID of the admin making the change

        Returns:
            Updated SystemConfig entry

        Raises:
            ValueError: If key is not in schema or value is invalid
        """
        if key not in self.CONFIG_SCHEMA:
            raise ValueError(f"Unknown configuration key: {key}")

        schema = self.CONFIG_SCHEMA[key]
        value_type = schema["type"]

        validated_value = self._validate_value(key, value, schema)
        await self._check_cross_field_bounds(key, validated_value)

        serialized_value = self._serialize_value(validated_value, value_type)
        config_entry = await self._upsert(
            key,
            serialized_value,
            value_type,
            updated_by,
            description=schema.get("description"),
            category=schema.get("category"),
        )

        version = await self.get_policy_version() + 1
        await self._upsert(
            POLICY_VERSION_KEY,
            str(version),
            "int",
            updated_by,
            description="Incremented on every policy change",
            category="meta",
        )

        await self.session.commit()
        await self.session.refresh(config_entry)

        logger.info(
            f"Config updated: {key} = {validated_value} by {updated_by or 'system'} "
            f"(policy version {version})"
        )

        return config_entry

    async def get_policy_version(self) -> int:
        """Current policy version; 0 until the first override is written."""
        result = await self.session.execute(
            select(SystemConfig.value).where(SystemConfig.key == POLICY_VERSION_KEY)
        )
        value = result.scalar_one_or_none()
        return int(value) if value is not None else 0

    async def get_all_config(self) -> Dict[str, Any]:
        """
        Get all configuration values as a dictionary.

        Returns:
            Dictionary of all config values
        """
        settings = get_settings()
        config_dict = {}

        for key in self.CONFIG_SCHEMA:
            config_dict[key] = getattr(settings, key, None)

        result = await self.session.execute(select(SystemConfig))
        db_configs = result.scalars().all()

        for config_entry in db_configs:
            if config_entry.key in self.CONFIG_SCHEMA:
                config_dict[config_entry.key] = self.deserialize_value(
                    config_entry.value,
                    config_entry.value_type
                )

        return config_dict

    async def get_platform_policy(self) -> PlatformPolicy:
        """Snapshot of the effective policy: environment settings overlaid with overrides."""
        values = await self.get_all_config()
        settings = get_settings()
        kwargs = {}
        for policy_field in fields(PlatformPolicy):
            if policy_field.name == "version":
                continue
            value = values.get(policy_field.name)
            kwargs[policy_field.name] = value if value is not None else getattr(settings, policy_field.name)
        return PlatformPolicy(version=await self.get_policy_version(), **kwargs)

    async def _upsert(
        self,
        key: str,
        serialized_value: str,
        value_type: str,
        updated_by: Optional[str],
        description: Optional[str] = None,
        category: Optional[str] = None,
    ) -> SystemConfig:
        result = await self.session.execute(
            select(SystemConfig).where(SystemConfig.key == key)
        )
        config_entry = result.scalar_one_or_none()

        if config_entry:
            config_entry.value = serialized_value
            config_entry.value_type = value_type
            config_entry.updated_at = datetime.now(timezone.utc)
            config_entry.updated_by = updated_by
        else:
            config_entry = SystemConfig(
                key=key,
                value=serialized_value,
                value_type=value_type,
                description=description,
                category=category,
                updated_at=datetime.now(timezone.utc),
                updated_by=updated_by
            )
            self.session.add(config_entry)

        await self.session.flush()
        return config_entry

    async def _check_cross_field_bounds(self, key: str, value: Any) -> None:
        """Reject changes that would invert a min/max pair."""
        pairs = {
            "min_bet_amount": ("max_bet_amount", "max"),
            "max_bet_amount": ("min_bet_amount", "min"),
            "min_match_duration_minutes": ("max_match_duration_minutes", "max"),
            "max_match_duration_minutes": ("min_match_duration_minutes", "min"),
        }
        if key not in pairs:
            return
        other_key, other_role = pairs[key]
        other_value = await self.get_config_value(other_key)
        if other_role == "max" and value > other_value:
            raise ValueError(f"{key} must be <= {other_key} ({other_value}), got {value}")
        if other_role == "min" and value < other_value:
            raise ValueError(f"{key} must be >= {other_key} ({other_value}), got {value}")

    @staticmethod
    def _validate_value(key: str, value: Any, schema: Dict[str, Any]) -> Any:
        """Validate and convert a configuration value."""
        value_type = schema["type"]

        if value_type == "int":
            if isinstance(value, bool):
                raise ValueError(f"Invalid integer value for {key}: {value}")
            try:
                validated = int(value)
            except (ValueError, TypeError):
                raise ValueError(f"Invalid integer value for {key}: {value}")

        elif value_type == "float":
            try:
                validated = float(value)
            except (ValueError, TypeError):
                raise ValueError(f"Invalid float value for {key}: {value}")

        else:
            raise ValueError(f"Unknown value type: {value_type}")

        if "min" in schema and validated < schema["min"]:
            raise ValueError(f"{key} must be >= {schema['min']}, got {validated}")
        if "max" in schema and validated > schema["max"]:
            raise ValueError(f"{key} must be <= {schema['max']}, got {validated}")

        return validated

    @staticmethod
    def _serialize_value(value: Any, value_type: str) -> str:
        """Convert a value to string for database storage."""
        return str(value)

    @staticmethod
    def deserialize_value(value: str, value_type: str) -> Any:
        """Convert a string value from database to proper Python type."""
        if value_type == "int":
            return int(value)
        elif value_type == "float":
            return float(value)
        return value

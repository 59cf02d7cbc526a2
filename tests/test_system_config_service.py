"""
Tests for SystemConfigService - validation, policy snapshots and versioning.
"""
import pytest

from arena.services.challenge_service import ChallengeService
from arena.services.system_config_service import SystemConfigService
from tests.helpers import future_time


class TestConfigValues:

    @pytest.mark.asyncio
    async def test_defaults_come_from_settings(self, db_session):
        service = SystemConfigService(db_session)
        assert await service.get_config_value("min_bet_amount") == 10
        assert await service.get_config_value("tier_50_payout_share") == 0.6
        assert await service.get_policy_version() == 0

    @pytest.mark.asyncio
    async def test_set_value_bumps_policy_version(self, db_session, admin_player):
        service = SystemConfigService(db_session)

        entry = await service.set_config_value("max_bet_amount", 5000, updated_by=str(admin_player.player_id))
        assert entry.value == "5000"
        assert entry.category == "economics"
        assert await service.get_config_value("max_bet_amount") == 5000
        assert await service.get_policy_version() == 1

        await service.set_config_value("tier_2_payout_multiplier", "1.75")
        assert await service.get_config_value("tier_2_payout_multiplier") == 1.75
        assert await service.get_policy_version() == 2

        config = await service.get_all_config()
        assert config["max_bet_amount"] == 5000
        assert config["min_bet_amount"] == 10
        assert "policy_version" not in config

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "key,value",
        [
            ("unknown_key", 1),
            ("min_bet_amount", 0),
            ("min_bet_amount", "ten"),
            ("min_bet_amount", True),
            ("tier_50_payout_share", 1.5),
        ],
    )
    async def test_invalid_values_rejected(self, db_session, key, value):
        with pytest.raises(ValueError):
            await SystemConfigService(db_session).set_config_value(key, value)

    @pytest.mark.asyncio
    async def test_min_cannot_exceed_max(self, db_session):
        service = SystemConfigService(db_session)
        await service.set_config_value("max_bet_amount", 500)

        with pytest.raises(ValueError):
            await service.set_config_value("min_bet_amount", 600)
        with pytest.raises(ValueError):
            await service.set_config_value("max_match_duration_minutes", 10)


class TestPlatformPolicy:

    @pytest.mark.asyncio
    async def test_policy_snapshot_reflects_overrides(self, db_session):
        service = SystemConfigService(db_session)
        await service.set_config_value("challenge_expiry_hours", 12)

        policy = await service.get_platform_policy()
        assert policy.challenge_expiry_hours == 12
        assert policy.max_extension_hours == 72
        assert policy.version == 1

    @pytest.mark.asyncio
    async def test_existing_challenges_keep_their_multipliers(self, db_session, player_factory):
        creator = await player_factory(balance=1000)
        other = await player_factory(balance=1000)
        before = await ChallengeService(db_session).create_challenge(creator, "Ludo King", 100, future_time())

        await SystemConfigService(db_session).set_config_value("tier_2_payout_multiplier", 1.8)
        after = await ChallengeService(db_session).create_challenge(other, "Ludo King", 100, future_time())

        assert before.total_pot == 150
        assert before.payout_multiplier_bps == 15000
        assert before.policy_version == 0
        assert after.total_pot == 180
        assert after.payout_multiplier_bps == 18000
        assert after.policy_version == 1

"""
Money conservation across full challenge lifecycles.

For every challenge: stakes == refunds + payouts + platform fee, and the
players' balances plus the fee account for every unit that entered.
"""
import pytest

from arena.services.challenge_service import ChallengeService
from arena.services.dispute_service import DisputeResolver, MultiWinner, SingleWinner
from arena.services.transaction_service import TransactionService
from tests.helpers import future_time, start_filled_challenge


async def total_balance(db, players) -> int:
    total = 0
    for player in players:
        await db.refresh(player)
        total += player.balance
    return total


class TestSettledChallenges:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("player_count,bet_amount", [(2, 100), (2, 37), (4, 50), (4, 11), (8, 25), (8, 13), (50, 13)])
    async def test_single_winner_conserves(self, db_session, player_factory, admin_player, player_count, bet_amount):
        creator = await player_factory(balance=1000)
        joiners = [await player_factory(balance=1000) for _ in range(player_count - 1)]
        everyone = [creator] + joiners
        challenge = await start_filled_challenge(
            db_session, creator, joiners, admin_player, bet_amount=bet_amount, player_count=player_count
        )

        result = await DisputeResolver(db_session).resolve_dispute(
            challenge.challenge_id, admin_player, SingleWinner(joiners[-1].player_id)
        )

        summary = await TransactionService(db_session).challenge_ledger_summary(challenge.challenge_id)
        assert summary.balanced
        assert summary.stakes == bet_amount * player_count
        assert summary.fee == result.platform_fee
        assert await total_balance(db_session, everyone) + summary.fee == 1000 * player_count

    @pytest.mark.asyncio
    async def test_multi_winner_remainder_goes_to_fee(self, db_session, player_factory, admin_player):
        """Bet 11 on the 4-player tier: pot 33 split by two is 16 each, fee 12."""
        creator = await player_factory(balance=100)
        joiners = [await player_factory(balance=100) for _ in range(3)]
        challenge = await start_filled_challenge(db_session, creator, joiners, admin_player, bet_amount=11)

        result = await DisputeResolver(db_session).resolve_dispute(
            challenge.challenge_id, admin_player, MultiWinner((creator.player_id, joiners[0].player_id))
        )

        assert [line.amount for line in result.payouts] == [16, 16]
        assert result.platform_fee == 12
        summary = await TransactionService(db_session).challenge_ledger_summary(challenge.challenge_id)
        assert summary.balanced
        assert await total_balance(db_session, [creator] + joiners) + 12 == 400

    @pytest.mark.asyncio
    async def test_pool_share_payout_conserves(self, db_session, player_factory, admin_player):
        """Fifty players at 13: the winner takes 60% of the 650 pool, the fee is the other 260."""
        creator = await player_factory(balance=100)
        joiners = [await player_factory(balance=100) for _ in range(49)]
        challenge = await start_filled_challenge(
            db_session, creator, joiners, admin_player, game="PUBG", bet_amount=13, player_count=50
        )
        assert challenge.total_pot == 390
        assert challenge.duration_finalized

        result = await DisputeResolver(db_session).resolve_dispute(
            challenge.challenge_id, admin_player, SingleWinner(joiners[10].player_id)
        )

        assert [line.amount for line in result.payouts] == [390]
        assert result.platform_fee == 260
        summary = await TransactionService(db_session).challenge_ledger_summary(challenge.challenge_id)
        assert (summary.stakes, summary.payouts, summary.fee) == (650, 390, 260)
        assert summary.balanced
        assert await total_balance(db_session, [creator] + joiners) + 260 == 5000

    @pytest.mark.asyncio
    async def test_admin_authored_challenge_conserves(self, db_session, player_factory, admin_player):
        joiners = [await player_factory(balance=500) for _ in range(4)]
        service = ChallengeService(db_session)
        challenge = await service.create_challenge(
            admin_player, "PUBG", 40, future_time(), player_count=4, is_admin_authored=True
        )
        for joiner in joiners:
            challenge = await service.accept_challenge(challenge.challenge_id, joiner)
        challenge = await service.start_match(challenge.challenge_id, admin_player, "ADMIN-ROOM")

        result = await DisputeResolver(db_session).resolve_dispute(
            challenge.challenge_id, admin_player, SingleWinner(joiners[1].player_id)
        )

        assert result.total_paid == 120
        assert result.platform_fee == 40
        summary = await TransactionService(db_session).challenge_ledger_summary(challenge.challenge_id)
        assert summary.balanced
        await db_session.refresh(admin_player)
        assert admin_player.balance == 0


class TestCancelledChallenges:

    @pytest.mark.asyncio
    async def test_cancel_with_partial_roster_conserves(self, db_session, player_factory):
        creator = await player_factory(balance=300)
        joiners = [await player_factory(balance=300) for _ in range(5)]
        service = ChallengeService(db_session)
        challenge = await service.create_challenge(creator, "Free Fire", 75, future_time(), player_count=8)
        for joiner in joiners:
            challenge = await service.accept_challenge(challenge.challenge_id, joiner)

        await service.cancel_challenge(challenge.challenge_id, creator)

        summary = await TransactionService(db_session).challenge_ledger_summary(challenge.challenge_id)
        assert summary.stakes == 450
        assert summary.refunds == 450
        assert summary.fee == 0
        assert summary.balanced
        assert await total_balance(db_session, [creator] + joiners) == 1800

    @pytest.mark.asyncio
    async def test_admin_cancel_in_progress_conserves(self, db_session, player_factory, admin_player):
        creator = await player_factory(balance=200)
        opponent = await player_factory(balance=200)
        challenge = await start_filled_challenge(db_session, creator, [opponent], admin_player)

        await ChallengeService(db_session).admin_cancel_challenge(challenge.challenge_id, admin_player, "server down")

        summary = await TransactionService(db_session).challenge_ledger_summary(challenge.challenge_id)
        assert summary.balanced
        assert summary.held == 0
        assert await total_balance(db_session, [creator, opponent]) == 400

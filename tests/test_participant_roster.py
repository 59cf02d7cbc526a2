"""
Tests for ParticipantRoster - admission guards, capacity and concurrent joins.
"""
import asyncio
import uuid
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from arena.models.base import ChallengeStatus
from arena.models.challenge_participant import ChallengeParticipant
from arena.models.player import Player
from arena.services.challenge_service import ChallengeService
from arena.services.participant_roster import ParticipantRoster
from arena.services.transaction_service import TransactionService
from arena.utils import utc_now
from arena.utils.exceptions import (
    AlreadyJoinedError,
    ChallengeExpiredError,
    ChallengeNotFoundError,
    InsufficientBalanceError,
    InvalidStateError,
)
from tests.helpers import future_time


async def roster_size(db, challenge_id) -> int:
    result = await db.execute(
        select(func.count()).select_from(ChallengeParticipant).where(ChallengeParticipant.challenge_id == challenge_id)
    )
    return result.scalar_one()


class TestJoinGuards:

    @pytest.mark.asyncio
    async def test_challenger_cannot_join_own_challenge(self, db_session, player_factory):
        creator = await player_factory()
        challenge = await ChallengeService(db_session).create_challenge(creator, "PUBG", 100, future_time())
        challenge_id = challenge.challenge_id

        with pytest.raises(AlreadyJoinedError):
            await ParticipantRoster(db_session).join(challenge_id, creator)

        await db_session.refresh(creator)
        assert creator.balance == 900

    @pytest.mark.asyncio
    async def test_player_cannot_join_twice(self, db_session, player_factory):
        creator = await player_factory()
        joiner = await player_factory()
        challenge = await ChallengeService(db_session).create_challenge(
            creator, "Free Fire", 100, future_time(), player_count=4
        )
        challenge_id = challenge.challenge_id
        roster = ParticipantRoster(db_session)
        await roster.join(challenge_id, joiner)

        with pytest.raises(AlreadyJoinedError):
            await roster.join(challenge_id, joiner)

        await db_session.refresh(joiner)
        assert joiner.balance == 900
        assert await roster_size(db_session, challenge_id) == 2

    @pytest.mark.asyncio
    async def test_expired_challenge_rejects_joins(self, db_session, player_factory):
        creator = await player_factory()
        joiner = await player_factory()
        challenge = await ChallengeService(db_session).create_challenge(creator, "PUBG", 100, future_time())
        challenge_id = challenge.challenge_id
        challenge.expires_at = utc_now() - timedelta(seconds=1)
        await db_session.commit()

        with pytest.raises(ChallengeExpiredError):
            await ParticipantRoster(db_session).join(challenge_id, joiner)

        await db_session.refresh(joiner)
        assert joiner.balance == 1000

    @pytest.mark.asyncio
    async def test_insufficient_balance_leaves_roster_untouched(self, db_session, player_factory):
        creator = await player_factory()
        poor = await player_factory(balance=99)
        challenge = await ChallengeService(db_session).create_challenge(creator, "PUBG", 100, future_time())
        challenge_id = challenge.challenge_id

        with pytest.raises(InsufficientBalanceError):
            await ParticipantRoster(db_session).join(challenge_id, poor)

        await db_session.refresh(poor)
        assert poor.balance == 99
        assert await roster_size(db_session, challenge_id) == 1
        challenge = await ChallengeService(db_session).get_challenge(challenge_id, refresh=True)
        assert challenge.participant_count == 1
        assert challenge.status == ChallengeStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_unknown_challenge(self, db_session, player_factory):
        joiner = await player_factory()
        with pytest.raises(ChallengeNotFoundError):
            await ParticipantRoster(db_session).join(uuid.uuid4(), joiner)

    @pytest.mark.asyncio
    async def test_cancelled_challenge_rejects_joins(self, db_session, player_factory):
        creator = await player_factory()
        joiner = await player_factory()
        service = ChallengeService(db_session)
        challenge = await service.create_challenge(creator, "PUBG", 100, future_time())
        await service.cancel_challenge(challenge.challenge_id, creator)

        with pytest.raises(InvalidStateError):
            await ParticipantRoster(db_session).join(challenge.challenge_id, joiner)


class TestFilling:

    @pytest.mark.asyncio
    async def test_four_player_fill(self, db_session, player_factory):
        creator = await player_factory()
        joiners = [await player_factory() for _ in range(3)]
        challenge = await ChallengeService(db_session).create_challenge(
            creator, "Free Fire", 50, future_time(), player_count=4
        )
        roster = ParticipantRoster(db_session)

        for index, joiner in enumerate(joiners):
            challenge = await roster.join(challenge.challenge_id, joiner)
            if index < 2:
                assert challenge.status == ChallengeStatus.PENDING.value

        assert challenge.status == ChallengeStatus.ACCEPTED.value
        assert challenge.participant_count == 4
        assert challenge.available_slots == 0
        assert challenge.accepter_id is None
        assert challenge.participant_ids[0] == creator.player_id
        assert challenge.total_pot == 150

    @pytest.mark.asyncio
    async def test_admin_challenge_filled_by_joiners_only(self, db_session, player_factory, admin_player):
        joiners = [await player_factory() for _ in range(2)]
        challenge = await ChallengeService(db_session).create_challenge(
            admin_player, "Ludo King", 100, future_time(), is_admin_authored=True
        )
        roster = ParticipantRoster(db_session)

        challenge = await roster.join(challenge.challenge_id, joiners[0])
        assert challenge.status == ChallengeStatus.PENDING.value
        challenge = await roster.join(challenge.challenge_id, joiners[1])

        assert challenge.status == ChallengeStatus.ACCEPTED.value
        assert challenge.accepter_id == joiners[1].player_id
        assert admin_player.player_id not in challenge.participant_ids
        summary = await TransactionService(db_session).challenge_ledger_summary(challenge.challenge_id)
        assert summary.stakes == 200

    @pytest.mark.asyncio
    async def test_fifty_player_fill_finalizes_pot_and_duration(self, db_session, player_factory):
        creator = await player_factory()
        challenge = await ChallengeService(db_session).create_challenge(
            creator, "PUBG", 10, future_time(), player_count=50
        )
        roster = ParticipantRoster(db_session)

        for _ in range(49):
            joiner = await player_factory(balance=10)
            challenge = await roster.join(challenge.challenge_id, joiner)

        assert challenge.status == ChallengeStatus.ACCEPTED.value
        assert challenge.participant_count == 50
        assert challenge.duration_finalized
        assert challenge.match_duration_minutes == 120
        assert challenge.total_pot == 300
        assert challenge.match_fee == 50


class TestConcurrentJoins:

    @staticmethod
    async def _join_in_own_session(session_factory, challenge_id, player_id):
        async with session_factory() as session:
            player = (await session.execute(select(Player).where(Player.player_id == player_id))).scalar_one()
            return await ChallengeService(session).accept_challenge(challenge_id, player)

    @pytest.mark.asyncio
    async def test_exactly_one_racer_takes_the_last_slot(self, db_session, session_factory, player_factory):
        creator = await player_factory()
        racers = [await player_factory(balance=500) for _ in range(5)]
        challenge = await ChallengeService(db_session).create_challenge(creator, "PUBG", 100, future_time())
        challenge_id = challenge.challenge_id

        results = await asyncio.gather(
            *(self._join_in_own_session(session_factory, challenge_id, racer.player_id) for racer in racers),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert all(isinstance(error, InvalidStateError) for error in losers)

        assert await roster_size(db_session, challenge_id) == 2
        balances = []
        for racer in racers:
            await db_session.refresh(racer)
            balances.append(racer.balance)
        assert sorted(balances) == [400, 500, 500, 500, 500]

        summary = await TransactionService(db_session).challenge_ledger_summary(challenge_id)
        assert summary.stakes == 200

    @pytest.mark.asyncio
    async def test_concurrent_joins_never_exceed_capacity(self, db_session, session_factory, player_factory):
        creator = await player_factory()
        racers = [await player_factory(balance=500) for _ in range(6)]
        challenge = await ChallengeService(db_session).create_challenge(
            creator, "Free Fire", 100, future_time(), player_count=4
        )
        challenge_id = challenge.challenge_id

        results = await asyncio.gather(
            *(self._join_in_own_session(session_factory, challenge_id, racer.player_id) for racer in racers),
            return_exceptions=True,
        )

        assert sum(1 for r in results if not isinstance(r, Exception)) == 3
        challenge = await ChallengeService(db_session).get_challenge(challenge_id, refresh=True)
        assert challenge.participant_count == 4
        assert challenge.status == ChallengeStatus.ACCEPTED.value
        assert await roster_size(db_session, challenge_id) == 4

    @pytest.mark.asyncio
    async def test_cancel_racing_accept(self, db_session, session_factory, player_factory):
        """Whichever commits first wins; the other sees a non-pending challenge."""
        creator = await player_factory()
        joiner = await player_factory()
        challenge = await ChallengeService(db_session).create_challenge(creator, "PUBG", 100, future_time())
        challenge_id = challenge.challenge_id

        async def cancel():
            async with session_factory() as session:
                player = (await session.execute(select(Player).where(Player.player_id == creator.player_id))).scalar_one()
                return await ChallengeService(session).cancel_challenge(challenge_id, player)

        results = await asyncio.gather(
            cancel(),
            self._join_in_own_session(session_factory, challenge_id, joiner.player_id),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], InvalidStateError)

        summary = await TransactionService(db_session).challenge_ledger_summary(challenge_id)
        challenge = await ChallengeService(db_session).get_challenge(challenge_id, refresh=True)
        if challenge.status == ChallengeStatus.CANCELLED.value:
            assert summary.stakes == 100
            assert summary.refunds == 100
        else:
            assert challenge.status == ChallengeStatus.ACCEPTED.value
            assert summary.stakes == 200
            assert summary.refunds == 0

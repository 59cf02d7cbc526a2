"""Roster admission: serialized joins with capacity check and stake hold."""
from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.orm.attributes import set_committed_value
from typing import AsyncIterator
from uuid import UUID
import uuid
import logging

from arena.config import get_settings
from arena.models.base import ChallengeStatus, TransactionType
from arena.models.challenge import Challenge
from arena.models.challenge_participant import ChallengeParticipant
from arena.models.player import Player
from arena.services.pot_calculator import PotCalculator
from arena.services.system_config_service import PlatformPolicy, SystemConfigService
from arena.services.transaction_service import TransactionService
from arena.utils import lock_client, ensure_utc, utc_now
from arena.utils.exceptions import (
    AlreadyJoinedError,
    ChallengeExpiredError,
    ChallengeFullError,
    ChallengeNotFoundError,
    InvalidStateError,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def challenge_lock(challenge_id: UUID) -> AsyncIterator[None]:
    """Serialize every mutation of one challenge."""
    settings = get_settings()
    async with lock_client.lock(f"challenge:{challenge_id}", timeout=settings.challenge_lock_timeout_seconds):
        yield


async def load_challenge_for_update(db: AsyncSession, challenge_id: UUID) -> Challenge:
    """Fresh row read under a row lock; raises ChallengeNotFoundError."""
    result = await db.execute(
        select(Challenge)
        .where(Challenge.challenge_id == challenge_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    challenge = result.scalar_one_or_none()
    if not challenge:
        raise ChallengeNotFoundError(f"Challenge not found: {challenge_id}")
    return challenge


class ParticipantRoster:
    """Admits players into a challenge's roster."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.transactions = TransactionService(db)

    async def join(
        self,
        challenge_id: UUID,
        player: Player,
        policy: PlatformPolicy | None = None,
    ) -> Challenge:
        """
        Add ``player`` to the roster, holding their stake.

        Concurrent joins on the same challenge are linearized by the
        challenge lock; the slot itself is claimed with a conditional UPDATE
        so the roster can never exceed capacity. The join that fills the
        last slot moves the challenge to ``accepted`` in the same commit.

        Raises:
            InvalidStateError: Challenge is not pending
            AlreadyJoinedError: Player is the challenger or already rostered
            ChallengeFullError: No slot left
            ChallengeExpiredError: Past ``expires_at``
            InsufficientBalanceError: Balance below the bet amount (raised by the ledger)
        """
        if policy is None:
            policy = await SystemConfigService(self.db).get_platform_policy()

        try:
            async with challenge_lock(challenge_id):
                challenge = await load_challenge_for_update(self.db, challenge_id)
                self._check_can_join(challenge, player)

                await self.transactions.debit(
                    player.player_id,
                    challenge.bet_amount,
                    TransactionType.STAKE_HOLD,
                    reference_id=challenge.challenge_id,
                    notes=f"Stake for {challenge.game} challenge",
                )

                claimed = await self.db.execute(
                    update(Challenge)
                    .where(
                        Challenge.challenge_id == challenge_id,
                        Challenge.participant_count < Challenge.max_participants,
                        Challenge.status == ChallengeStatus.PENDING.value,
                    )
                    .values(participant_count=Challenge.participant_count + 1)
                    .returning(Challenge.participant_count)
                    .execution_options(synchronize_session=False)
                )
                new_count = claimed.scalar_one_or_none()
                if new_count is None:
                    raise ChallengeFullError("Challenge is full")
                set_committed_value(challenge, "participant_count", new_count)

                participant = ChallengeParticipant(
                    participant_id=uuid.uuid4(),
                    challenge_id=challenge.challenge_id,
                    player_id=player.player_id,
                )
                self.db.add(participant)
                challenge.participants.append(participant)

                if new_count >= challenge.max_participants:
                    self._mark_filled(challenge, player, policy)

                await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"Player {player.player_id} joined challenge {challenge_id} "
            f"({challenge.participant_count}/{challenge.max_participants}), status={challenge.status}"
        )
        return challenge

    @staticmethod
    def _check_can_join(challenge: Challenge, player: Player) -> None:
        if challenge.status != ChallengeStatus.PENDING.value:
            raise InvalidStateError(f"Challenge is {challenge.status}, not pending")
        if challenge.challenger_id == player.player_id or challenge.get_participant(player.player_id):
            raise AlreadyJoinedError("Player already joined this challenge")
        if challenge.is_full:
            raise ChallengeFullError("Challenge is full")
        if utc_now() > ensure_utc(challenge.expires_at):
            raise ChallengeExpiredError("Challenge has expired")

    def _mark_filled(self, challenge: Challenge, player: Player, policy: PlatformPolicy) -> None:
        """Transition a full roster to accepted and finalize the pot."""
        challenge.status = ChallengeStatus.ACCEPTED.value
        challenge.accepted_at = utc_now()
        if challenge.player_count == 2:
            challenge.accepter_id = player.player_id

        quote = PotCalculator.quote_for_challenge(challenge, challenge.participant_count)
        challenge.match_fee = quote.match_fee
        challenge.total_pot = quote.total_pot

        if not challenge.duration_finalized:
            challenge.match_duration_minutes = policy.large_match_duration(challenge.participant_count)
            challenge.duration_finalized = True

        logger.info(
            f"Challenge {challenge.challenge_id} filled and accepted: pot={challenge.total_pot}, "
            f"duration={challenge.match_duration_minutes}m"
        )

"""Admin dispute resolution and payout release."""
from dataclasses import dataclass, field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import update
from typing import Optional, Union
from uuid import UUID
import logging

from arena.models.base import ChallengeStatus, TransactionType
from arena.models.challenge import Challenge
from arena.models.player import Player
from arena.services.auth_service import is_admin
from arena.services.participant_roster import challenge_lock, load_challenge_for_update
from arena.services.pot_calculator import PotCalculator
from arena.services.system_config_service import SystemConfigService
from arena.services.transaction_service import TransactionService
from arena.utils import utc_now
from arena.utils.exceptions import (
    AlreadySettledError,
    InvalidStateError,
    InvalidWinnerError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SingleWinner:
    player_id: UUID


@dataclass(frozen=True)
class MultiWinner:
    """Several winners sharing the pot; only the 4-player tier allows it."""
    player_ids: tuple[UUID, ...]


WinnerSelection = Union[SingleWinner, MultiWinner]


@dataclass(frozen=True)
class PayoutLine:
    player_id: UUID
    amount: int


@dataclass
class SettlementResult:
    challenge: Challenge
    payouts: list[PayoutLine] = field(default_factory=list)
    platform_fee: int = 0
    already_settled: bool = False

    @property
    def total_paid(self) -> int:
        return sum(line.amount for line in self.payouts)


class DisputeResolver:
    """Closes an in-progress challenge with an admin-decided result."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.transactions = TransactionService(db)

    async def resolve_dispute(
        self,
        challenge_id: UUID,
        admin: Player,
        winner_selection: WinnerSelection,
        notes: Optional[str] = None,
    ) -> SettlementResult:
        """
        Pay the winner(s), retain the platform fee and complete the challenge.

        Settlement happens at most once: a repeated call finds the payout
        entries already written and returns that earlier result with
        ``already_settled=True``.

        Raises:
            UnauthorizedError: Caller is not an admin
            InvalidStateError: Challenge is not in progress
            InvalidWinnerError: Winner not on the roster, or multi-winner outside the 4-player tier
        """
        if not is_admin(admin):
            raise UnauthorizedError("Admin access required")

        policy = await SystemConfigService(self.db).get_platform_policy()
        calculator = PotCalculator.from_policy(policy)

        try:
            async with challenge_lock(challenge_id):
                challenge = await load_challenge_for_update(self.db, challenge_id)

                existing = await self.transactions.get_challenge_entries(challenge_id, TransactionType.PAYOUT)
                if existing or challenge.status == ChallengeStatus.COMPLETED.value:
                    raise AlreadySettledError(await self._prior_result(challenge, existing))

                if challenge.status != ChallengeStatus.IN_PROGRESS.value:
                    raise InvalidStateError(f"Challenge is {challenge.status}, not in progress")

                winner_ids = self._validate_selection(challenge, winner_selection, calculator)

                quote = calculator.quote_for_challenge(challenge, challenge.participant_count)
                shares = calculator.split_payouts(quote.total_pot, winner_ids)

                payouts = []
                for winner_id, amount in shares.items():
                    if amount > 0:
                        await self.transactions.credit(
                            winner_id,
                            amount,
                            TransactionType.PAYOUT,
                            reference_id=challenge.challenge_id,
                            notes=f"Winnings for {challenge.game} challenge",
                        )
                    payouts.append(PayoutLine(winner_id, amount))

                stakes = await self.transactions.get_challenge_entries(challenge_id, TransactionType.STAKE_HOLD)
                staked = sum(-entry.amount for entry in stakes)
                fee = calculator.platform_fee(staked, sum(line.amount for line in payouts))
                await self.transactions.record_platform_fee(challenge_id, fee)

                await self._record_outcome(challenge, shares, winner_selection, admin, notes)
                await self.db.commit()
        except AlreadySettledError as settled:
            # Nothing was written; end the read transaction without expiring state
            await self.db.commit()
            logger.info(f"Challenge {challenge_id} already settled; returning prior result")
            return settled.result
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"Challenge {challenge_id} resolved by admin {admin.player_id}: "
            f"payouts={[(str(line.player_id), line.amount) for line in payouts]}, fee={fee}"
        )
        return SettlementResult(challenge=challenge, payouts=payouts, platform_fee=fee)

    @staticmethod
    def _validate_selection(
        challenge: Challenge,
        selection: WinnerSelection,
        calculator: PotCalculator,
    ) -> list[UUID]:
        roster = set(challenge.participant_ids)

        if isinstance(selection, SingleWinner):
            winner_ids = [selection.player_id]
        elif isinstance(selection, MultiWinner):
            if not calculator.tier_for(challenge.player_count).allows_multiple_winners:
                raise InvalidWinnerError(
                    f"Multiple winners are not allowed for {challenge.player_count}-player challenges"
                )
            winner_ids = list(dict.fromkeys(selection.player_ids))
            if not winner_ids:
                raise InvalidWinnerError("At least one winner is required")
        else:
            raise InvalidWinnerError(f"Unsupported winner selection: {selection!r}")

        outsiders = [winner_id for winner_id in winner_ids if winner_id not in roster]
        if outsiders:
            raise InvalidWinnerError(f"Winners not on the roster: {', '.join(str(w) for w in outsiders)}")
        return winner_ids

    async def _record_outcome(
        self,
        challenge: Challenge,
        shares: dict[UUID, int],
        selection: WinnerSelection,
        admin: Player,
        notes: Optional[str],
    ) -> None:
        now = utc_now()
        winner_screenshot = None

        for participant in challenge.participants:
            amount = shares.get(participant.player_id)
            if amount is not None:
                participant.is_winner = True
                participant.payout_amount = amount
                winner_screenshot = winner_screenshot or participant.proof_screenshot
                await self.db.execute(
                    update(Player)
                    .where(Player.player_id == participant.player_id)
                    .values(
                        total_wins=Player.total_wins + 1,
                        total_earnings=Player.total_earnings + amount,
                    )
                    .execution_options(synchronize_session=False)
                )
            else:
                participant.is_winner = False
                participant.payout_amount = 0
                await self.db.execute(
                    update(Player)
                    .where(Player.player_id == participant.player_id)
                    .values(total_losses=Player.total_losses + 1)
                    .execution_options(synchronize_session=False)
                )

        if isinstance(selection, SingleWinner):
            challenge.winner_id = selection.player_id
        challenge.winner_screenshot = winner_screenshot
        challenge.admin_notes = notes
        challenge.resolved_by = admin.player_id
        challenge.completed_at = now
        challenge.status = ChallengeStatus.COMPLETED.value

    async def _prior_result(self, challenge: Challenge, payouts: list) -> SettlementResult:
        fees = await self.transactions.get_challenge_entries(challenge.challenge_id, TransactionType.FEE)
        return SettlementResult(
            challenge=challenge,
            payouts=[PayoutLine(entry.player_id, entry.amount) for entry in payouts],
            platform_fee=sum(entry.amount for entry in fees),
            already_settled=True,
        )

"""Challenge lifecycle service."""
from datetime import datetime, timedelta
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from typing import Optional
from uuid import UUID
import uuid
import logging

from arena.config import get_settings
from arena.models.base import (
    CancelReason,
    ChallengeStatus,
    NON_TERMINAL_STATUSES,
    PayoutMode,
    TransactionType,
)
from arena.models.challenge import Challenge
from arena.models.challenge_participant import ChallengeParticipant
from arena.models.player import Player
from arena.services.auth_service import is_admin
from arena.services.participant_roster import (
    ParticipantRoster,
    challenge_lock,
    load_challenge_for_update,
)
from arena.services.pot_calculator import PotCalculator
from arena.services.room_code_service import normalize_room_code
from arena.services.system_config_service import PlatformPolicy, SystemConfigService
from arena.services.transaction_service import TransactionService
from arena.utils import lock_client, ensure_utc, utc_now
from arena.utils.exceptions import (
    ChallengeExpiredError,
    ChallengeNotFoundError,
    ChallengeValidationError,
    InvalidStateError,
    SchedulingConflictError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)


class ChallengeService:
    """Service for creating and driving challenges through their lifecycle."""

    def __init__(self, db: AsyncSession, policy: PlatformPolicy | None = None):
        self.db = db
        self.settings = get_settings()
        self.transactions = TransactionService(db)
        self._policy = policy

    async def get_policy(self) -> PlatformPolicy:
        """Policy snapshot for this unit of work."""
        if self._policy is None:
            self._policy = await SystemConfigService(self.db).get_platform_policy()
        return self._policy

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------
    async def create_challenge(
        self,
        creator: Player,
        game: str,
        bet_amount: int,
        scheduled_match_time: datetime,
        match_duration: Optional[int] = None,
        player_count: int = 2,
        is_admin_authored: bool = False,
    ) -> Challenge:
        """
        Create a pending challenge.

        A user-authored challenge seats the creator in the first roster slot
        and holds their stake. An admin-authored challenge starts with an
        empty roster and holds nothing from the creator.

        Raises:
            UnauthorizedError: Non-admin asked for an admin-authored challenge
            ChallengeValidationError: Game, tier, bet, duration or schedule out of bounds
            SchedulingConflictError: Match window too close to another of the creator's
            InsufficientBalanceError: Creator cannot cover the stake
        """
        if is_admin_authored and not is_admin(creator):
            raise UnauthorizedError("Only admins can create admin challenges")

        policy = await self.get_policy()
        calculator = PotCalculator.from_policy(policy)
        tier = calculator.tier_for(player_count)

        self._validate_game(game, player_count)
        if not policy.min_bet_amount <= bet_amount <= policy.max_bet_amount:
            raise ChallengeValidationError(
                f"bet_amount must be between {policy.min_bet_amount} and {policy.max_bet_amount}"
            )

        if match_duration is None:
            match_duration = policy.default_match_duration_minutes
        if not policy.min_match_duration_minutes <= match_duration <= policy.max_match_duration_minutes:
            raise ChallengeValidationError(
                f"match_duration must be between {policy.min_match_duration_minutes} and "
                f"{policy.max_match_duration_minutes} minutes"
            )

        now = utc_now()
        scheduled_match_time = ensure_utc(scheduled_match_time)
        earliest = now + timedelta(minutes=policy.schedule_min_lead_minutes)
        latest = now + timedelta(days=policy.schedule_max_lead_days)
        if not earliest <= scheduled_match_time <= latest:
            raise ChallengeValidationError(
                f"Match must be scheduled between {policy.schedule_min_lead_minutes} minutes and "
                f"{policy.schedule_max_lead_days} days from now"
            )

        # Large lobbies are sized once the roster fills
        duration_finalized = tier.payout_mode != PayoutMode.POOL_SHARE
        if not duration_finalized:
            match_duration = policy.large_match_duration(player_count)

        quote = calculator.quote(bet_amount, player_count)

        try:
            async with lock_client.lock(
                f"schedule:{creator.player_id}", timeout=self.settings.challenge_lock_timeout_seconds
            ):
                await self._check_schedule_conflict(
                    creator.player_id, scheduled_match_time, match_duration, policy
                )

                challenge = Challenge(
                    challenge_id=uuid.uuid4(),
                    game=game,
                    bet_amount=bet_amount,
                    player_count=player_count,
                    max_participants=player_count,
                    participant_count=0,
                    status=ChallengeStatus.PENDING.value,
                    challenger_id=creator.player_id,
                    is_admin_authored=is_admin_authored,
                    scheduled_match_time=scheduled_match_time,
                    match_duration_minutes=match_duration,
                    duration_finalized=duration_finalized,
                    expires_at=now + timedelta(hours=policy.challenge_expiry_hours),
                    match_fee=quote.match_fee,
                    total_pot=quote.total_pot,
                    fee_multiplier_bps=tier.fee_multiplier_bps,
                    payout_multiplier_bps=tier.payout_multiplier_bps,
                    payout_mode=tier.payout_mode.value,
                    policy_version=policy.version,
                    created_at=now,
                )
                self.db.add(challenge)
                await self.db.flush()

                if not is_admin_authored:
                    await self.transactions.debit(
                        creator.player_id,
                        bet_amount,
                        TransactionType.STAKE_HOLD,
                        reference_id=challenge.challenge_id,
                        notes=f"Stake for {game} challenge",
                    )
                    participant = ChallengeParticipant(
                        participant_id=uuid.uuid4(),
                        challenge_id=challenge.challenge_id,
                        player_id=creator.player_id,
                        joined_at=now,
                    )
                    self.db.add(participant)
                    challenge.participant_count = 1

                await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        challenge = await self.get_challenge(challenge.challenge_id, refresh=True)
        logger.info(
            f"Challenge {challenge.challenge_id} created by {creator.player_id}: game={game}, "
            f"bet={bet_amount}, players={player_count}, admin_authored={is_admin_authored}, "
            f"policy_version={policy.version}"
        )
        return challenge

    def _validate_game(self, game: str, player_count: int) -> None:
        if game not in self.settings.games:
            raise ChallengeValidationError(f"Unsupported game: {game}")
        if player_count > 2 and game not in self.settings.multiplayer_games:
            raise ChallengeValidationError(
                f"{player_count}-player challenges are only available for "
                f"{', '.join(self.settings.multiplayer_games)}"
            )

    async def _check_schedule_conflict(
        self,
        creator_id: UUID,
        scheduled_match_time: datetime,
        match_duration: int,
        policy: PlatformPolicy,
    ) -> None:
        """Require a gap of ``schedule_separation_minutes`` between match windows."""
        separation = timedelta(minutes=policy.schedule_separation_minutes)
        new_start = scheduled_match_time
        new_end = new_start + timedelta(minutes=match_duration)

        result = await self.db.execute(
            select(Challenge).where(
                Challenge.challenger_id == creator_id,
                Challenge.status.in_(NON_TERMINAL_STATUSES),
            )
        )
        for other in result.scalars().all():
            other_start = ensure_utc(other.scheduled_match_time)
            other_end = other_start + timedelta(minutes=other.match_duration_minutes)
            if new_start < other_end + separation and other_start < new_end + separation:
                raise SchedulingConflictError(
                    f"Match window overlaps challenge {other.challenge_id} scheduled at "
                    f"{other_start.isoformat()}; keep {policy.schedule_separation_minutes} minutes between matches"
                )

    # ------------------------------------------------------------------
    # Pending-phase operations
    # ------------------------------------------------------------------
    async def accept_challenge(self, challenge_id: UUID, player: Player) -> Challenge:
        """Join the roster of a pending challenge."""
        policy = await self.get_policy()
        return await ParticipantRoster(self.db).join(challenge_id, player, policy)

    async def extend_challenge(self, challenge_id: UUID, player: Player, hours: int) -> Challenge:
        """Push back the expiry of a pending challenge, capped at the absolute lifetime."""
        policy = await self.get_policy()
        try:
            async with challenge_lock(challenge_id):
                challenge = await load_challenge_for_update(self.db, challenge_id)

                if challenge.challenger_id != player.player_id:
                    raise UnauthorizedError("Only the challenger can extend this challenge")
                if challenge.status != ChallengeStatus.PENDING.value:
                    raise InvalidStateError(f"Challenge is {challenge.status}, not pending")
                now = utc_now()
                if now > ensure_utc(challenge.expires_at):
                    raise ChallengeExpiredError("Challenge has expired")
                if not 1 <= hours <= policy.max_extension_hours:
                    raise ChallengeValidationError(
                        f"Extension must be between 1 and {policy.max_extension_hours} hours"
                    )

                hard_cap = ensure_utc(challenge.created_at) + timedelta(hours=policy.max_challenge_lifetime_hours)
                new_expiry = min(ensure_utc(challenge.expires_at) + timedelta(hours=hours), hard_cap)
                challenge.expires_at = new_expiry

                await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Challenge {challenge_id} extended by {hours}h to {new_expiry.isoformat()}")
        return challenge

    async def cancel_challenge(self, challenge_id: UUID, player: Player) -> Challenge:
        """Challenger withdraws a pending challenge; every held stake is refunded."""
        try:
            async with challenge_lock(challenge_id):
                challenge = await load_challenge_for_update(self.db, challenge_id)

                if challenge.challenger_id != player.player_id:
                    raise UnauthorizedError("Only the challenger can cancel this challenge")
                if challenge.status != ChallengeStatus.PENDING.value:
                    raise InvalidStateError(f"Challenge is {challenge.status}, not pending")

                refunded = await self._cancel_with_refunds(challenge, CancelReason.CHALLENGER_CANCELLED)
                await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Challenge {challenge_id} cancelled by challenger; refunded {refunded}")
        return challenge

    async def admin_cancel_challenge(
        self,
        challenge_id: UUID,
        admin: Player,
        reason: Optional[str] = None,
    ) -> Challenge:
        """Admin override: cancel any non-terminal challenge and refund the roster."""
        if not is_admin(admin):
            raise UnauthorizedError("Admin access required")
        try:
            async with challenge_lock(challenge_id):
                challenge = await load_challenge_for_update(self.db, challenge_id)
                if challenge.status_enum.is_terminal:
                    raise InvalidStateError(f"Challenge is already {challenge.status}")

                refunded = await self._cancel_with_refunds(challenge, CancelReason.ADMIN_CANCELLED)
                challenge.resolved_by = admin.player_id
                if reason:
                    challenge.admin_notes = reason
                await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Challenge {challenge_id} cancelled by admin {admin.player_id}; refunded {refunded}")
        return challenge

    async def expire_challenge(self, challenge_id: UUID) -> bool:
        """Cancel a pending challenge past its expiry, refunding every stake.

        Returns False when the challenge was accepted, cancelled or extended
        since it was selected.
        """
        try:
            async with challenge_lock(challenge_id):
                challenge = await load_challenge_for_update(self.db, challenge_id)
                if challenge.status != ChallengeStatus.PENDING.value:
                    return False
                if ensure_utc(challenge.expires_at) >= utc_now():
                    return False

                refunded = await self._cancel_with_refunds(challenge, CancelReason.EXPIRED)
                await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Challenge {challenge_id} expired; refunded {refunded}")
        return True

    async def _cancel_with_refunds(self, challenge: Challenge, reason: CancelReason) -> int:
        """Refund every held stake and mark the challenge cancelled. Caller commits."""
        refunded = await self.refund_held_stakes(challenge)
        challenge.status = ChallengeStatus.CANCELLED.value
        challenge.cancel_reason = reason.value
        challenge.cancelled_at = utc_now()
        return refunded

    async def refund_held_stakes(self, challenge: Challenge) -> int:
        """Return each stake recorded against the challenge exactly once."""
        stakes = await self.transactions.get_challenge_entries(
            challenge.challenge_id, TransactionType.STAKE_HOLD
        )
        total = 0
        for stake in stakes:
            await self.transactions.credit(
                stake.player_id,
                -stake.amount,
                TransactionType.REFUND,
                reference_id=challenge.challenge_id,
                notes=f"Refund for {challenge.game} challenge",
            )
            total += -stake.amount
        return total

    # ------------------------------------------------------------------
    # Match phase
    # ------------------------------------------------------------------
    async def start_match(self, challenge_id: UUID, admin: Player, room_code: str) -> Challenge:
        """Open the lobby: accepted -> in-progress with the room code set."""
        if not is_admin(admin):
            raise UnauthorizedError("Admin access required")
        room_code = normalize_room_code(room_code)

        try:
            async with challenge_lock(challenge_id):
                challenge = await load_challenge_for_update(self.db, challenge_id)
                if challenge.status != ChallengeStatus.ACCEPTED.value:
                    raise InvalidStateError(f"Challenge is {challenge.status}, not accepted")
                if not challenge.participants:
                    raise InvalidStateError("Challenge has no participants")

                now = utc_now()
                challenge.status = ChallengeStatus.IN_PROGRESS.value
                challenge.admin_room_code = room_code
                challenge.room_code_provided_by = admin.player_id
                challenge.room_code_provided_at = now
                challenge.started_at = now
                await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Challenge {challenge_id} started by admin {admin.player_id}")
        return challenge

    async def submit_proof(self, challenge_id: UUID, player: Player, screenshot_ref: str) -> Challenge:
        """Attach a result screenshot reference to the player's roster entry."""
        screenshot_ref = (screenshot_ref or "").strip()
        if not screenshot_ref or len(screenshot_ref) > self.settings.screenshot_ref_max_length:
            raise ChallengeValidationError(
                f"screenshot reference must be 1..{self.settings.screenshot_ref_max_length} characters"
            )

        try:
            async with challenge_lock(challenge_id):
                challenge = await load_challenge_for_update(self.db, challenge_id)
                participant = challenge.get_participant(player.player_id)
                if participant is None:
                    raise UnauthorizedError("Only participants can submit proof")
                if challenge.status != ChallengeStatus.IN_PROGRESS.value:
                    raise InvalidStateError(f"Challenge is {challenge.status}, not in progress")

                participant.proof_screenshot = screenshot_ref
                participant.proof_submitted_at = utc_now()
                await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Proof submitted for challenge {challenge_id} by {player.player_id}")
        return challenge

    async def raise_dispute(self, challenge_id: UUID, player: Player, reason: str) -> Challenge:
        """Flag a completed match for admin review.

        Only roster participants may dispute. A later dispute replaces the
        earlier reason. The settlement itself is left untouched.
        """
        reason = (reason or "").strip()
        if not reason or len(reason) > self.settings.dispute_reason_max_length:
            raise ChallengeValidationError(
                f"Dispute reason must be 1..{self.settings.dispute_reason_max_length} characters"
            )

        try:
            async with challenge_lock(challenge_id):
                challenge = await load_challenge_for_update(self.db, challenge_id)
                if challenge.get_participant(player.player_id) is None:
                    raise UnauthorizedError("Only participants can dispute a result")
                if challenge.status != ChallengeStatus.COMPLETED.value:
                    raise InvalidStateError(f"Challenge is {challenge.status}, not completed")

                challenge.is_disputed = True
                challenge.dispute_reason = reason
                challenge.disputed_at = utc_now()
                await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Challenge {challenge_id} disputed by {player.player_id}")
        return challenge

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get_challenge(self, challenge_id: UUID, refresh: bool = False) -> Challenge:
        stmt = select(Challenge).where(Challenge.challenge_id == challenge_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        challenge = result.scalar_one_or_none()
        if not challenge:
            raise ChallengeNotFoundError(f"Challenge not found: {challenge_id}")
        return challenge

    async def list_challenges(
        self,
        game: Optional[str] = None,
        status: Optional[ChallengeStatus] = None,
        page: int = 1,
        limit: int = 20,
        include_completed: bool = False,
    ) -> tuple[list[Challenge], int]:
        """Page through challenges ordered by scheduled time.

        Completed challenges are hidden unless asked for by status or flag.
        """
        page = max(page, 1)
        limit = max(1, min(limit, 100))
        filters = []
        if game:
            filters.append(Challenge.game == game)
        if status is not None:
            filters.append(Challenge.status == ChallengeStatus(status).value)
        elif not include_completed:
            filters.append(Challenge.status != ChallengeStatus.COMPLETED.value)

        total = (await self.db.execute(select(func.count()).select_from(Challenge).where(*filters))).scalar_one()
        result = await self.db.execute(
            select(Challenge)
            .where(*filters)
            .order_by(Challenge.scheduled_match_time.asc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return list(result.scalars().all()), total

    async def list_my_challenges(
        self,
        player: Player,
        status: Optional[ChallengeStatus] = None,
        include_completed: bool = True,
    ) -> list[Challenge]:
        """Challenges the player created or joined, newest first."""
        joined = select(ChallengeParticipant.challenge_id).where(
            ChallengeParticipant.player_id == player.player_id
        )
        stmt = select(Challenge).where(
            or_(Challenge.challenger_id == player.player_id, Challenge.challenge_id.in_(joined))
        )
        if status is not None:
            stmt = stmt.where(Challenge.status == ChallengeStatus(status).value)
        elif not include_completed:
            stmt = stmt.where(Challenge.status != ChallengeStatus.COMPLETED.value)

        result = await self.db.execute(stmt.order_by(Challenge.created_at.desc()))
        return list(result.scalars().all())

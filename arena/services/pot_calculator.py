"""Pot, match fee and payout calculation.

Multipliers are carried as integer basis points of the bet amount so every
amount is computed with integer arithmetic and rounded half-up to whole
currency units.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Mapping
from uuid import UUID

from arena.models.base import PayoutMode
from arena.utils.exceptions import ChallengeValidationError

BPS = 10_000


def to_bps(multiplier: float) -> int:
    """Convert a multiplier such as 1.5 to basis points (15000)."""
    return int((Decimal(str(multiplier)) * BPS).to_integral_value(rounding=ROUND_HALF_UP))


def apply_bps(amount: int, bps: int) -> int:
    """Multiply a non-negative amount by basis points, rounding half-up."""
    return (amount * bps + BPS // 2) // BPS


@dataclass(frozen=True)
class PotTier:
    """Economics of one player-count tier."""
    player_count: int
    fee_multiplier_bps: int
    payout_multiplier_bps: int
    payout_mode: PayoutMode = PayoutMode.FIXED
    allows_multiple_winners: bool = False


@dataclass(frozen=True)
class PotQuote:
    match_fee: int
    total_pot: int
    participant_count: int


class PotCalculator:
    """Pure calculator over a configurable tier table."""

    def __init__(self, tiers: Mapping[int, PotTier]):
        self.tiers = dict(tiers)

    @classmethod
    def from_policy(cls, policy) -> "PotCalculator":
        """Build the tier table from a PlatformPolicy snapshot."""
        tiers = {
            2: PotTier(2, to_bps(policy.tier_2_fee_multiplier), to_bps(policy.tier_2_payout_multiplier)),
            4: PotTier(
                4,
                to_bps(policy.tier_4_fee_multiplier),
                to_bps(policy.tier_4_payout_multiplier),
                allows_multiple_winners=True,
            ),
            8: PotTier(8, to_bps(policy.tier_8_fee_multiplier), to_bps(policy.tier_8_payout_multiplier)),
            # Fee is a flat multiple of the bet; payout scales with the filled lobby
            50: PotTier(
                50,
                to_bps(policy.tier_50_fee_multiplier),
                to_bps(policy.tier_50_payout_share),
                payout_mode=PayoutMode.POOL_SHARE,
            ),
        }
        return cls(tiers)

    @property
    def supported_player_counts(self) -> list[int]:
        return sorted(self.tiers)

    def tier_for(self, player_count: int) -> PotTier:
        tier = self.tiers.get(player_count)
        if tier is None:
            raise ChallengeValidationError(
                f"player_count must be one of {self.supported_player_counts}, got {player_count}"
            )
        return tier

    def quote(self, bet_amount: int, player_count: int, participant_count: int | None = None) -> PotQuote:
        """Match fee and total pot for a new challenge.

        ``participant_count`` defaults to full capacity, which is what a
        pool-share tier advertises before its roster fills.
        """
        tier = self.tier_for(player_count)
        return self.quote_with(
            bet_amount,
            tier.fee_multiplier_bps,
            tier.payout_multiplier_bps,
            tier.payout_mode,
            participant_count if participant_count is not None else player_count,
        )

    @staticmethod
    def quote_with(
        bet_amount: int,
        fee_multiplier_bps: int,
        payout_multiplier_bps: int,
        payout_mode: PayoutMode | str,
        participant_count: int,
    ) -> PotQuote:
        """Quote from explicit multipliers (a challenge's snapshot)."""
        if bet_amount <= 0:
            raise ChallengeValidationError("bet_amount must be positive")
        match_fee = apply_bps(bet_amount, fee_multiplier_bps)
        if PayoutMode(payout_mode) == PayoutMode.POOL_SHARE:
            total_pot = apply_bps(bet_amount * participant_count, payout_multiplier_bps)
        else:
            total_pot = apply_bps(bet_amount, payout_multiplier_bps)
        return PotQuote(match_fee=match_fee, total_pot=total_pot, participant_count=participant_count)

    @staticmethod
    def quote_for_challenge(challenge, participant_count: int | None = None) -> PotQuote:
        """Re-derive a challenge's pot from the multipliers snapshotted at creation."""
        return PotCalculator.quote_with(
            challenge.bet_amount,
            challenge.fee_multiplier_bps,
            challenge.payout_multiplier_bps,
            challenge.payout_mode,
            participant_count if participant_count is not None else challenge.participant_count,
        )

    @staticmethod
    def split_payouts(total_pot: int, winner_ids: Iterable[UUID]) -> dict[UUID, int]:
        """Split the pot evenly, flooring each share.

        The indivisible remainder is never paid out; it stays with the
        platform fee so payouts can never exceed the pot.
        """
        winners = list(dict.fromkeys(winner_ids))
        if not winners:
            raise ValueError("At least one winner is required")
        share = total_pot // len(winners)
        return {winner_id: share for winner_id in winners}

    @staticmethod
    def platform_fee(stakes: int, payouts: int) -> int:
        """What the platform retains once payouts are made."""
        return stakes - payouts

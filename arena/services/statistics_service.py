"""Statistics service for per-game activity and player performance."""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, case
from uuid import UUID
import logging

from arena.models.base import ChallengeStatus
from arena.models.challenge import Challenge
from arena.models.challenge_participant import ChallengeParticipant
from arena.models.player import Player
from arena.schemas.game import GameStats, LeaderboardEntry, PlayerGameStats, RecentChallenge

logger = logging.getLogger(__name__)


class StatisticsService:
    """Aggregates over challenges and their rosters."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def game_stats(self, game: str, recent_limit: int = 10) -> GameStats:
        """
        Activity summary for one game.

        Args:
            game: Game display name
            recent_limit: Number of most recent challenges to include

        Returns:
            GameStats with counts, completed bet volume and recent challenges
        """
        completed = ChallengeStatus.COMPLETED.value
        pending = ChallengeStatus.PENDING.value
        result = await self.db.execute(
            select(
                func.count(Challenge.challenge_id),
                func.coalesce(func.sum(case((Challenge.status == completed, 1), else_=0)), 0),
                func.coalesce(func.sum(case((Challenge.status == pending, 1), else_=0)), 0),
                func.coalesce(func.sum(case((Challenge.status == completed, Challenge.bet_amount), else_=0)), 0),
            ).where(Challenge.game == game)
        )
        total, completed_count, pending_count, bet_volume = result.one()

        recent = await self.db.execute(
            select(Challenge)
            .where(Challenge.game == game)
            .order_by(Challenge.created_at.desc())
            .limit(recent_limit)
        )

        return GameStats(
            game=game,
            total_challenges=total,
            completed_challenges=int(completed_count),
            pending_challenges=int(pending_count),
            total_bet_amount=int(bet_volume),
            recent_challenges=[RecentChallenge.model_validate(c) for c in recent.scalars().all()],
        )

    async def leaderboard(self, game: str, limit: int = 20) -> list[LeaderboardEntry]:
        """Players ranked by wins, then by winnings, in completed challenges of ``game``."""
        wins = func.count(ChallengeParticipant.participant_id)
        earnings = func.coalesce(func.sum(ChallengeParticipant.payout_amount), 0)
        result = await self.db.execute(
            select(Player.player_id, Player.username, wins.label("wins"), earnings.label("earnings"))
            .join(ChallengeParticipant, ChallengeParticipant.player_id == Player.player_id)
            .join(Challenge, Challenge.challenge_id == ChallengeParticipant.challenge_id)
            .where(
                Challenge.game == game,
                Challenge.status == ChallengeStatus.COMPLETED.value,
                ChallengeParticipant.is_winner.is_(True),
            )
            .group_by(Player.player_id, Player.username)
            .order_by(wins.desc(), earnings.desc())
            .limit(limit)
        )
        return [
            LeaderboardEntry(player_id=row.player_id, username=row.username, wins=row.wins,
                             total_earnings=int(row.earnings))
            for row in result.all()
        ]

    async def player_game_stats(self, player_id: UUID, game: str) -> PlayerGameStats:
        """Win/loss record and money flow of one player in completed challenges of ``game``."""
        result = await self.db.execute(
            select(
                func.count(ChallengeParticipant.participant_id),
                func.coalesce(func.sum(case((ChallengeParticipant.is_winner.is_(True), 1), else_=0)), 0),
                func.coalesce(func.sum(ChallengeParticipant.payout_amount), 0),
                func.coalesce(func.sum(Challenge.bet_amount), 0),
            )
            .join(Challenge, Challenge.challenge_id == ChallengeParticipant.challenge_id)
            .where(
                ChallengeParticipant.player_id == player_id,
                Challenge.game == game,
                Challenge.status == ChallengeStatus.COMPLETED.value,
            )
        )
        total_games, wins, earnings, bets = (int(value) for value in result.one())
        losses = total_games - wins

        return PlayerGameStats(
            game=game,
            total_games=total_games,
            wins=wins,
            losses=losses,
            win_rate=round(wins / total_games * 100, 1) if total_games else 0.0,
            total_earnings=earnings,
            total_bets=bets,
            net_profit=earnings - bets,
        )

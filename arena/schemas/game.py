"""Game catalog and statistics schemas."""
from pydantic import BaseModel
from typing import Optional
from uuid import UUID

from arena.schemas.base import BaseSchema, UTCDateTime


class GameInfo(BaseModel):
    slug: str
    name: str
    description: str
    min_bet: int
    max_bet: int
    player_counts: list[int]
    rules: list[str]


class RecentChallenge(BaseSchema):
    challenge_id: UUID
    status: str
    bet_amount: int
    player_count: int
    challenger_id: UUID
    winner_id: Optional[UUID] = None
    created_at: UTCDateTime


class GameStats(BaseModel):
    game: str
    total_challenges: int
    completed_challenges: int
    pending_challenges: int
    total_bet_amount: int
    recent_challenges: list[RecentChallenge]


class LeaderboardEntry(BaseModel):
    player_id: UUID
    username: str
    wins: int
    total_earnings: int


class PlayerGameStats(BaseModel):
    game: str
    total_games: int
    wins: int
    losses: int
    win_rate: float
    total_earnings: int
    total_bets: int
    net_profit: int

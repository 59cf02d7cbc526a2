"""Game catalog and statistics API router."""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from arena.database import get_db
from arena.dependencies import get_current_player
from arena.models.player import Player
from arena.schemas.game import GameInfo, GameStats, LeaderboardEntry, PlayerGameStats
from arena.services import StatisticsService, SystemConfigService
from arena.services.game_catalog import game_for_slug, list_games

router = APIRouter(prefix="/games", tags=["games"])


def _resolve_game(slug: str) -> str:
    game = game_for_slug(slug)
    if game is None:
        raise HTTPException(status_code=404, detail="game_not_found")
    return game


@router.get("", response_model=list[GameInfo])
async def get_games(db: AsyncSession = Depends(get_db)):
    """Supported games with current bet bounds and player-count tiers."""
    policy = await SystemConfigService(db).get_platform_policy()
    return list_games(policy)


@router.get("/{slug}/stats", response_model=GameStats)
async def get_game_stats(
    slug: str,
    player: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_db),
):
    return await StatisticsService(db).game_stats(_resolve_game(slug))


@router.get("/{slug}/leaderboard", response_model=list[LeaderboardEntry])
async def get_leaderboard(
    slug: str,
    limit: int = Query(20, ge=1, le=100),
    player: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_db),
):
    return await StatisticsService(db).leaderboard(_resolve_game(slug), limit=limit)


@router.get("/{slug}/me", response_model=PlayerGameStats)
async def get_my_game_stats(
    slug: str,
    player: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_db),
):
    return await StatisticsService(db).player_game_stats(player.player_id, _resolve_game(slug))

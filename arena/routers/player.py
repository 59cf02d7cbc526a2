"""Player wallet API router."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from arena.database import get_db
from arena.dependencies import get_current_player
from arena.models.player import Player
from arena.schemas.player import PlayerBalance, TransactionListResponse, TransactionResponse
from arena.services import TransactionService, is_admin

router = APIRouter(prefix="/player", tags=["player"])


@router.get("/balance", response_model=PlayerBalance)
async def get_balance(
    player: Player = Depends(get_current_player),
):
    """Get player balance and win/loss record."""
    balance = PlayerBalance.model_validate(player)
    return balance.model_copy(update={"is_admin": is_admin(player)})


@router.get("/transactions", response_model=TransactionListResponse)
async def get_transactions(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    player: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_db),
):
    """Wallet history, newest first."""
    transactions = await TransactionService(db).get_player_transactions(player.player_id, limit, offset)
    return TransactionListResponse(
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
        limit=limit,
        offset=offset,
    )

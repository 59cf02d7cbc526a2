"""Admin API router."""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from uuid import UUID
import logging

from arena.database import get_db
from arena.dependencies import get_admin_player
from arena.models.base import ChallengeStatus
from arena.models.player import Player
from arena.schemas.admin import ConfigResponse, UpdateConfigRequest, UpdateConfigResponse
from arena.schemas.challenge import (
    AdminCancelRequest,
    ChallengeListResponse,
    ChallengeResponse,
    CreateChallengeRequest,
    LedgerSummaryResponse,
    ResolveDisputeRequest,
    RoomCodeRequest,
    SettlementResponse,
)
from arena.schemas.player import AdminBalanceAdjustRequest, AdminBalanceAdjustResponse, TransactionResponse
from arena.services import (
    ChallengeService,
    DisputeResolver,
    RoomCodeService,
    SystemConfigService,
    TransactionService,
)
from arena.utils.exceptions import PlayerNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/challenges", response_model=ChallengeResponse, status_code=201)
async def create_admin_challenge(
    request: CreateChallengeRequest,
    admin: Player = Depends(get_admin_player),
    db: AsyncSession = Depends(get_db),
):
    """Host a challenge without staking; every slot is filled by joiners."""
    return await ChallengeService(db).create_challenge(
        creator=admin,
        game=request.game,
        bet_amount=request.bet_amount,
        scheduled_match_time=request.scheduled_match_time,
        match_duration=request.match_duration,
        player_count=request.player_count,
        is_admin_authored=True,
    )


@router.get("/challenges", response_model=ChallengeListResponse)
async def list_all_challenges(
    game: Optional[str] = None,
    status: Optional[ChallengeStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    admin: Player = Depends(get_admin_player),
    db: AsyncSession = Depends(get_db),
):
    challenges, total = await ChallengeService(db).list_challenges(
        game=game, status=status, page=page, limit=limit, include_completed=True
    )
    return ChallengeListResponse(
        challenges=[ChallengeResponse.model_validate(c) for c in challenges],
        total=total,
        page=page,
        limit=limit,
    )


@router.post("/challenges/{challenge_id}/start", response_model=ChallengeResponse)
async def start_match(
    challenge_id: UUID,
    request: RoomCodeRequest,
    admin: Player = Depends(get_admin_player),
    db: AsyncSession = Depends(get_db),
):
    return await ChallengeService(db).start_match(challenge_id, admin, request.room_code)


@router.post("/challenges/{challenge_id}/room-code", response_model=ChallengeResponse)
async def provide_room_code(
    challenge_id: UUID,
    request: RoomCodeRequest,
    admin: Player = Depends(get_admin_player),
    db: AsyncSession = Depends(get_db),
):
    return await RoomCodeService(db).provide_room_code(challenge_id, admin, request.room_code)


@router.put("/challenges/{challenge_id}/room-code", response_model=ChallengeResponse)
async def update_room_code(
    challenge_id: UUID,
    request: RoomCodeRequest,
    admin: Player = Depends(get_admin_player),
    db: AsyncSession = Depends(get_db),
):
    return await RoomCodeService(db).update_room_code(challenge_id, admin, request.room_code)


@router.post("/challenges/{challenge_id}/resolve", response_model=SettlementResponse)
async def resolve_dispute(
    challenge_id: UUID,
    request: ResolveDisputeRequest,
    admin: Player = Depends(get_admin_player),
    db: AsyncSession = Depends(get_db),
):
    """Declare the winner(s) and release the pot. Repeat calls return the first settlement."""
    result = await DisputeResolver(db).resolve_dispute(
        challenge_id, admin, request.to_selection(), notes=request.notes
    )
    return SettlementResponse.model_validate(result)


@router.post("/challenges/{challenge_id}/cancel", response_model=ChallengeResponse)
async def admin_cancel_challenge(
    challenge_id: UUID,
    request: AdminCancelRequest,
    admin: Player = Depends(get_admin_player),
    db: AsyncSession = Depends(get_db),
):
    return await ChallengeService(db).admin_cancel_challenge(challenge_id, admin, request.reason)


@router.get("/challenges/{challenge_id}/ledger", response_model=LedgerSummaryResponse)
async def challenge_ledger(
    challenge_id: UUID,
    admin: Player = Depends(get_admin_player),
    db: AsyncSession = Depends(get_db),
):
    """Money moved for one challenge and whether it balances."""
    await ChallengeService(db).get_challenge(challenge_id)
    summary = await TransactionService(db).challenge_ledger_summary(challenge_id)
    return LedgerSummaryResponse(
        challenge_id=challenge_id,
        stakes=summary.stakes,
        refunds=summary.refunds,
        payouts=summary.payouts,
        fee=summary.fee,
        held=summary.held,
        balanced=summary.balanced,
    )


@router.post("/players/{player_id}/balance", response_model=AdminBalanceAdjustResponse)
async def adjust_player_balance(
    player_id: UUID,
    request: AdminBalanceAdjustRequest,
    admin: Player = Depends(get_admin_player),
    db: AsyncSession = Depends(get_db),
):
    """Manual wallet correction, recorded as admin_credit or admin_debit."""
    result = await db.execute(select(Player.player_id).where(Player.player_id == player_id))
    if result.scalar_one_or_none() is None:
        raise PlayerNotFoundError(f"Player not found: {player_id}")

    transaction = await TransactionService(db).admin_adjust_balance(
        player_id, request.amount, admin.player_id, request.notes
    )
    logger.info(f"Admin {admin.player_id} adjusted balance of {player_id} by {request.amount}")
    return AdminBalanceAdjustResponse(
        player_id=player_id,
        new_balance=transaction.balance_after,
        transaction=TransactionResponse.model_validate(transaction),
    )


@router.get("/config", response_model=ConfigResponse)
async def get_config(
    admin: Player = Depends(get_admin_player),
    db: AsyncSession = Depends(get_db),
):
    service = SystemConfigService(db)
    return ConfigResponse(
        policy_version=await service.get_policy_version(),
        values=await service.get_all_config(),
    )


@router.patch("/config", response_model=UpdateConfigResponse)
async def update_config(
    request: UpdateConfigRequest,
    admin: Player = Depends(get_admin_player),
    db: AsyncSession = Depends(get_db),
):
    """Change one policy value; only challenges created afterwards are affected."""
    service = SystemConfigService(db)
    try:
        config_entry = await service.set_config_value(request.key, request.value, updated_by=str(admin.player_id))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return UpdateConfigResponse(
        success=True,
        key=request.key,
        value=service.deserialize_value(config_entry.value, config_entry.value_type),
        policy_version=await service.get_policy_version(),
        message=f"Configuration '{request.key}' updated successfully",
    )

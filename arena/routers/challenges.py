"""Challenges API router."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from uuid import UUID
import logging

from arena.database import get_db
from arena.dependencies import get_current_player
from arena.models.base import ChallengeStatus
from arena.models.player import Player
from arena.schemas.challenge import (
    ChallengeListResponse,
    ChallengeResponse,
    CreateChallengeRequest,
    ExtendChallengeRequest,
    RaiseDisputeRequest,
    SubmitProofRequest,
)
from arena.services import ChallengeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/challenges", tags=["challenges"])


@router.get("", response_model=ChallengeListResponse)
async def list_challenges(
    game: Optional[str] = None,
    status: Optional[ChallengeStatus] = None,
    include_completed: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    player: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_db),
):
    """Browse challenges ordered by scheduled match time."""
    challenges, total = await ChallengeService(db).list_challenges(
        game=game,
        status=status,
        page=page,
        limit=limit,
        include_completed=include_completed,
    )
    return ChallengeListResponse(
        challenges=[ChallengeResponse.model_validate(c) for c in challenges],
        total=total,
        page=page,
        limit=limit,
    )


@router.post("", response_model=ChallengeResponse, status_code=201)
async def create_challenge(
    request: CreateChallengeRequest,
    player: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_db),
):
    """Create a challenge and hold the creator's stake."""
    return await ChallengeService(db).create_challenge(
        creator=player,
        game=request.game,
        bet_amount=request.bet_amount,
        scheduled_match_time=request.scheduled_match_time,
        match_duration=request.match_duration,
        player_count=request.player_count,
    )


@router.get("/mine", response_model=list[ChallengeResponse])
async def list_my_challenges(
    status: Optional[ChallengeStatus] = None,
    include_completed: bool = True,
    player: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_db),
):
    """Challenges the current player created or joined."""
    return await ChallengeService(db).list_my_challenges(
        player, status=status, include_completed=include_completed
    )


@router.get("/{challenge_id}", response_model=ChallengeResponse)
async def get_challenge(
    challenge_id: UUID,
    player: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_db),
):
    return await ChallengeService(db).get_challenge(challenge_id)


@router.post("/{challenge_id}/accept", response_model=ChallengeResponse)
async def accept_challenge(
    challenge_id: UUID,
    player: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_db),
):
    """Join the roster; the final join moves the challenge to accepted."""
    logger.info(f"[API /challenges/accept] player={player.player_id} challenge={challenge_id}")
    return await ChallengeService(db).accept_challenge(challenge_id, player)


@router.post("/{challenge_id}/extend", response_model=ChallengeResponse)
async def extend_challenge(
    challenge_id: UUID,
    request: ExtendChallengeRequest,
    player: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_db),
):
    return await ChallengeService(db).extend_challenge(challenge_id, player, request.hours)


@router.post("/{challenge_id}/cancel", response_model=ChallengeResponse)
async def cancel_challenge(
    challenge_id: UUID,
    player: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_db),
):
    """Withdraw a pending challenge; all held stakes are refunded."""
    return await ChallengeService(db).cancel_challenge(challenge_id, player)


@router.post("/{challenge_id}/proof", response_model=ChallengeResponse)
async def submit_proof(
    challenge_id: UUID,
    request: SubmitProofRequest,
    player: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_db),
):
    return await ChallengeService(db).submit_proof(challenge_id, player, request.screenshot_ref)


@router.post("/{challenge_id}/dispute", response_model=ChallengeResponse)
async def raise_dispute(
    challenge_id: UUID,
    request: RaiseDisputeRequest,
    player: Player = Depends(get_current_player),
    db: AsyncSession = Depends(get_db),
):
    """Flag a completed match for admin review; payouts stand."""
    return await ChallengeService(db).raise_dispute(challenge_id, player, request.reason)

"""Challenge-related Pydantic schemas."""
from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from arena.schemas.base import BaseSchema, UTCDateTime
from arena.services.dispute_service import MultiWinner, SingleWinner, WinnerSelection


class CreateChallengeRequest(BaseModel):
    """Create challenge request."""
    game: str
    bet_amount: int = Field(gt=0)
    scheduled_match_time: datetime
    match_duration: Optional[int] = None
    player_count: Literal[2, 4, 8, 50] = 2


class ExtendChallengeRequest(BaseModel):
    hours: int


class SubmitProofRequest(BaseModel):
    screenshot_ref: str = Field(min_length=1, max_length=500)


class RaiseDisputeRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=1000)


class RoomCodeRequest(BaseModel):
    room_code: str = Field(min_length=1, max_length=64)


class AdminCancelRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class ResolveDisputeRequest(BaseModel):
    """Exactly one of ``winner_id`` or ``winner_ids`` must be given."""
    winner_id: Optional[UUID] = None
    winner_ids: Optional[list[UUID]] = None
    notes: Optional[str] = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def check_one_selection(self):
        if (self.winner_id is None) == (self.winner_ids is None):
            raise ValueError("Provide either winner_id or winner_ids")
        if self.winner_ids is not None and not self.winner_ids:
            raise ValueError("winner_ids must not be empty")
        return self

    def to_selection(self) -> WinnerSelection:
        if self.winner_id is not None:
            return SingleWinner(self.winner_id)
        return MultiWinner(tuple(self.winner_ids))


class ParticipantResponse(BaseSchema):
    participant_id: UUID
    player_id: UUID
    joined_at: UTCDateTime
    proof_screenshot: Optional[str] = None
    proof_submitted_at: Optional[UTCDateTime] = None
    is_winner: bool
    payout_amount: Optional[int] = None


class ChallengeResponse(BaseSchema):
    """Full challenge view including its roster."""
    challenge_id: UUID
    game: str
    bet_amount: int
    player_count: int
    max_participants: int
    participant_count: int
    available_slots: int
    status: str
    challenger_id: UUID
    accepter_id: Optional[UUID] = None
    is_admin_authored: bool
    scheduled_match_time: UTCDateTime
    match_duration_minutes: int
    duration_finalized: bool
    expires_at: UTCDateTime
    match_fee: int
    total_pot: int
    payout_mode: str
    policy_version: int
    admin_room_code: Optional[str] = None
    room_code_provided_at: Optional[UTCDateTime] = None
    winner_id: Optional[UUID] = None
    winner_screenshot: Optional[str] = None
    admin_notes: Optional[str] = None
    cancel_reason: Optional[str] = None
    is_disputed: bool = False
    dispute_reason: Optional[str] = None
    disputed_at: Optional[UTCDateTime] = None
    created_at: UTCDateTime
    accepted_at: Optional[UTCDateTime] = None
    started_at: Optional[UTCDateTime] = None
    completed_at: Optional[UTCDateTime] = None
    cancelled_at: Optional[UTCDateTime] = None
    participants: list[ParticipantResponse] = []


class ChallengeListResponse(BaseModel):
    challenges: list[ChallengeResponse]
    total: int
    page: int
    limit: int


class PayoutLineResponse(BaseSchema):
    player_id: UUID
    amount: int


class SettlementResponse(BaseSchema):
    """Outcome of a dispute resolution; ``already_settled`` marks a repeat call."""
    challenge: ChallengeResponse
    payouts: list[PayoutLineResponse]
    platform_fee: int
    already_settled: bool


class LedgerSummaryResponse(BaseModel):
    challenge_id: UUID
    stakes: int
    refunds: int
    payouts: int
    fee: int
    held: int
    balanced: bool

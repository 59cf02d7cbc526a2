"""Player and wallet schemas."""
from pydantic import BaseModel, Field, field_validator
from typing import Optional
from uuid import UUID

from arena.schemas.base import BaseSchema, UTCDateTime


class PlayerBalance(BaseSchema):
    """Player balance response."""
    player_id: UUID
    username: str
    email: str
    balance: int
    total_wins: int
    total_losses: int
    total_earnings: int
    win_rate: float
    is_admin: bool = False
    created_at: UTCDateTime


class TransactionResponse(BaseSchema):
    transaction_id: UUID
    player_id: Optional[UUID] = None
    amount: int
    type: str
    reference_id: Optional[UUID] = None
    balance_after: Optional[int] = None
    notes: Optional[str] = None
    created_at: UTCDateTime


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse]
    limit: int
    offset: int


class AdminBalanceAdjustRequest(BaseModel):
    """Positive amounts credit the player, negative amounts deduct."""
    amount: int
    notes: Optional[str] = Field(default=None, max_length=200)

    @field_validator("amount")
    @classmethod
    def amount_non_zero(cls, value: int) -> int:
        if value == 0:
            raise ValueError("amount must be non-zero")
        return value


class AdminBalanceAdjustResponse(BaseModel):
    player_id: UUID
    new_balance: int
    transaction: TransactionResponse

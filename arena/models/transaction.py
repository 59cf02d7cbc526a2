"""Wallet transaction ledger model."""
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime, UTC
from arena.database import Base
from arena.models.base import get_uuid_column


class WalletTransaction(Base):
    """Append-only ledger entry.

    ``player_id`` is NULL only for the platform fee entry of a settled challenge.
    The unique key makes every stake hold, refund and payout apply at most once
    per player per challenge.
    """
    __tablename__ = "wallet_transactions"

    transaction_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    player_id = get_uuid_column(ForeignKey("players.player_id", ondelete="RESTRICT"), nullable=True, index=True)
    amount = Column(Integer, nullable=False)  # Negative for debits, positive for credits
    type = Column(String(20), nullable=False, index=True)
    reference_id = get_uuid_column(nullable=True, index=True)  # Related challenge
    balance_after = Column(Integer, nullable=True)
    notes = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False, index=True)

    player = relationship("Player", back_populates="transactions")

    __table_args__ = (
        UniqueConstraint("player_id", "reference_id", "type", name="uq_wallet_transactions_player_reference_type"),
        Index("ix_wallet_transactions_player_created", "player_id", "created_at"),
    )

    def __repr__(self):
        return (f"<WalletTransaction(transaction_id={self.transaction_id}, amount={self.amount}, "
                f"type={self.type})>")

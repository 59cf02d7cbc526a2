"""Player account model."""
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    String,
)
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime, UTC
from arena.database import Base
from arena.models.base import get_uuid_column


class Player(Base):
    """Player account with wallet balance and win/loss counters.

    ``balance`` is only ever changed through TransactionService.
    """
    __tablename__ = "players"

    player_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    username = Column(String(80), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    balance = Column(Integer, default=0, nullable=False)
    total_wins = Column(Integer, default=0, nullable=False)
    total_losses = Column(Integer, default=0, nullable=False)
    total_earnings = Column(Integer, default=0, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)

    transactions = relationship("WalletTransaction", back_populates="player")

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_players_balance_non_negative"),
    )

    @property
    def win_rate(self) -> float:
        total_games = self.total_wins + self.total_losses
        return round(self.total_wins / total_games * 100, 1) if total_games else 0.0

    def __repr__(self):
        return f"<Player(player_id={self.player_id}, username={self.username}, balance={self.balance})>"

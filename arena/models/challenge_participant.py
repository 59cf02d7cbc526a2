"""Challenge roster entry model."""
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime, UTC
from arena.database import Base
from arena.models.base import get_uuid_column


class ChallengeParticipant(Base):
    """A player occupying one roster slot of a challenge."""
    __tablename__ = "challenge_participants"

    participant_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    challenge_id = get_uuid_column(
        ForeignKey("challenges.challenge_id", ondelete="CASCADE"), nullable=False, index=True
    )
    player_id = get_uuid_column(ForeignKey("players.player_id"), nullable=False, index=True)
    joined_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)
    proof_screenshot = Column(String(500), nullable=True)
    proof_submitted_at = Column(DateTime(timezone=True), nullable=True)
    is_winner = Column(Boolean, default=False, nullable=False)
    payout_amount = Column(Integer, nullable=True)

    challenge = relationship("Challenge", back_populates="participants")
    player = relationship("Player", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("challenge_id", "player_id", name="uq_challenge_participants_challenge_player"),
    )

    def __repr__(self):
        return (f"<ChallengeParticipant(challenge_id={self.challenge_id}, player_id={self.player_id}, "
                f"is_winner={self.is_winner})>")

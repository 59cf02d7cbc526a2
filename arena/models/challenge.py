"""Challenge model."""
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime, UTC
from arena.database import Base
from arena.models.base import ChallengeStatus, get_uuid_column


class Challenge(Base):
    """A wagered, scheduled match and its escrow state."""
    __tablename__ = "challenges"

    challenge_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    game = Column(String(30), nullable=False)
    bet_amount = Column(Integer, nullable=False)
    player_count = Column(Integer, nullable=False)
    max_participants = Column(Integer, nullable=False)
    participant_count = Column(Integer, default=0, nullable=False)
    status = Column(String(20), default=ChallengeStatus.PENDING.value, nullable=False)

    challenger_id = get_uuid_column(ForeignKey("players.player_id"), nullable=False, index=True)
    accepter_id = get_uuid_column(ForeignKey("players.player_id"), nullable=True)
    is_admin_authored = Column(Boolean, default=False, nullable=False)

    # Scheduling
    scheduled_match_time = Column(DateTime(timezone=True), nullable=False)
    match_duration_minutes = Column(Integer, nullable=False)
    duration_finalized = Column(Boolean, default=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    # Pot snapshot; multipliers in basis points of the bet amount
    match_fee = Column(Integer, nullable=False)
    total_pot = Column(Integer, nullable=False)
    fee_multiplier_bps = Column(Integer, nullable=False)
    payout_multiplier_bps = Column(Integer, nullable=False)
    payout_mode = Column(String(20), nullable=False)
    policy_version = Column(Integer, default=0, nullable=False)

    # Room code
    admin_room_code = Column(String(64), nullable=True)
    room_code_provided_by = get_uuid_column(ForeignKey("players.player_id"), nullable=True)
    room_code_provided_at = Column(DateTime(timezone=True), nullable=True)

    # Settlement
    winner_id = get_uuid_column(ForeignKey("players.player_id"), nullable=True)
    winner_screenshot = Column(String(500), nullable=True)
    admin_notes = Column(Text, nullable=True)
    resolved_by = get_uuid_column(ForeignKey("players.player_id"), nullable=True)
    cancel_reason = Column(String(30), nullable=True)

    # Participant dispute on a completed match; no money moves
    is_disputed = Column(Boolean, default=False, nullable=False)
    dispute_reason = Column(Text, nullable=True)
    disputed_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    participants = relationship(
        "ChallengeParticipant",
        back_populates="challenge",
        order_by="ChallengeParticipant.joined_at",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("bet_amount > 0", name="ck_challenges_bet_positive"),
        CheckConstraint("participant_count <= max_participants", name="ck_challenges_roster_capacity"),
        Index("ix_challenges_status_game", "status", "game"),
        Index("ix_challenges_status_expires", "status", "expires_at"),
        Index("ix_challenges_challenger_status", "challenger_id", "status"),
    )

    @property
    def status_enum(self) -> ChallengeStatus:
        return ChallengeStatus(self.status)

    @property
    def is_full(self) -> bool:
        return self.participant_count >= self.max_participants

    @property
    def available_slots(self) -> int:
        return max(0, self.max_participants - self.participant_count)

    @property
    def participant_ids(self) -> list[uuid.UUID]:
        return [participant.player_id for participant in self.participants]

    @property
    def winner_ids(self) -> list[uuid.UUID]:
        return [participant.player_id for participant in self.participants if participant.is_winner]

    def get_participant(self, player_id: uuid.UUID):
        for participant in self.participants:
            if participant.player_id == player_id:
                return participant
        return None

    def __repr__(self):
        return (f"<Challenge(challenge_id={self.challenge_id}, game={self.game}, "
                f"status={self.status}, roster={self.participant_count}/{self.max_participants})>")

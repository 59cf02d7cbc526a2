"""Base utilities and enumerations for SQLAlchemy models."""
from enum import Enum
import uuid
from sqlalchemy import Column, String
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.sql import sqltypes


class ChallengeStatus(str, Enum):
    """Challenge lifecycle states."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ChallengeStatus.COMPLETED, ChallengeStatus.CANCELLED)


NON_TERMINAL_STATUSES = (
    ChallengeStatus.PENDING.value,
    ChallengeStatus.ACCEPTED.value,
    ChallengeStatus.IN_PROGRESS.value,
)


class TransactionType(str, Enum):
    """Wallet ledger entry types."""
    STAKE_HOLD = "stake_hold"
    REFUND = "refund"
    PAYOUT = "payout"
    FEE = "fee"
    ADMIN_CREDIT = "admin_credit"
    ADMIN_DEBIT = "admin_debit"


class PayoutMode(str, Enum):
    """How a tier's winner payout is derived."""
    FIXED = "fixed"            # payout multiplier x bet
    POOL_SHARE = "pool_share"  # share x bet x filled participant count


class CancelReason(str, Enum):
    CHALLENGER_CANCELLED = "challenger_cancelled"
    EXPIRED = "expired"
    ADMIN_CANCELLED = "admin_cancelled"


class AdaptiveUUID(sqltypes.TypeDecorator):
    """UUID stored natively on PostgreSQL and as a 36-char string elsewhere."""

    impl = sqltypes.String
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PGUUID(as_uuid=True))
        return dialect.type_descriptor(String(36))

    @staticmethod
    def _coerce_uuid(value):
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))

    def process_bind_param(self, value, dialect):
        value = self._coerce_uuid(value)
        if value is None or dialect.name == "postgresql":
            return value
        return str(value)

    def process_result_value(self, value, dialect):
        return self._coerce_uuid(value)


def get_uuid_column(*args, **kwargs):
    """Get a UUID column that adapts to the database dialect.

    Example:
        player_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
        challenge_id = get_uuid_column(ForeignKey("challenges.challenge_id"), nullable=False)
    """
    return Column(AdaptiveUUID(), *args, **kwargs)

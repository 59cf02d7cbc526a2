"""Database models."""
from arena.models.base import ChallengeStatus, TransactionType, PayoutMode, CancelReason
from arena.models.player import Player
from arena.models.transaction import WalletTransaction
from arena.models.challenge import Challenge
from arena.models.challenge_participant import ChallengeParticipant
from arena.models.system_config import SystemConfig

__all__ = [
    "ChallengeStatus",
    "TransactionType",
    "PayoutMode",
    "CancelReason",
    "Player",
    "WalletTransaction",
    "Challenge",
    "ChallengeParticipant",
    "SystemConfig",
]

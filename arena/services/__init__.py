from arena.services.auth_service import AuthService, AuthError, is_admin
from arena.services.system_config_service import SystemConfigService, PlatformPolicy
from arena.services.transaction_service import TransactionService, ChallengeLedgerSummary
from arena.services.pot_calculator import PotCalculator, PotQuote, PotTier
from arena.services.participant_roster import ParticipantRoster
from arena.services.challenge_service import ChallengeService
from arena.services.room_code_service import RoomCodeService
from arena.services.dispute_service import (
    DisputeResolver,
    MultiWinner,
    SettlementResult,
    SingleWinner,
    WinnerSelection,
)
from arena.services.expiration_service import ExpirationService, SweepStats
from arena.services.statistics_service import StatisticsService

__all__ = [
    "AuthService",
    "AuthError",
    "is_admin",
    "SystemConfigService",
    "PlatformPolicy",
    "TransactionService",
    "ChallengeLedgerSummary",
    "PotCalculator",
    "PotQuote",
    "PotTier",
    "ParticipantRoster",
    "ChallengeService",
    "RoomCodeService",
    "DisputeResolver",
    "MultiWinner",
    "SettlementResult",
    "SingleWinner",
    "WinnerSelection",
    "ExpirationService",
    "SweepStats",
    "StatisticsService",
]

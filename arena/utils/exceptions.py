"""Custom exceptions raised by the escrow engine.

Every error carries a stable ``code`` that API clients can translate into a
user-facing message, and the HTTP status the API layer responds with.
"""


class ArenaError(Exception):
    """Base exception for all engine guard failures."""

    code = "arena_error"
    status_code = 400

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code


class ChallengeValidationError(ArenaError):
    """Bad input shape or bounds (bet amount, scheduling window, game, tier)."""

    code = "validation_error"
    status_code = 400


class InsufficientBalanceError(ArenaError):
    """Player balance does not cover the requested debit."""

    code = "insufficient_balance"
    status_code = 400


class InvalidStateError(ArenaError):
    """Operation is not legal for the challenge's current status."""

    code = "invalid_state"
    status_code = 409


class ChallengeFullError(ArenaError):
    """Roster is already at capacity."""

    code = "challenge_full"
    status_code = 409


class AlreadyJoinedError(ArenaError):
    """Player already occupies a roster slot or is the challenger."""

    code = "already_joined"
    status_code = 409


class ChallengeExpiredError(ArenaError):
    """Challenge is past its expiry time."""

    code = "challenge_expired"
    status_code = 410


class InvalidWinnerError(ArenaError):
    """Winner selection does not match the roster or the tier."""

    code = "invalid_winner"
    status_code = 400


class AlreadySettledError(ArenaError):
    """Payout already recorded for the challenge; carries the prior result."""

    code = "already_settled"
    status_code = 200

    def __init__(self, result=None, message: str | None = None):
        super().__init__(message or "Challenge already settled")
        self.result = result


class UnauthorizedError(ArenaError):
    """Caller's role does not permit the operation."""

    code = "unauthorized"
    status_code = 403


class SchedulingConflictError(ArenaError):
    """Scheduled time collides with another of the challenger's matches."""

    code = "scheduling_conflict"
    status_code = 409


class ChallengeNotFoundError(ArenaError):
    code = "challenge_not_found"
    status_code = 404


class PlayerNotFoundError(ArenaError):
    code = "player_not_found"
    status_code = 404


class LockTimeoutError(ArenaError):
    """Could not acquire a named lock in time."""

    code = "lock_timeout"
    status_code = 503

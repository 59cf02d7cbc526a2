"""Shared builders for service tests."""
from datetime import timedelta

from arena.services.challenge_service import ChallengeService
from arena.utils import utc_now


def future_time(hours: float = 2):
    """A scheduled match time inside the allowed lead window."""
    return utc_now() + timedelta(hours=hours)


async def start_filled_challenge(db, creator, joiners, admin, game="Free Fire", bet_amount=100, player_count=None):
    """Create a user challenge, fill it with ``joiners`` and start the match."""
    service = ChallengeService(db)
    challenge = await service.create_challenge(
        creator, game, bet_amount, future_time(), player_count=player_count or len(joiners) + 1
    )
    for joiner in joiners:
        challenge = await service.accept_challenge(challenge.challenge_id, joiner)
    return await service.start_match(challenge.challenge_id, admin, "ROOM-1")

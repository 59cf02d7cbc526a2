"""Room code coordination for admin-hosted lobbies."""
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID
import logging

from arena.config import get_settings
from arena.models.challenge import Challenge
from arena.models.player import Player
from arena.services.auth_service import is_admin
from arena.services.participant_roster import challenge_lock, load_challenge_for_update
from arena.utils import utc_now
from arena.utils.exceptions import ChallengeValidationError, InvalidStateError, UnauthorizedError

logger = logging.getLogger(__name__)


def normalize_room_code(room_code: str | None) -> str:
    """Strip and bound-check a room code."""
    max_length = get_settings().room_code_max_length
    room_code = (room_code or "").strip()
    if not 1 <= len(room_code) <= max_length:
        raise ChallengeValidationError(f"Room code must be 1..{max_length} characters")
    return room_code


class RoomCodeService:
    """Lets admins publish or correct the in-game room code. No money moves here."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def provide_room_code(self, challenge_id: UUID, admin: Player, room_code: str) -> Challenge:
        """First publication of the room code; use update_room_code afterwards."""
        return await self._set_room_code(challenge_id, admin, room_code, replace=False)

    async def update_room_code(self, challenge_id: UUID, admin: Player, room_code: str) -> Challenge:
        return await self._set_room_code(challenge_id, admin, room_code, replace=True)

    async def _set_room_code(self, challenge_id: UUID, admin: Player, room_code: str, replace: bool) -> Challenge:
        if not is_admin(admin):
            raise UnauthorizedError("Admin access required")

        room_code = normalize_room_code(room_code)

        try:
            async with challenge_lock(challenge_id):
                challenge = await load_challenge_for_update(self.db, challenge_id)
                if challenge.status_enum.is_terminal:
                    raise InvalidStateError(f"Challenge is already {challenge.status}")
                if not replace:
                    if not challenge.participants:
                        raise InvalidStateError("Challenge has no participants yet")
                    if challenge.admin_room_code:
                        raise InvalidStateError("Room code already provided; update it instead")

                challenge.admin_room_code = room_code
                challenge.room_code_provided_by = admin.player_id
                challenge.room_code_provided_at = utc_now()
                await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        action = "updated" if replace else "provided"
        logger.info(f"Room code {action} for challenge {challenge_id} by admin {admin.player_id}")
        return challenge

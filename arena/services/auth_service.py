"""Authentication and authorization helpers."""
from __future__ import annotations

import logging
import uuid

import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from arena.config import get_settings
from arena.models.player import Player

logger = logging.getLogger(__name__)


class AuthError(RuntimeError):
    """Raised when authentication fails."""


def is_admin(player: Player | None) -> bool:
    """Admin role: the player flag or an email listed in ADMIN_EMAILS."""
    if player is None:
        return False
    return bool(player.is_admin) or get_settings().is_admin_email(player.email)


class AuthService:
    """Verifies access tokens minted by the identity service.

    Tokens are HMAC-signed with the shared ``secret_key``; ``sub`` carries
    the player id.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    def decode_access_token(self, token: str) -> dict[str, str]:
        try:
            payload = jwt.decode(
                token,
                self.settings.secret_key,
                algorithms=[self.settings.jwt_algorithm],
            )
            return payload
        except jwt.ExpiredSignatureError as exc:
            raise AuthError("token_expired") from exc
        except jwt.InvalidTokenError as exc:
            raise AuthError("invalid_token") from exc

    async def get_player_from_token(self, token: str) -> Player:
        payload = self.decode_access_token(token)
        player_id_str = payload.get("sub")
        if not player_id_str:
            raise AuthError("invalid_token")
        try:
            player_id = uuid.UUID(str(player_id_str))
        except ValueError as exc:
            raise AuthError("invalid_token") from exc

        result = await self.db.execute(select(Player).where(Player.player_id == player_id))
        player = result.scalar_one_or_none()
        if not player:
            raise AuthError("invalid_token")
        return player

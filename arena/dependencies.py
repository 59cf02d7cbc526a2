"""FastAPI dependencies."""
import logging

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from arena.database import get_db
from arena.models.player import Player
from arena.services.auth_service import AuthError, AuthService, is_admin

logger = logging.getLogger(__name__)


def _mask_identifier(identifier: str) -> str:
    """Mask a sensitive identifier for logging (e.g., player_id, token)."""
    if not identifier:
        return "<missing>"
    if len(identifier) <= 8:
        return f"{identifier[:2]}...{identifier[-2:]}"
    return f"{identifier[:4]}...{identifier[-4:]}"


async def get_current_player(
        authorization: str | None = Header(default=None, alias="Authorization"),
        db: AsyncSession = Depends(get_db),
) -> Player:
    """Resolve the current authenticated player from the Bearer access token."""
    if not authorization:
        raise HTTPException(status_code=401, detail="missing_credentials")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="invalid_authorization_header")

    try:
        player = await AuthService(db).get_player_from_token(token)
    except AuthError as exc:
        logger.info(f"Rejected access token {_mask_identifier(token)}: {exc}")
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    logger.debug(f"Authenticated player via JWT: {player.player_id}")
    return player


async def get_admin_player(
    player: Player = Depends(get_current_player),
) -> Player:
    """Verify that the current authenticated player is an admin.

    Raises:
        HTTPException: 403 if the player is neither flagged admin nor on ADMIN_EMAILS
    """
    if not is_admin(player):
        logger.warning(
            f"Access denied to admin endpoint for non-admin user: {player.username} ({player.email})"
        )
        raise HTTPException(
            status_code=403,
            detail="admin_access_required"
        )

    logger.debug(f"Admin access granted to: {player.username} ({player.email})")
    return player

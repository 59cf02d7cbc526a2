"""Expiry of pending challenges that never filled."""
from dataclasses import dataclass, field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import datetime
from typing import Optional
from uuid import UUID
import logging

from arena.config import get_settings
from arena.models.base import ChallengeStatus
from arena.models.challenge import Challenge
from arena.services.challenge_service import ChallengeService
from arena.utils import utc_now

logger = logging.getLogger(__name__)


@dataclass
class SweepStats:
    scanned: int = 0
    expired: int = 0
    skipped: int = 0
    failed: list[UUID] = field(default_factory=list)


class ExpirationService:
    """Cancels and refunds pending challenges past ``expires_at``."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    async def find_expired_challenge_ids(self, now: Optional[datetime] = None, limit: Optional[int] = None) -> list[UUID]:
        now = now or utc_now()
        limit = limit or self.settings.expiration_sweep_batch_size
        result = await self.db.execute(
            select(Challenge.challenge_id)
            .where(
                Challenge.status == ChallengeStatus.PENDING.value,
                Challenge.expires_at < now,
            )
            .order_by(Challenge.expires_at.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def sweep(self, now: Optional[datetime] = None, limit: Optional[int] = None) -> SweepStats:
        """One pass over the expired backlog.

        Each challenge is re-checked under its lock before refunding, so a
        challenge accepted or extended since selection is left alone. A
        failure on one challenge is logged and the pass moves on.
        """
        stats = SweepStats()
        challenge_ids = await self.find_expired_challenge_ids(now, limit)
        stats.scanned = len(challenge_ids)
        if not challenge_ids:
            return stats

        challenge_service = ChallengeService(self.db)
        for challenge_id in challenge_ids:
            try:
                if await challenge_service.expire_challenge(challenge_id):
                    stats.expired += 1
                else:
                    stats.skipped += 1
            except Exception as e:
                stats.failed.append(challenge_id)
                logger.error(f"Failed to expire challenge {challenge_id}: {e}", exc_info=True)

        logger.info(
            f"Expiration sweep: scanned={stats.scanned}, expired={stats.expired}, "
            f"skipped={stats.skipped}, failed={len(stats.failed)}"
        )
        return stats

"""Background task that expires stale pending challenges."""
import logging

from arena.database import AsyncSessionLocal
from arena.services.expiration_service import ExpirationService, SweepStats

logger = logging.getLogger(__name__)

# Track if a sweep is running to prevent concurrent executions
_sweep_running = False


async def run_expiration_sweep(session_factory=AsyncSessionLocal) -> SweepStats | None:
    """Run one expiration pass in its own session.

    Returns None when a previous pass is still running.
    """
    global _sweep_running

    if _sweep_running:
        logger.debug("Expiration sweep already running, skipping")
        return None

    _sweep_running = True
    try:
        async with session_factory() as db:
            return await ExpirationService(db).sweep()
    finally:
        _sweep_running = False

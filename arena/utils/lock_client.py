"""Lock client abstraction - Redis or in-memory fallback."""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
import logging

from arena.utils.exceptions import LockTimeoutError

logger = logging.getLogger(__name__)


class _MemoryLock:
    """Named asyncio lock with a count of holders and waiters."""

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class LockClient:
    """Abstraction for named locks - uses Redis if available, else in-memory."""

    def __init__(self, redis_url: Optional[str] = None):
        self.backend = "memory"
        self._memory_locks: dict[str, _MemoryLock] = {}

        if redis_url:
            try:
                from redis import asyncio as redis_asyncio
                self.redis = redis_asyncio.from_url(redis_url, decode_responses=True)
                self.backend = "redis"
                logger.info("Using Redis for locks")
            except Exception as e:
                logger.warning(f"Redis not available, using in-memory locks: {e}")
        else:
            logger.info("Using in-memory locks (Redis URL not provided)")

    @asynccontextmanager
    async def lock(self, name: str, timeout: float = 10) -> AsyncIterator[None]:
        """Hold the named lock for the duration of the block.

        ``timeout`` bounds both the wait to acquire and, on Redis, the lease.
        """
        if self.backend == "redis":
            redis_lock = self.redis.lock(f"lock:{name}", timeout=timeout, blocking_timeout=timeout)
            acquired = await redis_lock.acquire()
            if not acquired:
                raise LockTimeoutError(f"Timed out acquiring lock {name}")
            try:
                yield
            finally:
                try:
                    await redis_lock.release()
                except Exception as e:
                    # Lease expired while held; the next holder already owns it
                    logger.warning(f"Failed to release lock {name}: {e}")
            return

        entry = self._memory_locks.get(name)
        if entry is None:
            entry = self._memory_locks[name] = _MemoryLock()
        entry.users += 1
        try:
            try:
                await asyncio.wait_for(entry.lock.acquire(), timeout=timeout)
            except asyncio.TimeoutError as exc:
                raise LockTimeoutError(f"Timed out acquiring lock {name}") from exc
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            entry.users -= 1
            if entry.users == 0 and self._memory_locks.get(name) is entry:
                del self._memory_locks[name]

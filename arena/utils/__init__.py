"""Utilities module - lock client and datetime helpers."""
from arena.config import get_settings
from arena.utils.lock_client import LockClient
from arena.utils.datetime_helpers import ensure_utc, utc_now

settings = get_settings()

# Create singleton instance
lock_client = LockClient(settings.redis_url if settings.redis_url else None)

__all__ = ["lock_client", "ensure_utc", "utc_now"]

"""API routers."""
from arena.routers import admin, challenges, games, health, player

__all__ = ["admin", "challenges", "games", "health", "player"]

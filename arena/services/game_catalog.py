"""Supported games and their URL slugs."""
from arena.config import get_settings
from arena.schemas.game import GameInfo
from arena.services.system_config_service import PlatformPolicy

GAME_DETAILS = {
    "Ludo King": {
        "slug": "ludo-king",
        "description": "Classic board game with modern multiplayer features",
        "rules": [
            "Players roll dice to move their tokens",
            "First player to get all tokens home wins",
            "Screenshots required for result verification",
        ],
    },
    "Free Fire": {
        "slug": "free-fire",
        "description": "Battle royale survival game",
        "rules": [
            "Last player or team standing wins",
            "Screenshots required for result verification",
            "Custom room codes provided by admin",
        ],
    },
    "PUBG": {
        "slug": "pubg",
        "description": "PlayerUnknown's Battlegrounds mobile",
        "rules": [
            "Last player or team standing wins",
            "Screenshots required for result verification",
            "Custom room codes provided by admin",
        ],
    },
}


def game_for_slug(slug: str) -> str | None:
    """Map ``free-fire`` to ``Free Fire``; None for unknown or disabled games."""
    enabled = get_settings().games
    for name, details in GAME_DETAILS.items():
        if details["slug"] == slug and name in enabled:
            return name
    return None


def list_games(policy: PlatformPolicy) -> list[GameInfo]:
    settings = get_settings()
    games = []
    for name in settings.games:
        details = GAME_DETAILS.get(name)
        if details is None:
            continue
        player_counts = [2, 4, 8, 50] if name in settings.multiplayer_games else [2]
        games.append(GameInfo(
            slug=details["slug"],
            name=name,
            description=details["description"],
            min_bet=policy.min_bet_amount,
            max_bet=policy.max_bet_amount,
            player_counts=player_counts,
            rules=details["rules"],
        ))
    return games

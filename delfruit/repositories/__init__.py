"""Repository package: expose all concrete repositories from one import."""
from .game_repository import GameRepository
from .list_repository import ListRepository

__all__ = [
    'GameRepository',
    'ListRepository',
]

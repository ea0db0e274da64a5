"""Repository package: expose all concrete repositories from one import."""
from .favorites_repository import FavoritesRepository
from .backlog_repository import BacklogRepository

__all__ = [
    'FavoritesRepository',
    'BacklogRepository',
]

"""Services package: expose all concrete services from one import."""
from .favorites_service import FavoritesService, Replace, Swap, parse_resolution
from .backlog_service import BacklogService
from .user_service import UserService

__all__ = [
    'FavoritesService',
    'Replace',
    'Swap',
    'parse_resolution',
    'BacklogService',
    'UserService',
]

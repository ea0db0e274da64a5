"""Repository for ranked favorite games (``favorite_games`` table)."""
from typing import Dict, List, Optional

from database import FavoriteGame
from .base import BaseRepository


class FavoritesRepository(BaseRepository):
    """Reads and writes :class:`~database.FavoriteGame` rows.

    Keys::

        (user_id, game_id)  unique
        (user_id, rank)     unique

    Every write hits the database immediately (create flushes, rank updates
    and deletes are issued as single statements), so the order of writes
    inside :meth:`transaction` is the order the database sees them.
    """

    def find_by_rank(self, user_id: int, rank: int) -> Optional[FavoriteGame]:
        return self._session.query(FavoriteGame).filter(
            FavoriteGame.user_id == user_id,
            FavoriteGame.rank == rank,
        ).first()

    def find_by_game(self, user_id: int, game_id: int) -> Optional[FavoriteGame]:
        return self._session.query(FavoriteGame).filter(
            FavoriteGame.user_id == user_id,
            FavoriteGame.game_id == game_id,
        ).first()

    def list_by_user(self, user_id: int) -> List[FavoriteGame]:
        return self._session.query(FavoriteGame).filter(
            FavoriteGame.user_id == user_id,
        ).order_by(FavoriteGame.rank.asc()).all()

    def create(self, user_id: int, game: Dict, rank: int) -> FavoriteGame:
        """Insert a favorite for *game* (``game_id``, ``game_slug``, ``game_name``, ``game_image``)."""
        entry = FavoriteGame(
            user_id=user_id,
            game_id=game['game_id'],
            game_slug=game['game_slug'],
            game_name=game['game_name'],
            game_image=game.get('game_image'),
            rank=rank,
        )
        self._session.add(entry)
        self._session.flush()
        return entry

    def update_rank(self, entry_id: int, rank: int) -> None:
        self._session.query(FavoriteGame).filter(
            FavoriteGame.id == entry_id,
        ).update({FavoriteGame.rank: rank}, synchronize_session='fetch')

    def delete(self, entry_id: int) -> None:
        self._session.query(FavoriteGame).filter(
            FavoriteGame.id == entry_id,
        ).delete(synchronize_session='fetch')

    def delete_by_game(self, user_id: int, game_id: int) -> bool:
        """Delete the user's entry for *game_id*.  Returns ``True`` if a row was removed."""
        count = self._session.query(FavoriteGame).filter(
            FavoriteGame.user_id == user_id,
            FavoriteGame.game_id == game_id,
        ).delete(synchronize_session='fetch')
        return count > 0

"""Repository for game backlog statuses (``backlog_games`` table)."""
from typing import Dict, List, Optional

from database import BacklogGame
from .base import BaseRepository


class BacklogRepository(BaseRepository):
    """Reads and writes :class:`~database.BacklogGame` rows, unique on
    ``(user_id, game_id)``.

    Valid statuses: ``WANT_TO_PLAY``, ``PLAYING``, ``COMPLETED``,
    ``DROPPED``, ``ON_HOLD``.
    """

    def find(self, user_id: int, game_id: int) -> Optional[BacklogGame]:
        return self._session.query(BacklogGame).filter(
            BacklogGame.user_id == user_id,
            BacklogGame.game_id == game_id,
        ).first()

    def list_by_user(self, user_id: int, status: Optional[str] = None) -> List[BacklogGame]:
        query = self._session.query(BacklogGame).filter(BacklogGame.user_id == user_id)
        if status:
            query = query.filter(BacklogGame.status == status)
        return query.order_by(BacklogGame.updated_at.desc(), BacklogGame.id.desc()).all()

    def create(self, user_id: int, game: Dict, status: str) -> BacklogGame:
        entry = BacklogGame(
            user_id=user_id,
            game_id=game['game_id'],
            game_slug=game['game_slug'],
            game_name=game['game_name'],
            game_image=game.get('game_image'),
            status=status,
        )
        self._session.add(entry)
        self._session.flush()
        return entry

    def set_status(self, entry: BacklogGame, status: str) -> BacklogGame:
        entry.status = status
        self._session.flush()
        return entry

    def delete(self, entry: BacklogGame) -> None:
        self._session.delete(entry)
        self._session.flush()

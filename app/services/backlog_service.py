"""Business logic for the game backlog status tracker."""
import logging
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from database import BACKLOG_STATUSES
from ..repositories.backlog_repository import BacklogRepository
from . import results
from .results import fail, ok

logger = logging.getLogger('gamerboxd.services.backlog')

VALID_STATUSES = BACKLOG_STATUSES


def _invalid_status() -> Dict:
    return fail(results.INVALID_STATUS,
                f'Invalid status. Valid: {list(VALID_STATUSES)}')


class BacklogService:
    """Sets, queries, and removes backlog statuses, delegating persistence to
    :class:`~app.repositories.backlog_repository.BacklogRepository`.

    Valid statuses: ``WANT_TO_PLAY``, ``PLAYING``, ``COMPLETED``,
    ``DROPPED``, ``ON_HOLD``.
    """

    def __init__(self, on_change: Optional[Callable[[int], None]] = None) -> None:
        self._on_change = on_change

    def _changed(self, user_id: int) -> None:
        if self._on_change:
            self._on_change(user_id)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def add(self, db, user_id: Optional[int], game: Dict,
            status: str = 'WANT_TO_PLAY') -> Dict:
        """Track *game* with *status*, updating the status if it is already tracked.

        Returns:
            ``{'success': True, 'data': {...}}`` on success.
        """
        if user_id is None:
            return results.not_authenticated()
        invalid = results.check_game(game)
        if invalid is not None:
            return invalid
        if status not in VALID_STATUSES:
            return _invalid_status()
        repo = BacklogRepository(db)
        try:
            with repo.transaction():
                entry = repo.find(user_id, game['game_id'])
                if entry is not None:
                    repo.set_status(entry, status)
                else:
                    entry = repo.create(user_id, game, status)
            data = entry.to_dict()
        except SQLAlchemyError:
            logger.exception("Error adding game %s to backlog", game.get('game_id'))
            return fail(results.PERSISTENCE_FAILURE, 'Failed to add to backlog')
        self._changed(user_id)
        return ok(data=data)

    def update_status(self, db, user_id: Optional[int], game_id: int, status: str) -> Dict:
        """Change the status of a game already in the backlog."""
        if user_id is None:
            return results.not_authenticated()
        if status not in VALID_STATUSES:
            return _invalid_status()
        repo = BacklogRepository(db)
        try:
            with repo.transaction():
                entry = repo.find(user_id, game_id)
                if entry is not None:
                    repo.set_status(entry, status)
            data = entry.to_dict() if entry is not None else None
        except SQLAlchemyError:
            logger.exception("Error updating backlog status for game %s", game_id)
            return fail(results.PERSISTENCE_FAILURE, 'Failed to update status')
        if data is None:
            return fail(results.NOT_FOUND, 'Game not in backlog')
        self._changed(user_id)
        return ok(data=data)

    def remove(self, db, user_id: Optional[int], game_id: int) -> Dict:
        """Remove *game_id* from the backlog."""
        if user_id is None:
            return results.not_authenticated()
        repo = BacklogRepository(db)
        try:
            with repo.transaction():
                entry = repo.find(user_id, game_id)
                if entry is not None:
                    repo.delete(entry)
        except SQLAlchemyError:
            logger.exception("Error removing game %s from backlog", game_id)
            return fail(results.PERSISTENCE_FAILURE, 'Failed to remove from backlog')
        if entry is None:
            return fail(results.NOT_FOUND, 'Game not in backlog')
        self._changed(user_id)
        return ok()

    def get_status(self, db, user_id: Optional[int], game_id: int) -> Optional[Dict]:
        """Return the backlog entry for *game_id*, or ``None``."""
        if user_id is None:
            return None
        try:
            entry = BacklogRepository(db).find(user_id, game_id)
        except SQLAlchemyError:
            logger.exception("Error reading backlog status")
            db.rollback()
            return None
        return entry.to_dict() if entry else None

    def get_user_backlog(self, db, user_id: Optional[int],
                         status: Optional[str] = None) -> List[Dict]:
        """Return backlog entries, most recently updated first, optionally filtered by *status*."""
        if user_id is None:
            return []
        try:
            entries = BacklogRepository(db).list_by_user(user_id, status)
        except SQLAlchemyError:
            logger.exception("Error listing backlog for user %s", user_id)
            db.rollback()
            return []
        return [e.to_dict() for e in entries]

    def get_stats(self, db, user_id: Optional[int]) -> Dict:
        """Return ``{'total_games': n, 'by_status': {STATUS: count, ...}}``."""
        by_status = {s: 0 for s in VALID_STATUSES}
        entries = self.get_user_backlog(db, user_id)
        for entry in entries:
            by_status[entry['status']] = by_status.get(entry['status'], 0) + 1
        return {'total_games': len(entries), 'by_status': by_status}

"""Business logic for the ranked top-10 favorites list.

A user holds at most ten favorites, one per rank (1-10) and one per game.
Assigning a game to a rank that another game already holds is a *conflict*;
the caller either gets the conflict back (so it can ask the user what to do)
or passes a resolution:

* :class:`Replace`: the occupant is removed from favorites and the new game
  takes the rank.
* :class:`Swap`: the occupant moves to ``new_rank_for_old`` and the new game
  takes the rank.

All multi-step writes run inside one database transaction.
"""
import logging
import threading
import weakref
from typing import Callable, Dict, List, NamedTuple, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from ..repositories.favorites_repository import FavoritesRepository
from . import results
from .results import fail, ok

logger = logging.getLogger('gamerboxd.services.favorites')

MIN_RANK = 1
MAX_RANK = 10
# Parking rank for the occupant during a three-step swap; never a real rank.
PLACEHOLDER_RANK = -1


class Replace(NamedTuple):
    """Evict the occupant and give its rank to the assigned game."""


class Swap(NamedTuple):
    """Move the occupant to *new_rank_for_old* and give its rank to the assigned game."""
    new_rank_for_old: int


Resolution = Union[Replace, Swap]


def parse_resolution(data: Optional[Dict]) -> Optional[Resolution]:
    """Build a resolution from its JSON form.

    Accepts ``None``, ``{"type": "replace"}`` or
    ``{"type": "swap", "new_rank_for_old": 7}`` (``newRankForOld`` is also
    accepted).

    Raises:
        ValueError: Not an object, unknown type, or a swap without an integer
            target rank.
    """
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ValueError("resolution must be an object with a 'type'")
    kind = str(data.get('type', '')).lower()
    if kind == 'replace':
        return Replace()
    if kind == 'swap':
        new_rank = data.get('new_rank_for_old', data.get('newRankForOld'))
        if isinstance(new_rank, bool) or not isinstance(new_rank, int):
            raise ValueError("swap resolution requires an integer new_rank_for_old")
        return Swap(new_rank)
    raise ValueError(f"Unknown conflict resolution type: {data.get('type')!r}")


def is_valid_rank(rank) -> bool:
    return isinstance(rank, int) and not isinstance(rank, bool) and MIN_RANK <= rank <= MAX_RANK


def _snapshot(entry) -> Dict:
    return {
        'id': entry.id,
        'game_id': entry.game_id,
        'game_name': entry.game_name,
        'game_image': entry.game_image,
        'rank': entry.rank,
    }


class FavoritesService:
    """Assigns, moves and removes ranked favorites.

    All methods accept a *db* SQLAlchemy session as the first argument so
    that callers (Flask route handlers) control the session lifecycle, and
    a *user_id* that is ``None`` when nobody is logged in.

    Assignments for the same user are serialized with a per-user lock, so
    the read-then-write sequence of one :meth:`assign` call never
    interleaves with another call for that user in this process.
    """

    def __init__(self, on_change: Optional[Callable[[int], None]] = None) -> None:
        """
        Args:
            on_change: Called with the user id after every successful write
                (used to invalidate cached profile/favorites views).
        """
        self._on_change = on_change
        # Entries vanish once no assign call for that user holds the lock
        self._locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _user_lock(self, user_id: int) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = self._locks[user_id] = threading.Lock()
            return lock

    def _changed(self, user_id: int) -> None:
        if self._on_change:
            self._on_change(user_id)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def check_conflict(self, db, user_id: Optional[int], rank,
                       exclude_game_id: Optional[int] = None) -> Dict:
        """Report whether *rank* is held by a game other than *exclude_game_id*.

        Returns:
            ``{'has_conflict': False}`` or
            ``{'has_conflict': True, 'existing_game': {...}}``.  Invalid
            ranks, anonymous callers and lookup errors report no conflict.
        """
        if user_id is None or not is_valid_rank(rank):
            return {'has_conflict': False}
        try:
            occupant = FavoritesRepository(db).find_by_rank(user_id, rank)
        except SQLAlchemyError:
            logger.exception("Error checking rank conflict for user %s", user_id)
            db.rollback()
            return {'has_conflict': False}
        if occupant is None or occupant.game_id == exclude_game_id:
            return {'has_conflict': False}
        return {'has_conflict': True, 'existing_game': _snapshot(occupant)}

    def assign(self, db, user_id: Optional[int], game: Dict, rank,
               resolution: Optional[Resolution] = None) -> Dict:
        """Put *game* at *rank* in the user's favorites.

        Args:
            db:         SQLAlchemy session.
            user_id:    Caller's user id, ``None`` if anonymous.
            game:       ``game_id``, ``game_slug``, ``game_name``, ``game_image``.
            rank:       Target rank, 1-10.
            resolution: How to settle a conflict; without one a conflict is
                        reported back instead of being resolved.

        Returns:
            ``{'success': True}`` or a failure dict whose ``code`` is one of
            ``not_authenticated``, ``validation_error`` (incomplete *game*),
            ``invalid_rank``, ``rank_conflict`` (with a ``conflict`` snapshot
            of the occupant) or ``persistence_failure``.
        """
        if user_id is None:
            return results.not_authenticated()
        invalid = results.check_game(game)
        if invalid is not None:
            return invalid
        if not is_valid_rank(rank):
            return fail(results.INVALID_RANK, 'Rank must be between 1 and 10')

        with self._user_lock(user_id):
            repo = FavoritesRepository(db)
            try:
                result, changed = self._assign(repo, user_id, game, rank, resolution)
            except SQLAlchemyError:
                logger.exception("Error adding game %s to favorites for user %s",
                                 game.get('game_id'), user_id)
                db.rollback()
                return fail(results.PERSISTENCE_FAILURE, 'Failed to add to favorites')

        if changed:
            self._changed(user_id)
        return result

    def _assign(self, repo: FavoritesRepository, user_id: int, game: Dict,
                rank: int, resolution: Optional[Resolution]):
        game_id = game['game_id']
        occupant = repo.find_by_rank(user_id, rank)
        own = repo.find_by_game(user_id, game_id)

        if occupant is not None and occupant.game_id == game_id:
            return ok(), False

        if occupant is None:
            with repo.transaction():
                if own is not None:
                    repo.update_rank(own.id, rank)
                else:
                    repo.create(user_id, game, rank)
            logger.info("User %s: game %s -> rank %d", user_id, game_id, rank)
            return ok(), True

        if resolution is None:
            return fail(results.RANK_CONFLICT, 'Rank conflict',
                        conflict=_snapshot(occupant)), False

        occupant_id, occupant_game_id = occupant.id, occupant.game_id
        if isinstance(resolution, Replace):
            with repo.transaction():
                repo.delete(occupant_id)
                if own is not None:
                    repo.update_rank(own.id, rank)
                else:
                    repo.create(user_id, game, rank)
            logger.info("User %s: game %s replaced game %s at rank %d",
                        user_id, game_id, occupant_game_id, rank)
            return ok(), True

        if isinstance(resolution, Swap):
            new_rank = resolution.new_rank_for_old
            if not is_valid_rank(new_rank) or new_rank == rank:
                return fail(results.INVALID_RANK, 'Invalid rank for swap'), False
            blocker = repo.find_by_rank(user_id, new_rank)
            if blocker is not None and (own is None or blocker.id != own.id):
                return fail(results.INVALID_RANK,
                            f'Rank {new_rank} is already taken'), False

            with repo.transaction():
                if own is not None:
                    repo.update_rank(occupant_id, PLACEHOLDER_RANK)
                    repo.update_rank(own.id, rank)
                    repo.update_rank(occupant_id, new_rank)
                else:
                    repo.update_rank(occupant_id, new_rank)
                    repo.create(user_id, game, rank)
            logger.info("User %s: game %s -> rank %d, displaced game -> rank %d",
                        user_id, game_id, rank, new_rank)
            return ok(), True

        return fail(results.VALIDATION_ERROR, 'Unknown conflict resolution'), False

    def remove(self, db, user_id: Optional[int], game_id: int) -> Dict:
        """Remove *game_id* from the user's favorites."""
        if user_id is None:
            return results.not_authenticated()
        repo = FavoritesRepository(db)
        try:
            with repo.transaction():
                removed = repo.delete_by_game(user_id, game_id)
        except SQLAlchemyError:
            logger.exception("Error removing game %s from favorites for user %s",
                             game_id, user_id)
            return fail(results.PERSISTENCE_FAILURE, 'Failed to remove from favorites')
        if not removed:
            return fail(results.NOT_FOUND, 'Game not in favorites')
        self._changed(user_id)
        return ok()

    def get_status(self, db, user_id: Optional[int], game_id: int) -> Optional[Dict]:
        """Return the user's favorite entry for *game_id*, or ``None``."""
        if user_id is None:
            return None
        try:
            entry = FavoritesRepository(db).find_by_game(user_id, game_id)
        except SQLAlchemyError:
            logger.exception("Error reading favorite status")
            db.rollback()
            return None
        return entry.to_dict() if entry else None

    def get_user_favorites(self, db, user_id: Optional[int]) -> List[Dict]:
        """Return the user's favorites ordered by rank (1 first)."""
        if user_id is None:
            return []
        try:
            entries = FavoritesRepository(db).list_by_user(user_id)
        except SQLAlchemyError:
            logger.exception("Error listing favorites for user %s", user_id)
            db.rollback()
            return []
        return [e.to_dict() for e in entries]

    def get_used_ranks(self, db, user_id: Optional[int]) -> List[Dict]:
        """Return ``[{'rank': r, 'game_id': g}, ...]`` ordered by rank."""
        return [{'rank': f['rank'], 'game_id': f['game_id']}
                for f in self.get_user_favorites(db, user_id)]

    def get_available_ranks(self, db, user_id: Optional[int], target_rank: int,
                            current_game_id: Optional[int] = None) -> List[int]:
        """Ranks the displaced game of a swap may move to.

        Excludes *target_rank* and every rank held by another game; the
        current game's own rank stays available since it is about to be
        vacated.
        """
        used = self.get_used_ranks(db, user_id)
        current_rank = next((u['rank'] for u in used if u['game_id'] == current_game_id), None)
        taken = {u['rank'] for u in used}
        return [
            r for r in range(MIN_RANK, MAX_RANK + 1)
            if r != target_rank and (r == current_rank or r not in taken)
        ]

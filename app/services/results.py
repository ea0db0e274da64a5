"""Tagged result dicts returned by the user-facing services.

Services never raise across their public boundary.  Each call returns either::

    {'success': True, ...payload}

or::

    {'success': False, 'code': '<kind>', 'error': '<message>', ...extra}
"""
from typing import Any, Dict, Optional

NOT_AUTHENTICATED = 'not_authenticated'
INVALID_RANK = 'invalid_rank'
RANK_CONFLICT = 'rank_conflict'
INVALID_STATUS = 'invalid_status'
NOT_FOUND = 'not_found'
VALIDATION_ERROR = 'validation_error'
PERSISTENCE_FAILURE = 'persistence_failure'

GAME_FIELDS_REQUIRED = 'game_id, game_slug and game_name are required'


def ok(**payload: Any) -> Dict[str, Any]:
    result: Dict[str, Any] = {'success': True}
    result.update(payload)
    return result


def fail(code: str, error: str, **extra: Any) -> Dict[str, Any]:
    result: Dict[str, Any] = {'success': False, 'code': code, 'error': error}
    result.update(extra)
    return result


def not_authenticated() -> Dict[str, Any]:
    return fail(NOT_AUTHENTICATED, 'Not authenticated')


def check_game(game) -> Optional[Dict[str, Any]]:
    """Return a ``validation_error`` failure unless *game* carries an integer
    ``game_id`` and non-empty string ``game_slug``/``game_name``; else ``None``."""
    if not isinstance(game, dict):
        return fail(VALIDATION_ERROR, GAME_FIELDS_REQUIRED)
    game_id = game.get('game_id')
    if isinstance(game_id, bool) or not isinstance(game_id, int):
        return fail(VALIDATION_ERROR, GAME_FIELDS_REQUIRED)
    for key in ('game_slug', 'game_name'):
        value = game.get(key)
        if not isinstance(value, str) or not value.strip():
            return fail(VALIDATION_ERROR, GAME_FIELDS_REQUIRED)
    image = game.get('game_image')
    if image is not None and not isinstance(image, str):
        return fail(VALIDATION_ERROR, 'game_image must be a string')
    return None

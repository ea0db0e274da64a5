#!/usr/bin/env python3
"""
Gamerboxd Web - JSON API for searching the game catalog, ranking favorite
games and tracking a play backlog.
"""

import logging
import os
import threading
from functools import wraps
from typing import Dict, Optional

from flask import Flask, jsonify, request, session

import gamerboxd
import database
from app.services import (
    BacklogService, FavoritesService, UserService, parse_resolution,
)
from app.services import results
from igdb_adapter import adapt_game, adapt_game_details
from igdb_client import GameNotFoundError, IGDBAPIError, IGDBAuthError

config = gamerboxd.load_config(os.getenv('GAMERBOXD_CONFIG', 'config.json'))

web_logger = logging.getLogger('gamerboxd.web')

app = Flask(__name__)
app.secret_key = config['secret_key'] or os.urandom(24)

# ---------------------------------------------------------------------------
# Cached profile views, keyed by user id.  Dropped whenever the user's
# favorites or backlog change.
# ---------------------------------------------------------------------------
_profile_cache: Dict[int, Dict] = {}
# Bumped on every invalidation; a rebuild is stored only if the count is unchanged
_profile_generation: Dict[int, int] = {}
_profile_cache_lock = threading.Lock()


def invalidate_profile(user_id: int) -> None:
    with _profile_cache_lock:
        _profile_cache.pop(user_id, None)
        _profile_generation[user_id] = _profile_generation.get(user_id, 0) + 1


_favorites_service = FavoritesService(on_change=invalidate_profile)
_backlog_service = BacklogService(on_change=invalidate_profile)
_user_service = UserService(database)

# Catalog client, created on first use from config
_igdb_client = None
_igdb_client_lock = threading.Lock()


def get_igdb_client():
    """Return the shared IGDB client, or ``None`` when credentials are not configured."""
    global _igdb_client
    with _igdb_client_lock:
        if _igdb_client is None:
            _igdb_client = gamerboxd.make_igdb_client(config)
        return _igdb_client


_HTTP_STATUS = {
    results.NOT_AUTHENTICATED: 401,
    results.INVALID_RANK: 400,
    results.INVALID_STATUS: 400,
    results.VALIDATION_ERROR: 400,
    results.RANK_CONFLICT: 409,
    results.NOT_FOUND: 404,
    results.PERSISTENCE_FAILURE: 500,
}


def _respond(result: Dict, success_status: int = 200):
    """Turn a service result dict into a JSON response."""
    if result['success']:
        return jsonify(result), success_status
    return jsonify(result), _HTTP_STATUS.get(result['code'], 400)


def current_user_id() -> Optional[int]:
    return session.get('user_id')


def require_login(f):
    """Decorator to require user to be logged in"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if current_user_id() is None:
            return jsonify(results.not_authenticated()), 401
        return f(*args, **kwargs)
    return decorated_function


def _json_body() -> Dict:
    """The request's JSON object, or ``{}`` when the body is missing or not an object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _text(value, strip: bool = True) -> str:
    """*value* if it is a string (stripped unless *strip* is false), otherwise ``''``."""
    if not isinstance(value, str):
        return ''
    return value.strip() if strip else value


def _game_from_json(data: Dict) -> Optional[Dict]:
    """Extract ``game_id``/``game_slug``/``game_name``/``game_image`` from a request body."""
    source = data.get('game') if isinstance(data.get('game'), dict) else data
    raw_id = source.get('game_id')
    if isinstance(raw_id, (bool, float)):
        return None
    try:
        game_id = int(raw_id)
    except (TypeError, ValueError):
        return None
    slug = _text(source.get('game_slug'))
    name = _text(source.get('game_name'))
    if not slug or not name:
        return None
    return {
        'game_id': game_id,
        'game_slug': slug,
        'game_name': name,
        'game_image': _text(source.get('game_image')) or None,
    }


def _invalid_game():
    return jsonify(results.fail(results.VALIDATION_ERROR, results.GAME_FIELDS_REQUIRED)), 400


# ---------------------------------------------------------------------------
# Auth API
# ---------------------------------------------------------------------------

@app.route('/api/auth/register', methods=['POST'])
def api_register():
    """Create an account. Expects JSON ``{"email", "username", "password"}``."""
    data = _json_body()
    db = database.SessionLocal()
    try:
        result = _user_service.register(
            db, _text(data.get('email')), _text(data.get('username')),
            _text(data.get('password'), strip=False))
    finally:
        db.close()
    return _respond(result, 201)


@app.route('/api/auth/login', methods=['POST'])
def api_login():
    """Log in with JSON ``{"email", "password"}``."""
    data = _json_body()
    db = database.SessionLocal()
    try:
        user = _user_service.authenticate(db, _text(data.get('email')),
                                          _text(data.get('password'), strip=False))
        if user is None:
            return jsonify(results.fail(
                results.NOT_AUTHENTICATED, 'Invalid email or password')), 401
        session['user_id'] = user.id
        payload = user.to_dict()
    finally:
        db.close()
    web_logger.info("User %s logged in", payload['username'])
    return jsonify({'success': True, 'user': payload})


@app.route('/api/auth/logout', methods=['POST'])
def api_logout():
    session.pop('user_id', None)
    return jsonify({'success': True})


@app.route('/api/auth/me')
@require_login
def api_me():
    db = database.SessionLocal()
    try:
        user = _user_service.get(db, current_user_id())
        if user is None:
            session.pop('user_id', None)
            return jsonify(results.not_authenticated()), 401
        return jsonify({'user': user.to_dict()})
    finally:
        db.close()


# ---------------------------------------------------------------------------
# Catalog API
# ---------------------------------------------------------------------------

_SHELVES = {
    'popular': 'get_popular_games',
    'highlights': 'get_highlight_games',
    'trending': 'get_trending_games',
    'new-releases': 'get_new_releases',
    'upcoming': 'get_upcoming_games',
}


def _catalog_error(exc: Exception):
    if isinstance(exc, GameNotFoundError):
        return jsonify({'error': 'Game not found'}), 404
    web_logger.error("Catalog request failed: %s", exc)
    return jsonify({'error': 'Failed to fetch games', 'details': str(exc)}), 502


def _catalog_unavailable():
    return jsonify({'error': 'Game catalog not configured'}), 503


def _int_arg(name: str, default: int) -> int:
    try:
        value = int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


@app.route('/api/games')
def api_search_games():
    """Search the catalog: ``query``, ``page``, ``pageSize``, ``ordering``, ``dates``, ``minRating``."""
    client = get_igdb_client()
    if client is None:
        return _catalog_unavailable()
    query = request.args.get('query', '').strip() or None
    page = _int_arg('page', 1)
    page_size = min(_int_arg('pageSize', 20), 40)
    ordering = request.args.get('ordering', '').strip() or '-rating'
    dates = request.args.get('dates', '').strip() or None
    min_rating = request.args.get('minRating', type=float)
    try:
        data = client.search_games(query=query, page=page, page_size=page_size,
                                   ordering=ordering, dates=dates, min_rating=min_rating)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except (IGDBAuthError, IGDBAPIError) as e:
        web_logger.error("Search params: query=%r page=%s page_size=%s", query, page, page_size)
        return _catalog_error(e)
    data['results'] = [adapt_game(g) for g in data['results']]
    return jsonify(data)


@app.route('/api/games/shelf/<name>')
def api_game_shelf(name: str):
    """Curated lists: popular, highlights, trending, new-releases, upcoming."""
    if name not in _SHELVES:
        return jsonify({'error': f'Unknown shelf. Valid: {list(_SHELVES)}'}), 404
    client = get_igdb_client()
    if client is None:
        return _catalog_unavailable()
    try:
        data = getattr(client, _SHELVES[name])(min(_int_arg('pageSize', 20), 40))
    except (IGDBAuthError, IGDBAPIError) as e:
        return _catalog_error(e)
    data['results'] = [adapt_game(g) for g in data['results']]
    return jsonify(data)


@app.route('/api/games/<slug>')
def api_game_details(slug: str):
    """Game details; ``?screenshots=true`` adds the screenshot list."""
    client = get_igdb_client()
    if client is None:
        return _catalog_unavailable()
    try:
        game = adapt_game_details(client.get_game_by_slug(slug))
        if request.args.get('screenshots') == 'true':
            game['screenshots'] = client.get_game_screenshots(slug)['results']
    except (IGDBAuthError, IGDBAPIError) as e:
        return _catalog_error(e)
    return jsonify(game)


# ---------------------------------------------------------------------------
# Favorites API
# ---------------------------------------------------------------------------

@app.route('/api/favorites', methods=['GET'])
@require_login
def api_list_favorites():
    db = database.SessionLocal()
    try:
        favorites = _favorites_service.get_user_favorites(db, current_user_id())
    finally:
        db.close()
    return jsonify({'favorites': favorites, 'count': len(favorites)})


@app.route('/api/favorites', methods=['POST'])
@require_login
def api_assign_favorite():
    """Assign a game to a rank.

    Expects JSON::

        {"game_id": 1942, "game_slug": "...", "game_name": "...",
         "game_image": "...", "rank": 3,
         "resolution": {"type": "replace"} | {"type": "swap", "new_rank_for_old": 7}}

    Without ``resolution`` a taken rank answers 409 with the occupant under
    ``conflict``.
    """
    data = _json_body()
    game = _game_from_json(data)
    if game is None:
        return _invalid_game()
    try:
        resolution = parse_resolution(data.get('resolution'))
    except ValueError as e:
        return jsonify(results.fail(results.VALIDATION_ERROR, str(e))), 400

    db = database.SessionLocal()
    try:
        result = _favorites_service.assign(db, current_user_id(), game,
                                           data.get('rank'), resolution)
    finally:
        db.close()
    return _respond(result)


@app.route('/api/favorites/conflict')
@require_login
def api_check_rank_conflict():
    """``?rank=3&exclude_game_id=1942`` → ``{"has_conflict": ..., "existing_game": ...}``."""
    rank = request.args.get('rank', type=int)
    exclude = request.args.get('exclude_game_id', type=int)
    db = database.SessionLocal()
    try:
        result = _favorites_service.check_conflict(db, current_user_id(), rank, exclude)
    finally:
        db.close()
    return jsonify(result)


@app.route('/api/favorites/ranks')
@require_login
def api_favorite_ranks():
    """Used ranks; with ``?target_rank=`` also the ranks a displaced game can move to."""
    target_rank = request.args.get('target_rank', type=int)
    current_game_id = request.args.get('current_game_id', type=int)
    db = database.SessionLocal()
    try:
        used = _favorites_service.get_used_ranks(db, current_user_id())
        payload = {'used_ranks': used}
        if target_rank is not None:
            payload['available_ranks'] = _favorites_service.get_available_ranks(
                db, current_user_id(), target_rank, current_game_id)
    finally:
        db.close()
    return jsonify(payload)


@app.route('/api/favorites/<int:game_id>', methods=['GET'])
@require_login
def api_favorite_status(game_id: int):
    db = database.SessionLocal()
    try:
        entry = _favorites_service.get_status(db, current_user_id(), game_id)
    finally:
        db.close()
    return jsonify({'game_id': game_id, 'favorite': entry})


@app.route('/api/favorites/<int:game_id>', methods=['DELETE'])
@require_login
def api_remove_favorite(game_id: int):
    db = database.SessionLocal()
    try:
        result = _favorites_service.remove(db, current_user_id(), game_id)
    finally:
        db.close()
    return _respond(result)


# ---------------------------------------------------------------------------
# Backlog / Status Tracker API
# ---------------------------------------------------------------------------

@app.route('/api/backlog', methods=['GET'])
@require_login
def api_list_backlog():
    """List all backlog entries, optionally filtered by ``?status=``."""
    status_filter = request.args.get('status', '').strip() or None
    if status_filter and status_filter not in database.BACKLOG_STATUSES:
        return jsonify({'error': f'Invalid status. Valid: {list(database.BACKLOG_STATUSES)}'}), 400
    db = database.SessionLocal()
    try:
        games = _backlog_service.get_user_backlog(db, current_user_id(), status_filter)
    finally:
        db.close()
    return jsonify({'games': games, 'count': len(games)})


@app.route('/api/backlog', methods=['POST'])
@require_login
def api_add_to_backlog():
    """Track a game. Expects the game fields plus an optional ``status``."""
    data = _json_body()
    game = _game_from_json(data)
    if game is None:
        return _invalid_game()
    status = _text(data.get('status')) or 'WANT_TO_PLAY'
    db = database.SessionLocal()
    try:
        result = _backlog_service.add(db, current_user_id(), game, status)
    finally:
        db.close()
    return _respond(result)


@app.route('/api/backlog/<int:game_id>', methods=['GET'])
@require_login
def api_get_backlog_status(game_id: int):
    """Get the backlog entry for a specific game."""
    db = database.SessionLocal()
    try:
        entry = _backlog_service.get_status(db, current_user_id(), game_id)
    finally:
        db.close()
    return jsonify({'game_id': game_id, 'entry': entry,
                    'status': entry['status'] if entry else None})


@app.route('/api/backlog/<int:game_id>', methods=['PUT'])
@require_login
def api_set_backlog_status(game_id: int):
    """Change the status of a tracked game. Expects JSON ``{"status": "..."}``."""
    data = _json_body()
    status = _text(data.get('status'))
    if not status:
        return jsonify(results.fail(results.VALIDATION_ERROR, 'status is required')), 400
    db = database.SessionLocal()
    try:
        result = _backlog_service.update_status(db, current_user_id(), game_id, status)
    finally:
        db.close()
    return _respond(result)


@app.route('/api/backlog/<int:game_id>', methods=['DELETE'])
@require_login
def api_delete_backlog_status(game_id: int):
    """Remove a game from the backlog."""
    db = database.SessionLocal()
    try:
        result = _backlog_service.remove(db, current_user_id(), game_id)
    finally:
        db.close()
    return _respond(result)


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

@app.route('/api/profile')
@require_login
def api_profile():
    """The user's favorites, backlog and backlog stats (cached until they change)."""
    user_id = current_user_id()
    with _profile_cache_lock:
        cached = _profile_cache.get(user_id)
        generation = _profile_generation.get(user_id, 0)
    if cached is not None:
        return jsonify(cached)

    db = database.SessionLocal()
    try:
        user = _user_service.get(db, user_id)
        if user is None:
            session.pop('user_id', None)
            return jsonify(results.not_authenticated()), 401
        profile = {
            'user': user.to_dict(),
            'favorites': _favorites_service.get_user_favorites(db, user_id),
            'backlog': _backlog_service.get_user_backlog(db, user_id),
            'stats': _backlog_service.get_stats(db, user_id),
        }
    finally:
        db.close()
    with _profile_cache_lock:
        if _profile_generation.get(user_id, 0) == generation:
            _profile_cache[user_id] = profile
    return jsonify(profile)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def run(host: str = '127.0.0.1', port: int = 5000) -> None:
    """Initialize the database and serve the API."""
    gamerboxd.setup_logging(config['log_level'])
    try:
        os.makedirs('logs', exist_ok=True)
        fh = logging.FileHandler('logs/gamerboxd_web.log')
        fh.setFormatter(logging.Formatter('[%(asctime)s] %(levelname)s %(name)s: %(message)s'))
        logging.getLogger('gamerboxd').addHandler(fh)
    except OSError:
        web_logger.warning('Could not create log file handler')

    if database.init_db():
        web_logger.info('Database initialized successfully')
    else:
        web_logger.warning('Database initialization reported failure')
    if get_igdb_client() is None:
        web_logger.warning('IGDB credentials missing; catalog endpoints will return 503')

    print(f"\nGamerboxd API listening on http://{host}:{port}\n")
    app.run(host=host, port=port, debug=False)


if __name__ == "__main__":
    run(config['host'], config['port'])

"""Map raw IGDB game records to the JSON shape served by the Gamerboxd API."""

import datetime
import re
from typing import Any, Dict, List, Optional

from igdb_client import get_image_url

# https://api-docs.igdb.com/#age-rating
_AGE_RATING_NAMES = {
    1: 'Three',
    2: 'Seven',
    3: 'Twelve',
    4: 'Sixteen',
    5: 'Eighteen',
    6: 'RP',
    7: 'EC',
    8: 'E',
    9: 'E10',
    10: 'T',
    11: 'M',
    12: 'AO',
}

_COVER_SIZES = {'small': 'cover_small', 'medium': 'cover_big', 'big': 'cover_big'}


def slugify(name: str) -> str:
    return re.sub(r'\s+', '-', name.lower())


def format_release_date(timestamp: Optional[int]) -> Optional[str]:
    """Unix seconds → ``YYYY-MM-DD`` (UTC), or ``None``."""
    if not timestamp:
        return None
    return datetime.datetime.fromtimestamp(timestamp, tz=datetime.timezone.utc).date().isoformat()


def get_game_cover_url(game: Dict[str, Any], size: str = 'big') -> Optional[str]:
    image_id = (game.get('cover') or {}).get('image_id')
    if not image_id:
        return None
    return get_image_url(image_id, _COVER_SIZES.get(size, 'cover_big'))


def get_age_rating_name(rating: int) -> str:
    return _AGE_RATING_NAMES.get(rating, 'Not Rated')


def _companies(game: Dict[str, Any], role: str) -> List[Dict[str, Any]]:
    involved = [ic for ic in game.get('involved_companies') or [] if ic.get(role)]
    return [
        {'id': index, 'name': ic['company']['name'], 'slug': slugify(ic['company']['name'])}
        for index, ic in enumerate(involved)
    ]


def adapt_game(game: Dict[str, Any]) -> Dict[str, Any]:
    """Add the list-view fields (cover, release date, slugs, screenshots) to *game*."""
    aggregated = game.get('aggregated_rating')
    adapted = dict(game)
    adapted.update({
        'background_image': get_game_cover_url(game),
        'released': format_release_date(game.get('first_release_date')),
        'metacritic': round(aggregated) if aggregated else None,
        'description_raw': game.get('summary'),
        'platforms': [
            {'platform': {'id': 0, 'name': p['name'], 'slug': slugify(p['name'])}}
            for p in game.get('platforms') or []
        ],
        'genres': [
            {'id': index, 'name': g['name'], 'slug': slugify(g['name'])}
            for index, g in enumerate(game.get('genres') or [])
        ],
        # Artworks first: they are the high-quality 16:9 promotional images
        'short_screenshots': [
            {'id': f'artwork-{index}', 'image': get_image_url(a['image_id'], 'screenshot_huge')}
            for index, a in enumerate(game.get('artworks') or [])
        ] + [
            {'id': f'screenshot-{index}', 'image': get_image_url(s['image_id'], 'screenshot_med')}
            for index, s in enumerate(game.get('screenshots') or [])
        ],
    })
    return adapted


def adapt_game_details(game: Dict[str, Any]) -> Dict[str, Any]:
    """:func:`adapt_game` plus description, website, companies and age rating."""
    adapted = adapt_game(game)
    age_ratings = game.get('age_ratings') or []
    esrb = None
    if age_ratings:
        name = get_age_rating_name(age_ratings[0].get('rating'))
        esrb = {'id': age_ratings[0].get('rating'), 'name': name, 'slug': slugify(name)}
    adapted.update({
        'description': game.get('summary') or '',
        'description_raw': game.get('summary') or '',
        'website': game.get('url') or '',
        'developers': _companies(game, 'developer'),
        'publishers': _companies(game, 'publisher'),
        'esrb_rating': esrb,
    })
    return adapted

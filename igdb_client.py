"""
igdb_client.py
==============
Lightweight wrapper around the IGDB v4 API, the game catalog behind
Gamerboxd's search, game pages and home-page shelves.

Authentication
--------------
IGDB is authenticated with a Twitch *client credentials* (app-access) token:

    POST https://id.twitch.tv/oauth2/token
        ?client_id=<YOUR_CLIENT_ID>
        &client_secret=<YOUR_CLIENT_SECRET>
        &grant_type=client_credentials

Obtain credentials at https://dev.twitch.tv/console/apps.  The token is cached
per client and refreshed lazily shortly before it expires.

Usage
-----
::

    from igdb_client import IGDBClient

    client = IGDBClient(client_id="abc", client_secret="xyz")
    page = client.search_games(query="zelda", page=1, page_size=20)
    # {"count": 40, "next": "page=2", "previous": None, "results": [...]}

    game = client.get_game_by_slug("the-legend-of-zelda-breath-of-the-wild")
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, List, Optional

import requests

import igdb_query
from igdb_query import create_igdb_query, COMMON_GAME_FIELDS, DETAILED_GAME_FIELDS

logger = logging.getLogger('gamerboxd.igdb')

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
_TOKEN_URL   = "https://id.twitch.tv/oauth2/token"
_API_BASE    = "https://api.igdb.com/v4"
_IMAGE_BASE  = "https://images.igdb.com/igdb/image/upload"
_DEFAULT_TIMEOUT = 10  # seconds
# Refresh the cached token this many seconds before it actually expires
_TOKEN_MIN_TTL   = 300

IMAGE_SIZES = (
    'cover_small', 'screenshot_med', 'cover_big', 'cover_big_2x',
    'screenshot_big', 'screenshot_huge', '1080p',
)


class IGDBAuthError(Exception):
    """Raised when the Twitch OAuth token for IGDB cannot be obtained."""


class IGDBAPIError(Exception):
    """Raised when the IGDB API returns an error or cannot be reached."""


class GameNotFoundError(IGDBAPIError):
    """Raised when no game matches the requested slug."""


def get_image_url(image_id: str, size: str = 'cover_big') -> str:
    """Build the CDN URL for an IGDB image id."""
    return f"{_IMAGE_BASE}/t_{size}/{image_id}.jpg"


class IGDBClient:
    """Minimal IGDB API client with automatic, thread-safe token refresh."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        timeout: int = _DEFAULT_TIMEOUT,
    ) -> None:
        """
        Args:
            client_id:     Twitch application client ID.
            client_secret: Twitch application client secret.
            timeout:       HTTP request timeout in seconds.
        """
        if not client_id or not client_secret:
            raise ValueError("client_id and client_secret must not be empty")
        self._client_id     = client_id
        self._client_secret = client_secret
        self._timeout       = timeout
        self._access_token: Optional[str] = None
        self._token_expiry: float = 0.0  # Unix timestamp after which we refresh
        self._token_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------

    def search_games(
        self,
        query: Optional[str] = None,
        page: int = 1,
        page_size: int = igdb_query.DEFAULT_PAGE_SIZE,
        ordering: Optional[str] = '-rating',
        dates: Optional[str] = None,
        min_rating: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Search the catalog.

        Returns a paginated envelope::

            {
              "count":    40,          # lower bound; grows while pages are full
              "next":     "page=2",    # None on the last page
              "previous": None,
              "results":  [ {raw IGDB game}, ... ]
            }

        Raises:
            ValueError:    *dates* is malformed.
            IGDBAuthError: Token could not be obtained.
            IGDBAPIError:  IGDB returned an error status.
        """
        body = igdb_query.build_search_query(
            query=query, page=page, page_size=page_size,
            ordering=ordering, dates=dates, min_rating=min_rating,
        )
        return self._paginate(self._post("games", body), page, page_size)

    def get_popular_games(self, page_size: int = igdb_query.DEFAULT_PAGE_SIZE) -> Dict[str, Any]:
        return self._paginate(self._post("games", igdb_query.popular_query(page_size)), 1, page_size)

    def get_highlight_games(self, page_size: int = igdb_query.DEFAULT_PAGE_SIZE) -> Dict[str, Any]:
        return self._paginate(self._post("games", igdb_query.highlighted_query(page_size)), 1, page_size)

    def get_trending_games(self, page_size: int = igdb_query.DEFAULT_PAGE_SIZE) -> Dict[str, Any]:
        return self._paginate(self._post("games", igdb_query.trending_query(page_size)), 1, page_size)

    def get_new_releases(self, page_size: int = igdb_query.DEFAULT_PAGE_SIZE) -> Dict[str, Any]:
        return self._paginate(self._post("games", igdb_query.new_releases_query(page_size)), 1, page_size)

    def get_upcoming_games(self, page_size: int = igdb_query.DEFAULT_PAGE_SIZE) -> Dict[str, Any]:
        return self._paginate(self._post("games", igdb_query.upcoming_query(page_size)), 1, page_size)

    def get_game_by_slug(self, slug: str) -> Dict[str, Any]:
        """Return the detailed record for *slug*.

        Raises:
            GameNotFoundError: No game has that slug.
        """
        body = (create_igdb_query()
                .fields(DETAILED_GAME_FIELDS)
                .where_equals('slug', slug)
                .exclude_adult_content()
                .build())
        games = self._post("games", body)
        if not games:
            raise GameNotFoundError(f"Game not found: {slug}")
        return games[0]

    def get_game_screenshots(self, slug: str) -> Dict[str, List[Dict[str, str]]]:
        """Return artwork and screenshot URLs for *slug*::

            {"artworks": [{"id": ..., "image": ...}], "results": [...]}
        """
        body = (create_igdb_query()
                .fields(['screenshots.image_id', 'artworks.image_id'])
                .where_equals('slug', slug)
                .exclude_adult_content()
                .build())
        games = self._post("games", body)
        if not games:
            raise GameNotFoundError(f"Game not found: {slug}")
        game = games[0]
        return {
            "artworks": [
                {"id": a["image_id"], "image": get_image_url(a["image_id"], 'screenshot_huge')}
                for a in game.get("artworks") or []
            ],
            "results": [
                {"id": s["image_id"], "image": get_image_url(s["image_id"], 'screenshot_big')}
                for s in game.get("screenshots") or []
            ],
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _paginate(games: List[Dict[str, Any]], page: int, page_size: int) -> Dict[str, Any]:
        offset = (page - 1) * page_size
        full = len(games) == page_size
        return {
            "count":    (page + 1) * page_size if full else offset + len(games),
            "next":     f"page={page + 1}" if full else None,
            "previous": f"page={page - 1}" if page > 1 else None,
            "results":  games,
        }

    def _get_token(self) -> str:
        """Return a valid Bearer token, fetching a new one if needed."""
        with self._token_lock:
            now = time.time()
            if self._access_token and now < self._token_expiry:
                return self._access_token

            try:
                resp = requests.post(
                    _TOKEN_URL,
                    params={
                        "client_id":     self._client_id,
                        "client_secret": self._client_secret,
                        "grant_type":    "client_credentials",
                    },
                    timeout=self._timeout,
                )
                resp.raise_for_status()
            except requests.RequestException as exc:
                raise IGDBAuthError(f"Failed to obtain IGDB token: {exc}") from exc

            try:
                body = resp.json()
            except ValueError as exc:
                raise IGDBAuthError(f"IGDB token response is not JSON: {exc}") from exc
            if not isinstance(body, dict):
                raise IGDBAuthError(f"Unexpected IGDB token response: {body!r}")
            token = body.get("access_token")
            expires_in = body.get("expires_in", 3600)
            if not token:
                raise IGDBAuthError(
                    f"IGDB token response missing 'access_token': {body}"
                )

            self._access_token = token
            self._token_expiry = now + expires_in - _TOKEN_MIN_TTL
            logger.debug("Obtained new IGDB access token (expires in %ds)", expires_in)
            return token

    def _post(self, endpoint: str, body: str) -> List[Dict[str, Any]]:
        """POST an Apicalypse *body* to ``/<endpoint>`` and return parsed JSON."""
        token = self._get_token()
        headers = {
            "Client-ID":     self._client_id,
            "Authorization": f"Bearer {token}",
            "Content-Type":  "text/plain",
        }
        try:
            resp = requests.post(
                f"{_API_BASE}/{endpoint}",
                headers=headers,
                data=body.encode("utf-8"),
                timeout=self._timeout,
            )
            resp.raise_for_status()
        except requests.HTTPError as exc:
            logger.error("IGDB API error (%s) for query: %s", resp.status_code, body)
            raise IGDBAPIError(
                f"IGDB API error {resp.status_code} for {endpoint}: {resp.text}"
            ) from exc
        except requests.RequestException as exc:
            raise IGDBAPIError(f"Network error calling IGDB API: {exc}") from exc

        try:
            games = resp.json()
        except ValueError as exc:
            raise IGDBAPIError(f"IGDB returned invalid JSON for {endpoint}: {exc}") from exc
        if not isinstance(games, list):
            raise IGDBAPIError(f"Unexpected IGDB response for {endpoint}: {games!r}")
        return games

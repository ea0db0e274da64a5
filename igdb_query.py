"""
igdb_query.py
=============
Builder for IGDB's Apicalypse query language.

Clauses are always rendered in the order the API expects::

    fields → search → where → sort → limit → offset

API rules enforced here:

* ``sort`` cannot be combined with ``search`` (text search orders by
  relevance), so the sort clause is dropped whenever a search is present.
* ``where`` conditions are joined with ``&`` (AND).

Usage
-----
::

    from igdb_query import create_igdb_query

    body = (create_igdb_query()
            .fields(["id", "name"])
            .search("zelda")
            .limit(10)
            .offset(0)
            .build())
    # 'fields id, name; search "zelda"; limit 10; offset 0;'
"""

from __future__ import annotations

import calendar
import datetime
from typing import Iterable, List, Optional, Tuple, Union

# IGDB theme id for erotic content
_ADULT_THEME_ID = 42

COMMON_GAME_FIELDS = (
    'id',
    'name',
    'slug',
    'cover.image_id',
    'artworks.image_id',
    'first_release_date',
    'rating',
    'aggregated_rating',
    'screenshots.image_id',
    'platforms.name',
    'genres.name',
    'summary',
)

DETAILED_GAME_FIELDS = COMMON_GAME_FIELDS + (
    'storyline',
    'url',
    'involved_companies.company.name',
    'involved_companies.developer',
    'involved_companies.publisher',
    'age_ratings.rating',
    'age_ratings.category',
)

DEFAULT_PAGE_SIZE = 20


def _quote(value: str) -> str:
    escaped = value.replace('\\', '\\\\').replace('"', '\\"')
    return f'"{escaped}"'


class IGDBQueryBuilder:
    """Accumulates query parts; :meth:`build` renders them in the fixed clause order."""

    def __init__(self) -> None:
        self.reset()

    def fields(self, fields: Iterable[str]) -> "IGDBQueryBuilder":
        """Fields to return; nested fields use dot notation (``cover.image_id``)."""
        self._fields: List[str] = list(fields)
        return self

    def search(self, query: str) -> "IGDBQueryBuilder":
        """Relevance text search.  Any :meth:`sort` is ignored when this is set."""
        self._search = query
        return self

    def where(self, condition: str) -> "IGDBQueryBuilder":
        self._where.append(condition)
        return self

    def where_date_range(self, field: str, start: int, end: int) -> "IGDBQueryBuilder":
        """Keep records whose *field* (Unix seconds) lies in ``[start, end]``."""
        self._where.append(f"{field} >= {start} & {field} <= {end}")
        return self

    def where_min_rating(self, field: str, minimum: Union[int, float]) -> "IGDBQueryBuilder":
        self._where.append(f"{field} >= {minimum}")
        return self

    def where_not_null(self, field: str) -> "IGDBQueryBuilder":
        self._where.append(f"{field} != null")
        return self

    def where_equals(self, field: str, value: Union[str, int, float]) -> "IGDBQueryBuilder":
        """Exact match; strings are quoted and escaped, numbers are emitted bare."""
        rendered = _quote(value) if isinstance(value, str) else value
        self._where.append(f"{field} = {rendered}")
        return self

    def exclude_adult_content(self) -> "IGDBQueryBuilder":
        self._where.append(f"themes != ({_ADULT_THEME_ID})")
        return self

    def sort(self, field: str, direction: str = 'desc') -> "IGDBQueryBuilder":
        """Order results.  Ignored at build time if a search is set."""
        self._sort = (field, direction)
        return self

    def limit(self, value: int) -> "IGDBQueryBuilder":
        self._limit = value
        return self

    def offset(self, value: int) -> "IGDBQueryBuilder":
        self._offset = value
        return self

    def has_search(self) -> bool:
        return bool(self._search)

    def reset(self) -> "IGDBQueryBuilder":
        """Clear everything so the builder can be reused."""
        self._fields = []
        self._search: Optional[str] = None
        self._where: List[str] = []
        self._sort: Optional[Tuple[str, str]] = None
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None
        return self

    def build(self) -> str:
        """Render the query string."""
        parts: List[str] = []
        if self._fields:
            parts.append(f"fields {', '.join(self._fields)};")
        if self._search:
            parts.append(f"search {_quote(self._search)};")
        if self._where:
            parts.append(f"where {' & '.join(self._where)};")
        if not self._search and self._sort:
            parts.append(f"sort {self._sort[0]} {self._sort[1]};")
        if self._limit is not None:
            parts.append(f"limit {self._limit};")
        if self._offset is not None:
            parts.append(f"offset {self._offset};")
        return ' '.join(parts)


def create_igdb_query() -> IGDBQueryBuilder:
    return IGDBQueryBuilder()


# ---------------------------------------------------------------------------
# Catalog search
# ---------------------------------------------------------------------------

def _to_timestamp(day: datetime.date) -> int:
    return calendar.timegm(day.timetuple())


def parse_date_range(dates: str) -> Tuple[int, int]:
    """Parse ``"YYYY-MM-DD,YYYY-MM-DD"`` into a pair of UTC-midnight Unix timestamps.

    Raises:
        ValueError: The string is not two ISO dates separated by a comma.
    """
    try:
        start, end = [s.strip() for s in dates.split(',')]
    except ValueError:
        raise ValueError(f"dates must be 'YYYY-MM-DD,YYYY-MM-DD', got {dates!r}") from None
    return (_to_timestamp(datetime.date.fromisoformat(start)),
            _to_timestamp(datetime.date.fromisoformat(end)))


def build_search_query(
    query: Optional[str] = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    ordering: Optional[str] = '-rating',
    dates: Optional[str] = None,
    min_rating: Optional[float] = None,
) -> str:
    """Build the ``games`` query used by catalog search.

    Args:
        query:      Free-text search; when set, *ordering* has no effect.
        page:       1-based page number.
        page_size:  Results per page.
        ordering:   Field to sort by, ``-`` prefix for descending.
        dates:      Release window, ``"YYYY-MM-DD,YYYY-MM-DD"``.
        min_rating: Minimum ``rating``.

    Raises:
        ValueError: *dates* is malformed.
    """
    builder = (create_igdb_query()
               .fields(COMMON_GAME_FIELDS)
               .limit(page_size)
               .offset((page - 1) * page_size)
               .exclude_adult_content())
    if query:
        builder.search(query)
    if dates:
        start, end = parse_date_range(dates)
        builder.where_date_range('first_release_date', start, end)
    if min_rating:
        builder.where_min_rating('rating', min_rating)
    if not query:
        builder.where_not_null('rating')
    if ordering:
        if ordering.startswith('-'):
            builder.sort(ordering[1:], 'desc')
        else:
            builder.sort(ordering, 'asc')
    return builder.build()


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------

def _shift_months(day: datetime.date, months: int) -> datetime.date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return day.replace(year=year, month=month, day=min(day.day, last_day))


def _window(start: datetime.date, end: datetime.date) -> str:
    return f"{start.isoformat()},{end.isoformat()}"


def popular_query(page_size: int = DEFAULT_PAGE_SIZE) -> str:
    return build_search_query(page_size=page_size, ordering='-rating')


def highlighted_query(page_size: int = DEFAULT_PAGE_SIZE) -> str:
    return build_search_query(page_size=page_size, ordering='-aggregated_rating', min_rating=85)


def trending_query(page_size: int = DEFAULT_PAGE_SIZE) -> str:
    return build_search_query(page_size=page_size, ordering='-rating', min_rating=70)


def new_releases_query(page_size: int = DEFAULT_PAGE_SIZE,
                       today: Optional[datetime.date] = None) -> str:
    """Newest first, released in the last three months."""
    today = today or datetime.date.today()
    return build_search_query(
        page_size=page_size,
        ordering='-first_release_date',
        dates=_window(_shift_months(today, -3), today),
    )


def upcoming_query(page_size: int = DEFAULT_PAGE_SIZE,
                   today: Optional[datetime.date] = None) -> str:
    """Soonest first, releasing in the next three months."""
    today = today or datetime.date.today()
    return build_search_query(
        page_size=page_size,
        ordering='first_release_date',
        dates=_window(today, _shift_months(today, 3)),
    )

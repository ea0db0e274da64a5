#!/usr/bin/env python3
"""
Tests for the IGDB Apicalypse query builder and the catalog query presets.

Run with:
    python -m pytest tests/test_query_builder.py
"""
import calendar
import datetime
import os
import sys
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import igdb_query
from igdb_query import (
    COMMON_GAME_FIELDS,
    build_search_query,
    create_igdb_query,
    parse_date_range,
)


def _ts(year, month, day):
    return calendar.timegm(datetime.date(year, month, day).timetuple())


# ===========================================================================
# IGDBQueryBuilder
# ===========================================================================

class TestQueryBuilder(unittest.TestCase):

    def test_search_example(self):
        body = (create_igdb_query()
                .fields(["id", "name"])
                .search("zelda")
                .limit(10)
                .offset(0)
                .build())
        self.assertEqual(body, 'fields id, name; search "zelda"; limit 10; offset 0;')

    def test_min_rating_example(self):
        body = (create_igdb_query()
                .fields(["id"])
                .where_min_rating("rating", 85)
                .sort("rating", "desc")
                .limit(5)
                .build())
        self.assertEqual(body, 'fields id; where rating >= 85; sort rating desc; limit 5;')

    def test_clause_order_independent_of_call_order(self):
        body = (create_igdb_query()
                .offset(20)
                .limit(10)
                .sort("rating", "asc")
                .where_not_null("rating")
                .fields(["id"])
                .build())
        self.assertEqual(body, 'fields id; where rating != null; sort rating asc; limit 10; offset 20;')

    def test_search_drops_sort(self):
        builder = create_igdb_query().fields(["id"]).sort("rating", "desc").search("zelda")
        body = builder.build()
        self.assertIn('search "zelda";', body)
        self.assertNotIn('sort', body)
        self.assertTrue(builder.has_search())

    def test_where_conditions_joined_with_and(self):
        body = (create_igdb_query()
                .where_not_null("rating")
                .where_min_rating("rating", 70)
                .exclude_adult_content()
                .build())
        self.assertEqual(body, 'where rating != null & rating >= 70 & themes != (42);')

    def test_date_range(self):
        body = create_igdb_query().where_date_range("first_release_date", 100, 200).build()
        self.assertEqual(body, 'where first_release_date >= 100 & first_release_date <= 200;')

    def test_where_equals_quotes_strings(self):
        body = create_igdb_query().where_equals("slug", 'say "hi"').build()
        self.assertEqual(body, 'where slug = "say \\"hi\\"";')

    def test_where_equals_numbers_bare(self):
        body = create_igdb_query().where_equals("id", 1942).build()
        self.assertEqual(body, 'where id = 1942;')

    def test_search_text_escaped(self):
        body = create_igdb_query().search('back\\slash "quoted"').build()
        self.assertEqual(body, 'search "back\\\\slash \\"quoted\\"";')

    def test_raw_where(self):
        body = create_igdb_query().where("platforms = (6)").build()
        self.assertEqual(body, 'where platforms = (6);')

    def test_empty_fields_omitted(self):
        self.assertEqual(create_igdb_query().fields([]).limit(1).build(), 'limit 1;')

    def test_empty_builder(self):
        self.assertEqual(create_igdb_query().build(), '')

    def test_reset(self):
        builder = create_igdb_query().fields(["id"]).search("zelda").where("x = 1").limit(3)
        builder.reset()
        self.assertEqual(builder.build(), '')
        self.assertFalse(builder.has_search())


# ===========================================================================
# build_search_query / parse_date_range
# ===========================================================================

class TestBuildSearchQuery(unittest.TestCase):

    def test_default_browse(self):
        body = build_search_query()
        self.assertTrue(body.startswith(f"fields {', '.join(COMMON_GAME_FIELDS)};"))
        self.assertIn('where themes != (42) & rating != null;', body)
        self.assertIn('sort rating desc;', body)
        self.assertTrue(body.endswith('limit 20; offset 0;'))

    def test_text_search_ignores_ordering(self):
        body = build_search_query(query='zelda', ordering='-rating')
        self.assertIn('search "zelda";', body)
        self.assertNotIn('sort', body)
        self.assertNotIn('rating != null', body)

    def test_pagination(self):
        body = build_search_query(page=3, page_size=10)
        self.assertTrue(body.endswith('limit 10; offset 20;'))

    def test_ascending_ordering(self):
        self.assertIn('sort first_release_date asc;', build_search_query(ordering='first_release_date'))

    def test_dates_and_min_rating(self):
        body = build_search_query(dates='2024-01-01,2024-12-31', min_rating=80)
        self.assertIn(
            f'first_release_date >= {_ts(2024, 1, 1)} & first_release_date <= {_ts(2024, 12, 31)}',
            body,
        )
        self.assertIn('rating >= 80', body)

    def test_parse_date_range(self):
        self.assertEqual(parse_date_range('2024-01-01,2024-12-31'), (1704067200, 1735603200))

    def test_parse_date_range_rejects_garbage(self):
        for bad in ('2024-01-01', '2024-01-01,2024-02-01,2024-03-01', 'yesterday,today'):
            with self.assertRaises(ValueError):
                parse_date_range(bad)

    def test_malformed_dates_raise(self):
        with self.assertRaises(ValueError):
            build_search_query(dates='not-a-date')


# ===========================================================================
# Presets
# ===========================================================================

class TestPresets(unittest.TestCase):

    def test_popular(self):
        body = igdb_query.popular_query(12)
        self.assertIn('sort rating desc;', body)
        self.assertIn('limit 12;', body)

    def test_highlighted(self):
        body = igdb_query.highlighted_query()
        self.assertIn('sort aggregated_rating desc;', body)
        self.assertIn('rating >= 85', body)

    def test_trending(self):
        body = igdb_query.trending_query()
        self.assertIn('sort rating desc;', body)
        self.assertIn('rating >= 70', body)

    def test_new_releases_window(self):
        body = igdb_query.new_releases_query(10, today=datetime.date(2024, 5, 31))
        self.assertIn('sort first_release_date desc;', body)
        self.assertIn(f'first_release_date >= {_ts(2024, 2, 29)}', body)
        self.assertIn(f'first_release_date <= {_ts(2024, 5, 31)}', body)

    def test_upcoming_window(self):
        body = igdb_query.upcoming_query(10, today=datetime.date(2024, 11, 15))
        self.assertIn('sort first_release_date asc;', body)
        self.assertIn(f'first_release_date >= {_ts(2024, 11, 15)}', body)
        self.assertIn(f'first_release_date <= {_ts(2025, 2, 15)}', body)

    def test_presets_are_pure(self):
        today = datetime.date(2024, 5, 31)
        self.assertEqual(igdb_query.new_releases_query(10, today=today),
                         igdb_query.new_releases_query(10, today=today))


if __name__ == '__main__':
    unittest.main()

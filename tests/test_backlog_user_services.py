#!/usr/bin/env python3
"""
Tests for the backlog and account services.

Run with:
    python -m pytest tests/test_backlog_user_services.py
"""
import os
import sys
import unittest
from unittest.mock import MagicMock, patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database
from app.repositories import BacklogRepository
from app.services import BacklogService, UserService
from app.services import results
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker


def _make_session():
    engine = create_engine('sqlite:///:memory:', connect_args={"check_same_thread": False})
    database.Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)()


def _game(game_id):
    return {
        'game_id': game_id,
        'game_slug': f'game-{game_id}',
        'game_name': f'Game {game_id}',
        'game_image': None,
    }


# ===========================================================================
# BacklogService
# ===========================================================================

class TestBacklogService(unittest.TestCase):

    def setUp(self):
        self.db = _make_session()
        user = database.User(email='a@example.com', username='alice', password_hash='x')
        self.db.add(user)
        self.db.commit()
        self.uid = user.id
        self.on_change = MagicMock()
        self.service = BacklogService(on_change=self.on_change)

    def tearDown(self):
        self.db.close()

    def test_add_defaults_to_want_to_play(self):
        result = self.service.add(self.db, self.uid, _game(1))
        self.assertTrue(result['success'])
        self.assertEqual(result['data']['status'], 'WANT_TO_PLAY')
        self.assertEqual(result['data']['game_id'], 1)
        self.on_change.assert_called_once_with(self.uid)

    def test_add_existing_updates_status(self):
        self.service.add(self.db, self.uid, _game(1))
        result = self.service.add(self.db, self.uid, _game(1), 'PLAYING')
        self.assertEqual(result['data']['status'], 'PLAYING')
        self.assertEqual(len(self.service.get_user_backlog(self.db, self.uid)), 1)

    def test_add_invalid_status(self):
        result = self.service.add(self.db, self.uid, _game(1), 'FINISHED')
        self.assertEqual(result['code'], results.INVALID_STATUS)
        self.assertIn('WANT_TO_PLAY', result['error'])
        self.assertEqual(self.service.get_user_backlog(self.db, self.uid), [])

    def test_add_incomplete_game(self):
        for game in ({'game_id': 1}, {'game_slug': 'x', 'game_name': 'X'}, None):
            result = self.service.add(self.db, self.uid, game)
            self.assertEqual(result['code'], results.VALIDATION_ERROR)
        self.assertEqual(self.service.get_user_backlog(self.db, self.uid), [])
        self.on_change.assert_not_called()

    def test_add_anonymous(self):
        result = self.service.add(self.db, None, _game(1))
        self.assertEqual(result['code'], results.NOT_AUTHENTICATED)

    def test_add_persistence_failure(self):
        with patch.object(BacklogRepository, 'create',
                          side_effect=SQLAlchemyError('insert failed')):
            result = self.service.add(self.db, self.uid, _game(1))
        self.assertEqual(result['code'], results.PERSISTENCE_FAILURE)
        self.assertEqual(self.service.get_user_backlog(self.db, self.uid), [])
        self.on_change.assert_not_called()

    def test_update_status(self):
        self.service.add(self.db, self.uid, _game(1))
        result = self.service.update_status(self.db, self.uid, 1, 'COMPLETED')
        self.assertTrue(result['success'])
        self.assertEqual(self.service.get_status(self.db, self.uid, 1)['status'], 'COMPLETED')

    def test_update_status_missing_game(self):
        result = self.service.update_status(self.db, self.uid, 99, 'COMPLETED')
        self.assertEqual(result['code'], results.NOT_FOUND)

    def test_update_status_invalid(self):
        self.service.add(self.db, self.uid, _game(1))
        result = self.service.update_status(self.db, self.uid, 1, 'done')
        self.assertEqual(result['code'], results.INVALID_STATUS)

    def test_remove(self):
        self.service.add(self.db, self.uid, _game(1))
        self.assertEqual(self.service.remove(self.db, self.uid, 1), {'success': True})
        self.assertIsNone(self.service.get_status(self.db, self.uid, 1))

    def test_remove_missing(self):
        result = self.service.remove(self.db, self.uid, 1)
        self.assertEqual(result['code'], results.NOT_FOUND)

    def test_filter_by_status(self):
        self.service.add(self.db, self.uid, _game(1), 'PLAYING')
        self.service.add(self.db, self.uid, _game(2), 'COMPLETED')
        self.service.add(self.db, self.uid, _game(3), 'PLAYING')
        playing = self.service.get_user_backlog(self.db, self.uid, 'PLAYING')
        self.assertEqual(sorted(e['game_id'] for e in playing), [1, 3])

    def test_stats(self):
        self.service.add(self.db, self.uid, _game(1), 'PLAYING')
        self.service.add(self.db, self.uid, _game(2), 'COMPLETED')
        self.service.add(self.db, self.uid, _game(3), 'PLAYING')
        stats = self.service.get_stats(self.db, self.uid)
        self.assertEqual(stats['total_games'], 3)
        self.assertEqual(stats['by_status']['PLAYING'], 2)
        self.assertEqual(stats['by_status']['COMPLETED'], 1)
        self.assertEqual(stats['by_status']['DROPPED'], 0)

    def test_anonymous_reads(self):
        self.assertEqual(self.service.get_user_backlog(self.db, None), [])
        self.assertIsNone(self.service.get_status(self.db, None, 1))
        self.assertEqual(self.service.get_stats(self.db, None)['total_games'], 0)


# ===========================================================================
# UserService
# ===========================================================================

class TestUserService(unittest.TestCase):

    def setUp(self):
        self.db = _make_session()
        self.service = UserService(database)

    def tearDown(self):
        self.db.close()

    def test_register_and_authenticate(self):
        result = self.service.register(self.db, 'Alice@Example.com', 'alice', 'secret1')
        self.assertTrue(result['success'])
        self.assertEqual(result['user']['email'], 'alice@example.com')
        self.assertNotIn('password_hash', result['user'])

        user = self.service.authenticate(self.db, 'alice@example.com', 'secret1')
        self.assertIsNotNone(user)
        self.assertEqual(user.username, 'alice')

    def test_password_is_hashed(self):
        self.service.register(self.db, 'a@example.com', 'alice', 'secret1')
        user = database.get_user_by_email(self.db, 'a@example.com')
        self.assertNotEqual(user.password_hash, 'secret1')
        self.assertTrue(user.password_hash.startswith('pbkdf2:sha256'))

    def test_wrong_password(self):
        self.service.register(self.db, 'a@example.com', 'alice', 'secret1')
        self.assertIsNone(self.service.authenticate(self.db, 'a@example.com', 'nope'))

    def test_unknown_email(self):
        self.assertIsNone(self.service.authenticate(self.db, 'ghost@example.com', 'secret1'))

    def test_duplicate_email(self):
        self.service.register(self.db, 'a@example.com', 'alice', 'secret1')
        result = self.service.register(self.db, 'A@example.com', 'alice2', 'secret1')
        self.assertEqual(result['error'], 'Email already in use')

    def test_duplicate_username(self):
        self.service.register(self.db, 'a@example.com', 'alice', 'secret1')
        result = self.service.register(self.db, 'b@example.com', 'alice', 'secret1')
        self.assertEqual(result['error'], 'Username already taken')

    def test_validation(self):
        self.assertEqual(self.service.register(self.db, 'bad', 'alice', 'secret1')['code'],
                         results.VALIDATION_ERROR)
        self.assertEqual(self.service.register(self.db, 'a@example.com', 'al', 'secret1')['code'],
                         results.VALIDATION_ERROR)
        self.assertEqual(self.service.register(self.db, 'a@example.com', 'alice', '123')['code'],
                         results.VALIDATION_ERROR)

    def test_get(self):
        user = self.service.register(self.db, 'a@example.com', 'alice', 'secret1')['user']
        self.assertEqual(self.service.get(self.db, user['id']).email, 'a@example.com')
        self.assertIsNone(self.service.get(self.db, None))


if __name__ == '__main__':
    unittest.main()

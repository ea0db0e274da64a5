#!/usr/bin/env python3
"""
Tests for configuration loading and the command-line entry point (gamerboxd.py).

Run with:
    python -m pytest tests/test_cli.py
"""
import json
import os
import shutil
import sys
import tempfile
import unittest
from unittest.mock import MagicMock, patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import gamerboxd
from igdb_client import IGDBAPIError


class TestLoadConfig(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.config_path = os.path.join(self.tmpdir, 'config.json')

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def _write(self, data):
        with open(self.config_path, 'w') as f:
            json.dump(data, f)

    @patch.dict(os.environ, {}, clear=True)
    def test_defaults_without_file(self):
        config = gamerboxd.load_config(self.config_path)
        self.assertEqual(config['host'], '127.0.0.1')
        self.assertEqual(config['port'], 5000)
        self.assertEqual(config['igdb_client_id'], '')

    @patch.dict(os.environ, {}, clear=True)
    def test_file_values(self):
        self._write({'igdb_client_id': 'file_id', 'port': '8080'})
        config = gamerboxd.load_config(self.config_path)
        self.assertEqual(config['igdb_client_id'], 'file_id')
        self.assertEqual(config['port'], 8080)

    @patch.dict(os.environ, {'IGDB_CLIENT_ID': 'env_id', 'GAMERBOXD_PORT': '9000'}, clear=True)
    def test_env_overrides_file(self):
        self._write({'igdb_client_id': 'file_id', 'port': 8080})
        config = gamerboxd.load_config(self.config_path)
        self.assertEqual(config['igdb_client_id'], 'env_id')
        self.assertEqual(config['port'], 9000)

    @patch.dict(os.environ, {}, clear=True)
    def test_invalid_json_falls_back_to_defaults(self):
        with open(self.config_path, 'w') as f:
            f.write('{not json')
        config = gamerboxd.load_config(self.config_path)
        self.assertEqual(config['log_level'], 'INFO')

    def test_make_igdb_client_requires_credentials(self):
        self.assertIsNone(gamerboxd.make_igdb_client({'igdb_client_id': 'id',
                                                      'igdb_client_secret': ''}))
        client = gamerboxd.make_igdb_client({'igdb_client_id': 'id',
                                             'igdb_client_secret': 'secret'})
        self.assertIsNotNone(client)


class TestSetupLogging(unittest.TestCase):

    def test_level(self):
        logger = gamerboxd.setup_logging('DEBUG')
        self.assertEqual(logger.name, 'gamerboxd')
        self.assertEqual(logger.level, 10)
        gamerboxd.setup_logging('WARNING')

    def test_unknown_level_defaults_to_warning(self):
        logger = gamerboxd.setup_logging('LOUD')
        self.assertEqual(logger.level, 30)


class TestCommands(unittest.TestCase):

    def test_parser_requires_command(self):
        with self.assertRaises(SystemExit):
            gamerboxd.build_parser().parse_args([])

    def test_search_args(self):
        args = gamerboxd.build_parser().parse_args(
            ['search', 'zelda', '--page', '2', '--min-rating', '80'])
        self.assertEqual(args.query, 'zelda')
        self.assertEqual(args.page, 2)
        self.assertEqual(args.min_rating, 80.0)

    @patch.object(gamerboxd, 'make_igdb_client', return_value=None)
    def test_search_without_credentials(self, _mock):
        self.assertEqual(gamerboxd.main(['--config', 'missing.json', 'search', 'zelda']), 1)

    @patch.object(gamerboxd, 'make_igdb_client')
    def test_search_prints_results(self, mock_make):
        client = MagicMock()
        client.search_games.return_value = {
            'count': 1, 'next': None, 'previous': None,
            'results': [{'id': 1, 'name': 'Halo', 'slug': 'halo', 'rating': 90.2}],
        }
        mock_make.return_value = client
        self.assertEqual(gamerboxd.main(['--config', 'missing.json', 'search', 'halo']), 0)
        self.assertEqual(client.search_games.call_args.kwargs['query'], 'halo')

    @patch.object(gamerboxd, 'make_igdb_client')
    def test_search_api_error(self, mock_make):
        client = MagicMock()
        client.search_games.side_effect = IGDBAPIError('boom')
        mock_make.return_value = client
        self.assertEqual(gamerboxd.main(['--config', 'missing.json', 'search']), 1)

    @patch.object(gamerboxd, 'make_igdb_client')
    def test_search_bad_dates(self, mock_make):
        client = MagicMock()
        client.search_games.side_effect = ValueError('bad dates')
        mock_make.return_value = client
        self.assertEqual(
            gamerboxd.main(['--config', 'missing.json', 'search', '--dates', 'x']), 2)


if __name__ == '__main__':
    unittest.main()

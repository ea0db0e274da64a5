#!/usr/bin/env python3
"""
Gamerboxd - track, rank and discover games.
Command-line entry point: database setup, catalog search from the terminal,
and launching the web API.
"""

import argparse
import json
import logging
import os
import sys
from typing import Dict, Optional

from colorama import init, Fore, Style
from dotenv import load_dotenv

# Initialize colorama for cross-platform colored terminal output
init(autoreset=True)
load_dotenv()

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

def setup_logging(level: str = 'WARNING') -> logging.Logger:
    """Configure the root Gamerboxd logger.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to WARNING so normal use is quiet.

    Returns:
        Configured logger instance.
    """
    numeric = getattr(logging, level.upper(), logging.WARNING)
    logger = logging.getLogger('gamerboxd')
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
        logger.addHandler(handler)
    logger.setLevel(numeric)
    return logger


logger = setup_logging(os.getenv('GAMERBOXD_LOG_LEVEL', 'WARNING'))

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

# config.json key -> environment variable that overrides it
_ENV_OVERRIDES = {
    'igdb_client_id': 'IGDB_CLIENT_ID',
    'igdb_client_secret': 'IGDB_CLIENT_SECRET',
    'secret_key': 'GAMERBOXD_SECRET_KEY',
    'log_level': 'GAMERBOXD_LOG_LEVEL',
    'host': 'GAMERBOXD_HOST',
    'port': 'GAMERBOXD_PORT',
}

DEFAULT_CONFIG = {
    'igdb_client_id': '',
    'igdb_client_secret': '',
    'secret_key': '',
    'log_level': 'INFO',
    'host': '127.0.0.1',
    'port': 5000,
}


def load_config(config_path: str = 'config.json') -> Dict:
    """Load configuration from an optional JSON file with environment variable support.

    Environment variables take precedence over config file values:
    - IGDB_CLIENT_ID overrides igdb_client_id
    - IGDB_CLIENT_SECRET overrides igdb_client_secret
    - GAMERBOXD_SECRET_KEY overrides secret_key
    - GAMERBOXD_LOG_LEVEL overrides log_level
    - GAMERBOXD_HOST / GAMERBOXD_PORT override host / port

    A missing or unreadable file is not an error; defaults are used.
    """
    config = dict(DEFAULT_CONFIG)
    if os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                config.update(json.load(f))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not load %s: %s", config_path, e)

    for key, env_name in _ENV_OVERRIDES.items():
        if os.getenv(env_name):
            config[key] = os.getenv(env_name)
    config['port'] = int(config['port'])
    return config


def make_igdb_client(config: Dict):
    """Return an :class:`~igdb_client.IGDBClient` or ``None`` when credentials are missing."""
    from igdb_client import IGDBClient

    if not config.get('igdb_client_id') or not config.get('igdb_client_secret'):
        return None
    return IGDBClient(config['igdb_client_id'], config['igdb_client_secret'])


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_init_db(args, config: Dict) -> int:
    import database

    if database.init_db():
        print(f"{Fore.GREEN}Database ready: {database.DATABASE_URL}")
        return 0
    print(f"{Fore.RED}Database initialization failed (see log)")
    return 1


def cmd_search(args, config: Dict) -> int:
    from igdb_adapter import adapt_game
    from igdb_client import IGDBAPIError, IGDBAuthError

    client = make_igdb_client(config)
    if client is None:
        print(f"{Fore.RED}Error: set IGDB_CLIENT_ID and IGDB_CLIENT_SECRET (or config.json)")
        return 1
    try:
        page = client.search_games(
            query=args.query or None,
            page=args.page,
            page_size=args.page_size,
            ordering=args.ordering,
            dates=args.dates,
            min_rating=args.min_rating,
        )
    except ValueError as e:
        print(f"{Fore.RED}Error: {e}")
        return 2
    except (IGDBAuthError, IGDBAPIError) as e:
        print(f"{Fore.RED}Error: {e}")
        return 1

    if not page['results']:
        print(f"{Fore.YELLOW}No games found.")
        return 0
    for raw in page['results']:
        game = adapt_game(raw)
        rating = f"{game['rating']:.0f}" if game.get('rating') else '--'
        released = game.get('released') or 'TBA'
        print(f"{Style.BRIGHT}{game['name']}{Style.RESET_ALL} "
              f"{Fore.CYAN}[{released}]{Style.RESET_ALL} rating {rating}  ({game['slug']})")
    if page['next']:
        print(f"{Fore.YELLOW}More results: --page {args.page + 1}")
    return 0


def cmd_serve(args, config: Dict) -> int:
    import gamerboxd_web

    gamerboxd_web.run(host=args.host or config['host'], port=args.port or config['port'])
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Gamerboxd - track, rank and discover games',
    )
    parser.add_argument(
        '--config',
        default='config.json',
        help='Path to config file (default: config.json)'
    )
    parser.add_argument('--log-level', default=None, help='Override log level')
    sub = parser.add_subparsers(dest='command', required=True)

    sub.add_parser('init-db', help='Create database tables')

    search = sub.add_parser('search', help='Search the IGDB catalog')
    search.add_argument('query', nargs='?', default='', help='Free-text query')
    search.add_argument('--page', type=int, default=1)
    search.add_argument('--page-size', type=int, default=10)
    search.add_argument('--ordering', default='-rating',
                        help="Sort field, '-' prefix for descending (ignored with a query)")
    search.add_argument('--dates', default=None, help='Release window YYYY-MM-DD,YYYY-MM-DD')
    search.add_argument('--min-rating', type=float, default=None)

    serve = sub.add_parser('serve', help='Run the web API')
    serve.add_argument('--host', default=None)
    serve.add_argument('--port', type=int, default=None)
    return parser


_COMMANDS = {
    'init-db': cmd_init_db,
    'search': cmd_search,
    'serve': cmd_serve,
}


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args.config)
    setup_logging(args.log_level or config['log_level'])
    return _COMMANDS[args.command](args, config)


if __name__ == "__main__":
    sys.exit(main())

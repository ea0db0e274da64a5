"""Business logic for account registration and login."""
import logging
from typing import Dict, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from . import results
from .results import fail, ok

logger = logging.getLogger('gamerboxd.services.users')

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6


class UserService:
    """Registers and authenticates users, delegating persistence to the
    ``database`` module's helper functions.

    All methods accept a *db* SQLAlchemy session as the first argument so
    that callers (Flask route handlers) control the session lifecycle.
    """

    def __init__(self, db_module) -> None:
        """
        Args:
            db_module: The imported ``database`` module (or any object that
                exposes ``get_user_by_email``, ``get_user_by_username``,
                ``get_user_by_id`` and ``create_user``).
        """
        self._db = db_module

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def register(self, db, email: str, username: str, password: str) -> Dict:
        """Create an account.

        Returns:
            ``{'success': True, 'user': {...}}`` or a failure dict with code
            ``validation_error`` (bad input, e-mail or username taken) or
            ``persistence_failure``.
        """
        email = (email or '').strip().lower()
        username = (username or '').strip()
        if '@' not in email:
            return fail(results.VALIDATION_ERROR, 'A valid email is required')
        if len(username) < MIN_USERNAME_LENGTH:
            return fail(results.VALIDATION_ERROR,
                        f'Username must be at least {MIN_USERNAME_LENGTH} characters')
        if len(password or '') < MIN_PASSWORD_LENGTH:
            return fail(results.VALIDATION_ERROR,
                        f'Password must be at least {MIN_PASSWORD_LENGTH} characters')

        if self._db.get_user_by_email(db, email):
            return fail(results.VALIDATION_ERROR, 'Email already in use')
        if self._db.get_user_by_username(db, username):
            return fail(results.VALIDATION_ERROR, 'Username already taken')

        user = self._db.create_user(db, email, username,
                                    generate_password_hash(password, method="pbkdf2:sha256"))
        if user is None:
            return fail(results.PERSISTENCE_FAILURE, 'Something went wrong')
        logger.info("Registered user %s", username)
        return ok(user=user.to_dict())

    def authenticate(self, db, email: str, password: str):
        """Return the user matching *email* and *password*, or ``None``."""
        user = self._db.get_user_by_email(db, (email or '').strip().lower())
        if user is None or not check_password_hash(user.password_hash, password or ''):
            return None
        return user

    def get(self, db, user_id: Optional[int]):
        """Return the user with *user_id*, or ``None``."""
        if user_id is None:
            return None
        return self._db.get_user_by_id(db, user_id)

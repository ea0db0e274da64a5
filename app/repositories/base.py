"""Repository base class used by all concrete repositories."""
import logging
from contextlib import contextmanager


class BaseRepository:
    """Provides SQLAlchemy-backed persistence over a caller-owned session.

    Sub-classes issue their queries through ``self._session``.  Reads are
    plain queries; writes are executed immediately so that a multi-step
    mutation can be ordered precisely inside :meth:`transaction`.

    :meth:`transaction` commits every statement issued inside the ``with``
    block as one unit, and rolls all of them back if any step raises, so a
    partially-applied mutation is never committed.
    """

    def __init__(self, session) -> None:
        self._session = session
        self._log = logging.getLogger(f'gamerboxd.repository.{type(self).__name__}')

    @contextmanager
    def transaction(self):
        """Run the enclosed writes atomically (commit on success, rollback on error)."""
        try:
            yield self
            self._session.commit()
        except Exception:
            self._log.debug("Rolling back transaction")
            self._session.rollback()
            raise

    def commit(self) -> None:
        try:
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

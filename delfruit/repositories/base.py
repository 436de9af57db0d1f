"""Repository base class used by all concrete repositories."""
from contextlib import contextmanager
import logging

from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import StorageError


class BaseRepository:
    """Wraps one SQLAlchemy session for the duration of a request.

    Sub-classes run every query inside :meth:`_storage`, which rolls the
    session back and re-raises any ``SQLAlchemyError`` as a
    :class:`~delfruit.exceptions.StorageError` naming the operation and the
    entity involved. Nothing is cached between calls; every read goes to the
    database.
    """

    def __init__(self, session) -> None:
        self._session = session
        self._log = logging.getLogger(f'delfruit.repository.{type(self).__name__}')

    @contextmanager
    def _storage(self, operation: str, entity_id=None):
        try:
            yield self._session
        except SQLAlchemyError as exc:
            self._session.rollback()
            self._log.error("%s failed (id=%s): %s", operation, entity_id, exc, exc_info=True)
            raise StorageError(operation, entity_id) from exc

"""Session handling shared by the SQLAlchemy stores."""
import logging
from contextlib import contextmanager
from sqlalchemy.exc import SQLAlchemyError
from shared.models import to_app_time
from shared.validation import StoreError

logger = logging.getLogger(__name__)


@contextmanager
def session_scope(session_factory, operation="database operation"):
    """Provide a transactional scope around a series of operations.

    SQLAlchemy failures are rolled back and re-raised as StoreError with the
    original exception chained.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Store failure during {operation}: {e}")
        raise StoreError(f"Store failure during {operation}") from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def to_storage_time(value):
    """Naive application-time datetime, the form SQLite keeps."""
    if value is None:
        return None
    return to_app_time(value).replace(tzinfo=None)


def json_list(value):
    """JSON column value as a list; anything else reads back as empty."""
    return value if isinstance(value, list) else []


class BaseRepository:
    """Common plumbing: a session factory and a per-class logger."""

    def __init__(self, session_factory):
        self.session_factory = session_factory
        self.logger = logging.getLogger(self.__class__.__name__)

    def _scope(self, operation):
        return session_scope(self.session_factory, operation)

import logging
from contextlib import contextmanager

from ..errors import LedgerError

logger = logging.getLogger(__name__)


@contextmanager
def atomic(session):
    """
    Run a block as one unit of work on the given session.

    Usage:
        with atomic(self.session):
            self.session.add(row)

    Commits on success. On any exception the session is rolled back and the
    exception propagates unchanged.
    """
    try:
        yield session
        session.commit()
    except LedgerError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.exception("Unit of work failed; rolled back")
        raise

# Overview: Service-layer helpers for locking, conflict retry and store failure classification.

from __future__ import annotations

import logging
import time
from contextlib import contextmanager

from sqlalchemy.exc import DBAPIError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import StoreUnavailable
from ..extensions import db

logger = logging.getLogger(__name__)


# Driver/pool failures that mean "the store did not answer", not "bad request"
STORE_FAILURES = (OperationalError, PoolTimeoutError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on optimistic-locking conflicts.

    Only StaleDataError (version_id mismatch) is retried. Connectivity and
    lock-timeout errors propagate on the first failure so the caller can
    fail closed.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except StaleDataError as exc:
            db.session.rollback()
            last_exc = exc
            logger.warning("Optimistic lock conflict (attempt %d/%d)", attempt + 1, attempts)
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def is_store_failure(exc: BaseException) -> bool:
    if isinstance(exc, STORE_FAILURES):
        return True
    # Dropped connections surface as DBAPIError with the invalidation flag set
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


@contextmanager
def store_operation(operation: str, error_cls=StoreUnavailable):
    """
    Classify store failures inside the block.

    Rolls the session back and re-raises connectivity/timeout failures as
    error_cls (StoreUnavailable by default), logged with the operation
    name. Everything else propagates unchanged.
    """
    try:
        yield
    except Exception as exc:
        if not is_store_failure(exc):
            raise
        db.session.rollback()
        logger.error("Store failure during %s: %s", operation, exc.__class__.__name__)
        raise error_cls(operation, exc) from exc

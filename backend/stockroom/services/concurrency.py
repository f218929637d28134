# Overview: Transaction, row-locking and retry helpers shared by every stock-mutating service.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE. Items, outbound records and
    approval requests also carry a version_id column, so a writer that loses
    the race there gets StaleDataError on flush and is retried below.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks, lock timeouts) and
    StaleDataError (optimistic locking conflicts). Every retry re-runs func
    from scratch against fresh rows, so validation is repeated.

    Any other exception rolls the session back before propagating: no
    partial writes survive a failed operation.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc

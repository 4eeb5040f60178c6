# ledger_system/utils/transaction_runner.py
"""
Optimistic read-compute-commit loop shared by all ledger services.
"""
from datetime import datetime
from typing import Awaitable, Callable, Optional, TypeVar
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session
from sqlalchemy.orm.exc import StaleDataError
import logging

import config
from ledger_system.errors import TransactionConflict
from ledger_system.utils.time_machine import timeMachine

logger = logging.getLogger(__name__)

T = TypeVar("T")

# StaleDataError: a versioned row changed since it was read.
# IntegrityError: a concurrent writer created the same primary key first.
CONFLICT_ERRORS = (StaleDataError, IntegrityError)

# SQLSTATE unique_violation (PostgreSQL and friends)
UNIQUE_VIOLATION_SQLSTATE = "23505"
# SQLite "UNIQUE constraint failed", MySQL "Duplicate entry"
UNIQUE_VIOLATION_MARKERS = ("unique constraint", "duplicate")


def isConflict(error: Exception) -> bool:
    """True for a lost race, False for a write that can never succeed (NOT NULL, length, ...)."""
    if isinstance(error, StaleDataError):
        return True
    if not isinstance(error, IntegrityError):
        return False

    orig = error.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code:
        return code == UNIQUE_VIOLATION_SQLSTATE
    message = str(orig).lower()
    return any(marker in message for marker in UNIQUE_VIOLATION_MARKERS)


def forUpdate(query: Query) -> Query:
    """Apply SELECT ... FOR UPDATE when row locking is enabled."""
    if config.TRANSACTION_LOCK_ROWS:
        return query.with_for_update()
    return query


def beginAttempt(session: Session):
    """
    Drop everything the session remembers so work() reads fresh rows.
    A transaction left open by earlier reads is rolled back; its snapshot
    and the objects loaded in it are stale by definition.
    """
    if session.in_transaction():
        session.rollback()
    else:
        session.expire_all()


async def runOptimistic(
        session: Session,
        work: Callable[[datetime], Awaitable[T]],
        label: str,
        maxAttempts: Optional[int] = None
) -> T:
    """
    Run work(startedAt) and commit, retrying the whole cycle on conflict.

    work must read every record it writes through `session` and raise
    before staging any write when a precondition fails. Any non-conflict
    exception rolls back and propagates unchanged. Uncommitted changes
    made on `session` before the call are discarded.
    """
    attempts = maxAttempts or config.TRANSACTION_MAX_ATTEMPTS

    for attempt in range(1, attempts + 1):
        beginAttempt(session)
        startedAt = timeMachine.now
        try:
            result = await work(startedAt)
            session.commit()
            if attempt > 1:
                logger.info(f"{label}: committed on attempt {attempt}")
            return result
        except CONFLICT_ERRORS as e:
            session.rollback()
            if not isConflict(e):
                logger.error(f"{label}: integrity error is not a conflict, giving up: {e.orig}")
                raise
            logger.warning(f"{label}: conflict on attempt {attempt}/{attempts}: {type(e).__name__}")
        except Exception:
            session.rollback()
            raise

    logger.error(f"{label}: retry budget of {attempts} attempts exhausted")
    raise TransactionConflict(label, attempts)

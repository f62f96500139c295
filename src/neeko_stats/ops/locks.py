"""Advisory locks, refresh cooldown and the admin audit trail."""

from __future__ import annotations

import math
from contextlib import contextmanager
from datetime import timedelta
from typing import Iterator, Optional, Sequence

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from neeko_stats.config import settings
from neeko_stats.db.models import AdminAuditLog, AIInsightsCache, SystemLock, User
from neeko_stats.db.session import session_scope
from neeko_stats.errors import LockHeldError, RefreshCooldownError
from neeko_stats.utils.logging import get_logger
from neeko_stats.utils.time import utcnow

logger = get_logger(__name__)

AI_REFRESH_LOCK = "ai_refresh"


def acquire_lock(session: Session, operation: str, owner: str) -> SystemLock:
    """Take the lock row for ``operation``.

    The row is flipped with a conditional UPDATE so two callers cannot
    both see it free. A missing row is inserted; the unique constraint
    on ``operation`` settles a race between two first-time callers.

    Raises:
        LockHeldError: if the lock is already taken
    """
    now = utcnow()
    result = session.execute(
        update(SystemLock)
        .where(SystemLock.operation == operation, SystemLock.locked.is_(False))
        .values(locked=True, locked_by=owner, locked_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    lock = session.query(SystemLock).filter_by(operation=operation).populate_existing().first()

    if result.rowcount == 0:
        if lock is not None:
            raise LockHeldError(operation, lock.locked_by, lock.locked_at)
        lock = SystemLock(operation=operation, locked=True, locked_by=owner, locked_at=now)
        session.add(lock)
        try:
            session.flush()
        except IntegrityError as e:
            raise LockHeldError(operation, None, None) from e

    logger.info("Lock %s acquired by %s", operation, owner)
    return lock


def release_lock(session: Session, operation: str) -> None:
    session.execute(
        update(SystemLock)
        .where(SystemLock.operation == operation)
        .values(locked=False, locked_by=None, locked_at=None, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    logger.info("Lock %s released", operation)


@contextmanager
def advisory_lock(session_factory: sessionmaker, operation: str, owner: str) -> Iterator[None]:
    """Hold ``operation``'s lock for the duration of the block.

    Acquire and release each commit in their own transaction, so the
    lock is visible to other workers and is released even when the body
    raises.
    """
    with session_scope(session_factory) as session:
        acquire_lock(session, operation, owner)
    try:
        yield
    finally:
        with session_scope(session_factory) as session:
            release_lock(session, operation)


def check_cooldown(
    session: Session,
    sport_keys: Optional[Sequence[str]] = None,
    minutes: Optional[int] = None,
) -> None:
    """Refuse a refresh while the newest cached insight is too recent.

    Raises:
        RefreshCooldownError: with the time the next refresh is allowed
    """
    minutes = settings.ai_refresh_cooldown_minutes if minutes is None else minutes
    query = session.query(func.max(AIInsightsCache.updated_at))
    if sport_keys:
        query = query.filter(AIInsightsCache.sport.in_(list(sport_keys)))
    last_refresh = query.scalar()
    if last_refresh is None:
        return

    next_available = last_refresh + timedelta(minutes=minutes)
    remaining = (next_available - utcnow()).total_seconds()
    if remaining > 0:
        raise RefreshCooldownError(math.ceil(remaining / 60), next_available)


def record_admin_action(
    session: Session, user: User, action: str, details: Optional[dict] = None
) -> AdminAuditLog:
    entry = AdminAuditLog(
        user_id=user.id,
        action=action,
        details={"timestamp": utcnow().isoformat(), **(details or {})},
    )
    session.add(entry)
    session.flush()
    return entry

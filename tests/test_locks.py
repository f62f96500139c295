"""Tests for advisory locks, the refresh cooldown and the admin audit log."""

from datetime import timedelta

import pytest

from neeko_stats.db.models import AdminAuditLog, AIInsightsCache, SystemLock
from neeko_stats.errors import LockHeldError, RefreshCooldownError
from neeko_stats.ops.locks import (
    AI_REFRESH_LOCK,
    acquire_lock,
    advisory_lock,
    check_cooldown,
    record_admin_action,
    release_lock,
)
from neeko_stats.utils.time import utcnow


def _cache(updated_at, sport="afl"):
    return AIInsightsCache(
        sport=sport,
        free_insights=[],
        premium_insights=[],
        total_players=0,
        updated_at=updated_at,
    )


def test_acquire_creates_row(session):
    lock = acquire_lock(session, AI_REFRESH_LOCK, "7")
    session.commit()

    assert lock.locked is True
    assert lock.locked_by == "7"
    assert session.query(SystemLock).count() == 1


def test_second_acquire_is_refused(session):
    acquire_lock(session, AI_REFRESH_LOCK, "7")
    session.commit()

    with pytest.raises(LockHeldError) as exc_info:
        acquire_lock(session, AI_REFRESH_LOCK, "8")
    assert exc_info.value.locked_by == "7"
    assert exc_info.value.locked_at is not None


def test_release_then_reacquire(session):
    acquire_lock(session, AI_REFRESH_LOCK, "7")
    release_lock(session, AI_REFRESH_LOCK)
    session.commit()

    lock = acquire_lock(session, AI_REFRESH_LOCK, "8")
    session.commit()
    assert lock.locked_by == "8"
    assert session.query(SystemLock).count() == 1


def test_advisory_lock_released_on_error(session_factory):
    with pytest.raises(RuntimeError):
        with advisory_lock(session_factory, AI_REFRESH_LOCK, "7"):
            with pytest.raises(LockHeldError):
                with advisory_lock(session_factory, AI_REFRESH_LOCK, "8"):
                    pass
            raise RuntimeError("boom")

    session = session_factory()
    try:
        lock = session.query(SystemLock).filter_by(operation=AI_REFRESH_LOCK).one()
        assert lock.locked is False
        assert lock.locked_by is None
    finally:
        session.close()


def test_cooldown_without_cache(session):
    check_cooldown(session)


def test_cooldown_blocks_recent_refresh(session):
    session.add(_cache(utcnow() - timedelta(minutes=2)))
    session.commit()

    with pytest.raises(RefreshCooldownError) as exc_info:
        check_cooldown(session, minutes=5)
    assert exc_info.value.minutes_remaining == 3
    assert "3 minutes" in str(exc_info.value)


def test_cooldown_elapsed(session):
    session.add(_cache(utcnow() - timedelta(minutes=10)))
    session.commit()
    check_cooldown(session, minutes=5)


def test_cooldown_filters_by_sport(session):
    session.add(_cache(utcnow(), sport="nba"))
    session.commit()
    check_cooldown(session, sport_keys=["afl"], minutes=5)


def test_record_admin_action(session, admin_user):
    record_admin_action(session, admin_user, "ai_insights_refresh", {"sports": ["afl"]})
    session.commit()

    entry = session.query(AdminAuditLog).one()
    assert entry.user_id == admin_user.id
    assert entry.action == "ai_insights_refresh"
    assert entry.details["sports"] == ["afl"]
    assert "timestamp" in entry.details

"""Multi-step jobs: the master sync and the admin insight refresh."""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import sessionmaker

from neeko_stats.config import settings
from neeko_stats.db.session import session_scope
from neeko_stats.db.models import User
from neeko_stats.ingestion.sheets import sync_google_sheet
from neeko_stats.insights.analysis import OPERATION as ANALYSIS_OPERATION
from neeko_stats.insights.analysis import generate_sport_analysis
from neeko_stats.insights.fantasy import generate_afl_insights
from neeko_stats.ops.locks import AI_REFRESH_LOCK, advisory_lock, check_cooldown, record_admin_action
from neeko_stats.ops.sync_log import record_failure
from neeko_stats.stats.team import OPERATION as TEAM_STATS_OPERATION
from neeko_stats.stats.team import refresh_team_stats
from neeko_stats.utils.logging import get_logger

logger = get_logger(__name__)


def _failed(error: Exception) -> Dict[str, Any]:
    return {"success": False, "error": str(error)}


def run_sport_step(
    session_factory: sessionmaker,
    operation: str,
    sport: str,
    step: Callable[..., Dict[str, Any]],
    triggered_by: Optional[int],
) -> Dict[str, Any]:
    """Run one per-sport step in its own transaction.

    A failure rolls back the step's writes, so the failure is logged in
    a fresh transaction and reported in the returned dict.
    """
    try:
        with session_scope(session_factory) as session:
            return step(session)
    except Exception as e:
        logger.error("%s failed for %s: %s", operation, sport, e)
        with session_scope(session_factory) as session:
            record_failure(session, operation, e, sport=sport, triggered_by=triggered_by)
        return _failed(e)


def run_master_sync(
    session_factory: sessionmaker,
    fetch_csv: Callable[[str], str],
    gateway,
    triggered_by: Optional[int] = None,
) -> Dict[str, Any]:
    """Sheet sync, then team stats per sport, then AI analysis per sport.

    Each step's outcome is collected under ``results``; a failing step
    never stops the later ones.
    """
    logger.info("Starting master sync pipeline...")
    results: Dict[str, Any] = {"sync": None, "teamStats": {}, "aiAnalysis": {}}

    logger.info("Step 1: Syncing Google Sheets data...")
    try:
        results["sync"] = sync_google_sheet(
            session_factory, fetch_csv, triggered_by=triggered_by
        ).to_dict()
    except Exception as e:
        logger.error("Sync error: %s", e)
        results["sync"] = _failed(e)

    logger.info("Step 2: Computing team stats...")
    for sport in settings.sports:
        results["teamStats"][sport] = run_sport_step(
            session_factory,
            TEAM_STATS_OPERATION,
            sport,
            lambda s, sport=sport: {
                "success": True,
                "records": refresh_team_stats(s, sport, triggered_by=triggered_by),
            },
            triggered_by,
        )

    logger.info("Step 3: Generating AI analysis...")
    for sport in settings.sports:
        results["aiAnalysis"][sport] = run_sport_step(
            session_factory,
            ANALYSIS_OPERATION,
            sport,
            lambda s, sport=sport: generate_sport_analysis(
                s, sport, gateway, triggered_by=triggered_by
            ).to_dict(),
            triggered_by,
        )

    logger.info("Master sync pipeline completed")
    return {"success": True, "message": "Master sync completed", "results": results}


def refresh_all_insights(session_factory: sessionmaker, gateway, user: User) -> Dict[str, Any]:
    """Admin-triggered refresh of every sport's AI content.

    Raises:
        RefreshCooldownError: if the last refresh is within the cooldown
        LockHeldError: if another refresh is running
    """
    user_id = user.id
    with session_scope(session_factory) as session:
        check_cooldown(session)

    results: Dict[str, Any] = {}
    with advisory_lock(session_factory, AI_REFRESH_LOCK, str(user_id)):
        with session_scope(session_factory) as session:
            record_admin_action(session, user, "ai_insights_refresh")

        try:
            with session_scope(session_factory) as session:
                results["afl_insights"] = generate_afl_insights(session, gateway)
        except Exception as e:
            logger.error("AFL insights refresh failed: %s", e)
            results["afl_insights"] = _failed(e)

        for sport in settings.sports:
            results[sport] = run_sport_step(
                session_factory,
                ANALYSIS_OPERATION,
                sport,
                lambda s, sport=sport: generate_sport_analysis(
                    s, sport, gateway, triggered_by=user_id
                ).to_dict(),
                user_id,
            )

    return {"success": True, "message": "AI insights refreshed successfully", "results": results}

"""Helpers for writing `sync_logs` rows around long-running operations."""

from typing import Optional

from sqlalchemy.orm import Session

from neeko_stats.db.models import SyncLog
from neeko_stats.utils.time import elapsed_seconds, utcnow


def start_log(
    session: Session,
    operation: str,
    sport: Optional[str] = None,
    triggered_by: Optional[int] = None,
    metadata: Optional[dict] = None,
) -> SyncLog:
    """Insert a ``running`` log row and flush so it gets an id."""
    log = SyncLog(
        operation=operation,
        sport=sport,
        status="running",
        triggered_by=triggered_by,
        run_metadata=metadata,
    )
    session.add(log)
    session.flush()
    return log


def finish_log(
    log: SyncLog,
    status: str,
    processed: int = 0,
    inserted: Optional[int] = None,
    error: Optional[BaseException] = None,
    error_message: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> SyncLog:
    """Stamp completion fields on ``log``.

    ``inserted`` defaults to ``processed``. Passing ``error`` records its
    message and type in ``error_details``.
    """
    now = utcnow()
    log.status = status
    log.completed_at = now
    log.records_processed = processed
    log.records_inserted = processed if inserted is None else inserted
    log.duration_seconds = elapsed_seconds(log.created_at or now, now)
    if error is not None:
        log.error_message = str(error) or error.__class__.__name__
        log.error_details = {"type": error.__class__.__name__}
    elif error_message is not None:
        log.error_message = error_message
    if metadata is not None:
        log.run_metadata = metadata
    return log


def record_failure(
    session: Session,
    operation: str,
    error: BaseException,
    sport: Optional[str] = None,
    triggered_by: Optional[int] = None,
) -> SyncLog:
    """Write a ``failed`` row for a run whose own transaction rolled back."""
    log = start_log(session, operation, sport=sport, triggered_by=triggered_by)
    return finish_log(log, "failed", error=error)

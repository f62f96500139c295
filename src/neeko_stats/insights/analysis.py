"""Per-sport AI analysis blocks and the deferred analysis queue.

A generation run takes the strongest players for a sport and writes one
short LLM explanation per player for each of twenty themed blocks. Only
the first batch is written inline; the remaining (player, sport) pairs
are queued in ``ai_analysis_queue`` and drained by ``process_queue``.
"""

from __future__ import annotations

import json
import random
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from neeko_stats.config import settings
from neeko_stats.db.models import AIAnalysis, AIAnalysisQueue
from neeko_stats.errors import GatewayError, InvalidSportError
from neeko_stats.ingestion.sheets import round_key
from neeko_stats.insights.gateway import ANALYST_SYSTEM_PROMPT
from neeko_stats.ops.sync_log import finish_log, start_log
from neeko_stats.sports import SportConfig, get_sport, row_to_dict
from neeko_stats.stats.players import sparkline_for
from neeko_stats.utils.logging import get_logger
from neeko_stats.utils.time import elapsed_seconds, utcnow

logger = get_logger(__name__)

OPERATION = "generate-sport-ai-analysis"
FALLBACK_EXPLANATION = "Performance analysis pending."
DEFAULT_ROUND = "R1"
# Queued rows are appended after the free ranks
FIRST_QUEUED_RANK = 5

AI_BLOCKS: List[Tuple[str, str]] = [
    ("trending_hot", "Trending Hot"),
    ("breakout_stars", "Breakout Stars"),
    ("consistent_performers", "Consistent Performers"),
    ("value_picks", "Value Picks"),
    ("high_ceiling", "High Ceiling"),
    ("injury_watch", "Injury Watch"),
    ("form_slump", "Form Slump"),
    ("differential_picks", "Differential Picks"),
    ("captain_choices", "Captain Choices"),
    ("bench_options", "Bench Options"),
    ("sleeper_picks", "Sleeper Picks"),
    ("premium_targets", "Premium Targets"),
    ("mid_price_gems", "Mid-Price Gems"),
    ("budget_enablers", "Budget Enablers"),
    ("trade_targets", "Trade Targets"),
    ("hold_firm", "Hold Firm"),
    ("sell_high", "Sell High"),
    ("buy_low", "Buy Low"),
    ("keeper_league", "Keeper League"),
    ("rookie_watch", "Rookie Watch"),
]


class ChatClient(Protocol):
    def chat(self, system: str, user: str) -> str: ...


@dataclass
class AnalysisRun:
    sport: str
    records: int = 0
    queued: int = 0

    def to_dict(self) -> Dict[str, Any]:
        if not self.records and not self.queued:
            message = f"No {self.sport} player stats to analyze"
        else:
            message = f"{self.sport.upper()} AI analysis generated successfully"
        return {
            "success": True,
            "message": message,
            "records": self.records,
            "queuedJobs": self.queued,
        }


@dataclass
class QueueRun:
    succeeded: int = 0
    failed: int = 0
    duration_seconds: float = 0.0

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed

    def to_dict(self) -> Dict[str, Any]:
        if not self.processed:
            return {"success": True, "message": "No pending jobs", "processed": 0}
        return {
            "success": True,
            "message": f"Processed {self.processed} jobs",
            "succeeded": self.succeeded,
            "failed": self.failed,
            "duration_seconds": self.duration_seconds,
        }


def player_pool(session: Session, config: SportConfig, size: Optional[int] = None) -> "OrderedDict[str, dict]":
    """Best rows by primary stat, one per player, keyed by player id."""
    size = size or settings.ai_player_pool
    column = getattr(config.player_model, config.primary_stat)
    rows = (
        session.query(config.player_model)
        .filter(column.isnot(None))
        .order_by(column.desc(), config.player_model.id.asc())
        .limit(size)
        .all()
    )
    pool: "OrderedDict[str, dict]" = OrderedDict()
    for row in rows:
        data = row_to_dict(row)
        pool.setdefault(config.player_id(data), data)
    return pool


def _format_stat(value: Any) -> str:
    if value is None:
        return "0"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _row_round(data: Dict[str, Any]) -> str:
    return round_key(data.get("round_display")) or data.get("round") or DEFAULT_ROUND


def _explain(gateway: ChatClient, config: SportConfig, data: Dict[str, Any], block_title: str, with_stats: bool) -> str:
    lines = [
        f"Analyze this {config.key.upper()} player's performance in 1-2 sentences:",
        f"Player: {config.player_name(data)}",
        f"Team: {config.team_name(data) or 'Unknown'}",
    ]
    if with_stats:
        lines.append(f"Stats: {json.dumps(data, default=str)}")
    lines.append(f'Context: This is for the "{block_title}" category.')
    try:
        return gateway.chat(ANALYST_SYSTEM_PROMPT, "\n".join(lines))
    except GatewayError as e:
        logger.error("AI generation error: %s", e)
        return FALLBACK_EXPLANATION


def _build_record(
    config: SportConfig,
    data: Dict[str, Any],
    block: Tuple[str, str],
    rank: int,
    premium: bool,
    explanation: str,
    sparkline: List[float],
) -> AIAnalysis:
    block_type, block_title = block
    return AIAnalysis(
        sport=config.key,
        block_type=block_type,
        block_title=block_title,
        player_name=config.player_name(data),
        team_name=config.team_name(data) or "",
        rank=rank,
        stat_label=config.stat_label,
        stat_value=_format_stat(data.get(config.primary_stat)),
        explanation=explanation,
        sparkline_data=sparkline,
        is_premium=premium,
        round=_row_round(data),
    )


def generate_sport_analysis(
    session: Session,
    sport: str,
    gateway: ChatClient,
    triggered_by: Optional[int] = None,
) -> AnalysisRun:
    """Rebuild the AI analysis blocks for one sport.

    Every block takes the first ``ai_block_size`` players of the pool.
    The first ``ai_immediate_batch`` entries are written now; later ones
    become pending queue jobs. Within a block, ranks up to
    ``free_ai_rows`` are free and the rest premium. A gateway failure
    leaves the fallback explanation in place.

    Args:
        session: Open session; the caller commits
        sport: afl / epl / nba
        gateway: Object with ``chat(system, user) -> str``
        triggered_by: User id recorded on the sync log

    Returns:
        AnalysisRun with inserted and queued counts
    """
    config = get_sport(sport)
    log = start_log(session, OPERATION, sport=config.key, triggered_by=triggered_by)
    logger.info("Generating %s AI analysis...", config.key)

    pool = list(player_pool(session, config).items())
    run = AnalysisRun(sport=config.key)
    if not pool:
        logger.info("No player stats found for %s", config.key)
        finish_log(log, "success")
        return run

    records: List[AIAnalysis] = []
    jobs: List[AIAnalysisQueue] = []
    sparklines: Dict[str, List[float]] = {}

    for block in AI_BLOCKS:
        for index, (player_id, data) in enumerate(pool[: settings.ai_block_size]):
            if len(records) >= settings.ai_immediate_batch:
                jobs.append(AIAnalysisQueue(sport=config.key, player_id=player_id, status="pending"))
                continue
            if player_id not in sparklines:
                sparklines[player_id] = sparkline_for(session, config.key, player_id)
            records.append(
                _build_record(
                    config,
                    data,
                    block,
                    rank=index + 1,
                    premium=index >= settings.free_ai_rows,
                    explanation=_explain(gateway, config, data, block[1], with_stats=True),
                    sparkline=sparklines[player_id],
                )
            )

    session.query(AIAnalysis).filter(AIAnalysis.sport == config.key).delete()
    session.add_all(records)
    session.add_all(jobs)
    session.flush()

    run.records, run.queued = len(records), len(jobs)
    logger.info(
        "%s AI analysis generated (%d immediate, %d queued)", config.key, run.records, run.queued
    )
    finish_log(log, "success", processed=run.records)
    return run


def _next_rank(session: Session, sport: str, block_type: str) -> int:
    current = (
        session.query(func.max(AIAnalysis.rank))
        .filter(AIAnalysis.sport == sport, AIAnalysis.block_type == block_type)
        .scalar()
    )
    return current + 1 if current is not None else FIRST_QUEUED_RANK


def _fail_job(job: AIAnalysisQueue, message: str) -> None:
    logger.error("Error processing job %s: %s", job.id, message)
    job.status = "failed"
    job.error_message = message
    job.completed_at = utcnow()


def process_queue(
    session: Session,
    gateway: ChatClient,
    limit: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> QueueRun:
    """Drain up to ``limit`` pending jobs, oldest first.

    Each job gets a random block and is appended after that block's
    current last rank as a premium entry. Jobs whose player is no longer
    in the sport's pool, or whose record cannot be built, are marked
    ``failed`` without stopping the rest of the batch.
    """
    limit = limit or settings.ai_queue_batch
    rng = rng or random.Random()
    started = utcnow()
    run = QueueRun()

    jobs = (
        session.query(AIAnalysisQueue)
        .filter(AIAnalysisQueue.status == "pending")
        .order_by(AIAnalysisQueue.created_at.asc(), AIAnalysisQueue.id.asc())
        .limit(limit)
        .all()
    )
    if not jobs:
        logger.info("No pending jobs in queue")
        return run

    by_sport: Dict[str, List[AIAnalysisQueue]] = OrderedDict()
    for job in jobs:
        by_sport.setdefault(job.sport, []).append(job)

    for sport, sport_jobs in by_sport.items():
        logger.info("Processing %d %s jobs", len(sport_jobs), sport.upper())
        try:
            config = get_sport(sport)
        except InvalidSportError as e:
            for job in sport_jobs:
                _fail_job(job, str(e))
                run.failed += 1
            continue

        pool = player_pool(session, config)
        for job in sport_jobs:
            job.status = "processing"
            job.started_at = utcnow()

            data = pool.get(job.player_id)
            if data is None:
                _fail_job(job, f"Player {job.player_id} not found in {sport} stats")
                run.failed += 1
                continue

            block = rng.choice(AI_BLOCKS)
            try:
                record = _build_record(
                    config,
                    data,
                    block,
                    rank=_next_rank(session, config.key, block[0]),
                    premium=True,
                    explanation=_explain(gateway, config, data, block[1], with_stats=False),
                    sparkline=sparkline_for(session, config.key, job.player_id),
                )
            except Exception as e:
                _fail_job(job, str(e) or e.__class__.__name__)
                run.failed += 1
                continue

            session.add(record)
            job.status = "done"
            job.completed_at = utcnow()
            session.flush()
            run.succeeded += 1

    run.duration_seconds = elapsed_seconds(started)
    logger.info(
        "Queue processing complete: %d succeeded, %d failed in %.1fs",
        run.succeeded,
        run.failed,
        run.duration_seconds,
    )
    return run

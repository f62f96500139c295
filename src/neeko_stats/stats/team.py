"""Team-level aggregates built from player rows."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd
from sqlalchemy.orm import Session

from neeko_stats.db.models import TeamStat
from neeko_stats.ops.sync_log import finish_log, start_log
from neeko_stats.sports import get_sport, row_to_dict
from neeko_stats.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_ROUND = "R1"
OPERATION = "compute-team-stats"


def compute_team_stats(rows: Iterable[Mapping[str, Any]], sport: str) -> List[Dict[str, Any]]:
    """Group player rows by (team, round) and sum the sport's totals.

    Rows without a team are skipped; a missing round counts as ``R1``;
    null stat values count as zero. Averages are per player in the group.

    Args:
        rows: Player stat rows as mappings
        sport: Sport key ('afl', 'nba', 'epl')

    Returns:
        One dict per (team, round) with ``player_count``,
        ``games_played``, ``totals`` and ``averages``
    """
    config = get_sport(sport)
    frame = pd.DataFrame(list(rows))
    if frame.empty or config.team_column not in frame.columns:
        return []

    frame = frame[frame[config.team_column].notna() & (frame[config.team_column] != "")].copy()
    if frame.empty:
        return []

    frame = frame.rename(columns={config.team_column: "_team"})
    if "round" in frame.columns:
        frame["_round"] = frame["round"].where(
            frame["round"].notna() & (frame["round"] != ""), DEFAULT_ROUND
        )
    else:
        frame["_round"] = DEFAULT_ROUND
    frame["_round"] = frame["_round"].astype(str)

    for out_name, column in config.totals.items():
        values = frame[column] if column in frame.columns else 0
        frame[out_name] = pd.to_numeric(values, errors="coerce")
        frame[out_name] = frame[out_name].fillna(0)

    grouped = frame.groupby(["_team", "_round"], sort=True)
    summed = grouped[list(config.totals)].sum()
    counts = grouped.size()

    results: List[Dict[str, Any]] = []
    for (team, round_), totals in summed.iterrows():
        player_count = int(counts.loc[(team, round_)]) or 1
        totals_dict = {name: float(value) for name, value in totals.items()}
        averages = {
            f"avg_{name}": totals_dict[f"total_{name}"] / player_count
            for name in config.averages
        }
        results.append(
            {
                "team": team,
                "round": round_,
                "player_count": player_count,
                "games_played": 1,
                "totals": totals_dict,
                "averages": averages,
            }
        )
    return results


def refresh_team_stats(session: Session, sport: str, triggered_by: Optional[int] = None) -> int:
    """Recompute and replace the stored team stats for ``sport``.

    Returns:
        Number of team-stat rows written
    """
    config = get_sport(sport)
    log = start_log(session, OPERATION, sport=config.key, triggered_by=triggered_by)

    rows = [row_to_dict(r) for r in session.query(config.player_model).all()]
    if not rows:
        logger.info("No %s player stats to process", config.key)
        finish_log(log, "success", processed=0)
        return 0

    records = compute_team_stats(rows, config.key)
    logger.info("Computed %d team stat records for %s", len(records), config.key)

    session.query(TeamStat).filter(TeamStat.sport == config.key).delete()
    session.add_all(TeamStat(sport=config.key, **record) for record in records)
    session.flush()

    finish_log(log, "success", processed=len(records))
    return len(records)

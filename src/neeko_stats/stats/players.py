"""Player table assembly from stored per-game rows."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from neeko_stats.ingestion.sheets import round_key
from neeko_stats.sports import SportConfig, get_sport, row_to_dict
from neeko_stats.stats.series import player_row_metrics, position_metrics

POSITION_GROUPS = ("MID", "FWD", "DEF", "RUC")


@dataclass
class PlayerSeries:
    """A player's identity plus one stat series, oldest game first."""

    player_id: str
    name: str
    team: Optional[str]
    position: Optional[str]
    series: List[float] = field(default_factory=list)
    latest_round: Optional[str] = None


def _to_float(value) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _ordered_rows(session: Session, config: SportConfig, filters: Optional[dict] = None):
    model = config.player_model
    query = session.query(model)
    if filters:
        query = query.filter_by(**filters)
    order_col = getattr(model, config.order_column)
    return query.order_by(order_col.asc(), model.id.asc()).all()


def player_series(
    session: Session,
    sport: str,
    stat: Optional[str] = None,
) -> Dict[str, PlayerSeries]:
    """Collect each player's values for ``stat`` (default: primary stat).

    Non-numeric and null values are dropped from the series.
    """
    config = get_sport(sport)
    stat = stat or config.primary_stat
    if not hasattr(config.player_model, stat):
        raise ValueError(f"Unknown {config.key} stat column: {stat}")

    players: Dict[str, PlayerSeries] = {}
    for row in _ordered_rows(session, config):
        data = row_to_dict(row)
        pid = config.player_id(data)
        entry = players.get(pid)
        if entry is None:
            entry = PlayerSeries(
                player_id=pid,
                name=config.player_name(data),
                team=config.team_name(data),
                position=data.get(config.position_column),
            )
            players[pid] = entry
        value = _to_float(data.get(stat))
        if value is not None:
            entry.series.append(value)
        latest = round_key(data.get("round_display")) or data.get("round")
        if latest is not None:
            entry.latest_round = str(latest)
    return players


def sparkline_for(session: Session, sport: str, player_id: str) -> List[float]:
    """The player's sparkline stat in game order."""
    config = get_sport(sport)
    rows = _ordered_rows(session, config, config.match_filters(player_id))
    values = (_to_float(getattr(r, config.sparkline_stat)) for r in rows)
    return [v for v in values if v is not None]


def build_player_table(
    session: Session,
    sport: str,
    stat: Optional[str] = None,
    team: Optional[str] = None,
    position: Optional[str] = None,
) -> List[dict]:
    """Rows for the master player table, best recent form first."""
    rows = []
    for entry in player_series(session, sport, stat).values():
        if team and entry.team != team:
            continue
        if position and position.upper() not in (entry.position or "").upper():
            continue
        if not entry.series:
            continue
        rows.append(
            {
                "player_id": entry.player_id,
                "name": entry.name,
                "team": entry.team,
                "position": entry.position,
                **player_row_metrics(entry.series),
            }
        )
    rows.sort(key=lambda r: r["avg_l5"], reverse=True)
    return rows


def position_trends(session: Session, stat: str = "fantasy_points") -> Dict[str, List[dict]]:
    """AFL players bucketed by position, ranked by composite trend score.

    Dual-position players (e.g. "MID/FWD") appear in every group they
    list.
    """
    groups: Dict[str, List[dict]] = {key: [] for key in POSITION_GROUPS}
    for entry in player_series(session, "afl", stat).values():
        if not entry.series:
            continue
        metrics = {
            "player_id": entry.player_id,
            "name": entry.name,
            "team": entry.team,
            "position": entry.position,
            "series": entry.series,
            **position_metrics(entry.series),
        }
        upper = (entry.position or "").upper()
        for key in POSITION_GROUPS:
            if key in upper:
                groups[key].append(metrics)

    for key in POSITION_GROUPS:
        groups[key].sort(key=lambda m: m["composite_score"], reverse=True)
    return groups

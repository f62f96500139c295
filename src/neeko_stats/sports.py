"""Per-sport column mappings shared by stats, ingestion and insights."""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Type

from neeko_stats.db.base import Base
from neeko_stats.db.models import (
    AflFixture,
    AflPlayerStat,
    EplFixture,
    EplPlayerStat,
    NbaFixture,
    NbaPlayerStat,
)
from neeko_stats.errors import InvalidSportError


@dataclass(frozen=True)
class SportConfig:
    """How a sport's player rows are keyed, ordered and aggregated."""

    key: str
    player_model: Type[Base]
    fixture_model: Type[Base]
    team_column: str
    position_column: str
    primary_stat: str
    stat_label: str
    sparkline_stat: str
    order_column: str
    # output name -> player column
    totals: Dict[str, str] = field(default_factory=dict)
    averages: Tuple[str, ...] = ()

    def player_id(self, row: Mapping[str, Any]) -> str:
        """Stable identifier used by the AI queue."""
        if self.key == "afl":
            return row.get("player") or "unknown"
        if self.key == "nba":
            first = row.get("player_firstname")
            last = row.get("player_lastname")
            if first or last:
                return f"{first or ''}_{last or ''}"
            return str(row.get("player_id") or "unknown")
        return row.get("player_name") or str(row.get("player_id") or "unknown")

    def player_name(self, row: Mapping[str, Any]) -> str:
        """Display name."""
        if self.key == "afl":
            return row.get("player") or "Unknown"
        if self.key == "nba":
            name = f"{row.get('player_firstname') or ''} {row.get('player_lastname') or ''}".strip()
            return name or "Unknown"
        return row.get("player_name") or "Unknown"

    def team_name(self, row: Mapping[str, Any]) -> Optional[str]:
        return row.get(self.team_column)

    def match_filters(self, player_id: str) -> Dict[str, Any]:
        """Column filters selecting all rows of one player."""
        if self.key == "afl":
            return {"player": player_id}
        if self.key == "nba":
            first, _, last = player_id.partition("_")
            return {"player_firstname": first, "player_lastname": last}
        return {"player_name": player_id}


SPORT_CONFIG: Dict[str, SportConfig] = {
    "afl": SportConfig(
        key="afl",
        player_model=AflPlayerStat,
        fixture_model=AflFixture,
        team_column="team",
        position_column="position",
        primary_stat="fantasy_points",
        stat_label="Fantasy",
        sparkline_stat="fantasy_points",
        order_column="round_order",
        totals={
            "total_disposals": "disposals",
            "total_goals": "goals",
            "total_behinds": "behinds",
            "total_marks": "marks",
            "total_tackles": "tackles",
            "total_hitouts": "hitouts",
            "total_fantasy_points": "fantasy_points",
        },
        averages=("disposals", "goals", "fantasy_points"),
    ),
    "nba": SportConfig(
        key="nba",
        player_model=NbaPlayerStat,
        fixture_model=NbaFixture,
        team_column="team_name",
        position_column="pos",
        primary_stat="points",
        stat_label="Points",
        sparkline_stat="points",
        order_column="game_id",
        totals={
            "total_points": "points",
            "total_rebounds": "totreb",
            "total_assists": "assists",
            "total_steals": "steals",
            "total_blocks": "blocks",
        },
        averages=("points", "rebounds", "assists"),
    ),
    "epl": SportConfig(
        key="epl",
        player_model=EplPlayerStat,
        fixture_model=EplFixture,
        team_column="team_name",
        position_column="player_pos",
        primary_stat="goals_total",
        stat_label="Goals",
        sparkline_stat="rating",
        order_column="fixture_id",
        totals={
            "total_goals": "goals_total",
            "total_assists": "goals_assists",
            "total_shots": "shots_total",
            "total_passes": "passes_total",
            "total_tackles": "tackles_total",
        },
        averages=("goals", "passes", "shots"),
    ),
}


def get_sport(sport: Optional[str]) -> SportConfig:
    """Look up a sport configuration, raising ``InvalidSportError``."""
    config = SPORT_CONFIG.get((sport or "").lower())
    if config is None:
        raise InvalidSportError(sport)
    return config


def row_to_dict(row: Base) -> Dict[str, Any]:
    """Column values of an ORM row as a plain dict."""
    return {col.key: getattr(row, col.key) for col in row.__mapper__.column_attrs}

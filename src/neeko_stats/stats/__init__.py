"""Statistical aggregates over player and team data."""

from neeko_stats.stats.series import (
    STAT_CONFIG,
    average,
    compute_hit_rates,
    compute_summary,
    consistency,
    form_change,
    last_n,
    player_row_metrics,
    position_metrics,
    stability_meta,
    std_dev,
)
from neeko_stats.stats.team import compute_team_stats, refresh_team_stats

__all__ = [
    "STAT_CONFIG",
    "average",
    "compute_hit_rates",
    "compute_summary",
    "consistency",
    "form_change",
    "last_n",
    "player_row_metrics",
    "position_metrics",
    "stability_meta",
    "std_dev",
    "compute_team_stats",
    "refresh_team_stats",
]

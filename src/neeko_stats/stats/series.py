"""Aggregates over a single player's per-game stat series.

A *series* is the list of values a player recorded for one stat, oldest
game first. Everything here is a pure function so the API layer, the
insight generator and the tests can share it.
"""

from typing import Dict, List, Sequence

import numpy as np


# Hit-rate thresholds per stat lens
STAT_CONFIG: Dict[str, dict] = {
    "Fantasy": {
        "label": "Fantasy",
        "column": "fantasy_points",
        "unit": "pts",
        "thresholds": [60, 70, 80, 90, 100],
    },
    "Disposals": {
        "label": "Disposals",
        "column": "disposals",
        "unit": "disp",
        "thresholds": [15, 20, 25, 30, 35],
    },
    "Goals": {
        "label": "Goals",
        "column": "goals",
        "unit": "g",
        "thresholds": [1, 2, 3, 4, 5],
    },
}

RECENT_WINDOW = 5
SUMMARY_WINDOW = 8
FORM_WINDOW = 3


def last_n(series: Sequence[float], n: int) -> List[float]:
    """Trailing ``n`` values (the whole series if shorter)."""
    if n <= 0:
        return []
    return list(series[-n:])


def average(series: Sequence[float]) -> float:
    """Arithmetic mean; 0 for an empty series."""
    if len(series) == 0:
        return 0.0
    return float(np.mean(series))


def std_dev(series: Sequence[float]) -> float:
    """Sample standard deviation (n - 1); 0 for fewer than two values."""
    if len(series) <= 1:
        return 0.0
    return float(np.std(series, ddof=1))


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def stability_meta(vol: float) -> Dict[str, str]:
    """Human label for a volatility figure.

    Args:
        vol: Standard deviation of the recent window

    Returns:
        Dict with ``label`` and ``reason``
    """
    if vol < 4:
        return {"label": "Rock solid", "reason": "Reliable scoring floor."}
    if vol < 8:
        return {"label": "Steady", "reason": "Low movement week to week."}
    if vol < 12:
        return {"label": "Swingy", "reason": "Matchup dependent swings."}
    return {"label": "Rollercoaster", "reason": "High upside, high risk."}


def compute_summary(series: Sequence[float]) -> Dict[str, float]:
    """Season and recent-window summary for the player drawer.

    Args:
        series: Per-game values, oldest first

    Returns:
        min, max, total, avg (1 dp), window_min, window_max and
        volatility_range over the last eight games
    """
    if len(series) == 0:
        return {
            "min": 0.0,
            "max": 0.0,
            "total": 0.0,
            "avg": 0.0,
            "window_min": 0.0,
            "window_max": 0.0,
            "volatility_range": 0.0,
        }

    values = np.asarray(series, dtype=float)
    window = values[-SUMMARY_WINDOW:]
    total = float(values.sum())

    return {
        "min": float(values.min()),
        "max": float(values.max()),
        "total": total,
        "avg": round(total / len(values), 1),
        "window_min": float(window.min()),
        "window_max": float(window.max()),
        "volatility_range": float(window.max() - window.min()),
    }


def compute_hit_rates(series: Sequence[float], lens: str) -> List[int]:
    """Percentage of games at or above each threshold of ``lens``.

    Raises:
        KeyError: if ``lens`` is not a known stat lens
    """
    thresholds = STAT_CONFIG[lens]["thresholds"]
    if len(series) == 0:
        return [0 for _ in thresholds]

    values = np.asarray(series, dtype=float)
    return [int(round(float((values >= t).sum()) / len(values) * 100)) for t in thresholds]


def consistency(series: Sequence[float]) -> float:
    """Percentage of games at or above the season average."""
    if len(series) == 0:
        return 0.0
    base = average(series) or 1.0
    values = np.asarray(series, dtype=float)
    return float((values >= base).sum()) / len(values) * 100


def player_row_metrics(series: Sequence[float]) -> Dict[str, object]:
    """Metrics shown on one row of the master player table."""
    l5 = last_n(series, RECENT_WINDOW)
    vol = std_dev(l5)
    delta = series[-1] - series[-2] if len(series) >= 2 else 0.0
    return {
        "series": list(series),
        "l5": l5,
        "avg_l5": average(l5),
        "avg_season": average(series),
        "vol": vol,
        "consistency": consistency(series),
        "delta": float(delta),
        "stability": stability_meta(vol),
    }


def position_metrics(series: Sequence[float]) -> Dict[str, float]:
    """Trend metrics used to rank players within a position group.

    The composite score weights the recent-vs-season delta by a
    stability factor between 0.3 and 1.0.
    """
    l5 = last_n(series, RECENT_WINDOW)
    avg_l5 = average(l5)
    avg_season = average(series)
    delta = avg_l5 - avg_season
    vol = std_dev(l5)
    base = avg_l5 or avg_season or 1.0
    stability = clamp01(1 - vol / base) * 100
    stability_factor = 0.3 + 0.7 * (stability / 100)

    return {
        "avg_l5": avg_l5,
        "avg_season": avg_season,
        "delta_vs_season": delta,
        "volatility": vol,
        "stability_score": stability,
        "composite_score": delta * stability_factor,
    }


def form_change(series: Sequence[float]) -> float:
    """Percent change of the last three games against the three before."""
    recent = last_n(series, FORM_WINDOW)
    earlier = list(series[-2 * FORM_WINDOW : -FORM_WINDOW])
    recent_avg = average(recent)
    earlier_avg = average(earlier)
    if earlier_avg <= 0:
        return 0.0
    return (recent_avg - earlier_avg) / earlier_avg * 100

"""AFL fantasy insight lists (free and premium) built from form trends."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from neeko_stats.db.models import AIInsightsCache
from neeko_stats.errors import InsightParseError
from neeko_stats.insights.parsing import parse_insight_list
from neeko_stats.stats.players import PlayerSeries, player_series
from neeko_stats.stats.series import FORM_WINDOW, average, form_change, last_n
from neeko_stats.utils.logging import get_logger

logger = get_logger(__name__)

SPORT = "afl"
TOP_N = 10
FREE_COUNT = 7
PREMIUM_COUNT = 13

FREE_SYSTEM_PROMPT = (
    "You are an AFL fantasy analyst. Return ONLY valid JSON array. Each insight must have "
    "category, title, description (1-2 sentences), and example (specific player/stat)."
)
PREMIUM_SYSTEM_PROMPT = (
    "You are an AFL fantasy analyst. Return ONLY valid JSON array. Each insight must have "
    "category, title, description (2-3 sentences with data), and example "
    "(specific stats/recommendations)."
)
FREE_CATEGORIES = (
    "Top Performers, Rising Stars, Form Guide, Position Analysis, Team Trends, "
    "Budget Picks, Captain Choices"
)
PREMIUM_CATEGORIES = (
    "Breakout Players, Injury Concerns, Value Plays, Differential Picks, Consistency Rankings, "
    "Matchup Analysis, Trade Targets, Hold/Sell Decisions, Captaincy Rankings, Rookie Watch, "
    "DPP Opportunities, Stack Strategies, Premium Picks"
)


@dataclass
class FormSummary:
    hot: List[Dict[str, Any]] = field(default_factory=list)
    cold: List[Dict[str, Any]] = field(default_factory=list)
    top: List[Dict[str, Any]] = field(default_factory=list)


def summarize_form(players: Iterable[PlayerSeries]) -> FormSummary:
    """Rank players by form change and season average.

    Players averaging zero are ignored. ``hot`` holds the largest
    positive form changes, ``cold`` the largest drops and ``top`` the
    best season averages; each list is capped at ten.
    """
    rows = []
    for p in players:
        avg = average(p.series)
        if avg <= 0:
            continue
        rows.append(
            {
                "player": p.name,
                "team": p.team,
                "position": p.position,
                "avg": avg,
                "recent_avg": average(last_n(p.series, FORM_WINDOW)),
                "form_change": form_change(p.series),
            }
        )

    hot = sorted((r for r in rows if r["form_change"] > 0), key=lambda r: r["form_change"], reverse=True)
    cold = sorted((r for r in rows if r["form_change"] < 0), key=lambda r: r["form_change"])
    top = sorted(rows, key=lambda r: r["avg"], reverse=True)
    return FormSummary(hot=hot[:TOP_N], cold=cold[:TOP_N], top=top[:TOP_N])


def free_prompt(summary: FormSummary) -> str:
    hot = ", ".join(f"{p['player']} ({p['team']}): +{p['form_change']:.1f}%" for p in summary.hot[:3])
    top = ", ".join(f"{p['player']}: {p['avg']:.1f} pts" for p in summary.top[:3])
    return (
        f"Based on AFL Fantasy data, generate {FREE_COUNT} brief insights for free users. "
        "Format as JSON array with objects having: category, title, description, example.\n\n"
        f"Top Hot Players: {hot}\n"
        f"Top Performers: {top}\n\n"
        f"Categories to cover: {FREE_CATEGORIES}"
    )


def premium_prompt(summary: FormSummary) -> str:
    hot = ", ".join(f"{p['player']} ({p['position']}): +{p['form_change']:.1f}%" for p in summary.hot)
    cold = ", ".join(f"{p['player']}: {p['form_change']:.1f}%" for p in summary.cold)
    top = ", ".join(f"{p['player']}: {p['avg']:.1f}" for p in summary.top)
    return (
        f"Based on AFL Fantasy data, generate {PREMIUM_COUNT} detailed insights for premium users. "
        "Format as JSON array with objects having: category, title, description, example.\n\n"
        "All Data:\n"
        f"Top Hot: {hot}\n"
        f"Top Cold: {cold}\n"
        f"Top Overall: {top}\n\n"
        f"Categories: {PREMIUM_CATEGORIES}"
    )


def generate_afl_insights(session: Session, gateway) -> Dict[str, Any]:
    """Generate and cache the free and premium AFL insight lists.

    Raises:
        GatewayError: if either gateway call fails
        InsightParseError: if the free list cannot be parsed

    Returns:
        Dict with ``freeInsights``, ``premiumInsights`` and
        ``totalPlayers``; a ``warning`` key is present when the premium
        list could not be parsed, in which case nothing is cached.
    """
    players = list(player_series(session, SPORT, "fantasy_points").values())
    logger.info("Analyzing %d players", len(players))
    summary = summarize_form(players)

    free_text = gateway.chat(FREE_SYSTEM_PROMPT, free_prompt(summary))
    try:
        free_insights = parse_insight_list(free_text)
    except InsightParseError:
        logger.error("Failed to parse free insights: %s", free_text[:500])
        raise
    logger.info("Successfully parsed %d free insights", len(free_insights))

    premium_text = gateway.chat(PREMIUM_SYSTEM_PROMPT, premium_prompt(summary))
    try:
        premium_insights = parse_insight_list(premium_text)
    except InsightParseError as e:
        logger.warning("Returning free insights only due to premium parsing failure: %s", e)
        return {
            "freeInsights": free_insights,
            "premiumInsights": [],
            "totalPlayers": len(players),
            "warning": "Premium insights could not be generated",
        }

    session.add(
        AIInsightsCache(
            sport=SPORT,
            free_insights=free_insights,
            premium_insights=premium_insights,
            total_players=len(players),
        )
    )
    session.flush()
    logger.info("Insights cached successfully")
    return {
        "freeInsights": free_insights,
        "premiumInsights": premium_insights,
        "totalPlayers": len(players),
    }


def latest_insights(session: Session, sport: str = SPORT) -> Optional[AIInsightsCache]:
    return (
        session.query(AIInsightsCache)
        .filter(AIInsightsCache.sport == sport)
        .order_by(AIInsightsCache.created_at.desc(), AIInsightsCache.id.desc())
        .first()
    )

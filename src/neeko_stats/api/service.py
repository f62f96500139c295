"""FastAPI service for the Neeko Stats dashboard backend."""

from typing import Callable, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from neeko_stats.access import gate_analysis, gate_rows
from neeko_stats.api.deps import (
    CurrentUser,
    get_current_user,
    get_gateway,
    get_optional_user,
    get_session_factory,
    get_sheet_fetcher,
    require_admin,
    verify_cron_secret,
)
from neeko_stats.api.schemas import (
    AIAnalysisResponse,
    CheckoutRequest,
    HealthResponse,
    InsightsResponse,
    MessageResponse,
    PlayerSummaryResponse,
    PlayerTableResponse,
    QueueRunResponse,
    SubscriptionActionRequest,
    SyncResponse,
    TeamStatResponse,
    UrlResponse,
    WebhookResponse,
)
from neeko_stats.billing.checkout import (
    create_checkout_session,
    create_portal_session,
    manage_subscription,
)
from neeko_stats.billing.webhooks import construct_event, handle_event
from neeko_stats.config import settings
from neeko_stats.db.models import AIAnalysis, TeamStat
from neeko_stats.db.session import session_scope
from neeko_stats.errors import (
    BillingConfigError,
    GatewayError,
    InsightParseError,
    InvalidSportError,
    LockHeldError,
    NeekoStatsError,
    RefreshCooldownError,
    SheetFetchError,
    SubscriptionNotFoundError,
    WebhookVerificationError,
)
from neeko_stats.ingestion.sheets import sync_google_sheet
from neeko_stats.insights.analysis import OPERATION as ANALYSIS_OPERATION
from neeko_stats.insights.analysis import generate_sport_analysis, process_queue
from neeko_stats.insights.fantasy import generate_afl_insights, latest_insights
from neeko_stats.ops.pipeline import refresh_all_insights, run_master_sync, run_sport_step
from neeko_stats.sports import get_sport
from neeko_stats.stats.players import build_player_table, player_series, position_trends
from neeko_stats.stats.series import (
    STAT_CONFIG,
    SUMMARY_WINDOW,
    compute_hit_rates,
    compute_summary,
    last_n,
    stability_meta,
    std_dev,
)
from neeko_stats.stats.team import OPERATION as TEAM_STATS_OPERATION
from neeko_stats.stats.team import refresh_team_stats
from neeko_stats.utils.logging import get_logger

logger = get_logger(__name__)

API_VERSION = "0.1.0"

app = FastAPI(
    title="Neeko Stats API",
    description="Sports stats, AI analysis and Neeko+ billing for AFL, EPL and NBA",
    version=API_VERSION,
)

_ERROR_STATUS = {
    InvalidSportError: 400,
    SubscriptionNotFoundError: 404,
    LockHeldError: 409,
    RefreshCooldownError: 429,
    BillingConfigError: 500,
    GatewayError: 500,
    SheetFetchError: 500,
    InsightParseError: 500,
}


@app.exception_handler(NeekoStatsError)
async def domain_error_handler(request: Request, exc: NeekoStatsError):
    status = next(
        (code for cls, code in _ERROR_STATUS.items() if isinstance(exc, cls)), 500
    )
    body: Dict[str, object] = {"error": str(exc)}
    if isinstance(exc, LockHeldError):
        body["error"] = "Refresh already in progress"
        body["lockedBy"] = exc.locked_by
        body["lockedAt"] = exc.locked_at.isoformat() if exc.locked_at else None
    elif isinstance(exc, RefreshCooldownError):
        body["nextRefreshAvailable"] = exc.next_available.isoformat()
    elif isinstance(exc, InsightParseError):
        body = {
            "error": "Failed to generate insights",
            "details": "AI response was malformed while generating free insights",
        }
    if status >= 500:
        logger.error("%s on %s: %s", exc.__class__.__name__, request.url.path, exc)
    return JSONResponse(status_code=status, content=body)


def _premium(user: Optional[CurrentUser]) -> bool:
    return bool(user and (user.premium or user.admin))


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=API_VERSION)


# ---------------------------------------------------------------------------
# Billing
# ---------------------------------------------------------------------------


@app.post("/webhooks/stripe", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    factory: sessionmaker = Depends(get_session_factory),
):
    """Receive a Stripe webhook and reconcile the subscription mirror."""
    payload = await request.body()
    try:
        event = construct_event(payload, stripe_signature)
    except WebhookVerificationError as e:
        logger.error("Webhook signature verification failed: %s", e)
        raise HTTPException(status_code=401 if not stripe_signature else 400, detail=str(e))

    try:
        with session_scope(factory) as session:
            result = handle_event(session, event)
    except (NeekoStatsError, KeyError, ValueError) as e:
        logger.error("Webhook error: %s", e)
        raise HTTPException(status_code=400, detail=str(e))
    return result.to_dict()


@app.post("/billing/checkout", response_model=UrlResponse)
def billing_checkout(
    body: CheckoutRequest,
    user: CurrentUser = Depends(get_current_user),
):
    """Start a Neeko+ checkout for the caller."""
    return UrlResponse(url=create_checkout_session(user, body.price_id))


@app.post("/billing/portal", response_model=UrlResponse)
def billing_portal(
    user: CurrentUser = Depends(get_current_user),
    factory: sessionmaker = Depends(get_session_factory),
):
    """Open the Stripe customer portal for the caller."""
    with session_scope(factory) as session:
        url = create_portal_session(session, user)
    return UrlResponse(url=url)


@app.post("/billing/subscription", response_model=MessageResponse)
def billing_subscription(
    body: SubscriptionActionRequest,
    user: CurrentUser = Depends(get_current_user),
    factory: sessionmaker = Depends(get_session_factory),
):
    """Pause, cancel or reactivate the caller's subscription."""
    try:
        with session_scope(factory) as session:
            message = manage_subscription(session, user, body.action)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return MessageResponse(message=message)


# ---------------------------------------------------------------------------
# Sport data
# ---------------------------------------------------------------------------


@app.get("/sports/{sport}/players", response_model=PlayerTableResponse)
async def get_players(
    sport: str,
    stat: Optional[str] = Query(None, description="Stat column (defaults to the sport's primary stat)"),
    team: Optional[str] = Query(None),
    position: Optional[str] = Query(None),
    user: Optional[CurrentUser] = Depends(get_optional_user),
    factory: sessionmaker = Depends(get_session_factory),
):
    """Master player table; free callers see the first rows unlocked."""
    config = get_sport(sport)
    stat = stat or config.primary_stat
    try:
        with session_scope(factory) as session:
            rows = build_player_table(session, config.key, stat, team, position)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    premium = _premium(user)
    return PlayerTableResponse(
        sport=config.key,
        stat=stat,
        premium=premium,
        total=len(rows),
        rows=gate_rows(rows, premium),
    )


@app.get("/sports/afl/players/{name}/summary", response_model=PlayerSummaryResponse)
async def get_player_summary(
    name: str,
    lens: str = Query("Fantasy", description="Fantasy, Disposals or Goals"),
    factory: sessionmaker = Depends(get_session_factory),
):
    """Season summary and hit rates for one AFL player."""
    if lens not in STAT_CONFIG:
        raise HTTPException(status_code=400, detail=f"Unknown lens: {lens}")
    lens_config = STAT_CONFIG[lens]

    with session_scope(factory) as session:
        entry = player_series(session, "afl", lens_config["column"]).get(name)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Player {name} not found")

    return PlayerSummaryResponse(
        player=entry.name,
        team=entry.team,
        position=entry.position,
        lens=lens,
        unit=lens_config["unit"],
        thresholds=lens_config["thresholds"],
        hit_rates=compute_hit_rates(entry.series, lens),
        summary=compute_summary(entry.series),
        stability=stability_meta(std_dev(last_n(entry.series, SUMMARY_WINDOW))),
        series=entry.series,
    )


@app.get("/sports/afl/position-trends")
async def get_position_trends(
    stat: str = Query("fantasy_points"),
    user: Optional[CurrentUser] = Depends(get_optional_user),
    factory: sessionmaker = Depends(get_session_factory),
) -> Dict[str, List[dict]]:
    """AFL players grouped by position, ranked by trend composite."""
    try:
        with session_scope(factory) as session:
            groups = position_trends(session, stat)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    premium = _premium(user)
    return {key: gate_rows(rows, premium) for key, rows in groups.items()}


@app.get("/sports/{sport}/team-stats", response_model=List[TeamStatResponse])
async def get_team_stats(
    sport: str,
    round_name: Optional[str] = Query(None, alias="round", description="Filter to one round"),
    factory: sessionmaker = Depends(get_session_factory),
):
    """Stored per-team, per-round aggregates."""
    config = get_sport(sport)
    with session_scope(factory) as session:
        query = session.query(TeamStat).filter(TeamStat.sport == config.key)
        if round_name:
            query = query.filter(TeamStat.round == round_name)
        return [
            TeamStatResponse(
                team=row.team,
                round=row.round,
                player_count=row.player_count,
                games_played=row.games_played,
                totals=row.totals,
                averages=row.averages,
            )
            for row in query.order_by(TeamStat.team, TeamStat.round).all()
        ]


@app.get("/sports/{sport}/ai-analysis", response_model=List[AIAnalysisResponse])
async def get_ai_analysis(
    sport: str,
    block_type: Optional[str] = Query(None),
    user: Optional[CurrentUser] = Depends(get_optional_user),
    factory: sessionmaker = Depends(get_session_factory),
):
    """AI analysis blocks; premium entries are redacted for free callers."""
    config = get_sport(sport)
    with session_scope(factory) as session:
        query = session.query(AIAnalysis).filter(AIAnalysis.sport == config.key)
        if block_type:
            query = query.filter(AIAnalysis.block_type == block_type)
        records = [
            {
                "block_type": r.block_type,
                "block_title": r.block_title,
                "player_name": r.player_name,
                "team_name": r.team_name,
                "rank": r.rank,
                "stat_label": r.stat_label,
                "stat_value": r.stat_value,
                "explanation": r.explanation,
                "sparkline_data": r.sparkline_data or [],
                "is_premium": r.is_premium,
                "round": r.round,
            }
            for r in query.order_by(AIAnalysis.block_type, AIAnalysis.rank).all()
        ]
    return gate_analysis(records, _premium(user))


@app.get("/sports/afl/insights", response_model=InsightsResponse)
async def get_afl_insights(
    user: Optional[CurrentUser] = Depends(get_optional_user),
    factory: sessionmaker = Depends(get_session_factory),
):
    """Latest cached AFL insight lists."""
    premium = _premium(user)
    with session_scope(factory) as session:
        cached = latest_insights(session)
        response = None
        if cached is not None:
            response = InsightsResponse(
                free_insights=cached.free_insights,
                premium_insights=cached.premium_insights if premium else [],
                premium_locked=not premium,
                total_players=cached.total_players,
                updated_at=cached.updated_at,
            )
    if response is None:
        raise HTTPException(status_code=404, detail="No insights available")
    return response


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


def _step_or_500(result: dict) -> dict:
    if result.get("success") is False:
        raise HTTPException(status_code=500, detail=result.get("error"))
    return result


@app.post("/admin/sync-sheets", response_model=SyncResponse)
def admin_sync_sheets(
    admin: CurrentUser = Depends(require_admin),
    fetch_csv: Callable[[str], str] = Depends(get_sheet_fetcher),
    factory: sessionmaker = Depends(get_session_factory),
):
    """Reload every sheet tab into the database."""
    logger.info("Admin %s started sheet sync", admin.id)
    return sync_google_sheet(factory, fetch_csv, triggered_by=admin.id).to_dict()


@app.post("/admin/team-stats/{sport}")
def admin_team_stats(
    sport: str,
    admin: CurrentUser = Depends(require_admin),
    factory: sessionmaker = Depends(get_session_factory),
):
    """Recompute team aggregates for one sport."""
    config = get_sport(sport)
    return _step_or_500(
        run_sport_step(
            factory,
            TEAM_STATS_OPERATION,
            config.key,
            lambda s: {
                "success": True,
                "message": f"Successfully computed team stats for {config.key}",
                "records": refresh_team_stats(s, config.key, triggered_by=admin.id),
            },
            admin.id,
        )
    )


@app.post("/admin/ai-analysis/{sport}")
def admin_ai_analysis(
    sport: str,
    admin: CurrentUser = Depends(require_admin),
    gateway=Depends(get_gateway),
    factory: sessionmaker = Depends(get_session_factory),
):
    """Regenerate AI analysis blocks for one sport."""
    config = get_sport(sport)
    return _step_or_500(
        run_sport_step(
            factory,
            ANALYSIS_OPERATION,
            config.key,
            lambda s: generate_sport_analysis(s, config.key, gateway, triggered_by=admin.id).to_dict(),
            admin.id,
        )
    )


@app.post("/admin/afl-insights")
def admin_afl_insights(
    admin: CurrentUser = Depends(require_admin),
    gateway=Depends(get_gateway),
    factory: sessionmaker = Depends(get_session_factory),
):
    """Generate and cache the AFL free/premium insight lists."""
    logger.info("Admin user %s is generating AFL insights", admin.id)
    with session_scope(factory) as session:
        return generate_afl_insights(session, gateway)


@app.post("/admin/master-sync")
def admin_master_sync(
    admin: CurrentUser = Depends(require_admin),
    fetch_csv: Callable[[str], str] = Depends(get_sheet_fetcher),
    gateway=Depends(get_gateway),
    factory: sessionmaker = Depends(get_session_factory),
):
    """Sheet sync, team stats and AI analysis for every sport."""
    return run_master_sync(factory, fetch_csv, gateway, triggered_by=admin.id)


@app.post("/admin/refresh-insights")
def admin_refresh_insights(
    admin: CurrentUser = Depends(require_admin),
    gateway=Depends(get_gateway),
    factory: sessionmaker = Depends(get_session_factory),
):
    """Refresh all AI content, guarded by a cooldown and an advisory lock."""
    return refresh_all_insights(factory, gateway, admin)


# ---------------------------------------------------------------------------
# Scheduled jobs
# ---------------------------------------------------------------------------


@app.post("/jobs/process-ai-queue", response_model=QueueRunResponse, response_model_exclude_none=True)
def job_process_ai_queue(
    _: None = Depends(verify_cron_secret),
    gateway=Depends(get_gateway),
    factory: sessionmaker = Depends(get_session_factory),
):
    """Drain pending AI analysis jobs."""
    with session_scope(factory) as session:
        return process_queue(session, gateway).to_dict()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)

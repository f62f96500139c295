"""Pydantic schemas for API requests and responses."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str


class ErrorResponse(BaseModel):
    error: str


class CheckoutRequest(BaseModel):
    price_id: Optional[str] = Field(None, description="Stripe price id (defaults to configured price)")


class UrlResponse(BaseModel):
    url: str


class SubscriptionActionRequest(BaseModel):
    action: str = Field(..., description="pause, cancel, reactivate or update_payment")


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class WebhookResponse(BaseModel):
    received: bool
    duplicate: bool = False


class PlayerTableResponse(BaseModel):
    """Master table rows; rows past the free limit are locked."""

    sport: str
    stat: str
    premium: bool
    total: int
    rows: List[Dict[str, Any]]


class PlayerSummaryResponse(BaseModel):
    player: str
    team: Optional[str]
    position: Optional[str]
    lens: str
    unit: str
    thresholds: List[float]
    hit_rates: List[int]
    summary: Dict[str, float]
    stability: Dict[str, str]
    series: List[float]


class TeamStatResponse(BaseModel):
    team: str
    round: str
    player_count: int
    games_played: int
    totals: Dict[str, float]
    averages: Dict[str, float]


class AIAnalysisResponse(BaseModel):
    block_type: str
    block_title: str
    player_name: str
    team_name: str
    rank: int
    stat_label: str
    stat_value: Optional[str]
    explanation: Optional[str]
    sparkline_data: List[float]
    is_premium: bool
    locked: bool
    round: Optional[str]


class InsightsResponse(BaseModel):
    free_insights: List[Any]
    premium_insights: List[Any]
    premium_locked: bool
    total_players: int
    updated_at: Optional[datetime]


class SyncResponse(BaseModel):
    success: bool
    message: str
    results: Dict[str, Any]
    errors: Optional[Dict[str, str]] = None


class QueueRunResponse(BaseModel):
    success: bool
    message: str
    processed: Optional[int] = None
    succeeded: Optional[int] = None
    failed: Optional[int] = None
    duration_seconds: Optional[float] = None

"""SQLAlchemy database models for the Neeko Stats backend."""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from neeko_stats.db.base import Base


# ---------------------------------------------------------------------------
# Accounts and billing
# ---------------------------------------------------------------------------


class User(Base):
    """Dashboard account."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    api_token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Relationships
    roles: Mapped[list["UserRole"]] = relationship(
        "UserRole", back_populates="user", cascade="all, delete-orphan"
    )
    subscriptions: Mapped[list["Subscription"]] = relationship(
        "Subscription", back_populates="user"
    )


class UserRole(Base):
    """Role grants ('admin', 'premium')."""

    __tablename__ = "user_roles"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="roles")

    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_role"),
        Index("ix_user_roles_user_id", "user_id"),
    )


class StripeCustomer(Base):
    """Mapping from user to Stripe customer id."""

    __tablename__ = "stripe_customers"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), unique=True, nullable=False)
    customer_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)


class Subscription(Base):
    """Stripe subscription mirrored locally."""

    __tablename__ = "subscriptions"

    stripe_subscription_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    price_id: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    current_period_end: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    user: Mapped["User"] = relationship("User", back_populates="subscriptions")

    __table_args__ = (Index("ix_subscriptions_user_id", "user_id"),)


class StripeEvent(Base):
    """Processed webhook events, keyed by Stripe event id for replay protection."""

    __tablename__ = "stripe_events"

    event_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


class SyncLog(Base):
    """One row per sync / compute / generation run."""

    __tablename__ = "sync_logs"

    operation: Mapped[str] = mapped_column(String(100), nullable=False)
    sport: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    triggered_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    records_processed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    records_inserted: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    duration_seconds: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    run_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)

    __table_args__ = (Index("ix_sync_logs_operation", "operation"),)


class SystemLock(Base):
    """Advisory lock row, one per operation name."""

    __tablename__ = "system_locks"

    operation: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    locked_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    locked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class AdminAuditLog(Base):
    """Audit trail of admin-triggered actions."""

    __tablename__ = "admin_audit_log"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)


# ---------------------------------------------------------------------------
# Sheet-synced sport data
# ---------------------------------------------------------------------------


class AflFixture(Base):
    __tablename__ = "afl_fixtures"

    round: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    date: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    home_team: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    away_team: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    crowd: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    result: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class AflPlayerStat(Base):
    """One row per AFL player per round."""

    __tablename__ = "afl_player_stats"

    player: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    position: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    team: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    opponent: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    disposals: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    kicks: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    handballs: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    marks: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    tackles: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    frees_for: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    frees_against: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    hitouts: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    goals: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    behinds: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    ruck_contests: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    center_bounce_attendance: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    kick_ins: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    kick_ins_play_on: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    time_on_ground: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    fantasy_points: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    super_coach_points: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    games_played: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    round: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    round_order: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    round_label: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    round_sort_label: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    round_display: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        Index("ix_afl_player_stats_player", "player"),
        Index("ix_afl_player_stats_team_round", "team", "round"),
    )


class EplFixture(Base):
    __tablename__ = "epl_fixtures"

    fixture_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    date_edst: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    time_edst: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    season: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    round: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    home_team_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    home_team: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    away_team_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    away_team: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    processed: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)


class EplPlayerStat(Base):
    """One row per EPL player per fixture."""

    __tablename__ = "epl_player_stats"

    fixture_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    team_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    team_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    team_logo: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    player_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    player_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    player_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    player_pos: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    player_grid: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    minutes: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    shots_total: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    shots_on: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    goals_total: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    goals_conceded: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    goals_assists: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    goals_saves: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    passes_total: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    passes_key: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    passes_accuracy: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    tackles_total: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    tackles_blocks: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    tackles_interceptions: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    duels_total: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    duels_won: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    dribbles_attempts: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    dribbles_success: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    fouls_drawn: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    fouls_committed: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    cards_yellow: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    cards_red: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    penalty_won: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    penalty_committed: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    penalty_scored: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    penalty_missed: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    penalty_saved: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    json_raw: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    column_1: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_epl_player_stats_player_name", "player_name"),
        Index("ix_epl_player_stats_fixture_id", "fixture_id"),
    )


class NbaFixture(Base):
    __tablename__ = "nba_fixtures"

    game_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    date_edst: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    time_edst: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    season: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    stage: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    home_team_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    home_team_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    away_team_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    away_team_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    column_1: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class NbaPlayerStat(Base):
    """One row per NBA player per game."""

    __tablename__ = "nba_player_stats"

    game_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    player_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    player_firstname: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    player_lastname: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    team_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    team_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    team_nickname: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    team_code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    team_logo: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    game_ref_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    points: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    pos: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    min: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    fgm: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    fga: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    fgp: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    ftm: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    fta: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    ftp: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    tpm: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    tpa: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    tpp: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    offreb: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    defreb: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    totreb: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    assists: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    pfouls: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    steals: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    turnovers: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    blocks: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    plusminus: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    raw_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_nba_player_stats_name", "player_firstname", "player_lastname"),
        Index("ix_nba_player_stats_game_id", "game_id"),
    )


# ---------------------------------------------------------------------------
# Derived data
# ---------------------------------------------------------------------------


class TeamStat(Base):
    """Per-team, per-round aggregates computed from player rows."""

    __tablename__ = "team_stats"

    sport: Mapped[str] = mapped_column(String(10), nullable=False)
    team: Mapped[str] = mapped_column(String(100), nullable=False)
    round: Mapped[str] = mapped_column(String(50), nullable=False)
    player_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    games_played: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    totals: Mapped[dict] = mapped_column(JSON, nullable=False)
    averages: Mapped[dict] = mapped_column(JSON, nullable=False)

    __table_args__ = (
        UniqueConstraint("sport", "team", "round", name="uq_team_stat"),
        Index("ix_team_stats_sport", "sport"),
    )


class AIAnalysis(Base):
    """One AI-written blurb for a player within an analysis block."""

    __tablename__ = "ai_analysis"

    sport: Mapped[str] = mapped_column(String(10), nullable=False)
    block_type: Mapped[str] = mapped_column(String(50), nullable=False)
    block_title: Mapped[str] = mapped_column(String(100), nullable=False)
    player_name: Mapped[str] = mapped_column(String(255), nullable=False)
    team_name: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    stat_label: Mapped[str] = mapped_column(String(50), nullable=False)
    stat_value: Mapped[str] = mapped_column(String(50), nullable=False)
    explanation: Mapped[str] = mapped_column(Text, nullable=False)
    sparkline_data: Mapped[list] = mapped_column(JSON, nullable=False)
    is_premium: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    round: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    __table_args__ = (
        Index("ix_ai_analysis_sport_block", "sport", "block_type"),
    )


class AIAnalysisQueue(Base):
    """Deferred AI analysis jobs."""

    __tablename__ = "ai_analysis_queue"

    sport: Mapped[str] = mapped_column(String(10), nullable=False)
    player_id: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (Index("ix_ai_analysis_queue_status", "status"),)


class AIInsightsCache(Base):
    """Cached free/premium insight lists for a sport."""

    __tablename__ = "ai_insights_cache"

    sport: Mapped[str] = mapped_column(String(10), nullable=False)
    free_insights: Mapped[list] = mapped_column(JSON, nullable=False)
    premium_insights: Mapped[list] = mapped_column(JSON, nullable=False)
    total_players: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (Index("ix_ai_insights_cache_sport", "sport"),)

"""Google Sheets CSV export -> database sync.

Each sport/kind pair lives in its own tab of one spreadsheet
(``AFL_Player_Stats``, ``EPL_Fixtures``, ...). A sync downloads every tab
as CSV, normalises headers, coerces values and replaces the matching
table's contents in batches.
"""

from __future__ import annotations

import io
import json
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx
import pandas as pd
from sqlalchemy import BigInteger, Boolean, Float, Integer
from sqlalchemy.orm import sessionmaker

from neeko_stats.config import settings
from neeko_stats.db.models import (
    AflFixture,
    AflPlayerStat,
    EplFixture,
    EplPlayerStat,
    NbaFixture,
    NbaPlayerStat,
    SyncLog,
)
from neeko_stats.db.session import session_scope
from neeko_stats.errors import SheetFetchError
from neeko_stats.ops.sync_log import finish_log, start_log
from neeko_stats.utils.batching import batch_iterator
from neeko_stats.utils.logging import get_logger

logger = get_logger(__name__)

OPERATION = "sync-googlesheet"

_INT_RE = re.compile(r"^-?\d+$")
_FLOAT_RE = re.compile(r"^-?\d+\.\d+$")
_ROUND_RE = re.compile(r"Round (\d+)")
_WEEK_RE = re.compile(r"Week (\d+)")


@dataclass(frozen=True)
class TabConfig:
    model: type
    columns: Sequence[str]


TAB_CONFIG: Dict[str, TabConfig] = {
    "afl_fixtures": TabConfig(
        AflFixture,
        ["round", "date", "home_team", "away_team", "crowd", "result"],
    ),
    "afl_player_stats": TabConfig(
        AflPlayerStat,
        [
            "player", "position", "team", "opponent", "disposals", "kicks", "handballs",
            "marks", "tackles", "frees_for", "frees_against", "hitouts", "goals", "behinds",
            "ruck_contests", "center_bounce_attendance", "kick_ins", "kick_ins_play_on",
            "time_on_ground", "fantasy_points", "super_coach_points", "games_played",
            "round", "round_order", "round_label", "round_sort_label", "round_display",
        ],
    ),
    "epl_fixtures": TabConfig(
        EplFixture,
        [
            "fixture_id", "date_edst", "time_edst", "status", "season", "round",
            "home_team_id", "home_team", "away_team_id", "away_team", "processed",
        ],
    ),
    "epl_player_stats": TabConfig(
        EplPlayerStat,
        [
            "fixture_id", "team_id", "team_name", "team_logo", "player_id", "player_name",
            "player_number", "player_pos", "player_grid", "minutes", "rating", "shots_total",
            "shots_on", "goals_total", "goals_conceded", "goals_assists", "goals_saves",
            "passes_total", "passes_key", "passes_accuracy", "tackles_total", "tackles_blocks",
            "tackles_interceptions", "duels_total", "duels_won", "dribbles_attempts",
            "dribbles_success", "fouls_drawn", "fouls_committed", "cards_yellow", "cards_red",
            "penalty_won", "penalty_committed", "penalty_scored", "penalty_missed",
            "penalty_saved", "json_raw", "column_1",
        ],
    ),
    "nba_fixtures": TabConfig(
        NbaFixture,
        [
            "game_id", "date_edst", "time_edst", "status", "season", "stage",
            "home_team_id", "home_team_name", "away_team_id", "away_team_name", "column_1",
        ],
    ),
    "nba_player_stats": TabConfig(
        NbaPlayerStat,
        [
            "game_id", "player_id", "player_firstname", "player_lastname", "team_id",
            "team_name", "team_nickname", "team_code", "team_logo", "game_ref_id", "points",
            "pos", "min", "fgm", "fga", "fgp", "ftm", "fta", "ftp", "tpm", "tpa", "tpp",
            "offreb", "defreb", "totreb", "assists", "pfouls", "steals", "turnovers",
            "blocks", "plusminus", "comment", "raw_json",
        ],
    ),
}


def sheet_tab_name(tab: str) -> str:
    """``afl_player_stats`` -> ``AFL_Player_Stats``."""
    words = tab.split("_")
    return "_".join([words[0].upper()] + [w[:1].upper() + w[1:] for w in words[1:]])


def sheet_csv_url(sheet_id: str, tab_name: str) -> str:
    return (
        f"https://docs.google.com/spreadsheets/d/{sheet_id}"
        f"/gviz/tq?tqx=out:csv&sheet={tab_name}"
    )


def normalize_header(header: str) -> str:
    return re.sub(r"\s+", "_", header.strip().lower().replace('"', ""))


def coerce_value(value: Optional[str]) -> Any:
    """Turn a raw CSV cell into None / int / float / bool / str."""
    if value is None:
        return None
    value = value.strip()
    if value == "":
        return None
    if _INT_RE.match(value):
        return int(value)
    if _FLOAT_RE.match(value):
        return float(value)
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return value


def parse_csv(text: str, allowed_columns: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
    """Parse a sheet export into records.

    Headers are lower-cased with quotes removed and whitespace collapsed
    to ``_``; columns with a blank header are ignored. Rows with fewer
    than two non-empty cells are skipped. When ``allowed_columns`` is
    given, other columns are dropped.

    Args:
        text: CSV text
        allowed_columns: Optional whitelist of normalised column names

    Returns:
        List of dict records
    """
    if not text or not text.strip():
        return []

    options = dict(
        header=None, dtype=str, keep_default_na=False, skip_blank_lines=True, engine="python"
    )
    width = pd.read_csv(io.StringIO(text), nrows=1, **options).shape[1]
    # Cells past the last header are dropped
    frame = pd.read_csv(
        io.StringIO(text),
        on_bad_lines=lambda row: row[:width],
        **options,
    )
    if frame.empty:
        return []
    frame = frame.fillna("")

    headers = [normalize_header(str(h)) for h in frame.iloc[0].tolist()]
    allowed = set(allowed_columns) if allowed_columns is not None else None
    keep = [
        (idx, name)
        for idx, name in enumerate(headers)
        if name and (allowed is None or name in allowed)
    ]

    records: List[Dict[str, Any]] = []
    for values in frame.iloc[1:].itertuples(index=False, name=None):
        if sum(1 for v in values if str(v).strip()) < 2:
            continue
        records.append({name: coerce_value(values[idx]) for idx, name in keep})
    return records


def round_key(label: Optional[str]) -> str:
    """Short round key from a display label.

    "Opening Round" -> "Opening", "Round 7" -> "R7",
    "Finals Week 2" -> "FW2"; anything else -> "".
    """
    label = label or ""
    if "Opening" in label:
        return "Opening"
    if "Round" in label:
        match = _ROUND_RE.search(label)
        return f"R{match.group(1)}" if match else ""
    if "Finals" in label:
        match = _WEEK_RE.search(label)
        return f"FW{match.group(1)}" if match else ""
    return ""


def coerce_for_model(model: type, record: Dict[str, Any]) -> Dict[str, Any]:
    """Cast parsed values to the column types of ``model``.

    Values that cannot be cast become None.
    """
    columns = model.__table__.columns
    out: Dict[str, Any] = {}
    for key, value in record.items():
        if key not in columns:
            continue
        col_type = columns[key].type
        if value is None:
            out[key] = None
        elif isinstance(col_type, Boolean):
            out[key] = value if isinstance(value, bool) else None
        elif isinstance(col_type, (Integer, BigInteger)):
            try:
                out[key] = int(float(value))
            except (TypeError, ValueError):
                out[key] = None
        elif isinstance(col_type, Float):
            try:
                out[key] = float(value)
            except (TypeError, ValueError):
                out[key] = None
        else:
            out[key] = str(value).lower() if isinstance(value, bool) else str(value)
    return out


class SheetsClient:
    """Downloads tabs of one public spreadsheet as CSV."""

    def __init__(self, sheet_id: Optional[str] = None, client: Optional[httpx.Client] = None):
        self.sheet_id = sheet_id or settings.sports_sheet_id
        if not self.sheet_id:
            raise SheetFetchError("SPORTS_SHEET_ID not configured")
        self.client = client or httpx.Client(timeout=httpx.Timeout(30.0, connect=10.0))

    def fetch_csv(self, tab_name: str) -> str:
        url = sheet_csv_url(self.sheet_id, tab_name)
        logger.info("Fetching %s from %s", tab_name, url)
        try:
            response = self.client.get(url, follow_redirects=True)
        except httpx.HTTPError as e:
            raise SheetFetchError(f"Failed to fetch sheet {tab_name}: {e}") from e
        if response.status_code >= 400:
            raise SheetFetchError(
                f"Failed to fetch sheet {tab_name}: {response.status_code} {response.reason_phrase}"
            )
        return response.text

    def close(self) -> None:
        self.client.close()


@dataclass
class SyncResult:
    results: Dict[str, Dict[str, int]] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def total_records(self) -> int:
        return sum(r.get("synced", 0) for r in self.results.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": "All stats synced successfully" if self.success else "Sync completed with errors",
            "results": self.results,
            "errors": self.errors or None,
        }


def load_tab(session, model: type, records: List[Dict[str, Any]], batch_size: int) -> int:
    """Replace the contents of ``model``'s table with ``records``."""
    session.query(model).delete()
    inserted = 0
    for batch in batch_iterator(records, batch_size):
        session.add_all(model(**coerce_for_model(model, r)) for r in batch)
        session.flush()
        inserted += len(batch)
        logger.info("%s: %d/%d records inserted...", model.__tablename__, inserted, len(records))
    return inserted


def sync_google_sheet(
    session_factory: sessionmaker,
    fetch_csv: Callable[[str], str],
    triggered_by: Optional[int] = None,
    tabs: Optional[Sequence[str]] = None,
    batch_size: Optional[int] = None,
) -> SyncResult:
    """Sync every configured tab into its table.

    Each tab is loaded in its own transaction; a failing tab is recorded
    in ``SyncResult.errors`` and does not stop the others.

    Args:
        session_factory: Factory used for the log row and per-tab transactions
        fetch_csv: Callable returning CSV text for a sheet tab name
        triggered_by: User id of the admin who started the sync
        tabs: Subset of ``TAB_CONFIG`` keys (default: all)
        batch_size: Insert batch size (default: ``settings.sheet_batch_size``)

    Raises:
        KeyError: for an unknown tab; the sync log is marked ``failed``
    """
    batch_size = batch_size or settings.sheet_batch_size
    tabs = list(tabs or TAB_CONFIG)
    logger.info("Starting Google Sheet sync...")

    with session_scope(session_factory) as session:
        log_id = start_log(
            session, OPERATION, triggered_by=triggered_by, metadata={"trigger": "manual_sync"}
        ).id

    result = SyncResult()
    try:
        for tab in tabs:
            config = TAB_CONFIG[tab]
            try:
                records = parse_csv(fetch_csv(sheet_tab_name(tab)), config.columns)
                if not records:
                    logger.info("No records found in %s", sheet_tab_name(tab))
                    result.results[tab] = {"synced": 0}
                    continue

                with session_scope(session_factory) as session:
                    load_tab(session, config.model, records, batch_size)

                logger.info("%s: %d records synced", config.model.__tablename__, len(records))
                result.results[tab] = {"synced": len(records)}
            except Exception as e:
                logger.error("Error syncing %s: %s", tab, e)
                result.errors[tab] = str(e)

        with session_scope(session_factory) as session:
            finish_log(
                session.get(SyncLog, log_id),
                "success" if result.success else "completed_with_errors",
                processed=result.total_records,
                error_message=json.dumps(result.errors) if result.errors else None,
                metadata={"trigger": "manual_sync", "results": result.results, "errors": result.errors},
            )
    except Exception as e:
        logger.error("Sheet sync failed: %s", e)
        with session_scope(session_factory) as session:
            finish_log(
                session.get(SyncLog, log_id), "failed", processed=result.total_records, error=e
            )
        raise

    return result

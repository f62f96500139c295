"""Pytest configuration and fixtures."""

import hashlib
import hmac
import json
import os
import sys
import time
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


# Ensure the src directory is on the path so that the
# `neeko_stats` package can be imported in tests.
SRC_ROOT = Path(__file__).parent.parent / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from neeko_stats.access import ADMIN_ROLE, PREMIUM_ROLE, create_user
from neeko_stats.config import settings, ensure_directories
from neeko_stats.db.models import AflPlayerStat, NbaPlayerStat
from neeko_stats.db.session import init_db
from neeko_stats.errors import GatewayError


WEBHOOK_SECRET = "whsec_test_secret"

# fantasy points per round, oldest first
AFL_SERIES = {
    "Marcus Bontempelli": ("Western Bulldogs", "MID", [90, 100, 110, 95, 105, 120]),
    "Nick Daicos": ("Collingwood", "MID/DEF", [120, 115, 110, 100, 90, 80]),
    "Max Gawn": ("Melbourne", "RUC", [80, 80, 80, 80, 80, 80]),
}


class FakeGateway:
    """Stands in for the LLM gateway; replies are consumed in order."""

    def __init__(self, replies=None, fail=False, default="Strong recent output."):
        self.replies = list(replies or [])
        self.fail = fail
        self.default = default
        self.calls = []

    def chat(self, system, user):
        self.calls.append((system, user))
        if self.fail:
            raise GatewayError("AI API error: 500")
        if self.replies:
            return self.replies.pop(0)
        return self.default

    def close(self):
        pass


@pytest.fixture(scope="session")
def e2e_test_env(tmp_path_factory):
    """Point DATA_ROOT at a temporary directory and force the SQLite backend."""
    data_root = tmp_path_factory.mktemp("e2e_data")

    os.environ["DATA_ROOT"] = str(data_root)
    os.environ["DATABASE_BACKEND"] = "sqlite"

    settings.data_root = data_root
    ensure_directories()

    return data_root


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database shared across connections."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def session(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def gateway():
    return FakeGateway()


def make_afl_rows(series=None):
    rows = []
    for player, (team, position, values) in (series or AFL_SERIES).items():
        for index, value in enumerate(values, start=1):
            rows.append(
                AflPlayerStat(
                    player=player,
                    team=team,
                    position=position,
                    opponent="Opponent",
                    fantasy_points=float(value),
                    disposals=float(value) / 4,
                    goals=float(index % 3),
                    marks=5.0,
                    tackles=4.0,
                    hitouts=30.0 if position == "RUC" else 0.0,
                    behinds=1.0,
                    round=str(index),
                    round_order=index,
                    round_display=f"Round {index}",
                )
            )
    return rows


@pytest.fixture
def afl_rows(session):
    """Three AFL players with six rounds each."""
    rows = make_afl_rows()
    session.add_all(rows)
    session.commit()
    return rows


@pytest.fixture
def nba_rows(session):
    rows = [
        NbaPlayerStat(
            game_id=game,
            player_firstname="Nikola",
            player_lastname="Jokic",
            team_name="Denver Nuggets",
            pos="C",
            points=float(points),
            totreb=12.0,
            assists=9.0,
            steals=1.0,
            blocks=1.0,
        )
        for game, points in [(1, 28), (2, 31), (3, 25)]
    ]
    session.add_all(rows)
    session.commit()
    return rows


@pytest.fixture
def free_user(session):
    user = create_user(session, "free@example.com", api_token="free-token")
    session.commit()
    return user


@pytest.fixture
def premium_user(session):
    user = create_user(session, "plus@example.com", roles=[PREMIUM_ROLE], api_token="plus-token")
    session.commit()
    return user


@pytest.fixture
def admin_user(session):
    user = create_user(session, "admin@example.com", roles=[ADMIN_ROLE], api_token="admin-token")
    session.commit()
    return user


@pytest.fixture
def webhook_secret(monkeypatch):
    monkeypatch.setattr(settings, "stripe_webhook_secret", WEBHOOK_SECRET)
    return WEBHOOK_SECRET


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Build a ``Stripe-Signature`` header for ``payload``."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def stripe_event(event_id: str, event_type: str, obj: dict) -> dict:
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": int(time.time()),
        "data": {"object": obj},
    }


def event_payload(event: dict) -> bytes:
    return json.dumps(event).encode("utf-8")

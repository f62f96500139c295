"""Tests for the FastAPI service."""

import json
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from conftest import FakeGateway, event_payload, make_afl_rows, sign_payload, stripe_event
from neeko_stats.api.deps import get_gateway, get_session_factory, get_sheet_fetcher
from neeko_stats.api.service import API_VERSION, app
from neeko_stats.config import settings
from neeko_stats.db.models import AIInsightsCache, StripeEvent, SystemLock
from neeko_stats.insights.analysis import generate_sport_analysis
from neeko_stats.ops.locks import AI_REFRESH_LOCK
from neeko_stats.utils.time import utcnow


FREE = {"Authorization": "Bearer free-token"}
PLUS = {"Authorization": "Bearer plus-token"}
ADMIN = {"Authorization": "Bearer admin-token"}


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def client(session_factory, fake_gateway):
    def override_gateway():
        yield fake_gateway

    def override_fetcher():
        yield lambda tab_name: ""

    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_gateway] = override_gateway
    app.dependency_overrides[get_sheet_fetcher] = override_fetcher
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def twelve_afl_rows(session):
    series = {f"Player {i:02d}": ("Team", "MID", [50 + i, 60 + i]) for i in range(12)}
    session.add_all(make_afl_rows(series))
    session.commit()


def _cache(session, updated_at=None):
    session.add(
        AIInsightsCache(
            sport="afl",
            free_insights=[{"title": "free"}],
            premium_insights=[{"title": "premium"}],
            total_players=3,
            updated_at=updated_at or utcnow(),
        )
    )
    session.commit()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "version": API_VERSION}


def test_players_gated_for_free_callers(client, monkeypatch, afl_rows, free_user):
    monkeypatch.setattr(settings, "free_table_rows", 1)

    response = client.get("/sports/afl/players", headers=FREE)
    assert response.status_code == 200
    body = response.json()
    assert body["premium"] is False
    assert body["total"] == 3
    first, second = body["rows"][0], body["rows"][1]
    assert first["name"] == "Marcus Bontempelli"
    assert first["locked"] is False
    assert first["avg_l5"] == pytest.approx(106.0)
    assert second["locked"] is True
    assert "avg_l5" not in second


def test_players_anonymous_is_free(client, monkeypatch, afl_rows):
    monkeypatch.setattr(settings, "free_table_rows", 2)
    rows = client.get("/sports/afl/players").json()["rows"]
    assert [r["locked"] for r in rows] == [False, False, True]


def test_players_unlocked_for_premium_and_admin(client, monkeypatch, afl_rows, premium_user, admin_user):
    monkeypatch.setattr(settings, "free_table_rows", 1)
    for headers in (PLUS, ADMIN):
        body = client.get("/sports/afl/players", headers=headers).json()
        assert body["premium"] is True
        assert not any(r["locked"] for r in body["rows"])


def test_invalid_token_rejected(client, afl_rows):
    response = client.get("/sports/afl/players", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401


def test_invalid_sport(client):
    response = client.get("/sports/nrl/players")
    assert response.status_code == 400
    assert "nrl" in response.json()["error"]


def test_player_summary(client, afl_rows):
    response = client.get("/sports/afl/players/Marcus Bontempelli/summary", params={"lens": "Fantasy"})
    assert response.status_code == 200
    body = response.json()
    assert body["team"] == "Western Bulldogs"
    assert body["hit_rates"] == [100, 100, 100, 100, 67]
    assert body["summary"]["total"] == 620
    assert body["series"] == [90, 100, 110, 95, 105, 120]


def test_player_summary_errors(client, afl_rows):
    assert client.get("/sports/afl/players/Nobody/summary").status_code == 404
    assert client.get("/sports/afl/players/Max Gawn/summary", params={"lens": "Kicks"}).status_code == 400


def test_team_stats_round_filter(client, admin_user, afl_rows):
    response = client.post("/admin/team-stats/afl", headers=ADMIN)
    assert response.status_code == 200
    assert response.json()["records"] == 18

    rows = client.get("/sports/afl/team-stats", params={"round": "6"}).json()
    assert len(rows) == 3
    bulldogs = next(r for r in rows if r["team"] == "Western Bulldogs")
    assert bulldogs["totals"]["total_fantasy_points"] == 120


def test_ai_analysis_redacted_for_free_callers(client, session, afl_rows, free_user, premium_user):
    generate_sport_analysis(session, "afl", FakeGateway(default="Elite ball use."))
    session.commit()

    free_rows = client.get("/sports/afl/ai-analysis", params={"block_type": "captain_choices"}, headers=FREE).json()
    assert [r["rank"] for r in free_rows] == [1, 2, 3]
    assert all(r["explanation"] == "Elite ball use." for r in free_rows)

    all_rows = client.get("/sports/afl/ai-analysis", headers=FREE).json()
    assert len(all_rows) == 50
    assert all(not r["locked"] for r in all_rows)


def test_ai_analysis_premium_rows_locked(client, session, twelve_afl_rows, free_user, premium_user):
    generate_sport_analysis(session, "afl", FakeGateway(default="Elite ball use."))
    session.commit()

    params = {"block_type": "trending_hot"}
    free_rows = client.get("/sports/afl/ai-analysis", params=params, headers=FREE).json()
    locked = [r for r in free_rows if r["locked"]]
    assert len(locked) == 6
    assert all(r["explanation"] is None and r["stat_value"] is None for r in locked)

    plus_rows = client.get("/sports/afl/ai-analysis", params=params, headers=PLUS).json()
    assert not any(r["locked"] for r in plus_rows)


def test_insights_missing(client):
    response = client.get("/sports/afl/insights")
    assert response.status_code == 404


def test_insights_hide_premium_list(client, session, free_user, premium_user):
    _cache(session)

    free = client.get("/sports/afl/insights", headers=FREE).json()
    assert free["free_insights"] == [{"title": "free"}]
    assert free["premium_insights"] == []
    assert free["premium_locked"] is True

    plus = client.get("/sports/afl/insights", headers=PLUS).json()
    assert plus["premium_insights"] == [{"title": "premium"}]
    assert plus["premium_locked"] is False


def test_admin_routes_require_admin(client, free_user):
    assert client.post("/admin/master-sync").status_code == 401
    response = client.post("/admin/master-sync", headers=FREE)
    assert response.status_code == 403
    assert response.json()["detail"] == "Forbidden: Admin access required"


def test_admin_afl_insights(client, fake_gateway, admin_user, afl_rows):
    fake_gateway.replies = [json.dumps([{"title": "a"}]), json.dumps([{"title": "b"}])]

    response = client.post("/admin/afl-insights", headers=ADMIN)
    assert response.status_code == 200
    assert response.json()["premiumInsights"] == [{"title": "b"}]
    assert client.get("/sports/afl/insights", headers=ADMIN).json()["total_players"] == 3


def test_admin_afl_insights_parse_failure(client, fake_gateway, admin_user, afl_rows):
    fake_gateway.default = "Sorry, I can't help with that."

    response = client.post("/admin/afl-insights", headers=ADMIN)
    assert response.status_code == 500
    assert response.json()["error"] == "Failed to generate insights"


def test_admin_master_sync(client, admin_user, afl_rows):
    response = client.post("/admin/master-sync", headers=ADMIN)
    assert response.status_code == 200
    results = response.json()["results"]
    assert results["teamStats"]["afl"]["records"] == 18
    assert results["aiAnalysis"]["afl"]["records"] == 50


def test_refresh_cooldown(client, session, admin_user):
    _cache(session, utcnow() - timedelta(minutes=1))

    response = client.post("/admin/refresh-insights", headers=ADMIN)
    assert response.status_code == 429
    body = response.json()
    assert "minutes" in body["error"]
    assert body["nextRefreshAvailable"]


def test_refresh_locked(client, session, admin_user):
    session.add(SystemLock(operation=AI_REFRESH_LOCK, locked=True, locked_by="42", locked_at=utcnow()))
    session.commit()

    response = client.post("/admin/refresh-insights", headers=ADMIN)
    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "Refresh already in progress"
    assert body["lockedBy"] == "42"


def test_process_queue_requires_cron_secret(client, monkeypatch):
    monkeypatch.setattr(settings, "cron_secret", "cron-secret")

    assert client.post("/jobs/process-ai-queue").status_code == 401

    response = client.post("/jobs/process-ai-queue", headers={"X-Cron-Secret": "cron-secret"})
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "No pending jobs", "processed": 0}


def test_stripe_webhook(client, session, webhook_secret):
    payload = event_payload(
        stripe_event(
            "evt_api_1",
            "customer.subscription.updated",
            {"id": "sub_unknown", "object": "subscription", "status": "active"},
        )
    )
    headers = {"Stripe-Signature": sign_payload(payload)}

    first = client.post("/webhooks/stripe", content=payload, headers=headers)
    assert first.status_code == 200
    assert first.json() == {"received": True, "duplicate": False}

    replay = client.post("/webhooks/stripe", content=payload, headers=headers)
    assert replay.json() == {"received": True, "duplicate": True}
    assert session.query(StripeEvent).filter_by(event_id="evt_api_1").count() == 1


def test_stripe_webhook_signature_errors(client, webhook_secret):
    payload = event_payload(stripe_event("evt_api_2", "invoice.paid", {"id": "in_1"}))

    assert client.post("/webhooks/stripe", content=payload).status_code == 401

    bad = {"Stripe-Signature": sign_payload(payload, secret="whsec_wrong")}
    assert client.post("/webhooks/stripe", content=payload, headers=bad).status_code == 400


def test_stripe_webhook_without_secret(client, monkeypatch):
    monkeypatch.setattr(settings, "stripe_webhook_secret", None)
    response = client.post("/webhooks/stripe", content=b"{}", headers={"Stripe-Signature": "t=1,v1=x"})
    assert response.status_code == 500

"""Tests for the LLM gateway, insight parsing and AFL insight lists."""

import json

import httpx
import pytest

from conftest import FakeGateway
from neeko_stats.db.models import AIInsightsCache
from neeko_stats.errors import GatewayError, InsightParseError
from neeko_stats.insights.fantasy import generate_afl_insights, latest_insights, summarize_form
from neeko_stats.insights.gateway import AIGateway
from neeko_stats.insights.parsing import parse_insight_list
from neeko_stats.stats.players import PlayerSeries


FREE = [{"category": "Form Guide", "title": "Bont flying", "description": "d", "example": "e"}]
PREMIUM = [{"category": "Trade Targets", "title": "Sell Daicos", "description": "d", "example": "e"}]


def test_parse_plain_and_fenced():
    assert parse_insight_list('[{"a": 1}]') == [{"a": 1}]
    assert parse_insight_list('```json\n[{"a": 1}]\n```') == [{"a": 1}]
    assert parse_insight_list("```\n[]\n```") == []


@pytest.mark.parametrize("text", ["not json", '{"a": 1}', ""])
def test_parse_rejects_non_lists(text):
    with pytest.raises(InsightParseError):
        parse_insight_list(text)


def _series(name, values, team="T", position="MID"):
    return PlayerSeries(player_id=name, name=name, team=team, position=position, series=values)


def test_summarize_form():
    summary = summarize_form(
        [
            _series("Rising", [90, 100, 110, 95, 105, 120]),
            _series("Falling", [120, 115, 110, 100, 90, 80]),
            _series("Flat", [80] * 6),
            _series("Zero", [0, 0, 0]),
        ]
    )
    assert [p["player"] for p in summary.hot] == ["Rising"]
    assert [p["player"] for p in summary.cold] == ["Falling"]
    assert [p["player"] for p in summary.top] == ["Rising", "Falling", "Flat"]
    assert summary.hot[0]["recent_avg"] == pytest.approx(320 / 3)


def test_generate_afl_insights_caches(session, afl_rows):
    gateway = FakeGateway(replies=[json.dumps(FREE), "```json\n" + json.dumps(PREMIUM) + "\n```"])
    result = generate_afl_insights(session, gateway)
    session.commit()

    assert result == {"freeInsights": FREE, "premiumInsights": PREMIUM, "totalPlayers": 3}
    assert "7 brief insights" in gateway.calls[0][1]
    assert "Marcus Bontempelli" in gateway.calls[0][1]
    assert "13 detailed insights" in gateway.calls[1][1]
    assert "Nick Daicos" in gateway.calls[1][1]

    cached = latest_insights(session)
    assert cached.free_insights == FREE
    assert cached.premium_insights == PREMIUM
    assert cached.total_players == 3


def test_free_parse_failure_raises(session, afl_rows):
    with pytest.raises(InsightParseError):
        generate_afl_insights(session, FakeGateway(replies=["Sorry, I can't help"]))
    assert session.query(AIInsightsCache).count() == 0


def test_premium_parse_failure_returns_partial(session, afl_rows):
    result = generate_afl_insights(session, FakeGateway(replies=[json.dumps(FREE), "{broken"]))
    assert result["freeInsights"] == FREE
    assert result["premiumInsights"] == []
    assert result["warning"] == "Premium insights could not be generated"
    assert session.query(AIInsightsCache).count() == 0


def test_gateway_failure_propagates(session, afl_rows):
    with pytest.raises(GatewayError):
        generate_afl_insights(session, FakeGateway(fail=True))


def _gateway(handler):
    return AIGateway(
        base_url="https://gateway.test/v1/",
        api_key="key-1",
        model="test-model",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


def test_gateway_chat():
    def handler(request):
        assert str(request.url) == "https://gateway.test/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer key-1"
        body = json.loads(request.content)
        assert body["model"] == "test-model"
        assert body["messages"][0] == {"role": "system", "content": "sys"}
        return httpx.Response(200, json={"choices": [{"message": {"content": "Hello"}}]})

    assert _gateway(handler).chat("sys", "hi") == "Hello"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(429, json={"error": "rate limited"}),
        httpx.Response(200, json={"choices": []}),
        httpx.Response(200, text="<html>"),
    ],
)
def test_gateway_errors(response):
    with pytest.raises(GatewayError):
        _gateway(lambda request: response).chat("sys", "hi")


def test_gateway_transport_error():
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(GatewayError):
        _gateway(handler).chat("sys", "hi")


def test_gateway_requires_key(monkeypatch):
    from neeko_stats.config import settings

    monkeypatch.setattr(settings, "ai_gateway_api_key", None)
    with pytest.raises(GatewayError):
        AIGateway.from_settings()

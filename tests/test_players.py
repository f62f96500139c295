"""Tests for player tables built from stored rows."""

import pytest

from neeko_stats.db.models import AflPlayerStat
from neeko_stats.stats.players import (
    build_player_table,
    player_series,
    position_trends,
    sparkline_for,
)


def test_player_series_in_round_order(session, afl_rows):
    players = player_series(session, "afl")
    assert set(players) == {"Marcus Bontempelli", "Nick Daicos", "Max Gawn"}

    bont = players["Marcus Bontempelli"]
    assert bont.series == [90, 100, 110, 95, 105, 120]
    assert bont.team == "Western Bulldogs"
    assert bont.position == "MID"
    assert bont.latest_round == "R6"


def test_player_series_drops_missing_values(session, afl_rows):
    session.add(AflPlayerStat(player="Max Gawn", team="Melbourne", round_order=7, fantasy_points=None))
    session.commit()
    assert len(player_series(session, "afl")["Max Gawn"].series) == 6


def test_player_series_unknown_column(session):
    with pytest.raises(ValueError):
        player_series(session, "afl", "not_a_column")


def test_build_player_table_sorted_by_recent_average(session, afl_rows):
    rows = build_player_table(session, "afl")
    assert [r["name"] for r in rows] == ["Marcus Bontempelli", "Nick Daicos", "Max Gawn"]
    assert rows[0]["avg_l5"] == pytest.approx(106)
    assert rows[0]["delta"] == 15


def test_build_player_table_filters(session, afl_rows):
    assert [r["name"] for r in build_player_table(session, "afl", team="Melbourne")] == ["Max Gawn"]
    mids = build_player_table(session, "afl", position="mid")
    assert {r["name"] for r in mids} == {"Marcus Bontempelli", "Nick Daicos"}


def test_sparkline_for_nba_player(session, nba_rows):
    assert sparkline_for(session, "nba", "Nikola_Jokic") == [28, 31, 25]


def test_position_trends_groups(session, afl_rows):
    groups = position_trends(session)
    assert [p["name"] for p in groups["RUC"]] == ["Max Gawn"]
    # dual-position players appear in both groups
    assert [p["name"] for p in groups["DEF"]] == ["Nick Daicos"]
    assert [p["name"] for p in groups["MID"]] == ["Marcus Bontempelli", "Nick Daicos"]
    assert groups["FWD"] == []

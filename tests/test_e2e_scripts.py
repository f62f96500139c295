"""End-to-end tests for the command-line scripts.

The scripts are run through their ``main`` entry points against the
in-memory test database; the module-level engine and session factory
are swapped for the test ones.
"""

import pytest

from neeko_stats.access import is_admin, is_premium
from neeko_stats.db import session as db_session
from neeko_stats.db.models import AIAnalysis, AIAnalysisQueue, TeamStat, User
from neeko_stats.insights.gateway import AIGateway


@pytest.fixture
def scripts_db(monkeypatch, e2e_test_env, engine, session_factory):
    monkeypatch.setattr(db_session, "engine", engine)
    monkeypatch.setattr(db_session, "SessionLocal", session_factory)
    return session_factory


@pytest.mark.e2e
def test_init_db_creates_admin(scripts_db, session, capsys):
    from scripts import init_db

    assert init_db.main(["--admin-email", "ops@example.com"]) == 0

    user = session.query(User).filter_by(email="ops@example.com").one()
    assert is_admin(session, user.id)
    assert is_premium(session, user.id)
    assert user.api_token in capsys.readouterr().out


@pytest.mark.e2e
def test_compute_and_generate_scripts(monkeypatch, scripts_db, session, afl_rows, gateway):
    from scripts import compute_team_stats, generate_ai_analysis, process_ai_queue

    monkeypatch.setattr(AIGateway, "from_settings", classmethod(lambda cls: gateway))
    # these scripts bind the session factory at import
    monkeypatch.setattr(compute_team_stats, "SessionLocal", scripts_db)
    monkeypatch.setattr(generate_ai_analysis, "SessionLocal", scripts_db)

    assert compute_team_stats.main(["--sport", "afl"]) == 0
    assert session.query(TeamStat).filter_by(sport="afl").count() == 18

    assert generate_ai_analysis.main(["--sport", "afl"]) == 0
    assert session.query(AIAnalysis).count() == 50
    assert session.query(AIAnalysisQueue).filter_by(status="pending").count() == 10

    assert process_ai_queue.main(["--limit", "4"]) == 0
    session.expire_all()
    assert session.query(AIAnalysisQueue).filter_by(status="done").count() == 4
    assert session.query(AIAnalysis).count() == 54

import os
from datetime import date

# Keep the app's own engine off disk; tests use test_engine below
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from fixturedesk.database import get_session  # noqa: E402
from fixturedesk.main import app  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. Use sqlite:///:memory: with StaticPool so ALL sessions share same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. All models MUST be imported before create_all() (see session_fixture)
# 4. App dependency overridden to use test_engine (see client_fixture)
# 5. Tables are dropped after every test so tournament ids and cache keys start fresh
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="engine")
def engine_fixture():
    return test_engine


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on freshly created tables"""
    # Import all models to ensure they're registered BEFORE create_all
    from fixturedesk.models.draft_cache_entry import DraftCacheEntry  # noqa: F401
    from fixturedesk.models.fixture import Fixture  # noqa: F401
    from fixturedesk.models.team import Team  # noqa: F401
    from fixturedesk.models.tournament import Tournament  # noqa: F401
    from fixturedesk.models.tournament_round import TournamentRound  # noqa: F401
    from fixturedesk.models.tournament_team import TournamentTeam  # noqa: F401

    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    Override MUST be set BEFORE TestClient() and stay in place
    for the entire duration. This ensures the app never uses its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_tournament(session: Session):
    """Factory: tournament with ``team_count`` seeded teams named Team1..TeamN (seed = number)."""
    from fixturedesk.models.team import Team
    from fixturedesk.models.tournament import Tournament
    from fixturedesk.models.tournament_team import TournamentTeam

    def _make(team_count: int = 4, status: str = "draft", tournament_type: str = "single_elimination",
              start_date=date(2026, 3, 1)):
        tournament = Tournament(
            name=f"Cup of {team_count}",
            sport="football",
            tournament_type=tournament_type,
            status=status,
            start_date=start_date,
        )
        session.add(tournament)
        session.commit()
        session.refresh(tournament)

        for i in range(1, team_count + 1):
            team = Team(name=f"Team{i}")
            session.add(team)
            session.commit()
            session.refresh(team)
            session.add(TournamentTeam(tournament_id=tournament.id, team_id=team.id, seed=i))
        session.commit()
        return tournament

    return _make

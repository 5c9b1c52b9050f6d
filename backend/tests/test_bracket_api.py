"""
Tests for the bracket persistence endpoints.
"""
import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, select

from fixturedesk.models.fixture import Fixture
from fixturedesk.models.tournament import Tournament
from fixturedesk.models.tournament_round import TournamentRound
from fixturedesk.models.tournament_team import TournamentTeam


def _generate(client, tournament_id):
    response = client.post(f"/api/tournaments/{tournament_id}/bracket/generate")
    assert response.status_code == 200, response.text
    return response.json()["rounds"]


def _save(client, tournament_id, rounds):
    return client.post(f"/api/tournaments/{tournament_id}/bracket/save", json={"rounds": rounds})


def _strip_ids(rounds):
    stripped = []
    for r in rounds:
        r = {k: v for k, v in r.items() if k != "id"}
        r["matches"] = [{k: v for k, v in m.items() if k != "id"} for m in r["matches"]]
        stripped.append(r)
    return stripped


def test_generate_does_not_persist(client: TestClient, session: Session, make_tournament):
    """Generate returns the bracket but stores no rounds or fixtures."""
    tournament = make_tournament(4)

    rounds = _generate(client, tournament.id)

    assert [r["round_name"] for r in rounds] == ["Semi-finals", "Final"]
    assert rounds[0]["matches"][0]["slot_a"]["team_name"] == "Team1"
    assert rounds[0]["matches"][0]["slot_b"]["team_name"] == "Team4"
    assert rounds[0]["matches"][0]["scheduled_at"] == "2026-03-01T00:00:00"
    assert session.exec(select(Fixture)).all() == []
    assert session.exec(select(TournamentRound)).all() == []


def test_generate_missing_tournament(client: TestClient, session: Session):
    response = client.post("/api/tournaments/999/bracket/generate")
    assert response.status_code == 404


def test_generate_requires_draft(client: TestClient, make_tournament):
    tournament = make_tournament(4, status="active")
    response = client.post(f"/api/tournaments/{tournament.id}/bracket/generate")
    assert response.status_code == 409
    assert "TOURNAMENT_NOT_DRAFT" in response.json()["detail"]


def test_generate_requires_single_elimination(client: TestClient, make_tournament):
    tournament = make_tournament(4, tournament_type="round_robin")
    response = client.post(f"/api/tournaments/{tournament.id}/bracket/generate")
    assert response.status_code == 400


def test_generate_needs_two_teams(client: TestClient, make_tournament):
    tournament = make_tournament(1)
    response = client.post(f"/api/tournaments/{tournament.id}/bracket/generate")
    assert response.status_code == 422
    assert "INSUFFICIENT_TEAMS" in response.json()["detail"]


def test_save_creates_then_updates(client: TestClient, session: Session, make_tournament):
    """First save creates every fixture; saving again updates them in place."""
    tournament = make_tournament(4)
    rounds = _generate(client, tournament.id)

    response = _save(client, tournament.id, rounds)
    assert response.status_code == 200, response.text
    assert response.json() == {"created_count": 3, "updated_count": 0}

    # Same draft without ids matches by round and bracket position
    response = _save(client, tournament.id, rounds)
    assert response.json() == {"created_count": 0, "updated_count": 3}

    # Persisted ids are honoured
    persisted = client.get(f"/api/tournaments/{tournament.id}/bracket").json()["rounds"]
    persisted[0]["matches"][0]["venue"] = "Court 1"
    response = _save(client, tournament.id, persisted)
    assert response.json() == {"created_count": 0, "updated_count": 3}

    fixtures = session.exec(select(Fixture).order_by(Fixture.id)).all()
    assert len(fixtures) == 3
    assert fixtures[0].venue == "Court 1"
    assert len(session.exec(select(TournamentRound)).all()) == 2


def test_resave_after_roster_shrinks_drops_extra_rows(client: TestClient, session: Session, make_tournament):
    """Rounds and fixtures the new bracket no longer has are deleted."""
    tournament = make_tournament(8)
    assert _save(client, tournament.id, _generate(client, tournament.id)).json()["created_count"] == 7

    for registration in session.exec(select(TournamentTeam).where(TournamentTeam.seed > 4)).all():
        session.delete(registration)
    session.commit()

    response = _save(client, tournament.id, _generate(client, tournament.id))
    assert response.status_code == 200, response.text
    assert response.json() == {"created_count": 0, "updated_count": 3}

    session.expire_all()
    assert len(session.exec(select(Fixture)).all()) == 3
    round_rows = session.exec(select(TournamentRound).order_by(TournamentRound.round_number)).all()
    assert [r.round_name for r in round_rows] == ["Semi-finals", "Final"]

    rounds = client.get(f"/api/tournaments/{tournament.id}/bracket").json()["rounds"]
    pairs = [(m["slot_a"]["team_id"], m["slot_b"]["team_id"]) for m in rounds[0]["matches"]]
    assert pairs == [(1, 4), (2, 3)]
    assert rounds[1]["matches"][0]["slot_a"]["team_id"] is None


def test_resave_clears_recorded_results(client: TestClient, session: Session, make_tournament):
    tournament = make_tournament(4)
    _save(client, tournament.id, _generate(client, tournament.id))
    rounds = client.get(f"/api/tournaments/{tournament.id}/bracket").json()["rounds"]
    semi_id = rounds[0]["matches"][0]["id"]
    final_id = rounds[1]["matches"][0]["id"]

    response = client.patch(
        f"/api/tournaments/{tournament.id}/runtime/fixtures/{semi_id}",
        json={"status": "completed", "score_a": 3, "score_b": 1},
    )
    assert response.status_code == 200, response.text

    response = _save(client, tournament.id, _generate(client, tournament.id))
    assert response.json() == {"created_count": 0, "updated_count": 3}

    session.expire_all()
    semi = session.get(Fixture, semi_id)
    assert semi.status == "scheduled"
    assert (semi.score_a, semi.score_b, semi.winner_team_id) == (None, None, None)
    assert semi.completed_at is None
    final = session.get(Fixture, final_id)
    assert final.team_a_id is None
    assert final.placeholder_side_a == "Winner R1 M1"


@pytest.mark.parametrize("team_count", [2, 3, 4, 5, 7, 8])
def test_saved_bracket_reads_back_unchanged(client: TestClient, make_tournament, team_count):
    """Every slot, bye and placeholder survives save and reload."""
    tournament = make_tournament(team_count)
    rounds = _generate(client, tournament.id)
    assert _save(client, tournament.id, rounds).status_code == 200

    response = client.get(f"/api/tournaments/{tournament.id}/bracket")
    assert response.status_code == 200
    body = response.json()
    assert body["tournament_id"] == tournament.id
    assert all(r["id"] is not None for r in body["rounds"])
    assert _strip_ids(body["rounds"]) == rounds


def test_bye_stored_as_placeholder_text(client: TestClient, session: Session, make_tournament):
    tournament = make_tournament(3)
    _save(client, tournament.id, _generate(client, tournament.id))

    bye_fixture = session.exec(select(Fixture).where(Fixture.placeholder_side_b == "BYE")).one()
    assert bye_fixture.status == "completed"
    final = session.exec(
        select(Fixture).join(TournamentRound).where(TournamentRound.round_number == 2)
    ).one()
    assert final.placeholder_side_a == "Winner R1 M1"
    assert final.placeholder_side_b == "Team1"
    assert final.team_b_id == bye_fixture.winner_team_id


def test_save_rejects_duplicate_round_numbers(client: TestClient, make_tournament):
    tournament = make_tournament(4)
    rounds = _generate(client, tournament.id)
    response = _save(client, tournament.id, [rounds[0], rounds[0]])
    assert response.status_code == 422


def test_save_rejects_duplicate_positions(client: TestClient, make_tournament):
    tournament = make_tournament(4)
    rounds = _generate(client, tournament.id)
    rounds[0]["matches"][1]["bracket_position"] = 0
    response = _save(client, tournament.id, rounds)
    assert response.status_code == 422


def test_save_requires_draft(client: TestClient, make_tournament):
    tournament = make_tournament(4)
    rounds = _generate(client, tournament.id)
    client.patch(f"/api/tournaments/{tournament.id}", json={"status": "active"})

    response = _save(client, tournament.id, rounds)
    assert response.status_code == 409


def test_create_fixtures_is_idempotent(client: TestClient, session: Session, make_tournament):
    """Fixtures with a team are finalized once; the tournament becomes active."""
    tournament = make_tournament(4)
    _save(client, tournament.id, _generate(client, tournament.id))

    response = client.post(f"/api/tournaments/{tournament.id}/bracket/fixtures")
    assert response.status_code == 200
    assert response.json() == {"created_count": 2, "finalized_total": 2}

    response = client.post(f"/api/tournaments/{tournament.id}/bracket/fixtures")
    assert response.json() == {"created_count": 0, "finalized_total": 2}

    session.expire_all()
    assert session.get(Tournament, tournament.id).status == "active"


def test_create_fixtures_without_bracket(client: TestClient, make_tournament):
    tournament = make_tournament(4)
    response = client.post(f"/api/tournaments/{tournament.id}/bracket/fixtures")
    assert response.json() == {"created_count": 0, "finalized_total": 0}


def test_create_fixtures_refused_for_completed_tournament(client: TestClient, make_tournament):
    tournament = make_tournament(4, status="completed")
    response = client.post(f"/api/tournaments/{tournament.id}/bracket/fixtures")
    assert response.status_code == 409


def test_reset_deletes_bracket(client: TestClient, session: Session, make_tournament):
    """Reset deletes fixtures then rounds and returns the tournament to draft."""
    tournament = make_tournament(4)
    _save(client, tournament.id, _generate(client, tournament.id))
    client.post(f"/api/tournaments/{tournament.id}/bracket/fixtures")

    response = client.post(f"/api/tournaments/{tournament.id}/bracket/reset")
    assert response.status_code == 200
    assert response.json() == {"deleted_fixtures": 3, "deleted_rounds": 2}

    assert client.get(f"/api/tournaments/{tournament.id}/bracket").json()["rounds"] == []
    session.expire_all()
    assert session.get(Tournament, tournament.id).status == "draft"

    # A fresh bracket can be generated straight away
    assert len(_generate(client, tournament.id)) == 2


def test_reset_empty_bracket(client: TestClient, make_tournament):
    tournament = make_tournament(4)
    response = client.post(f"/api/tournaments/{tournament.id}/bracket/reset")
    assert response.json() == {"deleted_fixtures": 0, "deleted_rounds": 0}


def test_reset_refused_for_completed_tournament(client: TestClient, make_tournament):
    tournament = make_tournament(4, status="completed")
    response = client.post(f"/api/tournaments/{tournament.id}/bracket/reset")
    assert response.status_code == 409
    assert "TOURNAMENT_COMPLETED" in response.json()["detail"]


def test_get_bracket_missing_tournament(client: TestClient, session: Session):
    assert client.get("/api/tournaments/42/bracket").status_code == 404


def test_activate_round(client: TestClient, make_tournament):
    """Only a round whose fixtures all know both teams can be activated."""
    tournament = make_tournament(4)
    _save(client, tournament.id, _generate(client, tournament.id))

    response = client.post(f"/api/tournaments/{tournament.id}/rounds/2/activate")
    assert response.status_code == 409
    assert "ROUND_NOT_READY" in response.json()["detail"]

    response = client.post(f"/api/tournaments/{tournament.id}/rounds/1/activate")
    assert response.status_code == 200
    assert response.json()["status"] == "active"

    # Activating again is a no-op
    response = client.post(f"/api/tournaments/{tournament.id}/rounds/1/activate")
    assert response.json()["status"] == "active"

    rounds = client.get(f"/api/tournaments/{tournament.id}/bracket").json()["rounds"]
    assert [r["status"] for r in rounds] == ["active", "pending"]


def test_activate_missing_round(client: TestClient, make_tournament):
    tournament = make_tournament(4)
    response = client.post(f"/api/tournaments/{tournament.id}/rounds/9/activate")
    assert response.status_code == 404

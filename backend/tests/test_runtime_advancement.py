"""
Tests for runtime fixture updates and winner advancement.
"""
from fastapi.testclient import TestClient
from sqlmodel import Session

from fixturedesk.models.fixture import Fixture
from fixturedesk.services.advancement_service import apply_advancement_for_completed_fixture


def _committed_bracket(client, tournament_id):
    rounds = client.post(f"/api/tournaments/{tournament_id}/bracket/generate").json()["rounds"]
    response = client.post(f"/api/tournaments/{tournament_id}/bracket/save", json={"rounds": rounds})
    assert response.status_code == 200, response.text
    return _fixture_ids(client, tournament_id)


def _fixture_ids(client, tournament_id):
    """{(round_number, bracket_position): fixture_id}"""
    rounds = client.get(f"/api/tournaments/{tournament_id}/bracket").json()["rounds"]
    return {(r["round_number"], m["bracket_position"]): m["id"] for r in rounds for m in r["matches"]}


def _patch(client, tournament_id, fixture_id, **payload):
    return client.patch(f"/api/tournaments/{tournament_id}/runtime/fixtures/{fixture_id}", json=payload)


def test_completing_fixture_advances_winner(client: TestClient, session: Session, make_tournament):
    """Winner of a semi-final lands in the final's slot for that feeder."""
    tournament = make_tournament(4)
    ids = _committed_bracket(client, tournament.id)

    response = _patch(client, tournament.id, ids[(1, 0)], status="completed", score_a=3, score_b=1)
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["fixture"]["status"] == "completed"
    assert body["fixture"]["winner_team_id"] == 1
    assert body["fixture"]["completed_at"] is not None
    assert body["advanced_count"] == 1
    assert body["advancement_error"] is None

    final = session.get(Fixture, ids[(2, 0)])
    session.refresh(final)
    assert final.team_a_id == 1
    assert final.placeholder_side_a == "Team1"
    assert final.team_b_id is None
    assert final.placeholder_side_b == "Winner R1 M2"


def test_level_scores_need_tiebreak(client: TestClient, session: Session, make_tournament):
    tournament = make_tournament(4)
    ids = _committed_bracket(client, tournament.id)

    response = _patch(client, tournament.id, ids[(1, 1)], status="completed", score_a=2, score_b=2)
    assert response.status_code == 409
    assert "UNRESOLVED_DRAW" in response.json()["detail"]

    session.expire_all()
    assert session.get(Fixture, ids[(1, 1)]).status == "scheduled"

    response = _patch(
        client, tournament.id, ids[(1, 1)], status="completed", score_a=2, score_b=2, tiebreak_a=4, tiebreak_b=5
    )
    assert response.status_code == 200
    assert response.json()["fixture"]["winner_team_id"] == 3

    final = session.get(Fixture, ids[(2, 0)])
    session.refresh(final)
    assert final.team_b_id == 3


def test_final_becomes_ready_after_both_semis(client: TestClient, make_tournament):
    tournament = make_tournament(4)
    ids = _committed_bracket(client, tournament.id)

    _patch(client, tournament.id, ids[(1, 0)], status="completed", score_a=0, score_b=2)
    _patch(client, tournament.id, ids[(1, 1)], status="completed", score_a=1, score_b=0)

    rounds = client.get(f"/api/tournaments/{tournament.id}/bracket").json()["rounds"]
    assert rounds[0]["status"] == "completed"
    assert rounds[0]["completed_matches"] == 2
    final = rounds[1]["matches"][0]
    assert (final["slot_a"]["team_id"], final["slot_b"]["team_id"]) == (4, 2)
    assert rounds[1]["ready_for_activation"]

    response = client.post(f"/api/tournaments/{tournament.id}/rounds/2/activate")
    assert response.status_code == 200


def test_walkover_carries_winner_two_rounds(client: TestClient, session: Session, make_tournament):
    """6 teams: round 2 match 2 has a bye side, so round 1 match 3's winner goes straight to the final."""
    tournament = make_tournament(6)
    ids = _committed_bracket(client, tournament.id)

    response = _patch(client, tournament.id, ids[(1, 2)], status="completed", score_a=1, score_b=0)
    assert response.json()["advanced_count"] == 2

    walkover = session.get(Fixture, ids[(2, 1)])
    final = session.get(Fixture, ids[(3, 0)])
    session.refresh(walkover)
    session.refresh(final)
    assert walkover.status == "completed"
    assert walkover.winner_team_id == 3
    assert final.team_b_id == 3


def test_going_live_sets_started_at(client: TestClient, make_tournament):
    tournament = make_tournament(4)
    ids = _committed_bracket(client, tournament.id)

    response = _patch(client, tournament.id, ids[(1, 0)], status="live")
    assert response.status_code == 200
    assert response.json()["fixture"]["started_at"] is not None
    assert response.json()["advanced_count"] == 0


def test_completed_fixture_is_terminal(client: TestClient, make_tournament):
    tournament = make_tournament(4)
    ids = _committed_bracket(client, tournament.id)
    _patch(client, tournament.id, ids[(1, 0)], status="completed", score_a=3, score_b=1)

    assert _patch(client, tournament.id, ids[(1, 0)], status="live").status_code == 409
    assert _patch(client, tournament.id, ids[(1, 0)], score_a=0).status_code == 409


def test_unknown_status_rejected(client: TestClient, make_tournament):
    tournament = make_tournament(4)
    ids = _committed_bracket(client, tournament.id)
    assert _patch(client, tournament.id, ids[(1, 0)], status="abandoned").status_code == 422


def test_completion_needs_scores(client: TestClient, make_tournament):
    tournament = make_tournament(4)
    ids = _committed_bracket(client, tournament.id)
    assert _patch(client, tournament.id, ids[(1, 0)], status="completed").status_code == 422


def test_completion_needs_both_teams(client: TestClient, make_tournament):
    tournament = make_tournament(4)
    ids = _committed_bracket(client, tournament.id)
    response = _patch(client, tournament.id, ids[(2, 0)], status="completed", score_a=1, score_b=0)
    assert response.status_code == 409


def test_fixture_from_other_tournament_is_404(client: TestClient, make_tournament):
    first = make_tournament(4)
    second = make_tournament(2)
    ids = _committed_bracket(client, first.id)
    assert _patch(client, second.id, ids[(1, 0)], status="live").status_code == 404


def test_integrity_error_keeps_result(client: TestClient, session: Session, make_tournament):
    """A blocked advancement is reported in the body while the result stays recorded."""
    tournament = make_tournament(4)
    ids = _committed_bracket(client, tournament.id)

    # Final slot A already holds a team that did not come from semi-final 1
    final = session.get(Fixture, ids[(2, 0)])
    final.team_a_id = 2
    final.placeholder_side_a = "Team2"
    session.add(final)
    session.commit()

    response = _patch(client, tournament.id, ids[(1, 0)], status="completed", score_a=3, score_b=1)
    assert response.status_code == 200
    body = response.json()
    assert body["fixture"]["status"] == "completed"
    assert body["fixture"]["winner_team_id"] == 1
    assert body["advanced_count"] == 0
    assert body["advancement_error"]["kind"] == "BracketIntegrityError"
    assert body["advancement_error"]["state_changed"] is True

    # Repair the slot, then re-run advancement
    session.refresh(final)
    final.team_a_id = None
    final.placeholder_side_a = "Winner R1 M1"
    session.add(final)
    session.commit()

    response = client.post(f"/api/tournaments/{tournament.id}/runtime/fixtures/{ids[(1, 0)]}/advance")
    assert response.status_code == 200
    assert response.json()["advanced_count"] == 1
    assert response.json()["advancement_error"] is None
    session.refresh(final)
    assert final.team_a_id == 1


def test_advance_requires_completed_fixture(client: TestClient, make_tournament):
    tournament = make_tournament(4)
    ids = _committed_bracket(client, tournament.id)
    response = client.post(f"/api/tournaments/{tournament.id}/runtime/fixtures/{ids[(1, 0)]}/advance")
    assert response.status_code == 422


def test_advancement_is_idempotent(client: TestClient, session: Session, make_tournament):
    tournament = make_tournament(4)
    ids = _committed_bracket(client, tournament.id)
    _patch(client, tournament.id, ids[(1, 0)], status="completed", score_a=3, score_b=1)

    assert apply_advancement_for_completed_fixture(session, ids[(1, 0)]) == 0
    assert apply_advancement_for_completed_fixture(session, ids[(1, 1)]) == 0
    assert apply_advancement_for_completed_fixture(session, 9999) == 0


def test_deciding_the_final_completes_tournament(client: TestClient, make_tournament):
    tournament = make_tournament(4)
    ids = _committed_bracket(client, tournament.id)
    assert client.post(f"/api/tournaments/{tournament.id}/bracket/fixtures").status_code == 200

    _patch(client, tournament.id, ids[(1, 0)], status="completed", score_a=3, score_b=1)
    _patch(client, tournament.id, ids[(1, 1)], status="completed", score_a=0, score_b=2)
    summary = client.get(f"/api/tournaments/{tournament.id}").json()
    assert summary["status"] == "active"
    assert summary["winner_team_id"] is None

    response = _patch(client, tournament.id, ids[(2, 0)], status="completed", score_a=2, score_b=0)
    assert response.status_code == 200, response.text
    assert response.json()["fixture"]["winner_team_id"] == 1

    summary = client.get(f"/api/tournaments/{tournament.id}").json()
    assert summary["status"] == "completed"
    assert summary["winner_team_id"] == 1

    # A finished tournament keeps its bracket
    assert client.post(f"/api/tournaments/{tournament.id}/bracket/reset").status_code == 409
    assert client.post(f"/api/tournaments/{tournament.id}/bracket/fixtures").status_code == 409


def test_repairing_the_final_keeps_champion(client: TestClient, session: Session, make_tournament):
    tournament = make_tournament(2)
    ids = _committed_bracket(client, tournament.id)

    _patch(client, tournament.id, ids[(1, 0)], status="completed", score_a=0, score_b=1)
    assert apply_advancement_for_completed_fixture(session, ids[(1, 0)]) == 0

    summary = client.get(f"/api/tournaments/{tournament.id}").json()
    assert summary["status"] == "completed"
    assert summary["winner_team_id"] == 2

"""
Advancement: when a fixture is completed, fill the next round's slot with its winner.
Only team slots, placeholder text and walkover results of downstream fixtures change;
the completed fixture's own result is never touched.
"""
import logging
from datetime import datetime
from typing import Dict, List

from sqlmodel import Session

from fixturedesk.models.fixture import Fixture
from fixturedesk.models.tournament import Tournament
from fixturedesk.models.tournament_round import TournamentRound
from fixturedesk.schemas import MATCH_COMPLETED, BracketRound
from fixturedesk.services.bracket_errors import BracketIntegrityError
from fixturedesk.services.bracket_persistence import apply_match_to_fixture, load_bracket
from fixturedesk.services.bracket_state import propagate_winner

logger = logging.getLogger(__name__)


def _write_back(session: Session, rounds: List[BracketRound], rows: Dict[int, Fixture]) -> int:
    updated_count = 0
    for round_ in rounds:
        for match in round_.matches:
            row = rows.get(match.id)
            if row is not None and apply_match_to_fixture(match, row):
                session.add(row)
                updated_count += 1
    return updated_count


def _record_champion(session: Session, tournament_id: int, rounds: List[BracketRound]) -> bool:
    """Mark the tournament completed once its final has a winner. Returns True when the row changed."""
    if not rounds or len(rounds[-1].matches) != 1:
        return False
    final = rounds[-1].matches[0]
    if final.status != MATCH_COMPLETED or final.winner_team_id is None:
        return False

    tournament = session.get(Tournament, tournament_id)
    if tournament is None:
        return False
    if tournament.status == "completed" and tournament.winner_team_id == final.winner_team_id:
        return False

    tournament.status = "completed"
    tournament.winner_team_id = final.winner_team_id
    tournament.updated_at = datetime.utcnow()
    session.add(tournament)
    logger.info("Tournament %s completed; champion is team %s", tournament_id, final.winner_team_id)
    return True


def apply_advancement_for_completed_fixture(session: Session, fixture_id: int) -> int:
    """
    Given a completed fixture, advance its winner downstream (through any
    walkovers). Returns the count of downstream fixtures updated. A decided
    final completes the tournament and records its champion.

    Idempotent: calling twice produces the same DB state. On a broken feeding
    relationship the fixtures updated so far are kept and BracketIntegrityError
    is raised for the caller to report.
    """
    fixture = session.get(Fixture, fixture_id)
    if not fixture:
        return 0
    if fixture.status != MATCH_COMPLETED or fixture.winner_team_id is None:
        return 0

    round_row = session.get(TournamentRound, fixture.round_id)
    if round_row is None:
        raise BracketIntegrityError(f"Fixture {fixture_id} belongs to no round", bracket_position=fixture.bracket_position)

    rounds, rows = load_bracket(session, fixture.tournament_id)
    try:
        propagate_winner(rounds, round_row.round_number, fixture.bracket_position)
    except BracketIntegrityError as exc:
        updated_count = _write_back(session, rounds, rows)
        session.commit()
        logger.warning(
            "Advancement from fixture %s stopped after %d updates: %s", fixture_id, updated_count, exc.message
        )
        raise

    updated_count = _write_back(session, rounds, rows)
    champion_decided = _record_champion(session, fixture.tournament_id, rounds)
    if updated_count or champion_decided:
        session.commit()
    if updated_count:
        logger.info("Advanced winner of fixture %s into %d fixtures", fixture_id, updated_count)
    return updated_count

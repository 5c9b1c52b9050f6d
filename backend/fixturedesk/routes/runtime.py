"""
Runtime: fixture status + scores. Bracket structure is not edited here.
When a fixture is completed the winner is decided by score (tiebreak on level
scores) and the advancement service fills the next round's slot.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session

from fixturedesk.database import get_session
from fixturedesk.models.fixture import Fixture
from fixturedesk.schemas import MATCH_COMPLETED, MATCH_LIVE
from fixturedesk.services.advancement_service import apply_advancement_for_completed_fixture
from fixturedesk.services.bracket_errors import (
    BracketIntegrityError,
    BracketValidationError,
    InvalidState,
    UnresolvedDraw,
)
from fixturedesk.services.bracket_state import decide_winner, validate_match_transition
from fixturedesk.utils.tournament_guards import get_tournament_or_404

router = APIRouter()


class FixtureRuntimeUpdate(BaseModel):
    status: Optional[str] = None
    score_a: Optional[int] = None
    score_b: Optional[int] = None
    tiebreak_a: Optional[int] = None
    tiebreak_b: Optional[int] = None


class FixtureRuntimeState(BaseModel):
    id: int
    tournament_id: int
    round_id: int
    bracket_position: int
    team_a_id: Optional[int] = None
    team_b_id: Optional[int] = None
    status: str
    score_a: Optional[int] = None
    score_b: Optional[int] = None
    tiebreak_a: Optional[int] = None
    tiebreak_b: Optional[int] = None
    winner_team_id: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FixtureRuntimeUpdateResponse(BaseModel):
    fixture: FixtureRuntimeState
    advanced_count: int = 0
    # Set when the result was recorded but could not be carried into the next round
    advancement_error: Optional[Dict[str, Any]] = None


def _get_fixture_or_404(session: Session, tournament_id: int, fixture_id: int) -> Fixture:
    fixture = session.get(Fixture, fixture_id)
    if not fixture or fixture.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Fixture not found")
    return fixture


def _advance(session: Session, fixture_id: int) -> FixtureRuntimeUpdateResponse:
    advanced_count = 0
    advancement_error = None
    try:
        advanced_count = apply_advancement_for_completed_fixture(session, fixture_id)
    except BracketIntegrityError as exc:
        advancement_error = exc.to_dict()
    fixture = session.get(Fixture, fixture_id)
    session.refresh(fixture)
    return FixtureRuntimeUpdateResponse(
        fixture=FixtureRuntimeState.model_validate(fixture),
        advanced_count=advanced_count,
        advancement_error=advancement_error,
    )


@router.patch(
    "/tournaments/{tournament_id}/runtime/fixtures/{fixture_id}",
    response_model=FixtureRuntimeUpdateResponse,
)
def update_fixture_runtime(
    tournament_id: int,
    fixture_id: int,
    payload: FixtureRuntimeUpdate,
    session: Session = Depends(get_session),
) -> FixtureRuntimeUpdateResponse:
    """Update fixture status/scores. Completing a fixture decides the winner and advances it."""
    get_tournament_or_404(session, tournament_id)
    fixture = _get_fixture_or_404(session, tournament_id, fixture_id)

    current = fixture.status
    new_status = payload.status or current
    try:
        validate_match_transition(current, new_status)
    except InvalidState as exc:
        raise HTTPException(status_code=409, detail=exc.message)
    except BracketValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.message)

    for name in ("score_a", "score_b", "tiebreak_a", "tiebreak_b"):
        value = getattr(payload, name)
        if value is not None:
            if current == MATCH_COMPLETED:
                raise HTTPException(status_code=409, detail="Completed fixture results cannot be changed")
            setattr(fixture, name, value)

    if new_status == MATCH_COMPLETED and current != MATCH_COMPLETED:
        if fixture.team_a_id is None or fixture.team_b_id is None:
            raise HTTPException(status_code=409, detail="Both teams must be known before completing a fixture")
        try:
            winner_index = decide_winner(fixture.score_a, fixture.score_b, fixture.tiebreak_a, fixture.tiebreak_b)
        except UnresolvedDraw as exc:
            raise HTTPException(status_code=409, detail=f"UNRESOLVED_DRAW: {exc.message}")
        except BracketValidationError as exc:
            raise HTTPException(status_code=422, detail=exc.message)
        fixture.winner_team_id = fixture.team_a_id if winner_index == 0 else fixture.team_b_id
        fixture.completed_at = datetime.utcnow()
    elif new_status == MATCH_LIVE and fixture.started_at is None:
        fixture.started_at = datetime.utcnow()

    fixture.status = new_status
    fixture.updated_at = datetime.utcnow()
    session.add(fixture)
    session.commit()
    session.refresh(fixture)

    if fixture.status == MATCH_COMPLETED and fixture.winner_team_id is not None:
        return _advance(session, fixture_id)

    return FixtureRuntimeUpdateResponse(fixture=FixtureRuntimeState.model_validate(fixture))


@router.post(
    "/tournaments/{tournament_id}/runtime/fixtures/{fixture_id}/advance",
    response_model=FixtureRuntimeUpdateResponse,
)
def advance_fixture(
    tournament_id: int,
    fixture_id: int,
    session: Session = Depends(get_session),
) -> FixtureRuntimeUpdateResponse:
    """Re-run advancement for a completed fixture (repair). Requires a winner."""
    get_tournament_or_404(session, tournament_id)
    fixture = _get_fixture_or_404(session, tournament_id, fixture_id)

    if fixture.status != MATCH_COMPLETED:
        raise HTTPException(status_code=422, detail="Fixture must be completed to run advancement")
    if fixture.winner_team_id is None:
        raise HTTPException(status_code=422, detail="Fixture must have a winner to run advancement")

    return _advance(session, fixture_id)

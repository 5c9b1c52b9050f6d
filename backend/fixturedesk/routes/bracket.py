"""
Bracket persistence API: generate (pure), save, create final fixtures, reset,
read, and round activation.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from fixturedesk.database import get_session
from fixturedesk.models.tournament_round import TournamentRound
from fixturedesk.schemas import (
    ROUND_ACTIVE,
    ROUND_PENDING,
    BracketResponse,
    BracketRound,
    CreateFixturesResponse,
    GenerateBracketResponse,
    ResetBracketResponse,
    SaveBracketsRequest,
    SaveBracketsResponse,
)
from fixturedesk.services.bracket_errors import InsufficientTeams
from fixturedesk.services.bracket_generator import generate_bracket_rounds
from fixturedesk.services.bracket_persistence import (
    finalize_fixtures,
    get_seeded_teams,
    load_bracket,
    save_bracket_rounds,
    wipe_bracket,
)
from fixturedesk.utils.tournament_guards import (
    get_tournament_or_404,
    require_draft_tournament,
    require_resettable_tournament,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/tournaments/{tournament_id}/bracket/generate", response_model=GenerateBracketResponse)
def generate_bracket(tournament_id: int, session: Session = Depends(get_session)):
    """Compute a bracket from the seeded teams. Nothing is stored."""
    tournament = require_draft_tournament(session, tournament_id)
    if tournament.tournament_type != "single_elimination":
        raise HTTPException(
            status_code=400,
            detail="Only single elimination tournaments are supported for bracket generation",
        )

    teams = get_seeded_teams(session, tournament_id)
    try:
        rounds = generate_bracket_rounds(teams, tournament.start_date)
    except InsufficientTeams as exc:
        raise HTTPException(status_code=422, detail=f"INSUFFICIENT_TEAMS: {exc.message}")
    return GenerateBracketResponse(rounds=rounds)


@router.post("/tournaments/{tournament_id}/bracket/save", response_model=SaveBracketsResponse)
def save_brackets(tournament_id: int, payload: SaveBracketsRequest, session: Session = Depends(get_session)):
    """Persist a draft bracket as rounds and fixtures (create or update)."""
    tournament = require_draft_tournament(session, tournament_id)

    numbers = [r.round_number for r in payload.rounds]
    if len(numbers) != len(set(numbers)):
        raise HTTPException(status_code=422, detail="Round numbers must be unique")
    for round_in in payload.rounds:
        positions = [m.bracket_position for m in round_in.matches]
        if len(positions) != len(set(positions)):
            raise HTTPException(
                status_code=422,
                detail=f"Bracket positions in round {round_in.round_number} must be unique",
            )

    created, updated = save_bracket_rounds(session, tournament, payload.rounds)
    return SaveBracketsResponse(created_count=created, updated_count=updated)


@router.post("/tournaments/{tournament_id}/bracket/fixtures", response_model=CreateFixturesResponse)
def create_fixtures(tournament_id: int, session: Session = Depends(get_session)):
    """Finalize saved bracket fixtures. Safe to call repeatedly."""
    tournament = get_tournament_or_404(session, tournament_id)
    if tournament.status == "completed":
        raise HTTPException(status_code=409, detail="TOURNAMENT_COMPLETED: Tournament is already completed")

    created, total = finalize_fixtures(session, tournament)
    return CreateFixturesResponse(created_count=created, finalized_total=total)


@router.post("/tournaments/{tournament_id}/bracket/reset", response_model=ResetBracketResponse)
def reset_bracket(tournament_id: int, session: Session = Depends(get_session)):
    """Delete all rounds and fixtures and return the tournament to draft."""
    tournament = require_resettable_tournament(session, tournament_id)
    deleted_fixtures, deleted_rounds = wipe_bracket(session, tournament)
    return ResetBracketResponse(deleted_fixtures=deleted_fixtures, deleted_rounds=deleted_rounds)


@router.get("/tournaments/{tournament_id}/bracket", response_model=BracketResponse)
def get_bracket(tournament_id: int, session: Session = Depends(get_session)):
    """Persisted rounds with fixtures, derived round status and activation readiness."""
    get_tournament_or_404(session, tournament_id)
    rounds, _rows = load_bracket(session, tournament_id)
    return BracketResponse(tournament_id=tournament_id, rounds=rounds)


@router.post("/tournaments/{tournament_id}/rounds/{round_number}/activate", response_model=BracketRound)
def activate_round(tournament_id: int, round_number: int, session: Session = Depends(get_session)):
    """Move a round pending -> active once every fixture knows both teams."""
    get_tournament_or_404(session, tournament_id)
    round_row = session.exec(
        select(TournamentRound).where(
            TournamentRound.tournament_id == tournament_id,
            TournamentRound.round_number == round_number,
        )
    ).first()
    if not round_row:
        raise HTTPException(status_code=404, detail="Round not found")

    rounds, _rows = load_bracket(session, tournament_id)
    current = next(r for r in rounds if r.round_number == round_number)

    if current.status == ROUND_PENDING:
        if not current.ready_for_activation:
            raise HTTPException(
                status_code=409,
                detail=f"ROUND_NOT_READY: Round {round_number} still has fixtures without both teams",
            )
        round_row.status = ROUND_ACTIVE
        session.add(round_row)
        session.commit()
        logger.info("Activated round %d of tournament %s", round_number, tournament_id)
        current.status = ROUND_ACTIVE

    return current

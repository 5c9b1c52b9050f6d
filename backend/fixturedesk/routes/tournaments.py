from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlmodel import Session, select

from fixturedesk.database import get_session
from fixturedesk.models.team import Team
from fixturedesk.models.tournament import Tournament
from fixturedesk.models.tournament_team import TournamentTeam
from fixturedesk.schemas import SeededTeam, TournamentSummary
from fixturedesk.services.bracket_persistence import get_seeded_teams
from fixturedesk.utils.tournament_guards import get_tournament_or_404

router = APIRouter()

TOURNAMENT_STATUSES = ("draft", "registration", "active", "completed")
TOURNAMENT_TYPES = ("single_elimination", "round_robin", "swiss")


class TournamentCreate(BaseModel):
    name: str
    sport: Optional[str] = None
    tournament_type: str = "single_elimination"
    start_date: Optional[date] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("tournament_type")
    @classmethod
    def validate_type(cls, v):
        if v not in TOURNAMENT_TYPES:
            raise ValueError(f"tournament_type must be one of {', '.join(TOURNAMENT_TYPES)}")
        return v


class TournamentUpdate(BaseModel):
    name: Optional[str] = None
    sport: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[date] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v is not None and v not in TOURNAMENT_STATUSES:
            raise ValueError(f"status must be one of {', '.join(TOURNAMENT_STATUSES)}")
        return v


class TournamentTeamCreate(BaseModel):
    team_id: int
    seed: Optional[int] = None

    @field_validator("seed")
    @classmethod
    def validate_seed(cls, v):
        if v is not None and v < 1:
            raise ValueError("seed must be >= 1")
        return v


def _summary(session: Session, tournament: Tournament) -> TournamentSummary:
    return TournamentSummary(
        id=tournament.id,
        name=tournament.name,
        sport=tournament.sport,
        tournament_type=tournament.tournament_type,
        status=tournament.status,
        start_date=tournament.start_date,
        winner_team_id=tournament.winner_team_id,
        teams=get_seeded_teams(session, tournament.id),
    )


@router.get("/tournaments", response_model=List[TournamentSummary])
def list_tournaments(session: Session = Depends(get_session)):
    """List all tournaments"""
    tournaments = session.exec(select(Tournament).order_by(Tournament.id)).all()
    return [_summary(session, t) for t in tournaments]


@router.post("/tournaments", response_model=TournamentSummary, status_code=201)
def create_tournament(tournament_data: TournamentCreate, session: Session = Depends(get_session)):
    """Create a new tournament in draft status"""
    tournament = Tournament(**tournament_data.model_dump())
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return _summary(session, tournament)


@router.get("/tournaments/{tournament_id}", response_model=TournamentSummary)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Get a tournament with its seeded teams"""
    tournament = get_tournament_or_404(session, tournament_id)
    return _summary(session, tournament)


@router.patch("/tournaments/{tournament_id}", response_model=TournamentSummary)
def update_tournament(tournament_id: int, tournament_data: TournamentUpdate, session: Session = Depends(get_session)):
    """Update tournament details or status"""
    tournament = get_tournament_or_404(session, tournament_id)

    for key, value in tournament_data.model_dump(exclude_unset=True).items():
        setattr(tournament, key, value)
    tournament.updated_at = datetime.utcnow()

    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return _summary(session, tournament)


@router.post("/tournaments/{tournament_id}/teams", response_model=SeededTeam, status_code=201)
def register_team(tournament_id: int, payload: TournamentTeamCreate, session: Session = Depends(get_session)):
    """Register a team (optionally seeded) for a tournament"""
    tournament = get_tournament_or_404(session, tournament_id)
    if tournament.status not in ("draft", "registration"):
        raise HTTPException(status_code=409, detail="Teams can only be registered before the tournament starts")

    team = session.get(Team, payload.team_id)
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")

    existing = session.exec(
        select(TournamentTeam).where(
            TournamentTeam.tournament_id == tournament_id, TournamentTeam.team_id == payload.team_id
        )
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail="Team is already registered for this tournament")

    if payload.seed is not None:
        seed_taken = session.exec(
            select(TournamentTeam).where(
                TournamentTeam.tournament_id == tournament_id, TournamentTeam.seed == payload.seed
            )
        ).first()
        if seed_taken:
            raise HTTPException(status_code=409, detail=f"Seed {payload.seed} is already taken")

    registration = TournamentTeam(tournament_id=tournament_id, team_id=team.id, seed=payload.seed)
    session.add(registration)
    session.commit()
    return SeededTeam(team_id=team.id, name=team.name, seed=payload.seed)

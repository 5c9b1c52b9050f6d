from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlmodel import Session, select

from fixturedesk.database import get_session
from fixturedesk.models.team import Team

router = APIRouter()


class TeamCreate(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()


class TeamResponse(BaseModel):
    id: int
    name: str
    created_at: datetime

    class Config:
        from_attributes = True


@router.get("/teams", response_model=List[TeamResponse])
def list_teams(session: Session = Depends(get_session)):
    """List all teams"""
    return session.exec(select(Team).order_by(Team.id)).all()


@router.post("/teams", response_model=TeamResponse, status_code=201)
def create_team(team_data: TeamCreate, session: Session = Depends(get_session)):
    """Create a team"""
    team = Team(name=team_data.name)
    session.add(team)
    session.commit()
    session.refresh(team)
    return team


@router.get("/teams/{team_id}", response_model=TeamResponse)
def get_team(team_id: int, session: Session = Depends(get_session)):
    """Get a team by ID"""
    team = session.get(Team, team_id)
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    return team

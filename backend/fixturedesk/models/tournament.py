from datetime import date, datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from fixturedesk.models.fixture import Fixture
    from fixturedesk.models.tournament_round import TournamentRound
    from fixturedesk.models.tournament_team import TournamentTeam


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    sport: Optional[str] = None
    tournament_type: str = Field(default="single_elimination")  # only single_elimination has brackets
    status: str = Field(default="draft")  # "draft" | "registration" | "active" | "completed"
    start_date: Optional[date] = None
    # Set when the final is decided; cleared by a bracket reset
    winner_team_id: Optional[int] = Field(default=None, foreign_key="team.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    registrations: List["TournamentTeam"] = Relationship(back_populates="tournament")
    rounds: List["TournamentRound"] = Relationship(back_populates="tournament")
    fixtures: List["Fixture"] = Relationship(back_populates="tournament")

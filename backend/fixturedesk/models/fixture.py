from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from fixturedesk.models.team import Team
    from fixturedesk.models.tournament import Tournament
    from fixturedesk.models.tournament_round import TournamentRound

BYE_PLACEHOLDER = "BYE"


class Fixture(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("round_id", "bracket_position", name="uq_round_bracket_position"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    round_id: int = Field(foreign_key="tournamentround.id")
    bracket_position: int  # 0-based index within the round

    # Team assignments (nullable - populated by seeding or advancement)
    team_a_id: Optional[int] = Field(default=None, foreign_key="team.id")
    team_b_id: Optional[int] = Field(default=None, foreign_key="team.id")

    # Placeholder text (always present, used when team ids are null or for display)
    placeholder_side_a: str = Field(default="TBD")
    placeholder_side_b: str = Field(default="TBD")

    venue: Optional[str] = None
    scheduled_at: Optional[datetime] = None

    status: str = Field(default="scheduled")  # scheduled | live | completed | cancelled | postponed
    score_a: Optional[int] = None
    score_b: Optional[int] = None
    tiebreak_a: Optional[int] = None
    tiebreak_b: Optional[int] = None
    winner_team_id: Optional[int] = Field(default=None, foreign_key="team.id")

    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)
    # Set by final fixture creation; non-null means independently managed
    finalized_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="fixtures")
    round: "TournamentRound" = Relationship(back_populates="fixtures")
    team_a: Optional["Team"] = Relationship(sa_relationship_kwargs={"foreign_keys": "Fixture.team_a_id"})
    team_b: Optional["Team"] = Relationship(sa_relationship_kwargs={"foreign_keys": "Fixture.team_b_id"})

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from fixturedesk.models.team import Team
    from fixturedesk.models.tournament import Tournament


class TournamentTeam(SQLModel, table=True):
    __table_args__ = (
        SAUniqueConstraint("tournament_id", "team_id", name="uq_tournament_team"),
        # Enforce unique seeds within a tournament (where seed is not null)
        SAUniqueConstraint("tournament_id", "seed", name="uq_tournament_seed"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    team_id: int = Field(foreign_key="team.id")
    seed: Optional[int] = Field(default=None)  # 1-based seed (1=highest)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="registrations")
    team: "Team" = Relationship(back_populates="registrations")

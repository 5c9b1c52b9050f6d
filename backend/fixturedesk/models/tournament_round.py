from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from fixturedesk.models.fixture import Fixture
    from fixturedesk.models.tournament import Tournament


class TournamentRound(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "round_number", name="uq_tournament_round_number"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    round_number: int  # 1-based
    round_name: str
    total_matches: int
    # Only the pending -> active flip is stored; "completed" is derived from fixtures
    status: str = Field(default="pending")  # "pending" | "active"
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="rounds")
    fixtures: List["Fixture"] = Relationship(back_populates="round")

"""
Bracket schemas shared by the API and the operator-side draft engine.

The same round/match/slot shapes travel in generate and save payloads, come
back from the persisted bracket read, and are what the durable draft cache
stores as JSON.
"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from fixturedesk.models.fixture import BYE_PLACEHOLDER

MATCH_SCHEDULED = "scheduled"
MATCH_LIVE = "live"
MATCH_COMPLETED = "completed"
MATCH_CANCELLED = "cancelled"
MATCH_POSTPONED = "postponed"

ROUND_PENDING = "pending"
ROUND_ACTIVE = "active"
ROUND_COMPLETED = "completed"


class BracketSlot(BaseModel):
    """One side of a match: a team, a placeholder fed by an earlier match, or a bye."""

    team_id: Optional[int] = None
    team_name: Optional[str] = None
    source_round: Optional[int] = None  # round_number of the feeding match
    source_match: Optional[int] = None  # bracket_position of the feeding match
    bye: bool = False

    @classmethod
    def for_team(cls, team_id: int, team_name: str, source_round: Optional[int] = None,
                 source_match: Optional[int] = None) -> "BracketSlot":
        return cls(team_id=team_id, team_name=team_name, source_round=source_round, source_match=source_match)

    @classmethod
    def placeholder(cls, source_round: int, source_match: int) -> "BracketSlot":
        return cls(source_round=source_round, source_match=source_match)

    @classmethod
    def bye_slot(cls) -> "BracketSlot":
        return cls(bye=True)

    @property
    def resolved(self) -> bool:
        return self.team_id is not None

    @property
    def label(self) -> str:
        if self.resolved:
            return self.team_name or f"Team {self.team_id}"
        if self.bye:
            return BYE_PLACEHOLDER
        if self.source_round is not None and self.source_match is not None:
            return f"Winner R{self.source_round} M{self.source_match + 1}"
        return "TBD"


class BracketMatch(BaseModel):
    id: Optional[int] = None  # null until persisted
    bracket_position: int = Field(..., ge=0)
    slot_a: BracketSlot = Field(default_factory=BracketSlot)
    slot_b: BracketSlot = Field(default_factory=BracketSlot)
    venue: str = ""
    scheduled_at: Optional[datetime] = None
    status: str = MATCH_SCHEDULED
    score_a: Optional[int] = None
    score_b: Optional[int] = None
    tiebreak_a: Optional[int] = None
    tiebreak_b: Optional[int] = None
    winner_team_id: Optional[int] = None

    def slot(self, index: int) -> BracketSlot:
        return self.slot_a if index == 0 else self.slot_b

    def set_slot(self, index: int, slot: BracketSlot) -> None:
        if index == 0:
            self.slot_a = slot
        else:
            self.slot_b = slot

    @property
    def is_walkover(self) -> bool:
        return self.slot_a.bye != self.slot_b.bye


class BracketRound(BaseModel):
    id: Optional[int] = None  # null until persisted
    round_number: int = Field(..., ge=1)
    round_name: str
    total_matches: int
    status: str = ROUND_PENDING
    completed_matches: int = 0
    ready_for_activation: bool = False
    matches: List[BracketMatch] = Field(default_factory=list)


class SeededTeam(BaseModel):
    team_id: int
    name: str
    seed: Optional[int] = None


class TournamentSummary(BaseModel):
    id: int
    name: str
    sport: Optional[str] = None
    tournament_type: str
    status: str
    start_date: Optional[date] = None
    winner_team_id: Optional[int] = None
    teams: List[SeededTeam] = Field(default_factory=list)


class GenerateBracketResponse(BaseModel):
    rounds: List[BracketRound]


class SaveBracketsRequest(BaseModel):
    rounds: List[BracketRound]


class SaveBracketsResponse(BaseModel):
    created_count: int
    updated_count: int


class CreateFixturesResponse(BaseModel):
    created_count: int
    finalized_total: int


class ResetBracketResponse(BaseModel):
    deleted_fixtures: int
    deleted_rounds: int


class BracketResponse(BaseModel):
    tournament_id: int
    rounds: List[BracketRound]

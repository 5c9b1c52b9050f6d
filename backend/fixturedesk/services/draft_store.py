"""
Bracket draft store: the operator's editable, not-yet-authoritative bracket.

Flags (generated / committed / temp_saved / last_saved) form a small value
object whose transitions are only reachable through the named methods below;
the editor, reset controller and reconciliation drive them.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from fixturedesk.schemas import BracketMatch, BracketRound
from fixturedesk.services.bracket_errors import BracketValidationError


class DraftFlags(BaseModel):
    model_config = ConfigDict(frozen=True)

    generated: bool = False
    committed: bool = False  # monotonic; only a reset clears it
    temp_saved: bool = False
    last_saved: Optional[datetime] = None

    def after_generate(self) -> "DraftFlags":
        return DraftFlags(generated=True, committed=self.committed)

    def after_temp_save(self, saved_at: datetime) -> "DraftFlags":
        return self.model_copy(update={"temp_saved": True, "last_saved": saved_at})

    def after_commit(self) -> "DraftFlags":
        return self.model_copy(update={"committed": True, "temp_saved": False})

    def after_reset(self) -> "DraftFlags":
        return DraftFlags()

    @classmethod
    def from_persisted(cls) -> "DraftFlags":
        return cls(generated=True, committed=True)


class BracketDraft(BaseModel):
    tournament_id: int
    rounds: List[BracketRound] = Field(default_factory=list)
    flags: DraftFlags = Field(default_factory=DraftFlags)

    @classmethod
    def empty(cls, tournament_id: int) -> "BracketDraft":
        return cls(tournament_id=tournament_id)

    @property
    def is_empty(self) -> bool:
        return not self.rounds and not self.flags.generated

    def find_round(self, round_number: int) -> BracketRound:
        for round_ in self.rounds:
            if round_.round_number == round_number:
                return round_
        raise BracketValidationError(f"Round {round_number} is not part of this bracket")

    def find_match(self, round_number: int, bracket_position: int) -> BracketMatch:
        round_ = self.find_round(round_number)
        for match in round_.matches:
            if match.bracket_position == bracket_position:
                return match
        raise BracketValidationError(f"Round {round_number} has no match at position {bracket_position}")

    def to_cache_payload(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_cache_payload(cls, payload: str) -> "BracketDraft":
        return cls.model_validate_json(payload)


class DraftStore:
    """Holds the in-memory draft for one tournament view."""

    def __init__(self, tournament_id: int):
        self.tournament_id = tournament_id
        self._draft = BracketDraft.empty(tournament_id)

    @property
    def draft(self) -> BracketDraft:
        return self._draft

    @property
    def flags(self) -> DraftFlags:
        return self._draft.flags

    def replace(self, draft: BracketDraft) -> None:
        if draft.tournament_id != self.tournament_id:
            raise BracketValidationError(
                f"Draft for tournament {draft.tournament_id} cannot be loaded into tournament {self.tournament_id}"
            )
        self._draft = draft

    def start_generated(self, rounds: List[BracketRound]) -> BracketDraft:
        self._draft = BracketDraft(
            tournament_id=self.tournament_id,
            rounds=rounds,
            flags=self._draft.flags.after_generate(),
        )
        return self._draft

    def mark_temp_saved(self, saved_at: datetime) -> None:
        self._draft.flags = self._draft.flags.after_temp_save(saved_at)

    def mark_committed(self) -> None:
        self._draft.flags = self._draft.flags.after_commit()

    def clear(self) -> None:
        self._draft = BracketDraft(tournament_id=self.tournament_id, flags=self._draft.flags.after_reset())

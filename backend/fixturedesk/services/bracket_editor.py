"""
Bracket editor: draft mutations, temporary save, commit and final fixture creation.

Validation happens before any cache or network effect, so a rejected call
changes nothing. Temporary save and commit for the same tournament are
serialized so a commit cannot be overtaken by a late cache write.
"""
import logging
import threading
import weakref
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from fixturedesk.schemas import BracketSlot
from fixturedesk.services.bracket_client import BracketApiClient
from fixturedesk.services.bracket_errors import (
    BracketValidationError,
    InvalidState,
    ResetInProgress,
    StaleCommit,
)
from fixturedesk.services.bracket_events import InvalidationBus
from fixturedesk.services.draft_cache import DraftCache
from fixturedesk.services.draft_store import DraftStore

logger = logging.getLogger(__name__)

# A lock lives as long as someone holds or waits on it
_locks: "weakref.WeakValueDictionary[int, threading.Lock]" = weakref.WeakValueDictionary()
_locks_guard = threading.Lock()


def tournament_lock(tournament_id: int) -> threading.Lock:
    with _locks_guard:
        lock = _locks.get(tournament_id)
        if lock is None:
            lock = _locks[tournament_id] = threading.Lock()
        return lock


@dataclass
class CommitResult:
    created_count: int
    updated_count: int


@dataclass
class FinalizeResult:
    created_count: int
    already_created: bool


class BracketEditor:
    def __init__(self, store: DraftStore, api: BracketApiClient, cache: DraftCache, bus: InvalidationBus):
        self.store = store
        self.api = api
        self.cache = cache
        self.bus = bus

    @property
    def tournament_id(self) -> int:
        return self.store.tournament_id

    def _require_editable(self) -> None:
        flags = self.store.flags
        if not flags.generated:
            raise InvalidState("Generate a bracket before editing it")
        if flags.committed:
            raise InvalidState("Bracket is already saved as fixtures; reset it to make changes")

    def set_slot(self, round_number: int, bracket_position: int, slot_index: int,
                 slot: Optional[BracketSlot]) -> None:
        """Overwrite one side of a draft match. ``None`` clears the side."""
        self._require_editable()
        if slot_index not in (0, 1):
            raise BracketValidationError(f"Slot index must be 0 or 1, got {slot_index}")
        match = self.store.draft.find_match(round_number, bracket_position)
        match.set_slot(slot_index, slot if slot is not None else BracketSlot())

    def set_schedule(self, round_number: int, bracket_position: int, venue: Optional[str] = None,
                     scheduled_at: Optional[datetime] = None) -> None:
        self._require_editable()
        match = self.store.draft.find_match(round_number, bracket_position)
        if venue is not None:
            match.venue = venue
        if scheduled_at is not None:
            match.scheduled_at = scheduled_at

    def save_temporarily(self) -> datetime:
        """Write the whole draft to the durable cache. Returns the save time."""
        with tournament_lock(self.tournament_id):
            if self.cache.is_reset_pending(self.tournament_id):
                raise ResetInProgress("Cannot save temporarily after a reset; generate a new bracket first")
            if not self.store.flags.generated:
                raise InvalidState("Nothing to save; generate a bracket first")
            # a cached snapshot would outrank the server's bracket on every load
            if self.store.flags.committed:
                raise InvalidState("Bracket is already saved as fixtures; there is no draft to keep")

            saved_at = datetime.now(timezone.utc)
            self.store.mark_temp_saved(saved_at)
            self.cache.store_draft(self.store.draft)
        logger.info("Saved bracket draft for tournament %s to cache", self.tournament_id)
        return saved_at

    def commit(self) -> CommitResult:
        """Persist the draft as the tournament's fixtures."""
        with tournament_lock(self.tournament_id):
            if not self.store.flags.generated:
                raise InvalidState("Nothing to commit; generate a bracket first")

            result = self.api.save_brackets(self.tournament_id, self.store.draft.rounds)
            if result.created_count == 0 and result.updated_count == 0:
                logger.warning("Commit for tournament %s stored no fixtures", self.tournament_id)
                raise StaleCommit(result.created_count, result.updated_count)

            self.store.mark_committed()
            self.cache.drop_draft(self.tournament_id)
            self.cache.clear_reset(self.tournament_id)

        logger.info(
            "Committed bracket for tournament %s (%d created, %d updated)",
            self.tournament_id,
            result.created_count,
            result.updated_count,
        )
        self.bus.publish(self.tournament_id)
        return CommitResult(created_count=result.created_count, updated_count=result.updated_count)

    def create_final_fixtures(self) -> FinalizeResult:
        """Turn committed bracket matches into independently managed fixtures. Idempotent."""
        if not self.store.flags.committed:
            raise InvalidState("Commit the bracket before creating final fixtures")

        result = self.api.create_fixtures(self.tournament_id)
        already_created = result.created_count == 0 and result.finalized_total > 0
        if result.created_count > 0:
            logger.info("Created %d final fixtures for tournament %s", result.created_count, self.tournament_id)
            self.bus.publish(self.tournament_id)
        return FinalizeResult(created_count=result.created_count, already_created=already_created)

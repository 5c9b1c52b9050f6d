"""
Reconciliation: decide which source materializes the bracket a view shows.

Precedence, first match wins:
  1. reset sentinel          -> empty draft (cache and store are not consulted)
  2. durable cache entry     -> cached draft, flags trusted as stored
  3. persisted rounds with at least one resolved slot -> committed draft
  4. otherwise               -> empty draft
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from fixturedesk.schemas import BracketRound
from fixturedesk.services.bracket_client import BracketApiClient
from fixturedesk.services.bracket_errors import PersistenceFailure
from fixturedesk.services.bracket_events import InvalidationBus, Subscription
from fixturedesk.services.draft_cache import DraftCache
from fixturedesk.services.draft_store import BracketDraft, DraftFlags, DraftStore

logger = logging.getLogger(__name__)


class DraftSource(str, Enum):
    RESET = "reset"
    CACHE = "cache"
    PERSISTED = "persisted"
    EMPTY = "empty"


def has_resolved_slot(rounds: Optional[Sequence[BracketRound]]) -> bool:
    """True when any persisted match names a real team (not a placeholder or bye)."""
    if not rounds:
        return False
    return any(m.slot_a.resolved or m.slot_b.resolved for r in rounds for m in r.matches)


def resolve_draft_source(reset_pending: bool, has_cached_draft: bool, persisted_has_teams: bool) -> DraftSource:
    if reset_pending:
        return DraftSource.RESET
    if has_cached_draft:
        return DraftSource.CACHE
    if persisted_has_teams:
        return DraftSource.PERSISTED
    return DraftSource.EMPTY


@dataclass
class LoadResult:
    draft: BracketDraft
    source: DraftSource
    warnings: List[str] = field(default_factory=list)


class ReconciliationController:
    def __init__(self, store: DraftStore, api: BracketApiClient, cache: DraftCache):
        self.store = store
        self.api = api
        self.cache = cache
        self.last_result: Optional[LoadResult] = None
        self._subscription: Optional[Subscription] = None

    @property
    def tournament_id(self) -> int:
        return self.store.tournament_id

    def load(self) -> LoadResult:
        tournament_id = self.tournament_id
        warnings: List[str] = []

        reset_pending = self.cache.is_reset_pending(tournament_id)
        cached = None if reset_pending else self.cache.load_draft(tournament_id)

        persisted: Optional[List[BracketRound]] = None
        if not reset_pending and cached is None:
            try:
                persisted = self.api.get_bracket(tournament_id)
            except PersistenceFailure as exc:
                logger.warning("Could not refresh bracket for tournament %s: %s", tournament_id, exc)
                warnings.append(f"Bracket could not be refreshed from the server: {exc.message}")

        source = resolve_draft_source(reset_pending, cached is not None, has_resolved_slot(persisted))
        if source == DraftSource.CACHE:
            draft = cached
        elif source == DraftSource.PERSISTED:
            draft = BracketDraft(tournament_id=tournament_id, rounds=persisted, flags=DraftFlags.from_persisted())
        else:
            draft = BracketDraft.empty(tournament_id)

        self.store.replace(draft)
        self.last_result = LoadResult(draft=draft, source=source, warnings=warnings)
        logger.debug("Loaded bracket for tournament %s from %s", tournament_id, source.value)
        return self.last_result

    def attach(self, bus: InvalidationBus) -> Subscription:
        """Reload whenever ``bus`` publishes this tournament id."""
        self.detach()
        self._subscription = bus.subscribe(self.tournament_id, self._on_invalidated)
        return self._subscription

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    def _on_invalidated(self, tournament_id: int) -> None:
        if tournament_id == self.tournament_id:
            self.load()

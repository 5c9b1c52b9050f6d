"""
Bracket reset: wipe persisted rounds and fixtures, forget the cached draft and
raise the reset sentinel so no stale bracket reappears until the next generate.
"""
import logging

from fixturedesk.schemas import ResetBracketResponse
from fixturedesk.services.bracket_client import BracketApiClient
from fixturedesk.services.bracket_events import InvalidationBus
from fixturedesk.services.draft_cache import DraftCache
from fixturedesk.services.draft_store import DraftStore

logger = logging.getLogger(__name__)


class ResetController:
    def __init__(self, store: DraftStore, api: BracketApiClient, cache: DraftCache, bus: InvalidationBus):
        self.store = store
        self.api = api
        self.cache = cache
        self.bus = bus

    def reset(self) -> ResetBracketResponse:
        """Destructive: callers confirm with the operator before calling this."""
        tournament_id = self.store.tournament_id
        # local state only changes once the server has deleted the bracket
        result = self.api.reset_bracket(tournament_id)

        self.cache.drop_draft(tournament_id)
        self.store.clear()
        self.cache.mark_reset(tournament_id)
        logger.info(
            "Reset bracket for tournament %s (%d fixtures, %d rounds deleted)",
            tournament_id,
            result.deleted_fixtures,
            result.deleted_rounds,
        )
        self.bus.publish(tournament_id)
        return result

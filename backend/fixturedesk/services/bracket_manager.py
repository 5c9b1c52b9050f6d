"""
Operator-side bracket lifecycle for one tournament view.

Wires the draft store, reconciliation, editor and reset controller to one API
client, cache and invalidation bus, and owns the generate step:

    manager = BracketManager(tournament_id, BracketApiClient(), SqlDraftCache(engine))
    manager.generate()
    manager.editor.set_schedule(1, 0, venue="Court 1")
    manager.editor.save_temporarily()
    manager.editor.commit()
    manager.editor.create_final_fixtures()
    manager.reset()
"""
import logging
from typing import Optional

from fixturedesk.schemas import ResetBracketResponse, TournamentSummary
from fixturedesk.services.bracket_client import BracketApiClient
from fixturedesk.services.bracket_editor import BracketEditor
from fixturedesk.services.bracket_errors import InsufficientTeams, InvalidState
from fixturedesk.services.bracket_events import InvalidationBus, bracket_bus
from fixturedesk.services.draft_cache import DraftCache
from fixturedesk.services.draft_store import BracketDraft, DraftStore
from fixturedesk.services.reconciliation import LoadResult, ReconciliationController
from fixturedesk.services.reset_controller import ResetController

logger = logging.getLogger(__name__)

SUPPORTED_TOURNAMENT_TYPE = "single_elimination"


def validate_for_generation(tournament: TournamentSummary) -> None:
    if tournament.status != "draft":
        raise InvalidState(
            f"Brackets can only be generated while the tournament is in draft (status is '{tournament.status}')"
        )
    if tournament.tournament_type != SUPPORTED_TOURNAMENT_TYPE:
        raise InvalidState("Only single elimination tournaments are supported for bracket generation")
    if len(tournament.teams) < 2:
        raise InsufficientTeams(f"A bracket needs at least 2 teams, got {len(tournament.teams)}")


class BracketManager:
    def __init__(
        self,
        tournament_id: int,
        api: BracketApiClient,
        cache: DraftCache,
        bus: Optional[InvalidationBus] = None,
        auto_load: bool = True,
    ):
        self.tournament_id = tournament_id
        self.api = api
        self.cache = cache
        self.bus = bus if bus is not None else bracket_bus

        self.store = DraftStore(tournament_id)
        self.reconciliation = ReconciliationController(self.store, api, cache)
        self.editor = BracketEditor(self.store, api, cache, self.bus)
        self.reset_controller = ResetController(self.store, api, cache, self.bus)

        self.reconciliation.attach(self.bus)
        if auto_load:
            self.reconciliation.load()

    @property
    def draft(self) -> BracketDraft:
        return self.store.draft

    def load(self) -> LoadResult:
        return self.reconciliation.load()

    def generate(self, tournament: Optional[TournamentSummary] = None) -> BracketDraft:
        """
        Generate a fresh draft. Supersedes any earlier reset.

        ``tournament`` is fetched when not given; the status and team count
        checks run before the generate request is sent. A committed bracket
        must be reset first.
        """
        if self.store.flags.committed:
            raise InvalidState("Bracket is already saved as fixtures; reset it before generating again")
        if tournament is None:
            tournament = self.api.get_tournament(self.tournament_id)
        if tournament.id != self.tournament_id:
            raise InvalidState(f"Tournament {tournament.id} does not belong to this view")
        validate_for_generation(tournament)

        rounds = self.api.generate_bracket(self.tournament_id)

        self.cache.clear_reset(self.tournament_id)
        draft = self.store.start_generated(rounds)
        logger.info("Generated draft bracket for tournament %s (%d rounds)", self.tournament_id, len(rounds))
        return draft

    def reset(self) -> ResetBracketResponse:
        return self.reset_controller.reset()

    def close(self) -> None:
        """Stop following invalidations (the view is gone)."""
        self.reconciliation.detach()

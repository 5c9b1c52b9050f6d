# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from fixturedesk.models.draft_cache_entry import DraftCacheEntry  # noqa: F401
from fixturedesk.models.fixture import Fixture  # noqa: F401
from fixturedesk.models.team import Team  # noqa: F401
from fixturedesk.models.tournament import Tournament  # noqa: F401
from fixturedesk.models.tournament_round import TournamentRound  # noqa: F401
from fixturedesk.models.tournament_team import TournamentTeam  # noqa: F401

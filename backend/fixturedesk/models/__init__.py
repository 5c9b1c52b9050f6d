from fixturedesk.models.draft_cache_entry import DraftCacheEntry
from fixturedesk.models.fixture import Fixture
from fixturedesk.models.team import Team
from fixturedesk.models.tournament import Tournament
from fixturedesk.models.tournament_round import TournamentRound
from fixturedesk.models.tournament_team import TournamentTeam

__all__ = [
    "Tournament",
    "Team",
    "TournamentTeam",
    "TournamentRound",
    "Fixture",
    "DraftCacheEntry",
]

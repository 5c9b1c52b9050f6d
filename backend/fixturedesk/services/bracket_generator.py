"""
Single-elimination bracket generation.

Pure computation: turns a seeded team list into rounds and matches. Nothing is
persisted here; the operator edits the result as a draft and commits it
through save-brackets.

Shape for N teams: round 1 has ceil(N/2) matches and every later round
ceil(previous/2), down to a single final, so there are ceil(log2 N) rounds.
With an odd N the top seed gets a bye in round 1; a later-round slot with no
feeding match is also a bye. Bye matches are walkovers, completed at
generation time with their winner already placed in the next round.
"""
import logging
import math
from datetime import date, datetime, time
from typing import List, Optional, Sequence

from fixturedesk.schemas import (
    MATCH_COMPLETED,
    BracketMatch,
    BracketRound,
    BracketSlot,
    SeededTeam,
)
from fixturedesk.services.bracket_errors import InsufficientTeams
from fixturedesk.services.bracket_state import feeder_position, propagate_winner, refresh_round_state

logger = logging.getLogger(__name__)


def get_round_name(round_number: int, total_rounds: int) -> str:
    """Get the display name of a round counted from the final backwards."""
    from_final = total_rounds - round_number
    if from_final == 0:
        return "Final"
    elif from_final == 1:
        return "Semi-finals"
    elif from_final == 2:
        return "Quarter-finals"
    return f"Round {round_number}"


def calculate_round_sizes(num_teams: int) -> List[int]:
    """Match count per round, first round first."""
    if num_teams < 2:
        return []
    sizes = [math.ceil(num_teams / 2)]
    while sizes[-1] > 1:
        sizes.append(math.ceil(sizes[-1] / 2))
    return sizes


def seed_order(teams: Sequence[SeededTeam]) -> List[SeededTeam]:
    """Sort by seed; unseeded teams go last, keeping their registration order."""
    indexed = list(enumerate(teams))
    indexed.sort(key=lambda pair: (pair[1].seed is None, pair[1].seed or 0, pair[0]))
    return [team for _, team in indexed]


def create_first_round_pairs(teams: Sequence[SeededTeam]) -> List[tuple]:
    """
    Pair seeded teams best-vs-worst.

    Returns (team_a, team_b) tuples in bracket order; team_b is None for the
    bye match, which is always last.
    """
    ordered = seed_order(teams)
    bye_team: Optional[SeededTeam] = None
    if len(ordered) % 2 == 1:
        bye_team, ordered = ordered[0], ordered[1:]

    n = len(ordered)
    pairs = [(ordered[i], ordered[n - 1 - i]) for i in range(n // 2)]
    if bye_team is not None:
        pairs.append((bye_team, None))
    return pairs


def _default_start(start_date: Optional[date]) -> Optional[datetime]:
    if start_date is None:
        return None
    return datetime.combine(start_date, time(0, 0))


def generate_bracket_rounds(teams: Sequence[SeededTeam], start_date: Optional[date] = None) -> List[BracketRound]:
    """Build the full bracket for a seeded team list."""
    if len(teams) < 2:
        raise InsufficientTeams(f"A bracket needs at least 2 teams, got {len(teams)}")

    sizes = calculate_round_sizes(len(teams))
    total_rounds = len(sizes)
    scheduled_at = _default_start(start_date)

    rounds: List[BracketRound] = []
    for index, size in enumerate(sizes):
        round_number = index + 1
        matches: List[BracketMatch] = []
        for position in range(size):
            match = BracketMatch(bracket_position=position, scheduled_at=scheduled_at)
            if round_number > 1:
                for slot_index in (0, 1):
                    feeder = feeder_position(position, slot_index, sizes[index - 1])
                    if feeder is None:
                        match.set_slot(slot_index, BracketSlot.bye_slot())
                    else:
                        match.set_slot(slot_index, BracketSlot.placeholder(round_number - 1, feeder))
            matches.append(match)
        rounds.append(
            BracketRound(
                round_number=round_number,
                round_name=get_round_name(round_number, total_rounds),
                total_matches=size,
                matches=matches,
            )
        )

    first_round = rounds[0]
    for position, (team_a, team_b) in enumerate(create_first_round_pairs(teams)):
        match = first_round.matches[position]
        match.slot_a = BracketSlot.for_team(team_a.team_id, team_a.name)
        if team_b is None:
            match.slot_b = BracketSlot.bye_slot()
            match.status = MATCH_COMPLETED
            match.winner_team_id = team_a.team_id
        else:
            match.slot_b = BracketSlot.for_team(team_b.team_id, team_b.name)

    for match in first_round.matches:
        if match.status == MATCH_COMPLETED:
            propagate_winner(rounds, 1, match.bracket_position)

    for round_ in rounds:
        refresh_round_state(round_)

    logger.info(
        "Generated bracket: %d teams, %d rounds, %d matches",
        len(teams),
        total_rounds,
        sum(sizes),
    )
    return rounds

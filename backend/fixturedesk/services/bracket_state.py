"""
Round/fixture state machine for single-elimination brackets.

Pure functions over BracketRound/BracketMatch values. The persisted
advancement service and the generator (for byes) both run winner
propagation through ``propagate_winner`` so drafts and stored fixtures
follow one set of rules.

Feeding rule: match i of round r feeds slot (i mod 2) of match i // 2 of
round r + 1.
"""
from typing import Dict, List, Optional, Sequence, Tuple

from fixturedesk.schemas import (
    MATCH_CANCELLED,
    MATCH_COMPLETED,
    MATCH_LIVE,
    MATCH_POSTPONED,
    MATCH_SCHEDULED,
    ROUND_ACTIVE,
    ROUND_COMPLETED,
    ROUND_PENDING,
    BracketMatch,
    BracketRound,
    BracketSlot,
)
from fixturedesk.services.bracket_errors import (
    BracketIntegrityError,
    BracketValidationError,
    InvalidState,
    UnresolvedDraw,
)

MATCH_STATUSES = (MATCH_SCHEDULED, MATCH_LIVE, MATCH_COMPLETED, MATCH_CANCELLED, MATCH_POSTPONED)

# completed and cancelled are terminal; postponed is a pause
_MATCH_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    MATCH_SCHEDULED: (MATCH_LIVE, MATCH_COMPLETED, MATCH_CANCELLED, MATCH_POSTPONED),
    MATCH_LIVE: (MATCH_COMPLETED, MATCH_CANCELLED, MATCH_POSTPONED),
    MATCH_POSTPONED: (MATCH_SCHEDULED, MATCH_LIVE, MATCH_CANCELLED),
    MATCH_COMPLETED: (),
    MATCH_CANCELLED: (),
}


def validate_match_transition(current: str, new: str) -> None:
    if new not in MATCH_STATUSES:
        raise BracketValidationError(f"Invalid match status: {new}")
    if current == new:
        return
    if new not in _MATCH_TRANSITIONS.get(current, ()):
        raise InvalidState(f"Cannot move match from '{current}' to '{new}'")


def decide_winner(
    score_a: Optional[int],
    score_b: Optional[int],
    tiebreak_a: Optional[int] = None,
    tiebreak_b: Optional[int] = None,
) -> int:
    """Return the winning slot index (0 or 1). Equal scores fall back to the tiebreak."""
    if score_a is None or score_b is None:
        raise BracketValidationError("Both scores are required to complete a match")
    if score_a != score_b:
        return 0 if score_a > score_b else 1
    if tiebreak_a is None or tiebreak_b is None or tiebreak_a == tiebreak_b:
        raise UnresolvedDraw(
            f"Scores are level at {score_a}-{score_b}; enter a tiebreak result to decide the winner"
        )
    return 0 if tiebreak_a > tiebreak_b else 1


def feeder_position(match_index: int, slot_index: int, previous_match_count: int) -> Optional[int]:
    """Bracket position in the previous round that feeds this slot, or None for a bye slot."""
    position = 2 * match_index + slot_index
    return position if position < previous_match_count else None


def feed_target(bracket_position: int, match_count: int, next_match_count: int) -> Tuple[int, int]:
    """(match_index, slot_index) in the next round that this match's winner fills."""
    if bracket_position < 0 or bracket_position >= match_count:
        raise BracketIntegrityError(
            f"Bracket position {bracket_position} is outside a round of {match_count} matches",
            bracket_position=bracket_position,
        )
    if next_match_count != (match_count + 1) // 2:
        raise BracketIntegrityError(
            f"A round of {match_count} matches cannot feed a round of {next_match_count} matches",
            bracket_position=bracket_position,
        )
    return bracket_position // 2, bracket_position % 2


def slot_ready(match: BracketMatch, index: int) -> bool:
    slot = match.slot(index)
    if slot.resolved:
        return True
    # a bye side never needs a team as long as the opponent is known
    return slot.bye and match.slot(1 - index).resolved


def is_match_ready(match: BracketMatch) -> bool:
    return slot_ready(match, 0) and slot_ready(match, 1)


def is_round_ready_for_activation(round_: BracketRound) -> bool:
    """A round may go pending -> active only when every match knows both sides."""
    return bool(round_.matches) and all(is_match_ready(m) for m in round_.matches)


def count_completed(matches: Sequence[BracketMatch]) -> int:
    return sum(1 for m in matches if m.status == MATCH_COMPLETED)


def derive_round_status(stored_status: str, total_matches: int, completed_matches: int) -> str:
    """Completed is computed from fixtures, never stored. Status never regresses."""
    if total_matches > 0 and completed_matches >= total_matches:
        return ROUND_COMPLETED
    if stored_status in (ROUND_ACTIVE, ROUND_COMPLETED):
        return ROUND_ACTIVE
    return ROUND_PENDING


def refresh_round_state(round_: BracketRound) -> BracketRound:
    round_.completed_matches = count_completed(round_.matches)
    round_.status = derive_round_status(round_.status, round_.total_matches, round_.completed_matches)
    round_.ready_for_activation = is_round_ready_for_activation(round_)
    return round_


def winner_slot(match: BracketMatch) -> Optional[BracketSlot]:
    if match.winner_team_id is None:
        return None
    for slot in (match.slot_a, match.slot_b):
        if slot.team_id == match.winner_team_id:
            return slot
    return None


def complete_walkover(match: BracketMatch) -> bool:
    """Complete a match whose only opponent is a bye. Returns True when it changed."""
    if match.status == MATCH_COMPLETED or not match.is_walkover:
        return False
    team_slot = match.slot_b if match.slot_a.bye else match.slot_a
    if not team_slot.resolved:
        return False
    match.status = MATCH_COMPLETED
    match.winner_team_id = team_slot.team_id
    return True


def _match_at(round_: BracketRound, position: int) -> BracketMatch:
    for m in round_.matches:
        if m.bracket_position == position:
            return m
    raise BracketIntegrityError(
        f"Round {round_.round_number} has no match at bracket position {position}",
        round_number=round_.round_number,
        bracket_position=position,
    )


def propagate_winner(rounds: List[BracketRound], round_number: int, bracket_position: int) -> List[BracketMatch]:
    """
    Push the winner of a completed match into the next round's slot.

    Walkovers reached along the way complete automatically and keep
    propagating. Mutates ``rounds`` in place and returns the downstream
    matches that changed. Raises BracketIntegrityError when the feeding
    relationship is broken; matches updated before the failure stay updated.
    Idempotent: re-running for an already propagated winner changes nothing.
    """
    by_number = {r.round_number: r for r in rounds}
    changed: List[BracketMatch] = []

    current_round = by_number.get(round_number)
    if current_round is None:
        raise BracketIntegrityError(f"Round {round_number} does not exist", round_number=round_number)
    position = bracket_position
    match = _match_at(current_round, position)

    while match.status == MATCH_COMPLETED and match.winner_team_id is not None:
        next_round = by_number.get(current_round.round_number + 1)
        if next_round is None:
            break  # the final feeds nothing

        winner = winner_slot(match)
        if winner is None:
            raise BracketIntegrityError(
                f"Winner {match.winner_team_id} is not a side of round {current_round.round_number} "
                f"match {position}",
                round_number=current_round.round_number,
                bracket_position=position,
            )

        match_index, slot_index = feed_target(position, len(current_round.matches), len(next_round.matches))
        target = _match_at(next_round, match_index)
        existing = target.slot(slot_index)
        if existing.bye:
            raise BracketIntegrityError(
                f"Round {next_round.round_number} match {match_index} has a bye where "
                f"round {current_round.round_number} match {position} should feed",
                round_number=next_round.round_number,
                bracket_position=match_index,
            )
        if existing.resolved and existing.team_id != winner.team_id:
            raise BracketIntegrityError(
                f"Round {next_round.round_number} match {match_index} already holds team "
                f"{existing.team_id} in slot {slot_index}",
                round_number=next_round.round_number,
                bracket_position=match_index,
            )

        if not existing.resolved:
            target.set_slot(
                slot_index,
                BracketSlot.for_team(
                    winner.team_id,
                    winner.team_name,
                    source_round=current_round.round_number,
                    source_match=position,
                ),
            )
            changed.append(target)

        if complete_walkover(target) and not any(c is target for c in changed):
            changed.append(target)
        if not target.is_walkover:
            break

        current_round = next_round
        position = match_index
        match = target

    return changed

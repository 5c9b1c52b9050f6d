"""
Persisted bracket: load, save, finalize and wipe rounds/fixtures for a tournament.

Fixture rows store team ids plus placeholder text; loading turns them back
into BracketRound/BracketMatch values with slot sources derived from the
bracket position, so a committed draft reloads with the same slots.
"""
import logging
from datetime import datetime, time
from typing import Dict, List, Optional, Tuple

from sqlmodel import Session, select

from fixturedesk.models.fixture import BYE_PLACEHOLDER, Fixture
from fixturedesk.models.team import Team
from fixturedesk.models.tournament import Tournament
from fixturedesk.models.tournament_round import TournamentRound
from fixturedesk.models.tournament_team import TournamentTeam
from fixturedesk.schemas import MATCH_COMPLETED, BracketMatch, BracketRound, BracketSlot, SeededTeam
from fixturedesk.services.bracket_state import feeder_position, refresh_round_state

logger = logging.getLogger(__name__)


def get_seeded_teams(session: Session, tournament_id: int) -> List[SeededTeam]:
    """Registered teams in registration order (seed sorting happens in the generator)."""
    rows = session.exec(
        select(TournamentTeam, Team)
        .where(TournamentTeam.tournament_id == tournament_id, TournamentTeam.team_id == Team.id)
        .order_by(TournamentTeam.id)
    ).all()
    return [SeededTeam(team_id=team.id, name=team.name, seed=reg.seed) for reg, team in rows]


def _slot_from_row(
    team_id: Optional[int],
    placeholder: str,
    round_number: int,
    match_index: int,
    slot_index: int,
    previous_count: Optional[int],
    team_names: Dict[int, str],
) -> BracketSlot:
    feeder = None
    if previous_count is not None:
        feeder = feeder_position(match_index, slot_index, previous_count)
    source_round = round_number - 1 if feeder is not None else None

    if team_id is not None:
        return BracketSlot.for_team(team_id, team_names.get(team_id, "Unknown Team"), source_round, feeder)
    if placeholder == BYE_PLACEHOLDER:
        return BracketSlot.bye_slot()
    if feeder is not None:
        return BracketSlot.placeholder(source_round, feeder)
    return BracketSlot()


def fixture_to_match(
    fixture: Fixture,
    round_number: int,
    previous_count: Optional[int],
    team_names: Dict[int, str],
) -> BracketMatch:
    position = fixture.bracket_position
    return BracketMatch(
        id=fixture.id,
        bracket_position=position,
        slot_a=_slot_from_row(
            fixture.team_a_id, fixture.placeholder_side_a, round_number, position, 0, previous_count, team_names
        ),
        slot_b=_slot_from_row(
            fixture.team_b_id, fixture.placeholder_side_b, round_number, position, 1, previous_count, team_names
        ),
        venue=fixture.venue or "",
        scheduled_at=fixture.scheduled_at,
        status=fixture.status,
        score_a=fixture.score_a,
        score_b=fixture.score_b,
        tiebreak_a=fixture.tiebreak_a,
        tiebreak_b=fixture.tiebreak_b,
        winner_team_id=fixture.winner_team_id,
    )


def load_bracket(session: Session, tournament_id: int) -> Tuple[List[BracketRound], Dict[int, Fixture]]:
    """
    Persisted rounds as BracketRound values, ordered by round_number and
    bracket_position, plus the fixture rows keyed by fixture id.
    """
    rounds = session.exec(
        select(TournamentRound)
        .where(TournamentRound.tournament_id == tournament_id)
        .order_by(TournamentRound.round_number)
    ).all()
    fixtures = session.exec(
        select(Fixture).where(Fixture.tournament_id == tournament_id).order_by(Fixture.bracket_position)
    ).all()

    team_ids = {tid for f in fixtures for tid in (f.team_a_id, f.team_b_id) if tid is not None}
    team_names: Dict[int, str] = {}
    if team_ids:
        team_names = {t.id: t.name for t in session.exec(select(Team).where(Team.id.in_(team_ids))).all()}

    by_round: Dict[int, List[Fixture]] = {}
    for fixture in fixtures:
        by_round.setdefault(fixture.round_id, []).append(fixture)

    result: List[BracketRound] = []
    previous_count: Optional[int] = None
    for round_row in rounds:
        round_fixtures = by_round.get(round_row.id, [])
        matches = [fixture_to_match(f, round_row.round_number, previous_count, team_names) for f in round_fixtures]
        result.append(
            refresh_round_state(
                BracketRound(
                    id=round_row.id,
                    round_number=round_row.round_number,
                    round_name=round_row.round_name,
                    total_matches=round_row.total_matches,
                    status=round_row.status,
                    matches=matches,
                )
            )
        )
        previous_count = len(round_fixtures)

    return result, {f.id: f for f in fixtures}


def apply_match_to_fixture(match: BracketMatch, fixture: Fixture) -> bool:
    """Copy slot and result fields from a match onto its row. Returns True when anything changed."""
    values = {
        "team_a_id": match.slot_a.team_id,
        "team_b_id": match.slot_b.team_id,
        "placeholder_side_a": match.slot_a.label,
        "placeholder_side_b": match.slot_b.label,
        "status": match.status,
        "score_a": match.score_a,
        "score_b": match.score_b,
        "tiebreak_a": match.tiebreak_a,
        "tiebreak_b": match.tiebreak_b,
        "winner_team_id": match.winner_team_id,
    }
    changed = False
    for name, value in values.items():
        if getattr(fixture, name) != value:
            setattr(fixture, name, value)
            changed = True
    if match.status == MATCH_COMPLETED:
        if changed and fixture.completed_at is None:
            fixture.completed_at = datetime.utcnow()
    elif fixture.completed_at is not None:
        # result overwritten by a fresh draft
        fixture.completed_at = None
        fixture.started_at = None
        changed = True
    return changed


def save_bracket_rounds(session: Session, tournament: Tournament, rounds: List[BracketRound]) -> Tuple[int, int]:
    """
    Upsert rounds (by round_number) and fixtures (by id, else by round and
    bracket position); rounds and fixtures missing from ``rounds`` are
    deleted. Returns (created_count, updated_count) for fixtures.
    """
    created = 0
    updated = 0
    kept_fixture_ids = set()

    existing_rounds = {
        r.round_number: r
        for r in session.exec(select(TournamentRound).where(TournamentRound.tournament_id == tournament.id)).all()
    }

    for round_in in sorted(rounds, key=lambda r: r.round_number):
        round_row = existing_rounds.get(round_in.round_number)
        if round_row is None:
            round_row = TournamentRound(
                tournament_id=tournament.id,
                round_number=round_in.round_number,
                round_name=round_in.round_name,
                total_matches=len(round_in.matches),
            )
            session.add(round_row)
            session.flush()
            existing_rounds[round_in.round_number] = round_row
        else:
            round_row.round_name = round_in.round_name
            round_row.total_matches = len(round_in.matches)
            session.add(round_row)

        for match in round_in.matches:
            fixture = None
            if match.id is not None:
                fixture = session.get(Fixture, match.id)
                if fixture is not None and fixture.tournament_id != tournament.id:
                    logger.warning(
                        "Ignoring fixture id %s from another tournament while saving tournament %s",
                        match.id,
                        tournament.id,
                    )
                    fixture = None
            if fixture is None:
                fixture = session.exec(
                    select(Fixture).where(
                        Fixture.round_id == round_row.id,
                        Fixture.bracket_position == match.bracket_position,
                    )
                ).first()

            is_new = fixture is None
            if is_new:
                fixture = Fixture(
                    tournament_id=tournament.id,
                    round_id=round_row.id,
                    bracket_position=match.bracket_position,
                )

            apply_match_to_fixture(match, fixture)
            fixture.round_id = round_row.id
            fixture.bracket_position = match.bracket_position
            fixture.venue = match.venue or None
            fixture.scheduled_at = match.scheduled_at
            fixture.updated_at = datetime.utcnow()
            session.add(fixture)

            session.flush()
            kept_fixture_ids.add(fixture.id)

            if is_new:
                created += 1
            else:
                updated += 1

    stale_fixtures = [
        f
        for f in session.exec(select(Fixture).where(Fixture.tournament_id == tournament.id)).all()
        if f.id not in kept_fixture_ids
    ]
    for fixture in stale_fixtures:
        session.delete(fixture)
    session.flush()

    kept_round_numbers = {r.round_number for r in rounds}
    stale_rounds = [r for number, r in existing_rounds.items() if number not in kept_round_numbers]
    for round_row in stale_rounds:
        session.delete(round_row)

    session.commit()
    logger.info(
        "Saved bracket for tournament %s: %d created, %d updated, %d fixtures and %d rounds removed",
        tournament.id,
        created,
        updated,
        len(stale_fixtures),
        len(stale_rounds),
    )
    return created, updated


def finalize_fixtures(session: Session, tournament: Tournament) -> Tuple[int, int]:
    """
    Mark committed fixtures that have at least one team as final fixtures.
    Idempotent. Returns (created_count, finalized_total).
    """
    fixtures = session.exec(select(Fixture).where(Fixture.tournament_id == tournament.id)).all()
    default_start = datetime.combine(tournament.start_date, time(0, 0)) if tournament.start_date else None

    created = 0
    now = datetime.utcnow()
    for fixture in fixtures:
        if fixture.finalized_at is not None:
            continue
        if fixture.team_a_id is None and fixture.team_b_id is None:
            continue
        fixture.finalized_at = now
        if fixture.scheduled_at is None:
            fixture.scheduled_at = default_start or now
        session.add(fixture)
        created += 1

    if created > 0 and tournament.status == "draft":
        tournament.status = "active"
        session.add(tournament)
    session.commit()

    finalized_total = sum(1 for f in fixtures if f.finalized_at is not None)
    logger.info(
        "Finalized fixtures for tournament %s: %d new, %d total", tournament.id, created, finalized_total
    )
    return created, finalized_total


def wipe_bracket(session: Session, tournament: Tournament) -> Tuple[int, int]:
    """
    Delete all fixtures, then all rounds, of a tournament and return it to
    draft. Returns (deleted_fixtures, deleted_rounds).
    """
    fixtures = session.exec(select(Fixture).where(Fixture.tournament_id == tournament.id)).all()
    for fixture in fixtures:
        session.delete(fixture)
    session.flush()

    rounds = session.exec(select(TournamentRound).where(TournamentRound.tournament_id == tournament.id)).all()
    for round_row in rounds:
        session.delete(round_row)

    tournament.status = "draft"
    tournament.winner_team_id = None
    tournament.updated_at = datetime.utcnow()
    session.add(tournament)
    session.commit()

    logger.info(
        "Wiped bracket for tournament %s: %d fixtures, %d rounds", tournament.id, len(fixtures), len(rounds)
    )
    return len(fixtures), len(rounds)

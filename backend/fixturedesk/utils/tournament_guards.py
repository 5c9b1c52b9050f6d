"""
Tournament Guards

Reusable guards for bracket endpoints:
- Tournament existence
- Draft-only bracket mutations
- Reset refusal for completed tournaments
"""

from fastapi import HTTPException
from sqlmodel import Session

from fixturedesk.models.tournament import Tournament


def get_tournament_or_404(session: Session, tournament_id: int) -> Tournament:
    """
    Get a tournament or raise 404.

    Raises:
        HTTPException 404: Tournament not found
    """
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


def require_draft_tournament(session: Session, tournament_id: int) -> Tournament:
    """
    Require that a tournament is in draft status, otherwise raise 409.

    Raises:
        HTTPException 404: Tournament not found
        HTTPException 409: Tournament is not draft
    """
    tournament = get_tournament_or_404(session, tournament_id)
    if tournament.status != "draft":
        raise HTTPException(
            status_code=409,
            detail=f"TOURNAMENT_NOT_DRAFT: Cannot change the bracket of a tournament with status "
            f"'{tournament.status}'. Only draft tournaments can be modified.",
        )
    return tournament


def require_resettable_tournament(session: Session, tournament_id: int) -> Tournament:
    """
    Require that a tournament's bracket may be wiped, otherwise raise 409.

    Raises:
        HTTPException 404: Tournament not found
        HTTPException 409: Tournament is completed
    """
    tournament = get_tournament_or_404(session, tournament_id)
    if tournament.status == "completed":
        raise HTTPException(
            status_code=409,
            detail="TOURNAMENT_COMPLETED: A completed tournament's results cannot be reset.",
        )
    return tournament

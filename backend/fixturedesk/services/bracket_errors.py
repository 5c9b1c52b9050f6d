"""
Bracket lifecycle errors.

``state_changed`` tells a caller whether anything happened before the error:
False means retry is safe (validation, persistence failure, stale commit);
True means a result was recorded but propagation is stuck and the bracket
needs repair (reset and regenerate, or the advance endpoint).
"""
from typing import Optional


class BracketError(Exception):
    kind = "BracketError"
    state_changed = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "state_changed": self.state_changed}


class BracketValidationError(BracketError):
    kind = "ValidationError"


class InvalidState(BracketValidationError):
    kind = "InvalidState"


class InsufficientTeams(BracketValidationError):
    kind = "InsufficientTeams"


class ResetInProgress(BracketValidationError):
    kind = "ResetInProgress"


class UnresolvedDraw(BracketValidationError):
    kind = "UnresolvedDraw"


class PersistenceFailure(BracketError):
    kind = "PersistenceFailure"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["status_code"] = self.status_code
        return data


class StaleCommit(BracketError):
    kind = "StaleCommit"

    def __init__(self, created_count: int = 0, updated_count: int = 0):
        super().__init__(
            f"Commit stored nothing ({created_count} created, {updated_count} updated); draft left uncommitted"
        )
        self.created_count = created_count
        self.updated_count = updated_count


class BracketIntegrityError(BracketError):
    kind = "BracketIntegrityError"
    state_changed = True

    def __init__(self, message: str, round_number: Optional[int] = None, bracket_position: Optional[int] = None):
        super().__init__(message)
        self.round_number = round_number
        self.bracket_position = bracket_position

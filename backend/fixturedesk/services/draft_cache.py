"""
Durable key-value cache for operator bracket drafts.

Keys:
  bracket:{tournament_id}        serialized BracketDraft (temporary save)
  bracket-reset:{tournament_id}  reset sentinel; present until the next generate
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import ValidationError
from sqlalchemy.engine import Engine
from sqlmodel import Session

from fixturedesk.models.draft_cache_entry import DraftCacheEntry
from fixturedesk.services.draft_store import BracketDraft

logger = logging.getLogger(__name__)

DRAFT_KEY_PREFIX = "bracket:"
RESET_KEY_PREFIX = "bracket-reset:"


def draft_key(tournament_id: int) -> str:
    return f"{DRAFT_KEY_PREFIX}{tournament_id}"


def reset_key(tournament_id: int) -> str:
    return f"{RESET_KEY_PREFIX}{tournament_id}"


class DraftCache(ABC):
    """get/set/delete by key, plus the draft and sentinel helpers built on them."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    def store_draft(self, draft: BracketDraft) -> None:
        self.set(draft_key(draft.tournament_id), draft.to_cache_payload())

    def load_draft(self, tournament_id: int) -> Optional[BracketDraft]:
        """Cached draft, or None. An unreadable entry is dropped and treated as absent."""
        payload = self.get(draft_key(tournament_id))
        if payload is None:
            return None
        try:
            return BracketDraft.from_cache_payload(payload)
        except ValidationError as exc:
            logger.warning("Dropping unreadable cached draft for tournament %s: %s", tournament_id, exc)
            self.delete(draft_key(tournament_id))
            return None

    def drop_draft(self, tournament_id: int) -> None:
        self.delete(draft_key(tournament_id))

    def is_reset_pending(self, tournament_id: int) -> bool:
        return self.get(reset_key(tournament_id)) is not None

    def mark_reset(self, tournament_id: int) -> None:
        self.set(reset_key(tournament_id), "true")

    def clear_reset(self, tournament_id: int) -> None:
        self.delete(reset_key(tournament_id))


class MemoryDraftCache(DraftCache):
    """Process-local cache; contents do not survive a restart."""

    def __init__(self):
        self._entries: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._entries.get(key)

    def set(self, key: str, value: str) -> None:
        self._entries[key] = value

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)


class SqlDraftCache(DraftCache):
    """Cache rows in the draftcacheentry table; survives reloads and restarts."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def get(self, key: str) -> Optional[str]:
        with Session(self.engine) as session:
            entry = session.get(DraftCacheEntry, key)
            return entry.value if entry else None

    def set(self, key: str, value: str) -> None:
        with Session(self.engine) as session:
            entry = session.get(DraftCacheEntry, key)
            if entry is None:
                entry = DraftCacheEntry(key=key, value=value)
            else:
                entry.value = value
                entry.updated_at = datetime.now(timezone.utc)
            session.add(entry)
            session.commit()

    def delete(self, key: str) -> None:
        with Session(self.engine) as session:
            entry = session.get(DraftCacheEntry, key)
            if entry is not None:
                session.delete(entry)
                session.commit()

from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


class DraftCacheEntry(SQLModel, table=True):
    """Durable key-value row backing the operator's bracket draft cache."""

    key: str = Field(primary_key=True, max_length=128)
    value: str
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

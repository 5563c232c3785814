"""Key/value settings row (the persisted "user defaults" store)."""
from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Timezone-aware UTC now; naive datetimes are rejected on bind."""
    return datetime.now(timezone.utc)


class Setting(SQLModel, table=True):
    """One JSON or plain-text value per key."""

    key: str = Field(primary_key=True)
    value: str
    updated_at: datetime = Field(default_factory=utcnow)

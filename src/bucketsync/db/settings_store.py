"""
Key/value settings store on top of the `setting` table.

This is the persistence layer for everything the sync core keeps across
restarts: job definitions, run history, last sync time and the per-job
"already fired" slots. Values are stored as text; the *_json helpers
serialize structured values.

Database errors are not caught here. Callers decide whether a failed read or
write is fatal (it never is for the sync core, which logs and carries on).
"""
import json
from typing import Any, Optional

from sqlmodel import Session

from bucketsync.models.setting import Setting, utcnow

JOBS_KEY = "sync.jobs"
HISTORY_KEY = "sync.history"
LAST_SYNC_TIME_KEY = "sync.last_sync_time"
LAST_FIRED_KEY = "sync.last_fired"


class SettingsStore:
    """Typed-ish access to the `setting` table."""

    def __init__(self, engine):
        """
        Args:
            engine: SQLAlchemy engine with the `setting` table created.
        """
        self.engine = engine

    def get(self, key: str) -> Optional[str]:
        with Session(self.engine) as s:
            row = s.get(Setting, key)
            return row.value if row else None

    def set(self, key: str, value: str) -> None:
        with Session(self.engine) as s:
            row = s.get(Setting, key)
            if row:
                row.value = value
                row.updated_at = utcnow()
            else:
                row = Setting(key=key, value=value)
            s.add(row)
            s.commit()

    def get_json(self, key: str) -> Any:
        """
        Return the decoded JSON value for key, or None if the key is unset.

        Raises:
            ValueError: if the stored value is not valid JSON.
        """
        raw = self.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value))

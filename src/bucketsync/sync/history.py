"""Bounded, newest-first log of sync run results."""
import logging
from typing import List

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from bucketsync.db.settings_store import HISTORY_KEY, SettingsStore
from bucketsync.models.sync import SyncRunResult

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 5


class HistoryLog:
    """Keeps the most recent `limit` results; the whole list is persisted on append."""

    def __init__(self, store: SettingsStore, limit: int = HISTORY_LIMIT):
        self._store = store
        self._limit = limit
        self._entries: List[SyncRunResult] = []

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def entries(self) -> List[SyncRunResult]:
        return list(self._entries)

    def load(self) -> List[SyncRunResult]:
        """Restore persisted history. Missing or corrupt data yields []."""
        try:
            raw = self._store.get_json(HISTORY_KEY)
        except (SQLAlchemyError, ValueError) as exc:
            logger.error("Failed to read sync history: %s", exc)
            raw = None

        entries = []
        if isinstance(raw, list):
            for item in raw:
                try:
                    entries.append(SyncRunResult.model_validate(item))
                except ValidationError as exc:
                    logger.warning("Skipping invalid history entry: %s", exc)
        elif raw is not None:
            logger.error("Saved sync history is not a list, ignoring")

        self._entries = entries[:self._limit]
        logger.info("Loaded %d sync history entries", len(self._entries))
        return self.entries

    def append(self, result: SyncRunResult) -> None:
        self._entries = ([result] + self._entries)[:self._limit]
        self._save()

    def _save(self) -> None:
        try:
            self._store.set_json(
                HISTORY_KEY, [e.model_dump(mode="json") for e in self._entries]
            )
        except (SQLAlchemyError, TypeError, ValueError) as exc:
            logger.error("Failed to save sync history: %s", exc)
            return
        logger.debug("Saved %d sync history entries", len(self._entries))

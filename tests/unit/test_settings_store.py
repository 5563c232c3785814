"""Tests for the key/value SettingsStore."""
import pytest
from sqlmodel import Session

from bucketsync.db.settings_store import SettingsStore
from bucketsync.models.setting import Setting, utcnow


class TestSettingsStore:
    def test_get_missing_returns_none(self, store):
        assert store.get("nope") is None

    def test_set_then_get(self, store):
        store.set("greeting", "hello")
        assert store.get("greeting") == "hello"

    def test_set_overwrites(self, store):
        store.set("k", "one")
        store.set("k", "two")
        assert store.get("k") == "two"

    def test_json_round_trip(self, store):
        store.set_json("data", [{"a": 1}, {"b": [1, 2]}])
        assert store.get_json("data") == [{"a": 1}, {"b": [1, 2]}]

    def test_get_json_missing_returns_none(self, store):
        assert store.get_json("data") is None

    def test_get_json_raises_on_garbage(self, store):
        store.set("data", "{not json")
        with pytest.raises(ValueError):
            store.get_json("data")

    def test_values_survive_new_store_instance(self, engine):
        SettingsStore(engine).set("k", "v")
        assert SettingsStore(engine).get("k") == "v"


# ─── updated_at ───────────────────────────────────────────────────────────────

class TestUpdatedAt:
    def test_default_is_timezone_aware(self):
        assert Setting(key="k", value="v").updated_at.tzinfo is not None
        assert utcnow().utcoffset().total_seconds() == 0

    def test_insert_and_update_are_stored(self, store, engine):
        store.set("k", "one")
        with Session(engine) as s:
            first = s.get(Setting, "k").updated_at

        store.set("k", "two")
        with Session(engine) as s:
            row = s.get(Setting, "k")

        assert row.value == "two"
        assert first is not None
        assert row.updated_at is not None

    def test_json_documents_persist_across_stores(self, engine):
        SettingsStore(engine).set_json("sync.jobs", [{"bucket_name": "b"}])
        SettingsStore(engine).set_json("sync.jobs", [{"bucket_name": "c"}])
        assert SettingsStore(engine).get_json("sync.jobs") == [{"bucket_name": "c"}]

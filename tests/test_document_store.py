import json
from datetime import date
from unittest.mock import MagicMock

import pytest
import redis

from railfare.storage.document_store import (
    CollectionName,
    InMemoryDocumentStore,
    RedisDocumentStore,
    create_document_store,
    matches_query,
)
from railfare.storage.repository import FareRepository
from railfare.storage.settings import SettingsStore


class TestInMemoryStore:
    def test_insert_find_remove_drop(self, store):
        store.insert("things", [{"a": 1, "b": {"c": "x"}}, {"a": 2, "b": {"c": "y"}}])
        assert len(store.find("things")) == 2
        assert store.find("things", {"b.c": "y"}) == [{"a": 2, "b": {"c": "y"}}]
        assert store.remove("things", {"a": 1}) == 1
        assert [d["a"] for d in store.find("things")] == [2]
        store.drop("things")
        assert store.find("things") == []

    def test_drop_missing_collection_is_fine(self, store):
        store.drop("nothing")

    def test_find_returns_copies(self, store):
        store.insert("things", [{"a": [1]}])
        store.find("things")[0]["a"].append(2)
        assert store.find("things") == [{"a": [1]}]

    def test_replace_swaps_whole_collection(self, store):
        store.insert("things", [{"a": 1}, {"a": 2}])
        assert store.replace("things", [{"a": 3}]) == 1
        assert store.find("things") == [{"a": 3}]


def test_matches_query_missing_key_never_matches():
    assert matches_query({"a": 1}, None)
    assert not matches_query({"a": 1}, {"b": None})
    assert not matches_query({"a": 1}, {"a.b": 1})


def test_memory_url_selects_in_memory_store():
    assert isinstance(create_document_store("memory://"), InMemoryDocumentStore)


class TestRedisStore:
    def test_falls_back_to_memory_when_unreachable(self):
        client = MagicMock()
        client.ping.side_effect = redis.ConnectionError("down")
        store = RedisDocumentStore("redis://nowhere:6379/0", client=client)
        store.insert("things", [{"a": 1}])
        assert store.find("things") == [{"a": 1}]
        assert store.ping() is False

    def test_replace_uses_one_transaction(self):
        client = MagicMock()
        client.ping.return_value = True
        pipe = client.pipeline.return_value
        store = RedisDocumentStore("redis://test:6379/0", client=client)

        store.replace(CollectionName.TICKETS, [{"price": 1290, "st": "МОСКВА"}])

        client.pipeline.assert_called_once_with(transaction=True)
        pipe.delete.assert_called_once_with("docs:tickets")
        key, payload = pipe.rpush.call_args.args
        assert key == "docs:tickets"
        assert json.loads(payload) == {"price": 1290, "st": "МОСКВА"}
        pipe.execute.assert_called_once()

    def test_find_filters_loaded_documents(self):
        client = MagicMock()
        client.ping.return_value = True
        client.lrange.return_value = [json.dumps({"id": "a"}), json.dumps({"id": "b"})]
        store = RedisDocumentStore("redis://test:6379/0", client=client)
        assert store.find(CollectionName.ROUNDTRIPS, {"id": "b"}) == [{"id": "b"}]
        client.lrange.assert_called_with("docs:roundtrips", 0, -1)


class TestRepository:
    def test_round_trips_survive_storage(self, store, make_roundtrip):
        repo = FareRepository(store)
        rt = make_roundtrip(date(2024, 3, 16), 1000, 500)
        repo.replace_round_trips([rt])
        assert repo.load_round_trips() == [rt]
        assert repo.get_round_trip(rt.id) == rt
        assert repo.get_round_trip("missing") is None

    def test_fares_are_replaced_not_appended(self, store, make_roundtrip):
        repo = FareRepository(store)
        rt = make_roundtrip(date(2024, 3, 16), 1000, 500)
        repo.replace_fares([rt.outbound.fare, rt.inbound.fare])
        repo.replace_fares([rt.outbound.fare])
        assert repo.load_fares() == [rt.outbound.fare]


def test_settings_store(store):
    settings_store = SettingsStore(store)
    assert settings_store.get_value("last_collected_at") is None
    settings_store.set_value("last_collected_at", "2024-03-16T10:00:00+00:00")
    settings_store.set_value({"last_indexed_at": "x", "extra": 1})
    assert settings_store.get_value("last_collected_at") == "2024-03-16T10:00:00+00:00"
    assert settings_store.get_value("extra") == 1
    assert len(store.find(CollectionName.SETTINGS)) == 1

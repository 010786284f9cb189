"""Generic document collections.

Each collection is a Redis list of JSON documents under ``docs:<name>``.
When Redis is unreachable the store falls back to process memory;
``memory://`` selects that backend directly.
"""

import copy
import json
import threading
from typing import Any, Dict, Iterable, List, Optional

import redis

from railfare.config import settings
from railfare.obs.logger import log_event

Document = Dict[str, Any]
Query = Optional[Dict[str, Any]]

_MISSING = object()


class CollectionName:
    TICKETS = "tickets"
    ROUNDTRIPS = "roundtrips"
    SETTINGS = "settings"
    HISTORY = "history"
    URLS = "urls"


def _lookup(doc: Document, dotted: str) -> Any:
    value: Any = doc
    for part in dotted.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def matches_query(doc: Document, query: Query) -> bool:
    """Equality on every (possibly dotted) key of the query."""
    if not query:
        return True
    return all(_lookup(doc, key) == expected for key, expected in query.items())


class DocumentStore:
    def insert(self, collection: str, docs: Iterable[Document]) -> int:
        raise NotImplementedError

    def find(self, collection: str, query: Query = None) -> List[Document]:
        raise NotImplementedError

    def drop(self, collection: str) -> None:
        raise NotImplementedError

    def remove(self, collection: str, query: Query = None) -> int:
        raise NotImplementedError

    def replace(self, collection: str, docs: Iterable[Document]) -> int:
        """Swap the whole collection; readers never observe a partial state."""
        raise NotImplementedError

    def ping(self) -> bool:
        return True


class InMemoryDocumentStore(DocumentStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._data: Dict[str, List[Document]] = {}

    def insert(self, collection: str, docs: Iterable[Document]) -> int:
        docs = [copy.deepcopy(d) for d in docs]
        with self._lock:
            self._data.setdefault(collection, []).extend(docs)
        return len(docs)

    def find(self, collection: str, query: Query = None) -> List[Document]:
        with self._lock:
            docs = list(self._data.get(collection, []))
        return [copy.deepcopy(d) for d in docs if matches_query(d, query)]

    def drop(self, collection: str) -> None:
        with self._lock:
            self._data.pop(collection, None)

    def remove(self, collection: str, query: Query = None) -> int:
        with self._lock:
            docs = self._data.get(collection, [])
            kept = [d for d in docs if not matches_query(d, query)]
            self._data[collection] = kept
        return len(docs) - len(kept)

    def replace(self, collection: str, docs: Iterable[Document]) -> int:
        docs = [copy.deepcopy(d) for d in docs]
        with self._lock:
            self._data[collection] = docs
        return len(docs)


class RedisDocumentStore(DocumentStore):
    def __init__(self, redis_url: Optional[str] = None, client: Optional[redis.Redis] = None):
        self.redis_url = redis_url or settings.REDIS_URL
        self.prefix = "docs:"
        self.client: Optional[redis.Redis] = client or redis.from_url(self.redis_url, decode_responses=True)
        self._fallback: Optional[InMemoryDocumentStore] = None

        try:
            self.client.ping()
        except (redis.ConnectionError, redis.TimeoutError):
            self.client = None
            self._fallback = InMemoryDocumentStore()
            log_event("redis_unavailable", level="WARNING", fallback="memory")

    def _key(self, collection: str) -> str:
        return f"{self.prefix}{collection}"

    def _load(self, collection: str) -> List[Document]:
        return [json.loads(raw) for raw in self.client.lrange(self._key(collection), 0, -1)]

    def insert(self, collection: str, docs: Iterable[Document]) -> int:
        if self.client is None:
            return self._fallback.insert(collection, docs)
        payload = [json.dumps(d, ensure_ascii=False, default=str) for d in docs]
        if payload:
            self.client.rpush(self._key(collection), *payload)
        return len(payload)

    def find(self, collection: str, query: Query = None) -> List[Document]:
        if self.client is None:
            return self._fallback.find(collection, query)
        return [d for d in self._load(collection) if matches_query(d, query)]

    def drop(self, collection: str) -> None:
        if self.client is None:
            return self._fallback.drop(collection)
        # Deleting a missing key is not an error
        self.client.delete(self._key(collection))

    def remove(self, collection: str, query: Query = None) -> int:
        if self.client is None:
            return self._fallback.remove(collection, query)
        docs = self._load(collection)
        kept = [d for d in docs if not matches_query(d, query)]
        self._write(collection, kept)
        return len(docs) - len(kept)

    def replace(self, collection: str, docs: Iterable[Document]) -> int:
        if self.client is None:
            return self._fallback.replace(collection, docs)
        docs = list(docs)
        self._write(collection, docs)
        return len(docs)

    def _write(self, collection: str, docs: List[Document]) -> None:
        key = self._key(collection)
        pipeline = self.client.pipeline(transaction=True)
        pipeline.delete(key)
        if docs:
            pipeline.rpush(key, *[json.dumps(d, ensure_ascii=False, default=str) for d in docs])
        pipeline.execute()

    def ping(self) -> bool:
        if self.client is None:
            return False
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False


def create_document_store(url: Optional[str] = None) -> DocumentStore:
    url = url or settings.REDIS_URL
    if url.startswith("memory://"):
        return InMemoryDocumentStore()
    return RedisDocumentStore(url)

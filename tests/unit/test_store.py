from __future__ import annotations

import pytest
from google.api_core import exceptions as api_exceptions

from envcollect.common.errors import StoreConflictError, StoreError, ValidationError
from envcollect.common.store import FirestoreStore, MemoryStore


def test_get_missing_document_returns_none():
    assert MemoryStore().get("weather_cache", "nope") is None


def test_put_and_get_return_copies():
    store = MemoryStore()
    doc = {"history": [1, 2]}
    store.put("c", "k", doc)
    doc["history"].append(3)

    fetched = store.get("c", "k")
    fetched["history"].append(4)

    assert store.get("c", "k") == {"history": [1, 2]}


def test_add_generates_distinct_keys():
    store = MemoryStore()
    first = store.add("weather_raw", {"n": 1})
    second = store.add("weather_raw", {"n": 1})

    assert first != second
    assert len(store.documents("weather_raw")) == 2


def test_transact_sees_none_for_new_document():
    store = MemoryStore()
    seen = []

    def mutate(existing):
        seen.append(existing)
        return {"count": 1}

    assert store.transact("c", "k", mutate) == {"count": 1}
    assert seen == [None]


def test_transact_retries_until_budget_then_raises():
    store = MemoryStore(max_attempts=2)

    def mutate(existing):
        store.put("c", "k", {"other": True})
        return {"mine": True}

    with pytest.raises(StoreConflictError):
        store.transact("c", "k", mutate)
    assert store.get("c", "k") == {"other": True}


class FakeSnapshot:
    def __init__(self, data):
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeDocument:
    def __init__(self, client, collection, key):
        self.client = client
        self.collection = collection
        self.id = key

    def get(self, transaction=None):
        self.client.reads += 1
        if self.client.read_error is not None:
            raise self.client.read_error
        return FakeSnapshot(self.client.docs.get((self.collection, self.id)))

    def set(self, data):
        self.client.docs[(self.collection, self.id)] = dict(data)


class FakeCollection:
    def __init__(self, client, name):
        self.client = client
        self.name = name

    def document(self, key):
        return FakeDocument(self.client, self.name, key)

    def add(self, data):
        key = f"doc-{len(self.client.docs) + 1}"
        self.client.docs[(self.name, key)] = dict(data)
        return None, FakeDocument(self.client, self.name, key)


class FakeTransaction:
    def __init__(self, client, max_attempts):
        self.client = client
        self._max_attempts = max_attempts
        self._read_only = False
        self._id = None
        self._pending = []
        self.commits = 0
        self.rollbacks = 0

    def _clean_up(self):
        self._pending = []
        self._id = None

    def _begin(self, retry_id=None):
        self._id = b"txn-1"

    def _commit(self):
        self.commits += 1
        if self.commits <= self.client.aborted_commits:
            raise api_exceptions.Aborted("contention on document")
        for ref, data in self._pending:
            ref.set(data)
        self._clean_up()
        return []

    def _rollback(self):
        self.rollbacks += 1
        self._clean_up()

    def set(self, ref, data):
        self._pending.append((ref, data))


class FakeFirestoreClient:
    def __init__(self, *, aborted_commits=0, read_error=None):
        self.docs = {}
        self.aborted_commits = aborted_commits
        self.read_error = read_error
        self.reads = 0
        self.transactions = []
        self.closed = False

    def collection(self, name):
        return FakeCollection(self, name)

    def transaction(self, max_attempts):
        txn = FakeTransaction(self, max_attempts)
        self.transactions.append(txn)
        return txn

    def close(self):
        self.closed = True


def test_firestore_get_missing_document_returns_none():
    store = FirestoreStore(FakeFirestoreClient())

    assert store.get("weather_cache", "nope") is None


def test_firestore_put_add_and_get():
    client = FakeFirestoreClient()
    store = FirestoreStore(client)

    store.put("weather_cache", "house-nick", {"count": 1})
    key = store.add("weather_raw", {"pressure_mb": 1013.0})

    assert store.get("weather_cache", "house-nick") == {"count": 1}
    assert client.docs[("weather_raw", key)] == {"pressure_mb": 1013.0}


def test_firestore_transact_commits_mutated_document():
    client = FakeFirestoreClient()
    client.docs[("weather_cache", "house-nick")] = {"count": 1}
    store = FirestoreStore(client)

    updated = store.transact("weather_cache", "house-nick", lambda existing: {"count": existing["count"] + 1})

    assert updated == {"count": 2}
    assert client.docs[("weather_cache", "house-nick")] == {"count": 2}


def test_firestore_transact_retries_after_abort():
    client = FakeFirestoreClient(aborted_commits=1)
    store = FirestoreStore(client, max_attempts=3)
    seen = []

    def mutate(existing):
        seen.append(existing)
        return {"count": 1}

    assert store.transact("weather_cache", "house-nick", mutate) == {"count": 1}
    assert seen == [None, None]
    assert client.transactions[0].commits == 2


def test_firestore_conflicts_past_budget_raise_store_conflict():
    client = FakeFirestoreClient(aborted_commits=100)
    store = FirestoreStore(client, max_attempts=3)

    with pytest.raises(StoreConflictError):
        store.transact("weather_cache", "house-nick", lambda existing: {"count": 1})

    assert client.transactions[0].commits == 3
    assert ("weather_cache", "house-nick") not in client.docs


def test_firestore_read_failure_is_fatal_store_error():
    client = FakeFirestoreClient(read_error=api_exceptions.PermissionDenied("no access"))
    store = FirestoreStore(client, max_attempts=3)

    with pytest.raises(StoreError) as excinfo:
        store.transact("weather_cache", "house-nick", lambda existing: {"count": 1})

    assert not isinstance(excinfo.value, StoreConflictError)
    assert client.reads == 1
    assert client.transactions[0].commits == 0


def test_firestore_get_failure_is_store_error():
    store = FirestoreStore(FakeFirestoreClient(read_error=api_exceptions.ServiceUnavailable("down")))

    with pytest.raises(StoreError):
        store.get("weather_cache", "house-nick")


def test_firestore_pipeline_error_from_mutate_propagates_unchanged():
    client = FakeFirestoreClient()
    store = FirestoreStore(client)
    failure = ValidationError("bad history")

    def mutate(existing):
        raise failure

    with pytest.raises(ValidationError) as excinfo:
        store.transact("weather_cache", "house-nick", mutate)

    assert excinfo.value is failure
    assert client.transactions[0].commits == 0
    assert client.transactions[0].rollbacks == 1


def test_firestore_close_closes_client():
    client = FakeFirestoreClient()
    FirestoreStore(client).close()

    assert client.closed

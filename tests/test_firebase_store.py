import pytest

from planner_app.core.firebase_store import FirestoreBlobStore, init_firestore
from planner_app.planner.stores import LogStore
from planner_app.planner.storage import LOGS, CollectionGateway, PersistenceError


class FakeSnapshot:
    def __init__(self, data):
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return self._data


class FakeDocument:
    def __init__(self, docs, key, fail=False):
        self.docs = docs
        self.key = key
        self.fail = fail

    def get(self):
        if self.fail:
            raise ConnectionError("unavailable")
        return FakeSnapshot(self.docs.get(self.key))

    def set(self, data):
        if self.fail:
            raise ConnectionError("unavailable")
        self.docs[self.key] = data


class FakeCollection:
    def __init__(self, client, name):
        self.client = client
        self.name = name

    def document(self, key):
        return FakeDocument(self.client.docs, (self.name, key), fail=self.client.fail)


class FakeFirestore:
    def __init__(self):
        self.docs = {}
        self.fail = False

    def collection(self, name):
        return FakeCollection(self, name)


def test_firestore_store_roundtrip():
    client = FakeFirestore()
    store = FirestoreBlobStore(client=client, root="alice")
    assert store.get(LOGS) is None
    store.set(LOGS, {"schema": LOGS, "version": 1, "data": []})
    assert client.docs[("alice", LOGS)] == {"payload": {"schema": LOGS, "version": 1, "data": []}}
    assert store.get(LOGS)["data"] == []


def test_firestore_failures_become_persistence_errors():
    client = FakeFirestore()
    client.fail = True
    store = FirestoreBlobStore(client=client)
    with pytest.raises(PersistenceError):
        store.get(LOGS)
    with pytest.raises(PersistenceError):
        store.set(LOGS, [])

    logs = LogStore.load(CollectionGateway(store))
    assert logs.all() == []


def test_init_without_credentials_fails(monkeypatch):
    monkeypatch.delenv("FIREBASE_CREDENTIALS", raising=False)
    with pytest.raises(PersistenceError):
        init_firestore()

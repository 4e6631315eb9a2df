import pytest


class FakeSnapshot:
    """Stand-in for a Firestore DocumentSnapshot."""

    def __init__(self, doc_id, data):
        self.id = doc_id
        self.exists = data is not None
        self._data = data

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeDocumentRef:
    def __init__(self, store, path):
        self._store = store
        self._path = path

    @property
    def id(self):
        return self._path[-1]

    def collection(self, name):
        return FakeCollectionRef(self._store, self._path + (name,))

    def get(self):
        return FakeSnapshot(self.id, self._store.get(self._path))

    def set(self, data, merge=False):
        existing = self._store.get(self._path) if merge else None
        merged = dict(existing or {})
        for key, value in data.items():
            if type(value).__name__ == "Increment":
                merged[key] = merged.get(key, 0) + value.value
            else:
                merged[key] = value
        self._store[self._path] = merged


class FakeCollectionRef:
    def __init__(self, store, path):
        self._store = store
        self._path = path

    def document(self, doc_id):
        return FakeDocumentRef(self._store, self._path + (doc_id,))

    def stream(self):
        depth = len(self._path) + 1
        for path, data in list(self._store.items()):
            if len(path) == depth and path[:-1] == self._path:
                yield FakeSnapshot(path[-1], data)


class FakeBatch:
    """Queues writes and applies them all on commit, like a WriteBatch."""

    def __init__(self, db):
        self._db = db
        self._writes = []

    def set(self, doc_ref, data, merge=False):
        self._writes.append((doc_ref, data, merge))

    def commit(self):
        if self._db.fail_next_commit:
            self._db.fail_next_commit = False
            raise RuntimeError("Firestore batch write failed")
        for doc_ref, data, merge in self._writes:
            doc_ref.set(data, merge=merge)


class FakeFirestore:
    """In-memory Firestore double keyed by document path tuples."""

    def __init__(self):
        self.store = {}
        self.fail_next_commit = False

    def collection(self, name):
        return FakeCollectionRef(self.store, (name,))

    def batch(self):
        return FakeBatch(self)

    def doc(self, *path):
        return self.store.get(tuple(path))


@pytest.fixture
def members():
    """Three group members, the current user last."""
    return [
        {"id": "A", "displayName": "Raj", "isSelf": False},
        {"id": "B", "displayName": "Ajit", "isSelf": False},
        {"id": "C", "displayName": "Vishal", "isSelf": True},
    ]


@pytest.fixture
def fake_db(monkeypatch):
    """Route every Firestore access to an in-memory store."""
    db = FakeFirestore()
    for module in ("participants", "expenses", "firebase_store"):
        monkeypatch.setattr(f"{module}.get_db", lambda: db)
    return db


@pytest.fixture
def no_db(monkeypatch):
    """Simulate Firestore being unavailable."""
    for module in ("participants", "expenses", "firebase_store"):
        monkeypatch.setattr(f"{module}.get_db", lambda: None)


@pytest.fixture
def group(fake_db):
    """A group with three members stored in Firestore."""
    fake_db.collection("groups").document("trip").set({"name": "Goa", "members": ["A", "B", "C"]})
    fake_db.collection("users").document("A").set({"name": "Raj"})
    fake_db.collection("users").document("B").set({"name": "Ajit"})
    fake_db.collection("users").document("C").set({"name": "Vishal"})
    return "trip"

# tests/conftest.py
import os
import tempfile
from datetime import datetime, timezone

import pytest

_DB_FILE = os.path.join(tempfile.mkdtemp(prefix="catalog-tests-"), "catalog.db")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_FILE}"
os.environ.pop("OPENSEARCH_URL", None)
os.environ.pop("OPENSEARCH_NODE", None)

from opensearchpy.exceptions import ConnectionError as OSConnectionError  # noqa: E402
from opensearchpy.exceptions import NotFoundError, RequestError  # noqa: E402

from catalog import models  # noqa: E402,F401
from catalog.db import Base, SessionLocal, engine  # noqa: E402
from catalog.search_index import SearchIndexClient  # noqa: E402


def _as_dt(v):
    # OpenSearch reads naive dates as UTC and compares instants
    dt = datetime.fromisoformat(str(v).replace("Z", "+00:00"))
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.replace(tzinfo=None)


def _in_range(value, bounds, dates=False):
    if value is None:
        return False
    if dates:
        value = _as_dt(value)
    for op, limit in bounds.items():
        limit = _as_dt(limit) if dates else limit
        if op == "gte" and value < limit:
            return False
        if op == "lte" and value > limit:
            return False
    return True


def _sort_value(doc, field):
    if field == "id.num":
        return int(doc["id"])
    if field == "id":
        # keyword field: lexicographic
        return str(doc["id"])
    return doc.get(field.replace(".keyword", "")) or 0


def _text_hit(doc, query):
    needle = query.strip().lower()
    return any(needle in (doc.get(f) or "").lower() for f in ("name", "description"))


class _FakeIndices:
    def __init__(self, store):
        self.store = store
        self.created = []

    def exists(self, index):
        return index in self.store.indexes

    def create(self, index, body=None):
        if index in self.store.indexes:
            raise RequestError(400, "resource_already_exists_exception", {})
        self.store.indexes[index] = {}
        self.store.mappings[index] = body
        self.created.append(index)
        return {"acknowledged": True}

    def delete(self, index):
        if index not in self.store.indexes:
            raise NotFoundError(404, "index_not_found_exception", {})
        del self.store.indexes[index]
        return {"acknowledged": True}


class FakeOpenSearch:
    """In-memory stand-in for the handful of client calls the index adapter makes.

    Text queries match case-insensitive substrings of name or description, so a
    fully synced fake answers the same membership as the store query.
    """

    def __init__(self):
        self.indexes = {}
        self.mappings = {}
        self.indices = _FakeIndices(self)
        self.searches = []

    def docs(self, index):
        return self.indexes.get(index, {})

    def index(self, index, id, body, refresh=None):
        if index not in self.indexes:
            # auto-created with a dynamic mapping
            self.indexes[index] = {}
            self.mappings[index] = None
        self.indexes[index][str(id)] = dict(body)
        return {"result": "created"}

    def delete(self, index, id, refresh=None):
        if str(id) not in self.indexes.get(index, {}):
            raise NotFoundError(404, "not_found", {})
        del self.indexes[index][str(id)]
        return {"result": "deleted"}

    def bulk(self, body, refresh=None):
        items = []
        for action, doc in zip(body[::2], body[1::2]):
            meta = action["index"]
            self.index(meta["_index"], meta["_id"], doc)
            items.append({"index": {"_id": meta["_id"], "status": 201}})
        return {"errors": False, "items": items}

    def _matches(self, doc, query):
        b = query.get("bool", {})
        for clause in b.get("must", []):
            if "multi_match" in clause and not _text_hit(doc, clause["multi_match"]["query"]):
                return False
        for clause in b.get("filter", []):
            if "range" in clause:
                (field, bounds), = clause["range"].items()
                if not _in_range(doc.get(field), bounds, dates=field in ("createdAt", "updatedAt")):
                    return False
            elif "term" in clause:
                (field, value), = clause["term"].items()
                if doc.get(field) != value:
                    return False
            elif "terms" in clause:
                (field, values), = clause["terms"].items()
                if str(doc.get(field)) not in values:
                    return False
        should = b.get("should", [])
        if should:
            hit = False
            for clause in should:
                for kind in ("match_phrase_prefix", "multi_match"):
                    if kind in clause:
                        body = clause[kind]
                        term = body["name"]["query"] if kind == "match_phrase_prefix" else body["query"]
                        hit = hit or _text_hit(doc, term)
            if not hit:
                return False
        return True

    def search(self, index, body):
        self.searches.append(body)
        # insertion order, like an unsorted shard; only the requested keys order hits
        docs = [d for d in self.docs(index).values() if self._matches(d, body.get("query", {}))]
        for sort in reversed(body.get("sort", [])):
            (field, opts), = sort.items()
            docs.sort(key=lambda d, f=field: _sort_value(d, f), reverse=opts.get("order") == "desc")
        total = len(docs)
        start = body.get("from", 0)
        page = docs[start:start + body.get("size", 10)]
        return {
            "hits": {
                "total": {"value": total, "relation": "eq"},
                "hits": [{"_id": str(d["id"]), "_source": d} for d in page],
            }
        }


class _Down:
    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise OSConnectionError("N/A", "connection refused", None)
        return fail


class UnavailableOpenSearch(_Down):
    """Every call fails the way an unreachable cluster does."""

    def __init__(self):
        self.indices = _Down()


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def fake_os():
    return FakeOpenSearch()


@pytest.fixture
def search_index(fake_os):
    return SearchIndexClient(fake_os, "resources-test")


@pytest.fixture
def down_index():
    return SearchIndexClient(UnavailableOpenSearch(), "resources-test")


def _client(search_index):
    from fastapi.testclient import TestClient
    from catalog.main import bind_services, create_app

    app = create_app()
    bind_services(app, search_index, session_factory=SessionLocal)
    return TestClient(app)


@pytest.fixture
def client(db, search_index):
    yield _client(search_index)


@pytest.fixture
def client_no_index(db):
    yield _client(None)


@pytest.fixture
def client_down(db, down_index):
    yield _client(down_index)



import copy
import sys
import uuid
from pathlib import Path

import pytest

# Ensure repository root is on sys.path so `import couchpush...` works locally
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class FakeCouch:
    """In-memory stand-in for CouchTransport talking to a single database.

    Behaves like a small CouchDB: database probe/creation, ``_all_docs`` key
    lookups and ``_bulk_docs`` writes with conflict detection. Canned answers
    can be queued per (method, endpoint) with ``on()``; an exception instance
    in the queue is raised instead of returned. Request bodies are recorded as
    deep copies so later in-place mutation does not rewrite history.
    """

    def __init__(self, exists=True):
        self.exists = exists
        self.docs = {}
        self.calls = []
        self.overrides = {}
        self.closed = False

    def on(self, method, endpoint, *responses):
        self.overrides[(method, endpoint)] = list(responses)

    def seed(self, doc_id, rev="1-abc", **fields):
        self.docs[doc_id] = {"_id": doc_id, "_rev": rev, **fields}

    def calls_to(self, endpoint):
        return [c for c in self.calls if _endpoint(c[1]) == endpoint]

    def close(self):
        self.closed = True

    def get(self, url):
        return self.request("GET", url)

    def put(self, url, body=None):
        return self.request("PUT", url, body)

    def post(self, url, body=None):
        return self.request("POST", url, body)

    def request(self, method, url, body=None):
        self.calls.append((method, url, copy.deepcopy(body)))
        endpoint = _endpoint(url)
        queue = self.overrides.get((method, endpoint))
        if queue:
            answer = queue.pop(0) if len(queue) > 1 else queue[0]
            if isinstance(answer, Exception):
                raise answer
            return copy.deepcopy(answer)

        if endpoint == "":
            if method == "GET":
                if self.exists:
                    return {"db_name": "app", "doc_count": len(self.docs)}
                return {"error": "not_found", "reason": "no_db_file"}
            if method == "PUT":
                if self.exists:
                    return {"error": "file_exists", "reason": "The database could not be created, the file already exists."}
                self.exists = True
                return {"ok": True}
        if endpoint == "_all_docs":
            return {"rows": [self._row(key) for key in body["keys"]]}
        if endpoint == "_bulk_docs":
            return [self._write(doc) for doc in body["docs"]]
        raise AssertionError(f"unexpected request {method} {url}")

    def _row(self, key):
        doc = self.docs.get(key)
        if doc is None:
            return {"key": key, "error": "not_found"}
        return {"id": key, "key": key, "value": {"rev": doc["_rev"]}}

    def _write(self, doc):
        doc_id = doc.get("_id") or uuid.uuid4().hex
        current = self.docs.get(doc_id)
        current_rev = current["_rev"] if current else None
        if doc.get("_rev") != current_rev:
            return {"id": doc_id, "error": "conflict", "reason": "Document update conflict."}
        generation = int(current_rev.split("-")[0]) + 1 if current_rev else 1
        rev = f"{generation}-{uuid.uuid4().hex[:8]}"
        self.docs[doc_id] = {**doc, "_id": doc_id, "_rev": rev}
        return {"ok": True, "id": doc_id, "rev": rev}


def _endpoint(url):
    last = url.rstrip("/").rsplit("/", 1)[-1]
    return last if last in ("_all_docs", "_bulk_docs") else ""


@pytest.fixture
def couch():
    return FakeCouch()


@pytest.fixture
def missing_couch():
    return FakeCouch(exists=False)


@pytest.fixture(autouse=True)
def _clean_couchpush_env(monkeypatch):
    """Keep the developer's COUCHPUSH_* settings out of the tests."""
    for name in (
        "COUCHPUSH_URL",
        "COUCHPUSH_BATCH_SIZE",
        "COUCHPUSH_TIMEOUT",
        "COUCHPUSH_VERIFY_TLS",
        "COUCHPUSH_MAX_RETRIES",
        "COUCHPUSH_CONVERT",
    ):
        monkeypatch.delenv(name, raising=False)
    yield

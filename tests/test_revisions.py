import pytest

from couchpush.errors import StoreError, TransportError
from couchpush.revisions import index_by_id, resolve_revisions

URL = "http://localhost:5984/app"


def test_matching_documents_get_remote_revision(couch):
    couch.seed("a", rev="3-aaa")
    couch.seed("c", rev="1-ccc")
    batch = [{"_id": "a"}, {"_id": "b"}, {"_id": "c", "x": 1}]

    matched = resolve_revisions(couch, batch, URL)

    assert matched == 2
    assert batch[0]["_rev"] == "3-aaa"
    assert "_rev" not in batch[1]
    assert batch[2] == {"_id": "c", "x": 1, "_rev": "1-ccc"}


def test_lookup_posts_keys_to_all_docs(couch):
    resolve_revisions(couch, [{"_id": "a"}, {"_id": "b"}], URL)

    method, url, body = couch.calls[0]
    assert method == "POST"
    assert url == URL + "/_all_docs"
    assert body == {"keys": ["a", "b"]}


def test_caller_revision_is_discarded(couch):
    batch = [{"_id": "new", "_rev": "9-stale"}]

    resolve_revisions(couch, batch, URL)

    assert "_rev" not in batch[0]


def test_caller_revision_replaced_by_current_one(couch):
    couch.seed("a", rev="5-current")
    batch = [{"_id": "a", "_rev": "2-old"}]

    resolve_revisions(couch, batch, URL)

    assert batch[0]["_rev"] == "5-current"


def test_no_identifiers_skips_remote_call(couch):
    batch = [{"a": 1}, {"_id": ""}, {"_id": None, "_rev": "1-x"}]

    assert resolve_revisions(couch, batch, URL) == 0
    assert couch.calls == []
    assert "_rev" not in batch[2]


def test_empty_batch_skips_remote_call(couch):
    assert resolve_revisions(couch, [], URL) == 0
    assert couch.calls == []


def test_duplicate_ids_last_document_governs(couch):
    couch.seed("dup", rev="2-dup")
    first, last = {"_id": "dup", "n": 1}, {"_id": "dup", "n": 2}

    resolve_revisions(couch, [first, last], URL)

    assert couch.calls[0][2] == {"keys": ["dup"]}
    assert "_rev" not in first
    assert last["_rev"] == "2-dup"
    assert index_by_id([first, last]) == {"dup": last}


def test_rows_for_unknown_documents_are_ignored(couch):
    couch.on("POST", "_all_docs", {"rows": [
        {"id": "stranger", "key": "stranger", "value": {"rev": "1-s"}},
        {"key": "a", "error": "not_found"},
    ]})
    batch = [{"_id": "a"}]

    assert resolve_revisions(couch, batch, URL) == 0
    assert "_rev" not in batch[0]


def test_store_error_payload_is_raised(couch):
    payload = {"error": "unauthorized", "reason": "You are not a server admin."}
    couch.on("POST", "_all_docs", payload)

    with pytest.raises(StoreError) as exc_info:
        resolve_revisions(couch, [{"_id": "a"}], URL)

    assert exc_info.value.payload == payload


def test_transport_error_propagates(couch):
    couch.on("POST", "_all_docs", TransportError())

    with pytest.raises(TransportError) as exc_info:
        resolve_revisions(couch, [{"_id": "a"}], URL)

    assert str(exc_info.value) == "Can't connect to CouchDB server"


def test_malformed_rows_are_skipped(couch):
    couch.on("POST", "_all_docs", {"rows": [
        {"id": "a", "value": "1-not-an-object"},
        {"key": "b", "error": "not_found"},
        {"id": "c", "value": {"rev": "2-ccc"}},
    ]})
    batch = [{"_id": "a"}, {"_id": "b"}, {"_id": "c"}]

    assert resolve_revisions(couch, batch, URL) == 1
    assert "_rev" not in batch[0]
    assert batch[2]["_rev"] == "2-ccc"


def test_index_skips_non_string_ids():
    docs = [{"_id": ["x"]}, {"_id": 3}, {"_id": ""}, {"_id": "ok"}]

    assert list(index_by_id(docs)) == ["ok"]

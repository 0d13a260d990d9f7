"""Attach current revision tags to outgoing documents.

The store rejects an update unless it names the revision it supersedes, so
before every bulk write the batch is matched against ``_all_docs``.
"""
from __future__ import annotations

from typing import Any, Dict, List, MutableMapping

from couchpush.errors import StoreError, is_error_payload
from couchpush.logger import get_logger
from couchpush.transport import join_url

logger = get_logger(__name__)


def index_by_id(batch: List[MutableMapping[str, Any]]) -> Dict[str, MutableMapping[str, Any]]:
    """Map ``_id`` to document for every document with a non-empty string id.

    A repeated id keeps the last document that carries it.
    """
    lookup: Dict[str, MutableMapping[str, Any]] = {}
    for doc in batch:
        doc_id = doc.get("_id")
        if doc_id and isinstance(doc_id, str):
            lookup[doc_id] = doc
    return lookup


def resolve_revisions(transport, batch: List[MutableMapping[str, Any]], url: str) -> int:
    """Replace each document's ``_rev`` with the store's current one, in place.

    Caller-supplied revisions are always discarded first. Documents the store
    does not know stay without ``_rev`` so they are created.

    Returns:
        Number of documents that received a revision.

    Raises:
        TransportError: the lookup request failed.
        StoreError: the store answered with an error object.
    """
    for doc in batch:
        doc.pop("_rev", None)

    lookup = index_by_id(batch)
    if not lookup:
        logger.debug("[revisions] No identified documents in batch, skipping lookup")
        return 0

    result = transport.post(join_url(url, "_all_docs"), {"keys": list(lookup)})
    if is_error_payload(result):
        raise StoreError(result)

    rows = result.get("rows", []) if isinstance(result, dict) else []
    matched = 0
    for row in rows:
        if not isinstance(row, dict):
            continue
        doc_id = row.get("id")
        value = row.get("value")
        if not isinstance(doc_id, str) or not isinstance(value, dict):
            continue
        doc = lookup.get(doc_id)
        rev = value.get("rev")
        if doc is not None and rev:
            doc["_rev"] = rev
            matched += 1

    logger.debug(f"[revisions] {matched}/{len(lookup)} documents already exist at {url}")
    return matched

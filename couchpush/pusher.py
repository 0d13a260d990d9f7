"""Bulk write of one batch through ``_bulk_docs``."""
from __future__ import annotations

from typing import Any, List, MutableMapping

from couchpush.errors import StoreError, is_error_payload
from couchpush.logger import get_logger
from couchpush.revisions import index_by_id
from couchpush.transport import join_url

logger = get_logger(__name__)


def send_batch(transport, batch: List[MutableMapping[str, Any]], url: str) -> List[StoreError]:
    """Submit ``batch`` and return one StoreError per rejected document.

    A rejected document does not affect its siblings, which the store may have
    written. New revisions reported for accepted documents are written back
    into the outgoing documents.

    Raises:
        TransportError: the request failed.
        StoreError: the whole request was refused (e.g. unauthorized).
    """
    result = transport.post(join_url(url, "_bulk_docs"), {"docs": batch})
    if is_error_payload(result):
        raise StoreError(result)
    if not isinstance(result, list):
        raise StoreError({"error": "bad_response", "reason": f"unexpected _bulk_docs answer: {result!r}"})

    lookup = index_by_id(batch)
    failures: List[StoreError] = []
    for entry in result:
        if not isinstance(entry, dict):
            continue
        if "error" in entry:
            failures.append(StoreError(entry))
            continue
        doc = lookup.get(entry.get("id"))
        if doc is not None and entry.get("rev"):
            doc["_rev"] = entry["rev"]

    if failures:
        logger.warning(f"[pusher] {len(failures)}/{len(batch)} documents rejected by {url}")
    return failures

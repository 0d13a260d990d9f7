"""Top-level push driver.

``push`` validates its input eagerly, then returns a lazy iterator that
bootstraps the database and walks the batches strictly in order:

    bootstrap -> (resolve revisions -> bulk write -> report) per batch

No error stops the run. Bootstrap, lookup and write failures are all yielded
as ErrorEvents and the next step is still attempted.
"""
from __future__ import annotations

import copy
import json
from typing import Any, Dict, Iterable, Iterator, List, Mapping, MutableMapping, Optional, Sequence, Tuple

from couchpush.bootstrap import ensure_database
from couchpush.config import DEFAULT_BATCH_SIZE
from couchpush.errors import CouchPushError, ValidationError
from couchpush.events import ErrorEvent, ProgressEvent, SyncEvent
from couchpush.logger import ContextLogger, get_logger
from couchpush.pusher import send_batch
from couchpush.revisions import resolve_revisions
from couchpush.transport import CouchTransport

logger = get_logger(__name__)

Document = MutableMapping[str, Any]


def load_document_set(payload: Any) -> List[Document]:
    """Normalise a rendered bundle into an ordered list of documents.

    Accepts JSON text, a single document with ``_id``, an object with a
    ``docs`` array, or a bare list of documents.

    Raises:
        ValidationError: the payload holds no usable document array, or a
            document carries an ``_id`` that is not a string.
    """
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ValidationError(f"invalid UTF-8: {e}") from e
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise ValidationError(f"invalid JSON: {e}") from e

    if isinstance(payload, Mapping):
        if "_id" in payload:
            docs = [payload]
        elif isinstance(payload.get("docs"), list):
            docs = payload["docs"]
        else:
            raise ValidationError("no docs array")
    elif isinstance(payload, list):
        docs = payload
    else:
        raise ValidationError("no docs array")

    for position, doc in enumerate(docs):
        if not isinstance(doc, MutableMapping):
            raise ValidationError(
                f"docs[{position}] is a {type(doc).__name__}, expected an object"
            )
        if "_id" in doc and not isinstance(doc["_id"], str):
            raise ValidationError(
                f"docs[{position}]._id is a {type(doc['_id']).__name__}, expected a string"
            )
    return list(docs)


def partition(documents: Sequence[Document], size: int) -> Iterator[List[Document]]:
    """Yield contiguous slices of at most ``size`` documents, in input order."""
    if not isinstance(size, int) or size < 1:
        raise ValueError(f"batch size must be a positive integer, got {size!r}")
    for start in range(0, len(documents), size):
        yield list(documents[start:start + size])


def push(documents: Any, url: str, batch_size: int = DEFAULT_BATCH_SIZE,
         transport: Optional[CouchTransport] = None, **transport_options) -> Iterator[SyncEvent]:
    """Push a document set to the database at ``url``.

    Input is validated before this function returns; nothing touches the
    network until the returned iterator is consumed. Documents are mutated in
    place (``_rev`` is replaced by the store's current revision).

    Args:
        documents: anything ``load_document_set`` accepts
        url: database URL
        batch_size: documents per bulk request
        transport: transport to use; one is created (and closed) when omitted
        **transport_options: passed to ``CouchTransport`` when creating one

    Returns:
        Iterator of ErrorEvent / ProgressEvent, finite and not restartable.
    """
    docs = load_document_set(documents)
    if not isinstance(batch_size, int) or batch_size < 1:
        raise ValueError(f"batch size must be a positive integer, got {batch_size!r}")
    return _run(docs, url, batch_size, transport, transport_options)


def _run(docs: List[Document], url: str, batch_size: int,
         transport: Optional[CouchTransport], transport_options: Dict[str, Any]) -> Iterator[SyncEvent]:
    owned = transport is None
    if owned:
        transport = CouchTransport(**transport_options)
    log = ContextLogger(logger, url=url)
    try:
        log.info(f"[sync] Pushing {len(docs)} documents to {url}")
        try:
            ensure_database(transport, url)
        except CouchPushError as e:
            log.warning(f"[sync] Bootstrap failed: {e}")
            yield ErrorEvent(e)

        for number, batch in enumerate(partition(docs, batch_size)):
            batch_log = log.bind(batch=number)
            try:
                resolve_revisions(transport, batch, url)
            except CouchPushError as e:
                batch_log.warning(f"[sync] Revision lookup failed: {e}")
                yield ErrorEvent(e, batch=number)

            try:
                failures = send_batch(transport, batch, url)
            except CouchPushError as e:
                batch_log.warning(f"[sync] Bulk write failed: {e}")
                yield ErrorEvent(e, batch=number)
            else:
                for failure in failures:
                    batch_log.warning(f"[sync] Document rejected: {failure}")
                    yield ErrorEvent(failure, batch=number)

            batch_log.info(f"[sync] Batch of {len(batch)} documents done")
            yield ProgressEvent(len(batch), batch=number)
    finally:
        if owned:
            transport.close()


def push_many(documents: Any, urls: Iterable[str], batch_size: int = DEFAULT_BATCH_SIZE,
              transport: Optional[CouchTransport] = None,
              **transport_options) -> Iterator[Tuple[str, SyncEvent]]:
    """Push the same document set to several databases, one after the other.

    Each url receives its own copy of the documents so revisions resolved for
    one database do not leak into the next. Duplicate urls are pushed once.
    """
    docs = load_document_set(documents)
    seen: List[str] = []
    for url in urls:
        if url not in seen:
            seen.append(url)
    runs = [(url, push(copy.deepcopy(docs), url, batch_size, transport, **transport_options))
            for url in seen]
    return ((url, event) for url, events in runs for event in events)

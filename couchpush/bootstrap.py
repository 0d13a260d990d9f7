"""Make sure the target database exists before any document traffic."""
from __future__ import annotations

from typing import Any, Dict

from couchpush.errors import BootstrapError, is_error_payload
from couchpush.logger import get_logger

logger = get_logger(__name__)

# CouchDB 1.x answers "no_db_file"; 2.x and later use a sentence.
MISSING_DB_REASONS = ("no_db_file", "Database does not exist.")


def is_missing_database(payload: Any) -> bool:
    return (
        is_error_payload(payload)
        and payload.get("error") == "not_found"
        and payload.get("reason") in MISSING_DB_REASONS
    )


def ensure_database(transport, url: str, retried: bool = False) -> Dict[str, Any]:
    """Probe ``url`` and create the database once if the store reports it missing.

    ``retried`` guards the single creation attempt: a second missing-database
    answer is raised instead of issuing another PUT.

    Returns:
        The database info object from the probe.

    Raises:
        BootstrapError: the probe returned an error object.
        TransportError: the store could not be reached.
    """
    info = transport.get(url)

    if is_missing_database(info) and not retried:
        logger.info(f"[bootstrap] Database missing, creating {url}")
        created = transport.put(url)
        if is_error_payload(created):
            logger.warning(f"[bootstrap] Create returned {created}")
        return ensure_database(transport, url, retried=True)

    if is_error_payload(info):
        raise BootstrapError(info)

    return info

"""Exception types shared by the sync pipeline, the builder and the CLI."""
from __future__ import annotations

import json
from typing import Any, Dict, Optional

CONNECT_ERROR_MESSAGE = "Can't connect to CouchDB server"


class CouchPushError(Exception):
    """Base exception for all couchpush errors."""
    pass


class ValidationError(CouchPushError):
    """Malformed input document set; raised before any network call."""
    pass


class ConfigurationError(CouchPushError):
    """Error in configuration or environment setup."""
    pass


class BuildError(CouchPushError):
    """Error while rendering a bundle template or running a helper."""
    pass


class TransportError(CouchPushError):
    """Request could not be completed or the response was not JSON.

    The message is always the same fixed string; the underlying cause is
    chained via ``__cause__``.
    """

    kind = "unreachable"

    def __init__(self, message: str = CONNECT_ERROR_MESSAGE, url: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.url = url

    def as_payload(self) -> Dict[str, Any]:
        return {"error": self.kind, "reason": self.message}


class StoreError(CouchPushError):
    """The store answered with an error object (conflict, not_found, ...)."""

    def __init__(self, payload: Any):
        self.payload = payload if isinstance(payload, dict) else {"error": payload}
        super().__init__(json.dumps(self.payload, sort_keys=True, default=str))

    @property
    def error(self) -> Optional[str]:
        return self.payload.get("error")

    @property
    def reason(self) -> Optional[str]:
        return self.payload.get("reason")

    @property
    def doc_id(self) -> Optional[str]:
        return self.payload.get("id")

    def as_payload(self) -> Dict[str, Any]:
        return dict(self.payload)


class BootstrapError(StoreError):
    """Database probe or creation failed after the single permitted retry."""
    pass


def is_error_payload(value: Any) -> bool:
    """True when a parsed store response is a CouchDB error object."""
    return isinstance(value, dict) and "error" in value

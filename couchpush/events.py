"""Events yielded by a push run: one per error, one per completed batch."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Union

from couchpush.errors import CouchPushError


@dataclass(frozen=True)
class ErrorEvent:
    error: CouchPushError
    batch: int = -1

    ok = False

    @property
    def payload(self) -> Dict[str, Any]:
        as_payload = getattr(self.error, "as_payload", None)
        if callable(as_payload):
            return as_payload()
        return {"error": type(self.error).__name__, "reason": str(self.error)}


@dataclass(frozen=True)
class ProgressEvent:
    length: int
    batch: int = 0

    ok = True

    @property
    def payload(self) -> Dict[str, Any]:
        return {"length": self.length}


SyncEvent = Union[ErrorEvent, ProgressEvent]

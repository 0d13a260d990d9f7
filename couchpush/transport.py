"""JSON-over-HTTP transport for a CouchDB-compatible store.

Every call returns the parsed JSON body whatever the HTTP status, because the
store reports failures as JSON error objects. Anything that prevents getting
a JSON body back is a TransportError with a fixed message.
"""
from __future__ import annotations

import json
import warnings
from typing import Any, Optional

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from couchpush.config import DEFAULT_MAX_RETRIES, DEFAULT_TIMEOUT
from couchpush.errors import TransportError
from couchpush.logger import get_logger

logger = get_logger(__name__)

JSON_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}

_tls_notice_logged = False


def join_url(url: str, path: str) -> str:
    """Append a store endpoint (``_all_docs``, ``_bulk_docs``) to a database URL."""
    return f"{url.rstrip('/')}/{path.lstrip('/')}"


class CouchTransport:
    """Blocking JSON transport built on a ``requests.Session``."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, verify: bool = False,
                 max_retries: int = DEFAULT_MAX_RETRIES,
                 session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.verify = verify
        self.max_retries = max_retries

        if session is None:
            session = requests.Session()
            # Connection-level retries only; reads and statuses are never retried here.
            retry_strategy = Retry(total=max_retries, read=0, status=0, backoff_factor=1)
            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session

        global _tls_notice_logged
        if not verify and not _tls_notice_logged:
            logger.info("[transport] TLS certificate verification is off (enable with --verify-tls)")
            _tls_notice_logged = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        self.session.close()

    def request(self, method: str, url: str, body: Any = None) -> Any:
        """Send ``method`` to ``url`` with an optional JSON body and return parsed JSON.

        Raises:
            TransportError: the request failed or the body is not valid JSON.
        """
        data = json.dumps(body) if body is not None else None
        logger.debug(f"[transport] {method} {url}")
        # Silence the unverified-HTTPS warning for this call only.
        with warnings.catch_warnings():
            if not self.verify:
                warnings.simplefilter("ignore", urllib3.exceptions.InsecureRequestWarning)
            try:
                response = self.session.request(
                    method,
                    url,
                    data=data,
                    headers=JSON_HEADERS,
                    timeout=self.timeout,
                    verify=self.verify,
                )
            except requests.exceptions.RequestException as e:
                logger.debug(f"[transport] {method} {url} failed: {e}")
                raise TransportError(url=url) from e

        try:
            return response.json()
        except ValueError as e:
            logger.debug(f"[transport] {method} {url} returned non-JSON body (HTTP {response.status_code})")
            raise TransportError(url=url) from e

    def get(self, url: str) -> Any:
        return self.request("GET", url)

    def put(self, url: str, body: Any = None) -> Any:
        return self.request("PUT", url, body)

    def post(self, url: str, body: Any = None) -> Any:
        return self.request("POST", url, body)

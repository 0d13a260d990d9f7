"""Environment-driven configuration for push runs.

Values are read at call time so that CLI flags and tests can override the
environment without re-importing the module.
"""
from __future__ import annotations

import os
from typing import Any, Dict, Iterable, List, Optional

from couchpush.errors import ConfigurationError
from couchpush.logger import get_logger, safe_bool

logger = get_logger(__name__)

URL_ENV = "COUCHPUSH_URL"
DEFAULT_BATCH_SIZE = 100
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_RETRIES = 0


def _env_int(name: str, default: int, minimum: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def get_push_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Resolve push settings from environment variables and explicit overrides.

    Overrides whose value is None are ignored, so argparse namespaces with
    unset flags can be passed straight through.
    """
    config: Dict[str, Any] = {
        "batch_size": _env_int("COUCHPUSH_BATCH_SIZE", DEFAULT_BATCH_SIZE, minimum=1),
        "timeout": _env_float("COUCHPUSH_TIMEOUT", DEFAULT_TIMEOUT),
        "verify_tls": safe_bool(
            os.environ.get("COUCHPUSH_VERIFY_TLS"), False, logger=logger, context="COUCHPUSH_VERIFY_TLS"
        ),
        "max_retries": _env_int("COUCHPUSH_MAX_RETRIES", DEFAULT_MAX_RETRIES, minimum=0),
    }
    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key not in config:
            raise ConfigurationError(f"Unknown setting: {key}")
        config[key] = value

    if not isinstance(config["batch_size"], int) or config["batch_size"] < 1:
        raise ConfigurationError(f"batch size must be a positive integer, got {config['batch_size']!r}")
    if config["timeout"] <= 0:
        raise ConfigurationError(f"timeout must be positive, got {config['timeout']!r}")
    return config


def resolve_urls(cli_urls: Iterable[str] = ()) -> List[str]:
    """Union positional URLs with the one from COUCHPUSH_URL.

    Order is preserved (arguments first) and duplicates are dropped.
    """
    candidates = list(cli_urls or [])
    env_url = os.environ.get(URL_ENV, "").strip()
    if env_url:
        candidates.append(env_url)

    urls: List[str] = []
    for url in candidates:
        url = (url or "").strip()
        if url and url not in urls:
            urls.append(url)
    return urls

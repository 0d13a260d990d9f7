"""Shared helpers for CLI commands."""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, TextIO

# Ensure project root is on sys.path (fallback for development mode)
try:
    import couchpush.sync  # noqa: F401
except ImportError:
    ROOT_DIR = Path(__file__).resolve().parent.parent
    if str(ROOT_DIR) not in sys.path:
        sys.path.insert(0, str(ROOT_DIR))

from couchpush.config import get_push_config, resolve_urls
from couchpush.errors import ConfigurationError, ValidationError
from couchpush.events import ErrorEvent, ProgressEvent
from couchpush.sync import load_document_set, push_many

# Below this many documents progress is shown as a count, otherwise as a percentage.
COUNT_DISPLAY_THRESHOLD = 10


def output_json(data: Any, stream: TextIO = None) -> None:
    """Write JSON to stdout (or stream), single place for all commands."""
    stream = stream or sys.stdout
    json.dump(data, stream, indent=2, default=str)
    stream.write("\n")


def read_input(path: str) -> str:
    """Read a rendered bundle from a file, or from stdin when path is ``-``."""
    if path == "-":
        return sys.stdin.read()
    p = Path(path)
    if not p.is_file():
        raise ValidationError(f"No such file: {path}")
    return p.read_text(encoding="utf-8")


def push_config_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    return get_push_config({
        "batch_size": getattr(args, "batch_size", None),
        "timeout": getattr(args, "timeout", None),
        "max_retries": getattr(args, "max_retries", None),
        "verify_tls": getattr(args, "verify_tls", None),
    })


def target_urls(args: argparse.Namespace) -> List[str]:
    urls = resolve_urls(getattr(args, "urls", None) or [])
    if not urls:
        raise ConfigurationError("No target URL: pass one or set COUCHPUSH_URL")
    return urls


class ProgressReporter:
    """Turns sync events into the running total shown to the user."""

    def __init__(self, total: int, out: TextIO = None, err: TextIO = None):
        self.total = total
        self.pushed = 0
        self.errors = 0
        self.out = out or sys.stdout
        self.err = err or sys.stderr

    def start(self, url: str) -> None:
        self.pushed = 0
        self.out.write(f"Pushing to {url}\n")

    def format_progress(self) -> str:
        if self.total < COUNT_DISPLAY_THRESHOLD:
            return f"{self.pushed} docs pushed"
        percent = int(self.pushed * 100 / self.total) if self.total else 100
        return f"{percent}%"

    def handle(self, event) -> None:
        if isinstance(event, ErrorEvent):
            self.errors += 1
            self.err.write(json.dumps(event.payload, default=str) + "\n")
        elif isinstance(event, ProgressEvent):
            self.pushed += event.length
            self.out.write(self.format_progress() + "\n")
        self.out.flush()


def run_push(payload: Any, args: argparse.Namespace, reporter_cls=ProgressReporter) -> int:
    """Push ``payload`` to every target URL; return the process exit status."""
    docs = load_document_set(payload)
    urls = target_urls(args)
    config = push_config_from_args(args)

    reporter = reporter_cls(len(docs))
    current = None
    events: Iterable = push_many(
        docs,
        urls,
        batch_size=config["batch_size"],
        timeout=config["timeout"],
        verify=config["verify_tls"],
        max_retries=config["max_retries"],
    )
    for url, event in events:
        if url != current:
            current = url
            reporter.start(url)
        reporter.handle(event)
    return 1 if reporter.errors else 0

"""Filesystem helpers used by bundle templates.

Turns source trees into JSON-ready values: plain text, nested objects for
design document directories, and base64 ``_attachments`` entries.
"""
from __future__ import annotations

import base64
import json
import mimetypes
import os
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from couchpush.errors import BuildError
from couchpush.logger import get_logger

logger = get_logger(__name__)

PathLike = Union[str, os.PathLike]

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def _visible(path: Path) -> bool:
    return not path.name.startswith(".")


def read_text(path: PathLike) -> str:
    p = Path(path)
    try:
        return p.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise BuildError(f"Cannot read {p} as UTF-8 (use attachments() for binary files): {e}") from e
    except OSError as e:
        raise BuildError(f"Cannot read {p}: {e}") from e


def map_dir(path: PathLike, strip: bool = False) -> Dict[str, Any]:
    """Convert a directory into a nested object.

    Each file becomes a key named after the file without its extension;
    ``.json`` files are decoded, everything else is kept as text.
    Subdirectories become nested objects. Hidden entries are skipped.

    This tree::

        views/by_name/map.js
        language
        validate_doc_update.js

    becomes::

        {"views": {"by_name": {"map": "..."}},
         "language": "javascript",
         "validate_doc_update": "..."}
    """
    root = Path(path)
    if not root.is_dir():
        raise BuildError(f"Not a directory: {root}")

    result: Dict[str, Any] = {}
    for entry in sorted(root.iterdir()):
        if not _visible(entry):
            continue
        if entry.is_dir():
            result[entry.name] = map_dir(entry, strip=strip)
            continue
        key = entry.stem if entry.suffix else entry.name
        contents = read_text(entry)
        if entry.suffix == ".json":
            try:
                result[key] = json.loads(contents)
            except ValueError as e:
                raise BuildError(f"Invalid JSON in {entry}: {e}") from e
        else:
            result[key] = contents.strip() if strip else contents
    return result


def guess_content_type(path: PathLike) -> str:
    content_type, _ = mimetypes.guess_type(str(path))
    return content_type or DEFAULT_CONTENT_TYPE


def encode_file(path: PathLike) -> str:
    p = Path(path)
    try:
        return base64.b64encode(p.read_bytes()).decode("ascii")
    except OSError as e:
        raise BuildError(f"Cannot read {p}: {e}") from e


def attachments(path: PathLike) -> Dict[str, Dict[str, str]]:
    """Pack every visible file under ``path`` as an inline CouchDB attachment.

    Keys are POSIX paths relative to ``path``.
    """
    root = Path(path)
    if not root.is_dir():
        raise BuildError(f"Not a directory: {root}")

    packed: Dict[str, Dict[str, str]] = {}
    for file_path in sorted(root.rglob("*")):
        rel = file_path.relative_to(root)
        if not file_path.is_file() or any(part.startswith(".") for part in rel.parts):
            continue
        packed[rel.as_posix()] = {
            "content_type": guess_content_type(file_path),
            "data": encode_file(file_path),
        }
    logger.debug(f"[loader] Packed {len(packed)} attachments from {root}")
    return packed


def convert_command() -> str:
    return os.environ.get("COUCHPUSH_CONVERT", "convert")


def convert(path: PathLike, *args: str, output_format: Optional[str] = None) -> str:
    """Run the image conversion command on ``path`` and return base64 output.

    The command writes to stdout (``<format>:-``). A non-zero exit status or a
    missing executable raises BuildError with the captured stderr.
    """
    src = Path(path)
    if not src.is_file():
        raise BuildError(f"No such file: {src}")
    target = f"{output_format}:-" if output_format else "-"
    cmd: List[str] = [convert_command(), str(src), *[str(a) for a in args], target]

    logger.debug(f"[loader] Running {' '.join(cmd)}")
    try:
        r = subprocess.run(cmd, capture_output=True)
    except OSError as e:
        raise BuildError(f"Cannot run {cmd[0]}: {e}") from e

    if r.returncode != 0:
        stderr = (r.stderr or b"").decode("utf-8", errors="replace").strip()
        raise BuildError(f"{cmd[0]} exited with status {r.returncode}: {stderr}")
    return base64.b64encode(r.stdout or b"").decode("ascii")

"""Render a bundle template into the JSON document set pushed to the store.

Templates are Jinja2 files. Paths given to the helpers are relative to the
template's directory::

    {"docs": [
      {"_id": "_design/app",
       "views": {{ json(map_dir("views")) }},
       "_attachments": {{ json(attachments("static")) }}}
    ]}
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from couchpush import loader
from couchpush.errors import BuildError, ValidationError
from couchpush.logger import get_logger

logger = get_logger(__name__)


def _helpers(base_dir: Path) -> Dict[str, Callable[..., Any]]:
    def resolve(path: str) -> Path:
        p = Path(path)
        return p if p.is_absolute() else base_dir / p

    return {
        "read": lambda path: loader.read_text(resolve(path)),
        "map_dir": lambda path, strip=False: loader.map_dir(resolve(path), strip=strip),
        "attachments": lambda path: loader.attachments(resolve(path)),
        "convert": lambda path, *args, **kw: loader.convert(resolve(path), *args, **kw),
        "json": lambda value: json.dumps(value, ensure_ascii=False),
    }


def make_environment(base_dir: Path) -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(base_dir)),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )
    env.globals.update(_helpers(base_dir))
    return env


def render_bundle(template_path: str, context: Optional[Dict[str, Any]] = None) -> str:
    """Render ``template_path`` with the bundle helpers and ``context`` variables."""
    path = Path(template_path).resolve()
    if not path.is_file():
        raise BuildError(f"Template not found: {template_path}")

    env = make_environment(path.parent)
    logger.info(f"[build] Rendering {path}")
    try:
        return env.get_template(path.name).render(**(context or {}))
    except TemplateError as e:
        raise BuildError(f"Template error in {path.name}: {e}") from e


def build_bundle(template_path: str, context: Optional[Dict[str, Any]] = None) -> Any:
    """Render a template and parse the result as JSON."""
    rendered = render_bundle(template_path, context)
    try:
        return json.loads(rendered)
    except ValueError as e:
        raise ValidationError(f"{template_path} did not render to valid JSON: {e}") from e

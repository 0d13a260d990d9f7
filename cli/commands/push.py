"""Push commands: push a rendered bundle, or build and push in one step."""
from __future__ import annotations

import argparse

from cli.core import read_input, run_push
from couchpush.build import build_bundle


def cmd_push(args: argparse.Namespace) -> int:
    """Push an already-rendered JSON bundle (file or stdin)."""
    return run_push(read_input(args.file), args)


def cmd_deploy(args: argparse.Namespace) -> int:
    """Render the bundle template, then push it."""
    return run_push(build_bundle(args.template), args)

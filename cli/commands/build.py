"""Build command: render a bundle template to JSON."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from cli.core import output_json
from couchpush.build import build_bundle


def cmd_build(args: argparse.Namespace) -> int:
    """Render the template and write the resulting JSON bundle."""
    bundle = build_bundle(args.template)
    output = getattr(args, "output", None)
    if output:
        with open(output, "w", encoding="utf-8") as f:
            output_json(bundle, stream=f)
        print(f"Wrote {Path(output).resolve()}", file=sys.stderr)
    else:
        output_json(bundle)
    return 0

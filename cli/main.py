"""CLI entry point: argparse dispatcher for all subcommands."""
from __future__ import annotations

import argparse
import json
import sys
import traceback


# ---------------------------------------------------------------------------
# Command registry: command name → (module_path, function_name)
# Lazy-imported at dispatch time to keep startup fast.
# ---------------------------------------------------------------------------
COMMANDS = {
    "build":  ("cli.commands.build", "cmd_build"),
    "push":   ("cli.commands.push",  "cmd_push"),
    "deploy": ("cli.commands.push",  "cmd_deploy"),
}

# Exit status for bad input or configuration, before anything was pushed.
EXIT_USAGE = 2


# ---------------------------------------------------------------------------
# Shared argparse helpers
# ---------------------------------------------------------------------------
def _add_target_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("urls", nargs="*", metavar="URL",
                   help="Target database URL(s); COUCHPUSH_URL is added to these")
    p.add_argument("-b", "--batch-size", type=int, help="Documents per bulk request (default 100)")
    p.add_argument("--timeout", type=float, help="Per-request timeout in seconds (default 30)")
    p.add_argument("--max-retries", type=int, help="Connection retries per request (default 0)")
    p.add_argument("--verify-tls", action="store_true", default=None,
                   help="Verify TLS certificates (off by default)")


# ---------------------------------------------------------------------------
# Parser builder
# ---------------------------------------------------------------------------
def build_parser() -> argparse.ArgumentParser:
    from cli._version import __version__

    parser = argparse.ArgumentParser(
        prog="couchpush",
        description="Build an application bundle and push it to CouchDB",
    )
    parser.add_argument("--debug", action="store_true", help="Show stack traces on error")
    parser.add_argument("--log-level", help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ...)")
    parser.add_argument("--log-json", action="store_true",
                        help="Log one JSON object per record on stderr (same as LOG_FORMAT=json)")
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    # build
    p = sub.add_parser("build", help="Render a bundle template to JSON")
    p.add_argument("template", help="Jinja2 bundle template")
    p.add_argument("-o", "--output", help="Write JSON here instead of stdout")

    # push
    p = sub.add_parser("push", help="Push an already-rendered JSON bundle")
    p.add_argument("file", help="JSON bundle file, or - for stdin")
    _add_target_args(p)

    # deploy
    p = sub.add_parser("deploy", help="Render a bundle template and push it")
    p.add_argument("template", help="Jinja2 bundle template")
    _add_target_args(p)

    return parser


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------
def main(argv=None) -> None:
    parser = build_parser()
    argv = list(sys.argv[1:] if argv is None else argv)
    debug = False
    if "--debug" in argv:
        debug = True
        argv = [arg for arg in argv if arg != "--debug"]
    args = parser.parse_args(argv)
    args.debug = bool(debug or getattr(args, "debug", False))

    entry = COMMANDS.get(args.command)
    if not entry:
        parser.print_help()
        sys.exit(1)

    from couchpush.errors import ConfigurationError, ValidationError
    from couchpush.logger import set_format, set_level

    try:
        if args.log_level:
            set_level(args.log_level)
    except ValueError as exc:
        parser.error(str(exc))
    if args.log_json:
        set_format("json")

    mod_path, fn_name = entry
    try:
        import importlib

        mod = importlib.import_module(mod_path)
        fn = getattr(mod, fn_name)
        rc = fn(args)
    except KeyboardInterrupt:
        sys.exit(130)
    except (ConfigurationError, ValidationError) as exc:
        json.dump({"ok": False, "error": str(exc)}, sys.stderr, default=str)
        sys.stderr.write("\n")
        if args.debug:
            traceback.print_exc(file=sys.stderr)
        sys.exit(EXIT_USAGE)
    except Exception as exc:
        json.dump({"ok": False, "error": str(exc)}, sys.stderr, default=str)
        sys.stderr.write("\n")
        if args.debug:
            traceback.print_exc(file=sys.stderr)
        sys.exit(1)
    if rc:
        sys.exit(rc)


if __name__ == "__main__":
    main()

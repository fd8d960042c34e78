"""``perch run``: compose the app and serve it with pounce."""

import argparse
import sys

from perch.cli._resolve import resolve_app
from perch.errors import PerchError


def run_command(args: argparse.Namespace) -> None:
    """Resolve ``args.app`` and start the server.

    Composition errors are reported before anything binds a port.
    """
    try:
        app = resolve_app(args.app)
        app.application  # composes
    except (ModuleNotFoundError, AttributeError, TypeError, PerchError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    from perch.server.runner import run_server

    config = app.config
    run_server(
        app,
        args.host or config.host,
        args.port or config.port,
        workers=args.workers if args.workers is not None else config.workers,
        reload=args.reload or config.debug,
        reload_dirs=config.reload_dirs,
        log_level=config.log_level,
    )

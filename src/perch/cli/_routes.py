"""``perch routes``: print the flattened route table.

One row per route, in registration order, with the extension that
owns it.
"""

import argparse
import sys

from perch.cli._resolve import resolve_app
from perch.errors import PerchError


def run_routes(args: argparse.Namespace) -> None:
    try:
        app = resolve_app(args.app)
        routes = app.application.routes
    except (ModuleNotFoundError, AttributeError, TypeError, PerchError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    if not routes:
        print("No routes registered.")
        return

    rows = [
        (", ".join(sorted(route.methods)), route.path, route.extension.qualified_name, route.handler_name)
        for route in routes
    ]
    headers = ("METHOD", "PATH", "EXTENSION", "HANDLER")
    widths = [max(len(headers[i]), *(len(row[i]) for row in rows)) for i in range(3)]

    fmt = f"{{:<{widths[0]}}}  {{:<{widths[1]}}}  {{:<{widths[2]}}}  {{}}"
    print(fmt.format(*headers))
    print("-" * min(sum(widths) + 6 + max(len(row[3]) for row in rows), 80))
    for row in rows:
        print(fmt.format(*row))

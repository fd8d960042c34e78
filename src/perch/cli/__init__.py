"""perch CLI: inspect the composed route table and run the server.

Entry point registered as ``perch`` in ``pyproject.toml``::

    [project.scripts]
    perch = "perch.cli:main"
"""

import argparse
import sys


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``perch`` command."""
    parser = argparse.ArgumentParser(
        prog="perch",
        description="perch: compose web applications from nested extensions.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # -- perch routes -----------------------------------------------------
    routes_parser = subparsers.add_parser("routes", help="List the composed route table")
    routes_parser.add_argument("app", help="Import string (e.g. myapp:app)")

    # -- perch run --------------------------------------------------------
    run_parser = subparsers.add_parser("run", help="Compose the app and serve it")
    run_parser.add_argument("app", help="Import string (e.g. myapp:app)")
    run_parser.add_argument("--host", default=None, help="Bind host address")
    run_parser.add_argument("--port", type=int, default=None, help="Bind port number")
    run_parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Worker count (ignored with --reload)",
    )
    run_parser.add_argument(
        "--reload",
        action="store_true",
        help="Restart on source changes (single worker)",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "routes":
        from perch.cli._routes import run_routes

        run_routes(args)
    elif args.command == "run":
        from perch.cli._run import run_command

        run_command(args)

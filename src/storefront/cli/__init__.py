"""storefront CLI: serve the app and inspect its route table.

Entry point registered as ``storefront`` in ``pyproject.toml``::

    [project.scripts]
    storefront = "storefront.cli:main"
"""

import argparse
import sys

DEFAULT_APP = "storefront.shop:app_from_env"


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``storefront`` command."""
    parser = argparse.ArgumentParser(
        prog="storefront",
        description="storefront: an ASGI storefront core.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # -- storefront run ---------------------------------------------------
    run_parser = subparsers.add_parser("run", help="Serve the app with uvicorn")
    run_parser.add_argument(
        "app",
        nargs="?",
        default=DEFAULT_APP,
        help=f"Import string (default: {DEFAULT_APP})",
    )
    run_parser.add_argument("--host", default=None, help="Bind host address")
    run_parser.add_argument("--port", type=int, default=None, help="Bind port number")

    # -- storefront routes ------------------------------------------------
    routes_parser = subparsers.add_parser("routes", help="List registered routes")
    routes_parser.add_argument(
        "app",
        nargs="?",
        default=DEFAULT_APP,
        help=f"Import string (default: {DEFAULT_APP})",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "run":
        from storefront.cli._run import run_server

        run_server(args)
    elif args.command == "routes":
        from storefront.cli._routes import run_routes

        run_routes(args)

"""``storefront routes``: list registered routes.

Prints METHOD, PATH and TARGET for every route in registration order.
"""

import argparse
import sys

from storefront.cli._resolve import resolve_app


def format_routes(rows: list[tuple[str, str, str]]) -> list[str]:
    """Align ``(method, path, target)`` rows under a header."""
    max_method = max([len(r[0]) for r in rows] + [6])  # "METHOD"
    max_path = max([len(r[1]) for r in rows] + [4])  # "PATH"
    fmt = f"{{:<{max_method}}}  {{:<{max_path}}}  {{}}"
    lines = [fmt.format("METHOD", "PATH", "TARGET")]
    sep_len = max_method + max_path + 4 + max((len(r[2]) for r in rows), default=6)
    lines.append("-" * min(sep_len, 80))
    lines.extend(fmt.format(*row) for row in rows)
    return lines


def run_routes(args: argparse.Namespace) -> None:
    try:
        app = resolve_app(args.app)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    routes = app.router.routes
    if not routes:
        print("No routes registered.")
        return

    rows = [(route.method, route.path, "{}.{}".format(*route.target)) for route in routes]
    for line in format_routes(rows):
        print(line)

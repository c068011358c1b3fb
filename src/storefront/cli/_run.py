"""``storefront run``: serve an app with uvicorn."""

import argparse
import sys

import uvicorn

from storefront.cli._resolve import resolve_app


def run_server(args: argparse.Namespace) -> None:
    """Resolve ``args.app`` and serve it; CLI flags override the config."""
    try:
        app = resolve_app(args.app)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    host = args.host or app.config.host
    port = args.port or app.config.port

    uvicorn.run(
        app,
        host=host,
        port=port,
        lifespan="on",
        log_level=app.config.log_level.lower(),
        log_config=None,
        proxy_headers=True,
    )

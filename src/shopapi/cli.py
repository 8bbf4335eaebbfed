"""Command-line interface for shopapi."""

import argparse
import json
import os
import sys

from . import __version__
from .config import Settings, configure_logging
from .errors import ShopError
from .services import build_services


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the API server."""
    try:
        import uvicorn

        settings = Settings.from_env()
        if args.host:
            settings.host = args.host
        if args.port:
            settings.port = args.port
        if args.no_seed:
            settings.seed = False
        if args.log_level:
            settings.log_level = args.log_level.upper()

        print("Starting shopapi server...")
        print(f"API docs: http://{settings.host}:{settings.port}/docs")
        print()

        # When reload is enabled, uvicorn requires the app as an import string.
        # The reloader child builds its app from the environment.
        if args.reload:
            os.environ.update(settings.to_env())
            configure_logging(settings.log_level)
            app_target = "shopapi.api:app"
        else:
            from .api import create_app
            app_target = create_app(settings)

        uvicorn.run(
            app_target,
            host=settings.host,
            port=settings.port,
            reload=args.reload,
            workers=1,  # state is in process memory
            log_level=settings.log_level.lower(),
        )
        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_catalog(args: argparse.Namespace) -> int:
    """Print the sample catalog the server seeds at startup."""
    try:
        services = build_services(seed=True)
        page = services.products.list(
            category=args.category, sort_by=args.sort_by, sort_order="asc", limit=100
        )

        if args.json:
            print(json.dumps([p.to_dict() for p in page.items], indent=2))
            return 0

        if not page.items:
            print("No products found.")
            return 0

        print(f"Products ({page.total}):")
        print()
        for p in page.items:
            print(f"  {p.sku or '-':<12} {p.formatted_price:>10}  stock {p.stock:<4} {p.name}")
            print(f"  {'':<12} {p.category}")
        return 0

    except ShopError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="shopapi",
        description="In-memory e-commerce REST API.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument(
        "--host", default=None, help="Host to bind to (default: $SHOPAPI_HOST or 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", "-p", type=int, default=None, help="Port to bind to (default: $SHOPAPI_PORT or 8000)"
    )
    serve_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )
    serve_parser.add_argument(
        "--no-seed", action="store_true", help="Start with empty stores"
    )
    serve_parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Logging level (default: $SHOPAPI_LOG_LEVEL or info)",
    )

    # catalog
    catalog_parser = subparsers.add_parser("catalog", help="Show the sample catalog")
    catalog_parser.add_argument("--category", "-c", help="Only show this category")
    catalog_parser.add_argument(
        "--sort-by", default="name", help="Sort key (name, price, stock, category, sku)"
    )
    catalog_parser.add_argument("--json", action="store_true", help="Output as JSON")

    return parser


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 0

    commands = {
        "serve": cmd_serve,
        "catalog": cmd_catalog,
    }

    cmd_func = commands.get(args.command)
    if cmd_func:
        return cmd_func(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())

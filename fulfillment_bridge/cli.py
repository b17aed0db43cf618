"""
CLI for Fulfillment Bridge.

Provides commands for:
  - Generating configuration templates
  - Listing and health-checking configured suppliers
  - Searching and importing supplier catalog items
  - Checking and cancelling supplier orders
  - Running the MCP server
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable

from fulfillment_bridge.core.config import DEFAULT_CONFIG_FILE, Config
from fulfillment_bridge.core.errors import FulfillmentError
from fulfillment_bridge.core.models import CatalogQuery
from fulfillment_bridge.service import FulfillmentService

logger = logging.getLogger(__name__)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _service(args: argparse.Namespace) -> FulfillmentService:
    return FulfillmentService.from_config(Config.load(args.config))


async def _cmd_init(args: argparse.Namespace) -> None:
    """Generate a template config file."""
    dest = Path(args.output).expanduser()
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_text(Config.generate_template())
    print(f"Configuration template written to {dest}")
    print("Edit the file with your supplier credentials, then run:")
    print(f"  fulfillment-bridge health --config {dest}")


async def _cmd_providers(args: argparse.Namespace) -> None:
    service = _service(args)
    try:
        _print_json(service.describe())
    finally:
        await service.aclose()


async def _cmd_health(args: argparse.Namespace) -> None:
    """Probe every configured supplier."""
    service = _service(args)
    try:
        if args.provider:
            records = [await service.health.check(args.provider)]
        else:
            records = await service.health.check_all()
        if not records:
            print("No supplier profiles configured.")
            sys.exit(1)
        for r in records:
            print(f"  [{r.provider}] {r.status.value.upper()} - {r.detail}")
        print(f"\nOverall: {service.health.overall(records).value}")
    finally:
        await service.aclose()


async def _cmd_search(args: argparse.Namespace) -> None:
    service = _service(args)
    query = CatalogQuery(
        keyword=args.keyword,
        category=args.category,
        limit=args.limit,
    )
    try:
        if args.provider:
            items = await service.catalog.search(args.provider, query)
            _print_json([i.to_dict() for i in items])
        else:
            result = await service.catalog.search_all(query, limit=args.limit)
            _print_json(result.to_dict())
    finally:
        await service.aclose()


async def _cmd_import(args: argparse.Namespace) -> None:
    service = _service(args)
    try:
        if args.item_id:
            result = await service.catalog.import_one(args.provider, args.item_id, args.push)
            _print_json(result.to_dict())
        else:
            results = await service.catalog.bulk_import(
                CatalogQuery(keyword=args.keyword, category=args.category, limit=args.max_items),
                args.provider,
                args.max_items,
                args.push,
            )
            _print_json(
                {
                    "summary": service.catalog.summarize(results),
                    "results": [r.to_dict() for r in results],
                }
            )
    finally:
        await service.aclose()


async def _cmd_order_status(args: argparse.Namespace) -> None:
    service = _service(args)
    try:
        result = await service.router.get_order_status(args.order, args.provider)
        _print_json(result.to_dict())
    finally:
        await service.aclose()


async def _cmd_cancel(args: argparse.Namespace) -> None:
    service = _service(args)
    try:
        result = await service.router.cancel_order(args.order, args.provider)
        _print_json(result.to_dict())
        if not result.success:
            sys.exit(1)
    finally:
        await service.aclose()


def _cmd_serve(args: argparse.Namespace) -> None:
    """Start the MCP server."""
    from fulfillment_bridge.mcp_server import main as mcp_main

    argv = []
    if args.config:
        argv += ["--config", args.config]
    if args.sse:
        argv += ["--sse", "--port", str(args.port)]
    mcp_main(argv)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fulfillment-bridge",
        description="Fulfillment Bridge - one contract over Printful, Spocket, DSers, Alibaba and partner suppliers",
    )
    sub = parser.add_subparsers(dest="command")

    # -- init --
    p_init = sub.add_parser("init", help="Generate a configuration template")
    p_init.add_argument(
        "-o", "--output",
        default=str(DEFAULT_CONFIG_FILE),
        help="Output path for the config file",
    )

    # -- providers --
    p_prov = sub.add_parser("providers", help="List configured suppliers")
    p_prov.add_argument("--config", type=str, default=None)

    # -- health --
    p_health = sub.add_parser("health", help="Health-check configured suppliers")
    p_health.add_argument("--config", type=str, default=None)
    p_health.add_argument("-p", "--provider", default=None)

    # -- search --
    p_search = sub.add_parser("search", help="Search supplier catalogs")
    p_search.add_argument("--config", type=str, default=None)
    p_search.add_argument("-p", "--provider", default=None, help="Omit to search every supplier")
    p_search.add_argument("-k", "--keyword", default="")
    p_search.add_argument("--category", default=None)
    p_search.add_argument("--limit", type=int, default=20)

    # -- import --
    p_import = sub.add_parser("import", help="Import catalog items")
    p_import.add_argument("--config", type=str, default=None)
    p_import.add_argument("-p", "--provider", required=True)
    p_import.add_argument("--id", dest="item_id", default=None, help="Import one item by supplier id")
    p_import.add_argument("-k", "--keyword", default="", help="Bulk import the hits of this search")
    p_import.add_argument("--category", default=None)
    p_import.add_argument("--max-items", type=int, default=10)
    p_import.add_argument("--push", action="store_true", help="Also publish to the storefront")

    # -- order-status --
    p_status = sub.add_parser("order-status", help="Refresh a supplier order's status")
    p_status.add_argument("--config", type=str, default=None)
    p_status.add_argument("-p", "--provider", required=True)
    p_status.add_argument("-o", "--order", required=True, help="Supplier order id")

    # -- cancel --
    p_cancel = sub.add_parser("cancel", help="Cancel a supplier order")
    p_cancel.add_argument("--config", type=str, default=None)
    p_cancel.add_argument("-p", "--provider", required=True)
    p_cancel.add_argument("-o", "--order", required=True, help="Supplier order id")

    # -- serve --
    p_serve = sub.add_parser("serve", help="Start the MCP server")
    p_serve.add_argument("--config", type=str, default=None)
    p_serve.add_argument("--sse", action="store_true")
    p_serve.add_argument("--port", type=int, default=8080)

    return parser


COMMANDS: dict[str, Callable[[argparse.Namespace], Awaitable[None]]] = {
    "init": _cmd_init,
    "providers": _cmd_providers,
    "health": _cmd_health,
    "search": _cmd_search,
    "import": _cmd_import,
    "order-status": _cmd_order_status,
    "cancel": _cmd_cancel,
}


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "serve":
        _cmd_serve(args)
        return

    try:
        asyncio.run(COMMANDS[args.command](args))
    except FulfillmentError as exc:
        _print_json(exc.to_dict())
        sys.exit(1)


if __name__ == "__main__":
    main()

"""
MCP (Model Context Protocol) server for Fulfillment Bridge.

Exposes supplier search, import, ordering, inventory sync and health
checks as tools, so an MCP client can drive fulfillment across every
configured supplier from natural-language conversation.

Launch:
    python -m fulfillment_bridge.mcp_server          # stdio transport
    python -m fulfillment_bridge.mcp_server --sse     # SSE transport (HTTP)
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import sys
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from fulfillment_bridge.core.config import Config
from fulfillment_bridge.core.errors import FulfillmentError
from fulfillment_bridge.core.models import CatalogQuery, InventorySyncRequest, OrderRequest
from fulfillment_bridge.service import FulfillmentService

logger = logging.getLogger("fulfillment_bridge.mcp")


def _envelope(data: Any = None, message: str = "") -> dict[str, Any]:
    return {"success": True, "data": data, "message": message}


def _error_envelope(exc: BaseException) -> dict[str, Any]:
    if isinstance(exc, FulfillmentError):
        error = exc.to_dict()
    else:
        error = {"error": type(exc).__name__, "code": "INTERNAL_ERROR", "message": str(exc)}
    return {"success": False, "error": error}


def _to_content(payload: dict[str, Any]) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload, indent=2, default=str))]


_PROVIDER = {"type": "string", "description": "Supplier profile name (e.g. 'printful')."}

_QUERY_PROPERTIES = {
    "keyword": {"type": "string"},
    "category": {"type": "string"},
    "min_price": {"type": "number"},
    "max_price": {"type": "number"},
    "page": {"type": "integer", "default": 1},
    "limit": {"type": "integer", "default": 20},
}

_ORDER_SCHEMA = {
    "type": "object",
    "description": "Order with items [{variant_id, quantity}], shipping_address, contact and optional idempotency_key.",
    "properties": {
        "items": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "variant_id": {"type": "string"},
                    "quantity": {"type": "integer"},
                },
                "required": ["variant_id", "quantity"],
            },
        },
        "shipping_address": {"type": "object"},
        "contact": {"type": "object"},
        "notes": {"type": "string"},
        "internal_order_id": {"type": "string"},
        "idempotency_key": {"type": "string"},
    },
    "required": ["items", "shipping_address", "contact"],
}

TOOLS: list[Tool] = [
    # -- providers / health -----------------------------------------------
    Tool(
        name="fulfillment_list_providers",
        description="List configured suppliers with their capabilities, settlement terms and enabled state.",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="fulfillment_health_check",
        description=(
            "Probe supplier connectivity. Pass provider to check one supplier, "
            "or omit it to check all of them and get an overall status."
        ),
        inputSchema={"type": "object", "properties": {"provider": _PROVIDER}},
    ),
    # -- catalog -------------------------------------------------------------
    Tool(
        name="fulfillment_search",
        description="Search one supplier's catalog.",
        inputSchema={
            "type": "object",
            "properties": {"provider": _PROVIDER, **_QUERY_PROPERTIES},
            "required": ["provider"],
        },
    ),
    Tool(
        name="fulfillment_search_all",
        description=(
            "Search every enabled supplier at once. Suppliers that fail are "
            "reported under 'failures' instead of failing the search."
        ),
        inputSchema={"type": "object", "properties": _QUERY_PROPERTIES},
    ),
    Tool(
        name="fulfillment_import_item",
        description="Import one supplier item into the local catalog, optionally publishing it to the storefront.",
        inputSchema={
            "type": "object",
            "properties": {
                "provider": _PROVIDER,
                "external_id": {"type": "string", "description": "Supplier product id."},
                "push_to_storefront": {"type": "boolean", "default": False},
            },
            "required": ["provider", "external_id"],
        },
    ),
    Tool(
        name="fulfillment_bulk_import",
        description="Search a supplier and import up to max_items of the results, one per result entry.",
        inputSchema={
            "type": "object",
            "properties": {
                "provider": _PROVIDER,
                "max_items": {"type": "integer", "default": 10},
                "push_to_storefront": {"type": "boolean", "default": False},
                **_QUERY_PROPERTIES,
            },
            "required": ["provider"],
        },
    ),
    # -- orders --------------------------------------------------------------
    Tool(
        name="fulfillment_create_order",
        description=(
            "Place an order with a supplier. Omit provider to use the first "
            "enabled supplier. A timeout means the outcome is unknown; check "
            "the order status before resubmitting."
        ),
        inputSchema={
            "type": "object",
            "properties": {"provider": _PROVIDER, "order": _ORDER_SCHEMA},
            "required": ["order"],
        },
    ),
    Tool(
        name="fulfillment_order_status",
        description="Refresh the canonical status of a supplier order.",
        inputSchema={
            "type": "object",
            "properties": {"provider": _PROVIDER, "external_order_id": {"type": "string"}},
            "required": ["provider", "external_order_id"],
        },
    ),
    Tool(
        name="fulfillment_cancel_order",
        description="Ask a supplier to cancel an order.",
        inputSchema={
            "type": "object",
            "properties": {"provider": _PROVIDER, "external_order_id": {"type": "string"}},
            "required": ["provider", "external_order_id"],
        },
    ),
    Tool(
        name="fulfillment_quote_shipping",
        description="Get an advisory (non-binding) shipping estimate for an order.",
        inputSchema={
            "type": "object",
            "properties": {"provider": _PROVIDER, "order": _ORDER_SCHEMA},
            "required": ["order"],
        },
    ),
    # -- inventory / storefront ---------------------------------------------
    Tool(
        name="fulfillment_sync_inventory",
        description="Push stock quantities to suppliers. Returns one outcome per update, in input order.",
        inputSchema={
            "type": "object",
            "properties": {
                "updates": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "product_id": {"type": "string"},
                            "variant_id": {"type": "string"},
                            "provider": {"type": "string"},
                            "quantity": {"type": "integer"},
                        },
                        "required": ["variant_id", "provider", "quantity"],
                    },
                },
            },
            "required": ["updates"],
        },
    ),
    Tool(
        name="fulfillment_ingest_storefront_order",
        description=(
            "Convert a storefront order payload into a supplier order. Pass "
            "provider to also place it with that supplier."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "order": {"type": "object", "description": "Raw storefront order payload."},
                "provider": _PROVIDER,
            },
            "required": ["order"],
        },
    ),
]


async def handle_tool(
    service: FulfillmentService, name: str, arguments: dict[str, Any]
) -> dict[str, Any]:
    """Run one tool against *service* and return its result envelope."""
    try:
        # -- providers / health -----------------------------------------
        if name == "fulfillment_list_providers":
            providers = service.registry.describe()
            return _envelope(providers, f"{len(providers)} supplier(s) configured")

        if name == "fulfillment_health_check":
            if arguments.get("provider"):
                record = await service.health.check(arguments["provider"])
                return _envelope(record.to_dict())
            records = await service.health.check_all()
            return _envelope(
                {
                    "overall": service.health.overall(records).value,
                    "providers": [r.to_dict() for r in records],
                }
            )

        # -- catalog ------------------------------------------------------
        if name == "fulfillment_search":
            items = await service.catalog.search(
                arguments["provider"], CatalogQuery.from_dict(arguments)
            )
            return _envelope([i.to_dict() for i in items], f"{len(items)} item(s)")

        if name == "fulfillment_search_all":
            result = await service.catalog.search_all(CatalogQuery.from_dict(arguments))
            return _envelope(result.to_dict(), f"{len(result.items)} item(s)")

        if name == "fulfillment_import_item":
            result = await service.catalog.import_one(
                arguments["provider"],
                arguments["external_id"],
                bool(arguments.get("push_to_storefront", False)),
            )
            return _envelope(result.to_dict(), result.message)

        if name == "fulfillment_bulk_import":
            results = await service.catalog.bulk_import(
                CatalogQuery.from_dict(arguments),
                arguments["provider"],
                int(arguments.get("max_items", 10)),
                bool(arguments.get("push_to_storefront", False)),
            )
            return _envelope(
                {
                    "summary": service.catalog.summarize(results),
                    "results": [r.to_dict() for r in results],
                }
            )

        # -- orders -------------------------------------------------------
        if name == "fulfillment_create_order":
            order = await service.router.create_order(
                OrderRequest.from_dict(arguments["order"]), arguments.get("provider")
            )
            return _envelope(order.to_dict(), f"Order placed with {order.provider}")

        if name == "fulfillment_order_status":
            order = await service.router.get_order_status(
                arguments["external_order_id"], arguments["provider"]
            )
            return _envelope(order.to_dict())

        if name == "fulfillment_cancel_order":
            result = await service.router.cancel_order(
                arguments["external_order_id"], arguments["provider"]
            )
            return {**_envelope(result.to_dict(), result.message), "success": result.success}

        if name == "fulfillment_quote_shipping":
            quote = await service.router.quote_shipping(
                OrderRequest.from_dict(arguments["order"]), arguments.get("provider")
            )
            return _envelope(quote.to_dict(), "Advisory estimate, not binding")

        # -- inventory / storefront ----------------------------------------
        if name == "fulfillment_sync_inventory":
            records = await service.inventory.sync(
                [InventorySyncRequest.from_dict(u) for u in arguments["updates"]]
            )
            return _envelope([r.to_dict() for r in records])

        if name == "fulfillment_ingest_storefront_order":
            if service.storefront is None:
                return {"success": False, "error": {"code": "NO_STOREFRONT", "message": "No storefront configured"}}
            request = service.storefront.ingest_storefront_order(arguments["order"])
            if not arguments.get("provider"):
                return _envelope(request.to_dict(), f"{len(request.items)} supplier line item(s)")
            order = await service.router.create_order(request, arguments["provider"])
            return _envelope(order.to_dict(), f"Order placed with {order.provider}")

        return {"success": False, "error": {"code": "UNKNOWN_TOOL", "message": f"Unknown tool: {name}"}}

    except Exception as exc:
        logger.exception("Tool %s failed", name)
        return _error_envelope(exc)


def create_server(service: FulfillmentService) -> Server:
    """Build an MCP server whose tools all act on *service*."""
    app = Server("fulfillment-bridge")

    @app.list_tools()
    async def list_tools() -> list[Tool]:
        return TOOLS

    @app.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        return _to_content(await handle_tool(service, name, arguments or {}))

    return app


# ── Entry point ──────────────────────────────────────────────────────────


async def run_stdio(service: FulfillmentService) -> None:
    """Run the MCP server over stdio."""
    app = create_server(service)
    try:
        async with stdio_server() as (read_stream, write_stream):
            await app.run(read_stream, write_stream, app.create_initialization_options())
    finally:
        await service.aclose()


def run_sse(service: FulfillmentService, port: int) -> None:
    from mcp.server.sse import SseServerTransport
    from starlette.applications import Starlette
    from starlette.responses import Response
    from starlette.routing import Mount, Route

    import uvicorn

    app = create_server(service)
    sse = SseServerTransport("/messages/")

    @contextlib.asynccontextmanager
    async def lifespan(_app):
        yield
        await service.aclose()

    async def handle_sse(request):
        async with sse.connect_sse(
            request.scope, request.receive, request._send
        ) as streams:
            await app.run(streams[0], streams[1], app.create_initialization_options())
        return Response()

    starlette_app = Starlette(
        routes=[
            Route("/sse", endpoint=handle_sse, methods=["GET"]),
            Mount("/messages/", app=sse.handle_post_message),
        ],
        lifespan=lifespan,
    )
    uvicorn.run(starlette_app, host="0.0.0.0", port=port)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Fulfillment Bridge MCP Server")
    parser.add_argument(
        "--config", type=str, default=None, help="Path to config file"
    )
    parser.add_argument(
        "--sse", action="store_true", help="Run in SSE mode instead of stdio"
    )
    parser.add_argument("--port", type=int, default=8080, help="SSE port")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, stream=sys.stderr)

    service = FulfillmentService.from_config(Config.load(args.config))

    if args.sse:
        run_sse(service, args.port)
    else:
        asyncio.run(run_stdio(service))


if __name__ == "__main__":
    main()

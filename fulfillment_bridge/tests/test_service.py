"""Tests for the service wiring, MCP tool dispatch and CLI."""

import json

import pytest
import yaml
from mcp.types import CallToolRequest, ListToolsRequest

from fulfillment_bridge.adapters import AlibabaAdapter, PrintfulAdapter
from fulfillment_bridge.cli import build_parser, main
from fulfillment_bridge.core.config import Config, SupplierProfile
from fulfillment_bridge.core.errors import TransportError
from fulfillment_bridge.core.models import Capability
from fulfillment_bridge.mcp_server import TOOLS, create_server, handle_tool
from fulfillment_bridge.service import FulfillmentService, build_provider

CONFIG = {
    "defaults": {"timeout": 7, "health_concurrency": 2},
    "suppliers": {
        "printful": {"system": "printful", "auth": {"type": "api_key", "api_key": "pf"}},
        "alibaba": {"system": "alibaba", "auth": {"type": "signed_params"}},
    },
}


@pytest.fixture
def service(registry, store):
    return FulfillmentService(registry, store)


@pytest.fixture
def order_payload():
    return {
        "items": [{"variant_id": "v1", "quantity": 1}],
        "shipping_address": {
            "name": "Ada Lovelace",
            "line1": "12 St James's Square",
            "city": "London",
            "region": "LND",
            "postal_code": "SW1Y 4JH",
            "country": "GB",
        },
        "contact": {"name": "Ada Lovelace", "email": "ada@example.com"},
    }


class TestFulfillmentService:
    def test_from_config(self):
        service = FulfillmentService.from_config(Config(CONFIG))
        assert service.registry.names() == ["printful", "alibaba"]
        assert isinstance(service.registry.get("printful"), PrintfulAdapter)
        assert isinstance(service.registry.get("alibaba"), AlibabaAdapter)
        assert [n for n, _ in service.registry.list_enabled()] == ["printful"]
        assert service.router._timeout == 7.0
        assert service.storefront is None

    def test_from_config_with_storefront(self):
        raw = {
            **CONFIG,
            "storefront": {
                "system": "shopify",
                "base_url": "https://shop.myshopify.com",
                "auth": {"type": "api_key", "api_key": "shpat"},
            },
        }
        service = FulfillmentService.from_config(Config(raw))
        assert service.describe()["storefront"] == "shopify"

    def test_unknown_system(self):
        with pytest.raises(ValueError, match="Unknown supplier system"):
            build_provider(SupplierProfile("x", {"system": "etsy"}))

    @pytest.mark.asyncio
    async def test_reload_closes_dropped(self, service, registry, make_provider):
        old = make_provider("old")
        registry.register("old", old)

        dropped = await service.reload(Config(CONFIG))

        assert dropped == ["old"]
        assert old.closed
        assert "printful" in service.registry

    @pytest.mark.asyncio
    async def test_aclose(self, service, registry, make_provider):
        providers = [make_provider("a"), make_provider("b")]
        for p in providers:
            registry.register(p.name, p)
        await service.aclose()
        assert all(p.closed for p in providers)


class TestHandleTool:
    @pytest.mark.asyncio
    async def test_list_providers(self, service, registry, make_provider):
        registry.register("a", make_provider("a"))
        registry.register("b", make_provider("b", enabled=False))
        result = await handle_tool(service, "fulfillment_list_providers", {})
        assert result["success"]
        assert [(p["name"], p["enabled"], p["default"]) for p in result["data"]] == [
            ("a", True, True),
            ("b", False, False),
        ]

    @pytest.mark.asyncio
    async def test_search_all_reports_failures(self, service, registry, make_provider, item_factory):
        registry.register("a", make_provider("a", items=[item_factory("a1", "a")]))
        registry.register("b", make_provider("b", fail=TransportError("reset", "b")))
        result = await handle_tool(service, "fulfillment_search_all", {"keyword": "mug"})
        assert result["success"]
        assert [i["external_id"] for i in result["data"]["items"]] == ["a1"]
        assert result["data"]["failures"][0]["provider"] == "b"

    @pytest.mark.asyncio
    async def test_create_order(self, service, registry, make_provider, order_payload):
        registry.register("a", make_provider("a", raw_status="accepted"))
        result = await handle_tool(service, "fulfillment_create_order", {"order": order_payload})
        assert result["success"]
        assert result["data"]["provider"] == "a"
        assert result["data"]["status"] == "accepted"

    @pytest.mark.asyncio
    async def test_invalid_order_is_error_envelope(self, service, registry, make_provider, order_payload):
        provider = make_provider("a")
        registry.register("a", provider)
        order_payload["items"] = []
        result = await handle_tool(service, "fulfillment_create_order", {"order": order_payload})
        assert not result["success"]
        assert result["error"]["code"] == "ORDER_INVALID"
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_disabled_provider(self, service, registry, make_provider):
        registry.register("off", make_provider("off", enabled=False))
        result = await handle_tool(
            service, "fulfillment_order_status", {"provider": "off", "external_order_id": "1"}
        )
        assert not result["success"]
        assert result["error"]["code"] == "PROVIDER_UNAVAILABLE"

    @pytest.mark.asyncio
    async def test_unsupported_cancel(self, service, registry, make_provider):
        provider = make_provider("a", capabilities=frozenset({Capability.ORDER_CREATE}))
        registry.register("a", provider)
        result = await handle_tool(
            service, "fulfillment_cancel_order", {"provider": "a", "external_order_id": "1"}
        )
        assert result["success"] is False
        assert "does not support" in result["message"]
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_sync_inventory(self, service, registry, make_provider):
        registry.register("a", make_provider("a", rejected={"v2": "retired"}))
        result = await handle_tool(
            service,
            "fulfillment_sync_inventory",
            {"updates": [
                {"variant_id": "v1", "provider": "a", "quantity": 3},
                {"variant_id": "v2", "provider": "a", "quantity": 0},
            ]},
        )
        assert [r["outcome"] for r in result["data"]] == ["applied", "rejected"]

    @pytest.mark.asyncio
    async def test_ingest_without_storefront(self, service):
        result = await handle_tool(service, "fulfillment_ingest_storefront_order", {"order": {}})
        assert result["error"]["code"] == "NO_STOREFRONT"

    @pytest.mark.asyncio
    async def test_unknown_tool(self, service):
        result = await handle_tool(service, "fulfillment_teleport", {})
        assert result["error"]["code"] == "UNKNOWN_TOOL"

    def test_tool_names_unique(self):
        names = {t.name for t in TOOLS}
        assert len(names) == len(TOOLS)
        assert all(n.startswith("fulfillment_") for n in names)

    def test_create_server(self, service):
        server = create_server(service)
        assert server.name == "fulfillment-bridge"
        assert ListToolsRequest in server.request_handlers
        assert CallToolRequest in server.request_handlers


class TestCLI:
    def test_parser_commands(self):
        parser = build_parser()
        args = parser.parse_args(["import", "-p", "printful", "--id", "71", "--push"])
        assert args.provider == "printful"
        assert args.item_id == "71"
        assert args.push

    def test_init_writes_template(self, tmp_path, capsys):
        dest = tmp_path / "config.yaml"
        main(["init", "-o", str(dest)])
        assert "suppliers" in yaml.safe_load(dest.read_text())
        assert str(dest) in capsys.readouterr().out

    def test_providers(self, tmp_path, capsys):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(CONFIG))
        main(["providers", "--config", str(path)])
        described = json.loads(capsys.readouterr().out)
        assert [p["name"] for p in described["providers"]] == ["printful", "alibaba"]

    def test_unknown_provider_exits_nonzero(self, tmp_path, capsys):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(CONFIG))
        with pytest.raises(SystemExit) as exc_info:
            main(["order-status", "--config", str(path), "-p", "ghost", "-o", "1"])
        assert exc_info.value.code == 1
        assert json.loads(capsys.readouterr().out)["code"] == "PROVIDER_UNAVAILABLE"

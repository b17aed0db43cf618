"""Tests for the provider registry."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from fulfillment_bridge.core.errors import ProviderUnavailableError


class TestProviderRegistry:
    def test_register_and_get(self, registry, make_provider):
        provider = make_provider("printful")
        registry.register("printful", provider)
        assert registry.get("printful") is provider
        assert registry.get("nope") is None
        assert "printful" in registry
        assert len(registry) == 1

    def test_require_unknown(self, registry):
        with pytest.raises(ProviderUnavailableError, match="not registered"):
            registry.require("ghost")

    def test_require_disabled(self, registry, make_provider):
        registry.register("alibaba", make_provider("alibaba", enabled=False))
        with pytest.raises(ProviderUnavailableError, match="disabled") as exc_info:
            registry.require("alibaba")
        assert exc_info.value.provider == "alibaba"

    def test_last_write_wins_and_keeps_position(self, registry, make_provider):
        first, second, replacement = make_provider("a"), make_provider("b"), make_provider("a")
        registry.register("a", first)
        registry.register("b", second)
        registry.register("a", replacement)
        assert registry.names() == ["a", "b"]
        assert registry.get("a") is replacement

    def test_list_enabled_and_default(self, registry, make_provider):
        registry.register("off", make_provider("off", enabled=False))
        registry.register("cod", make_provider("cod"))
        registry.register("printful", make_provider("printful"))
        assert [n for n, _ in registry.list_all()] == ["off", "cod", "printful"]
        assert [n for n, _ in registry.list_enabled()] == ["cod", "printful"]
        assert registry.default_provider().name == "cod"

    def test_no_default_when_all_disabled(self, registry, make_provider):
        registry.register("off", make_provider("off", enabled=False))
        assert registry.default_provider() is None

    def test_snapshot_unaffected_by_later_writes(self, registry, make_provider):
        registry.register("a", make_provider("a"))
        listing = registry.list_all()
        registry.register("b", make_provider("b"))
        assert [n for n, _ in listing] == ["a"]

    def test_reload_returns_dropped(self, registry, make_provider):
        keep, drop = make_provider("keep"), make_provider("drop")
        registry.register("keep", keep)
        registry.register("drop", drop)
        dropped = registry.reload({"keep": keep, "new": make_provider("new")})
        assert dropped == [drop]
        assert registry.names() == ["keep", "new"]

    def test_describe_marks_default(self, registry, make_provider):
        registry.register("off", make_provider("off", enabled=False))
        registry.register("on", make_provider("on"))
        listing = {d["name"]: d for d in registry.describe()}
        assert listing["on"]["default"] is True
        assert listing["off"]["default"] is False
        assert listing["off"]["enabled"] is False
        assert listing["on"]["settlement"] == {"type": "prepaid"}

    def test_concurrent_registration(self, registry, make_provider):
        providers = [make_provider(f"p{i}") for i in range(200)]
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda p: registry.register(p.name, p), providers))
        assert len(registry) == 200
        assert all(registry.get(p.name) is p for p in providers)

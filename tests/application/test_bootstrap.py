from __future__ import annotations

from lib_config_data.application.bootstrap import BINDER_KEY, BootstrapRegistry


def test_register_replaces_the_snapshot() -> None:
    registry = BootstrapRegistry()
    empty = registry.snapshot()
    registry.register("a", lambda: 1)
    assert dict(empty) == {}
    assert registry.is_registered("a")
    assert registry.get("a") == 1


def test_register_if_absent_keeps_existing_suppliers() -> None:
    registry = BootstrapRegistry()
    assert registry.register_if_absent(BINDER_KEY, lambda: "first")
    assert not registry.register_if_absent(BINDER_KEY, lambda: "second")
    assert registry.get(BINDER_KEY) == "first"


def test_get_default_for_missing_keys() -> None:
    assert BootstrapRegistry().get("missing", default="fallback") == "fallback"

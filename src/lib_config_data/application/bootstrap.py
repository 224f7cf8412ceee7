"""Registry shared between the host and the pipeline during startup.

The pipeline publishes its binder here (under :data:`BINDER_KEY`) after the
first and the last pass so host code running later can read configuration the
same way the pipeline did. Every registration swaps the whole mapping for a new
read-only snapshot; readers holding :meth:`BootstrapRegistry.snapshot` never
observe a half-applied update.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Callable, Mapping

BINDER_KEY = "binder"

Supplier = Callable[[], Any]


class BootstrapRegistry:
    """Key to instance-supplier mapping, replaced on each registration.

    Examples
    --------
    >>> registry = BootstrapRegistry()
    >>> registry.register("answer", lambda: 42)
    >>> registry.get("answer")
    42
    >>> before = registry.snapshot()
    >>> registry.register("answer", lambda: 43)
    >>> before["answer"](), registry.get("answer")
    (42, 43)
    >>> registry.register_if_absent("answer", lambda: 0)
    False
    """

    def __init__(self) -> None:
        self._suppliers: Mapping[str, Supplier] = MappingProxyType({})

    def register(self, key: str, supplier: Supplier) -> None:
        updated = dict(self._suppliers)
        updated[key] = supplier
        self._suppliers = MappingProxyType(updated)

    def register_if_absent(self, key: str, supplier: Supplier) -> bool:
        """Register *supplier* unless *key* exists; return whether it was added."""

        if key in self._suppliers:
            return False
        self.register(key, supplier)
        return True

    def is_registered(self, key: str) -> bool:
        return key in self._suppliers

    def get(self, key: str, default: Any = None) -> Any:
        supplier = self._suppliers.get(key)
        return default if supplier is None else supplier()

    def snapshot(self) -> Mapping[str, Supplier]:
        return self._suppliers

"""
Checkout protocol adapters and the registry that dispatches between them.
"""
from .base import ProtocolAdapter, CatalogEntry, CatalogLookup, to_minor_units, stable_id
from .registry import ProtocolRegistry, RegistryEntry
from .adapters import ACPAdapter, UCPAdapter, X402Adapter


def create_default_registry() -> ProtocolRegistry:
    """Registry with ACP, UCP and x402 registered in that order."""
    registry = ProtocolRegistry()
    registry.register(ACPAdapter(), aliases=["agentic-commerce-protocol", "agentic-checkout"])
    registry.register(UCPAdapter(), aliases=["universal-commerce-protocol"])
    registry.register(X402Adapter(), aliases=["http-402", "x-402"])
    return registry


__all__ = [
    "ProtocolAdapter",
    "CatalogEntry",
    "CatalogLookup",
    "ProtocolRegistry",
    "RegistryEntry",
    "ACPAdapter",
    "UCPAdapter",
    "X402Adapter",
    "create_default_registry",
    "to_minor_units",
    "stable_id",
]

"""
Protocol Registry

Maps protocol names (and aliases) to adapters and detects which protocol
a raw inbound payload belongs to.

One registry is built at start-up by create_default_registry() and
passed by reference to whatever needs it. Reads take no lock; writes are
serialized.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from .base import ProtocolAdapter

logger = logging.getLogger(__name__)


def _key(name: str) -> str:
    return (name or "").strip().lower()


@dataclass(frozen=True)
class RegistryEntry:
    protocol_name: str
    version: str
    adapter: ProtocolAdapter


class ProtocolRegistry:
    """
    Adapter lookup by name, alias, or payload inspection.

    Detection order is registration order: when several adapters claim a
    payload the first registered one wins.
    """

    def __init__(self):
        # dicts keep insertion order, which is the detection order
        self._entries: Dict[str, RegistryEntry] = {}
        self._aliases: Dict[str, str] = {}
        self._lock = threading.Lock()

    def register(self, adapter: ProtocolAdapter, aliases: Optional[Iterable[str]] = None) -> None:
        """
        Register an adapter under its protocol_name.

        Re-registering the same name overwrites the previous adapter but
        keeps its original detection position.
        """
        key = _key(adapter.protocol_name)
        if not key:
            raise ValueError("Adapter protocol_name must be a non-empty string")

        with self._lock:
            replaced = key in self._entries
            self._entries[key] = RegistryEntry(
                protocol_name=adapter.protocol_name,
                version=adapter.version,
                adapter=adapter,
            )
            for alias in aliases or ():
                self._aliases[_key(alias)] = key

        if replaced:
            logger.warning(f"Protocol adapter '{key}' re-registered, previous adapter replaced")
        else:
            logger.info(f"Registered protocol adapter: {key} v{adapter.version}")

    def get(self, name: str) -> Optional[ProtocolAdapter]:
        """Resolve by canonical name, then by exactly one alias hop."""
        key = _key(name)

        entry = self._entries.get(key)
        if entry is None and key in self._aliases:
            entry = self._entries.get(self._aliases[key])

        return entry.adapter if entry else None

    def detect(self, raw: Any) -> Optional[str]:
        """
        Identify the protocol of a raw payload.

        An explicit "protocol" field is honoured first; otherwise each
        adapter's can_handle is tried in registration order.
        """
        if not isinstance(raw, dict):
            return None

        declared = raw.get("protocol")
        if isinstance(declared, str):
            adapter = self.get(declared)
            if adapter is not None:
                return _key(adapter.protocol_name)

        for key, entry in list(self._entries.items()):
            if entry.adapter.can_handle(raw):
                return key

        logger.debug("No registered adapter recognised the payload")
        return None

    def list(self) -> List[RegistryEntry]:
        return list(self._entries.values())

    def has(self, name: str) -> bool:
        return self.get(name) is not None

    def unregister(self, name: str) -> bool:
        """
        Remove an adapter by canonical name.

        Aliases pointing at it are left in place and resolve to None.
        """
        key = _key(name)
        with self._lock:
            removed = self._entries.pop(key, None) is not None

        if removed:
            logger.info(f"Unregistered protocol adapter: {key}")
        return removed

    def clear(self) -> None:
        """Remove every adapter. The alias table is left as is."""
        with self._lock:
            self._entries.clear()
        logger.info("Protocol registry cleared")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: str) -> bool:
        return self.has(name)

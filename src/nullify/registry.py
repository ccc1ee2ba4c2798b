"""Registry of synthesized stub types.

The registry maps ``(contract, name)`` to a StubHandle. A handle is the
identity of a stub type and may exist before the type does: the engine
reserves it before filling in members, so a contract that refers to itself
can already resolve to the stub being built.

Entries are never evicted. Reads take no lock; writes are serialized.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from nullify.contracts import Contract, as_contract

logger = logging.getLogger(__name__)

RegistryKey = tuple[Contract, str]


class StubHandle:
    """Forward-declared identity of a stub type."""

    __slots__ = ("contract", "name", "_stub_type", "_registry")

    def __init__(
        self,
        contract: Contract,
        name: str,
        stub_type: type | None = None,
        registry: StubRegistry | None = None,
    ) -> None:
        self.contract = contract
        self.name = name
        self._stub_type = stub_type
        self._registry = registry

    @property
    def stub_type(self) -> type | None:
        return self._stub_type

    @property
    def bound(self) -> bool:
        return self._stub_type is not None

    def instantiate(self) -> Any:
        """Create a new stub instance; None if no type is available.

        A handle whose reservation was discarded resolves through its registry,
        so a pair registered later is still picked up.
        """
        stub_type = self._stub_type
        if stub_type is None:
            stub_type = self._current_type()
        if stub_type is None:
            return None
        return stub_type()

    def _current_type(self) -> type | None:
        if self._registry is None:
            return None
        _, handle = self._registry.try_get(self.contract, self.name)
        if handle is None or handle is self:
            return None
        return handle.stub_type

    def __repr__(self) -> str:
        target = self._stub_type.__name__ if self._stub_type else "<pending>"
        return f"StubHandle({self.contract.short_name!r}, {self.name!r} -> {target})"


class StubRegistry:
    """Memoizes synthesized stub types per (contract, name)."""

    def __init__(self) -> None:
        self._entries: dict[RegistryKey, StubHandle] = {}
        self._lock = threading.Lock()

    def try_get(self, contract: Any, name: str) -> tuple[bool, StubHandle | None]:
        """Look up the handle registered for a contract in a scope."""
        handle = self._entries.get((as_contract(contract), name))
        return handle is not None, handle

    def get_type(self, contract: Any, name: str) -> type | None:
        """Get the bound stub type for a pair, if any."""
        _, handle = self.try_get(contract, name)
        return handle.stub_type if handle is not None else None

    def reserve(self, contract: Any, name: str) -> StubHandle | None:
        """Forward-declare a stub for a pair.

        Returns:
            The new unbound handle, or None if the pair already has an entry
        """
        key = (as_contract(contract), name)
        with self._lock:
            if key in self._entries:
                return None
            handle = StubHandle(key[0], name, registry=self)
            self._entries[key] = handle

        logger.debug("Reserved stub: %s (name=%r)", key[0].name, name)
        return handle

    def bind(self, handle: StubHandle, stub_type: type) -> None:
        """Attach the finalized type to a reserved handle."""
        with self._lock:
            if self._entries.get((handle.contract, handle.name)) is not handle:
                raise ValueError(f"{handle!r} is not reserved in this registry")
            if handle.bound:
                raise ValueError(f"{handle!r} is already bound")
            handle._stub_type = stub_type

        logger.debug("Bound stub: %s -> %s", handle.contract.name, stub_type.__name__)

    def discard(self, handle: StubHandle) -> bool:
        """Withdraw an unbound reservation. Bound entries are kept."""
        key = (handle.contract, handle.name)
        with self._lock:
            if handle.bound or self._entries.get(key) is not handle:
                return False
            del self._entries[key]

        logger.debug("Discarded reservation: %s (name=%r)", handle.contract.name, handle.name)
        return True

    def register(self, contract: Any, name: str, stub_type: type) -> StubHandle:
        """Register an already finalized stub type."""
        key = (as_contract(contract), name)
        with self._lock:
            if key in self._entries:
                raise ValueError(f"Stub for '{key[0].name}' (name={name!r}) is already registered")
            handle = StubHandle(key[0], name, stub_type, registry=self)
            self._entries[key] = handle

        logger.debug("Registered stub: %s -> %s", key[0].name, stub_type.__name__)
        return handle

    def entries(self) -> list[StubHandle]:
        with self._lock:
            return list(self._entries.values())

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        found, _ = self.try_get(*key)
        return found

    def __len__(self) -> int:
        return len(self._entries)


# =============================================================================
# Global Registry
# =============================================================================

_global_stub_registry: StubRegistry | None = None


def get_stub_registry() -> StubRegistry:
    """Get the process-wide stub registry, creating it on first call."""
    global _global_stub_registry

    if _global_stub_registry is None:
        _global_stub_registry = StubRegistry()

    return _global_stub_registry


def reset_stub_registry() -> None:
    """Reset the process-wide registry (mainly for testing)."""
    global _global_stub_registry
    _global_stub_registry = None


__all__ = [
    "StubHandle",
    "StubRegistry",
    "get_stub_registry",
    "reset_stub_registry",
]

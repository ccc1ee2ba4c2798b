"""High-level entry points for getting null objects.

Example:
    from nullify import null_of

    greeter = null_of(Greeter)               # every member inert
    greeter = null_of(Greeter, greet="hi")   # greet() returns "hi"

Stub types are memoized per (contract, scope name): the first type
synthesized for a pair becomes the registered one, and contract-typed
members of other stubs in the same scope resolve to it. Use a separately
named Nullifier to keep differently configured stubs apart.
"""

from __future__ import annotations

from typing import Any

from nullify.backend import is_stub
from nullify.config import NullifyConfig
from nullify.contracts import as_contract
from nullify.engine import SynthesisEngine
from nullify.policy import GenerationPolicy, PolicyBuilder
from nullify.registry import StubRegistry
from nullify.types import SynthesisError


class Nullifier:
    """Creates stub types and instances within one registry scope."""

    def __init__(self, engine: SynthesisEngine | None = None, name: str = "") -> None:
        self.engine = engine or SynthesisEngine()
        self.name = name

    @classmethod
    def from_config(
        cls, config: NullifyConfig, registry: StubRegistry | None = None
    ) -> Nullifier:
        """Build a Nullifier (and its engine) from configuration."""
        config.logging.apply()
        return cls(engine=config.build_engine(registry), name=config.scope_name)

    @property
    def registry(self) -> StubRegistry:
        return self.engine.registry

    def policy(self, target: Any) -> PolicyBuilder:
        """Start a policy for ``target`` in this nullifier's scope."""
        return PolicyBuilder(target).named(self.name)

    def type_of(self, target: Any, policy: GenerationPolicy | None = None) -> type:
        """Get a stub type for a contract.

        Without a policy the registered type for this scope is reused, or
        synthesized and registered on first use.

        Raises:
            SynthesisError: No type could be produced
        """
        contract = as_contract(target)
        if policy is None:
            registered = self.registry.get_type(contract, self.name)
            if registered is not None:
                return registered
            policy = self.policy(contract).build()

        result = self.engine.synthesize(policy)
        if result.stub_type is None:
            raise SynthesisError(
                f"Cannot synthesize a stub for {contract.name}: {result.error}",
                contract=contract.name,
            )
        return result.stub_type

    def of(self, target: Any, **overrides: Any) -> Any:
        """Create a stub instance; keyword arguments override members by name."""
        if not overrides:
            return self.type_of(target)()

        builder = self.policy(target)
        for member, value in overrides.items():
            builder.returns(member, value)
        return self.type_of(target, builder.build())()


_default_nullifier: Nullifier | None = None


def get_nullifier() -> Nullifier:
    """Get the process-wide Nullifier, which uses the global registry."""
    global _default_nullifier

    if _default_nullifier is None:
        _default_nullifier = Nullifier()
    return _default_nullifier


def reset_nullifier() -> None:
    """Drop the process-wide Nullifier (mainly for testing)."""
    global _default_nullifier
    _default_nullifier = None


def null_of(target: Any, **overrides: Any) -> Any:
    """Create a null object for ``target`` using the process-wide Nullifier."""
    return get_nullifier().of(target, **overrides)


__all__ = [
    "Nullifier",
    "get_nullifier",
    "is_stub",
    "null_of",
    "reset_nullifier",
]

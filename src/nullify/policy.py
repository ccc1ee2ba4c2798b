"""Generation policies: what to synthesize and which members to override."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from nullify.contracts import Contract, MemberKey, as_contract, member_key_of


class _Default:
    """Override value meaning "the member type's zero value"."""

    _instance: _Default | None = None

    def __new__(cls) -> _Default:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DEFAULT"

    def __reduce__(self) -> str:
        return "DEFAULT"


DEFAULT: Any = _Default()


def default_generated_name(target: Contract) -> str:
    return f"Null{target.short_name}"


@dataclass(frozen=True)
class GenerationPolicy:
    """Per-call synthesis configuration.

    Attributes:
        target: Contract to implement (a class is converted on construction)
        generated_name: Name of the generated class
        return_overrides: Member key -> override value. ``DEFAULT`` (or None)
            requests the member type's zero value.
        name: Registry scope used to look up stubs for contract-typed members
    """

    target: Contract
    generated_name: str
    return_overrides: Mapping[MemberKey, Any] = field(default_factory=dict, hash=False)
    name: str = ""

    def __post_init__(self) -> None:
        if self.target is None:
            raise ValueError("GenerationPolicy requires a target contract")
        object.__setattr__(self, "target", as_contract(self.target))
        object.__setattr__(
            self, "return_overrides", MappingProxyType(dict(self.return_overrides))
        )

    def override_for(self, key: MemberKey) -> tuple[bool, Any]:
        """Look up an override; returns (found, value)."""
        if key in self.return_overrides:
            return True, self.return_overrides[key]
        return False, None

    def summary(self) -> str:
        """Return a short summary for logging."""
        scope = f" @{self.name}" if self.name else ""
        return f"{self.generated_name} <- {self.target.short_name}{scope}"


class PolicyBuilder:
    """Fluent construction of a GenerationPolicy.

    Example:
        policy = (
            PolicyBuilder(Greeter)
            .returns("greet", "hi")
            .returns_default(Greeter.count)
            .named("tests")
            .build()
        )
    """

    def __init__(self, target: Any) -> None:
        if target is None:
            raise ValueError("PolicyBuilder requires a target contract")
        self._target = as_contract(target)
        self._name = ""
        self._generated_name: str | None = None
        self._overrides: dict[MemberKey, Any] = {}

    def named(self, name: str) -> PolicyBuilder:
        """Set the registry scope name."""
        self._name = name
        return self

    def generated_as(self, class_name: str) -> PolicyBuilder:
        """Set the name of the generated class."""
        self._generated_name = class_name
        return self

    def returns(self, member: Any, value: Any) -> PolicyBuilder:
        """Make a method or property getter produce ``value``."""
        self._overrides[self._key(member)] = value
        return self

    def returns_default(self, member: Any) -> PolicyBuilder:
        """Make a member produce its type's zero value."""
        return self.returns(member, DEFAULT)

    def build(self) -> GenerationPolicy:
        return GenerationPolicy(
            target=self._target,
            generated_name=self._generated_name or default_generated_name(self._target),
            return_overrides=self._overrides,
            name=self._name,
        )

    def _key(self, member: Any) -> MemberKey:
        if isinstance(member, MemberKey):
            return member
        if isinstance(member, str):
            return self._target.member(member)
        return member_key_of(member)


__all__ = [
    "DEFAULT",
    "GenerationPolicy",
    "PolicyBuilder",
    "default_generated_name",
]

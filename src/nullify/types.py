"""Result and error types for stub synthesis."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from nullify.contracts import MemberKey


class ResultSource(Enum):
    """Which step of the member-result rule produced a member's value."""

    OVERRIDE = "override"
    STUB = "stub"
    DEFAULT_INSTANCE = "default_instance"
    ZERO = "zero"


@dataclass
class SynthesisResult:
    """Result of a synthesis attempt.

    Attributes:
        success: Whether a stub type was produced
        stub_type: The finalized class (if successful)
        contract: Qualified name of the target contract
        error: Error message (if failed)
        members_defined: Number of members the engine defined on the scaffold
        resolutions: Rule decision for every value-producing member
        registered: Whether the new type became the registry entry for its pair
    """

    success: bool
    stub_type: type | None = None
    contract: str = ""
    error: str | None = None
    members_defined: int = 0
    resolutions: dict[MemberKey, ResultSource] = field(default_factory=dict)
    registered: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        if self.success:
            name = self.stub_type.__name__ if self.stub_type else "?"
            return f"SynthesisResult(success, {name}, {self.members_defined} members)"
        return f"SynthesisResult(failed: {self.error})"


class SynthesisError(Exception):
    """Base exception for stub synthesis failures."""

    def __init__(self, message: str, contract: str | None = None, member: str | None = None):
        super().__init__(message)
        self.contract = contract
        self.member = member


class BackendAllocationFailure(SynthesisError):
    """The backend rejected a scaffold or member definition."""

    pass


class FinalizationFailure(SynthesisError):
    """The scaffold could not be turned into a usable class."""

    pass


__all__ = [
    "BackendAllocationFailure",
    "FinalizationFailure",
    "ResultSource",
    "SynthesisError",
    "SynthesisResult",
]

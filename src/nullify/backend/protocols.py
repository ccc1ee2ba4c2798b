"""Protocols for synthesis backends.

A backend owns the physical creation of stub types. The engine only
describes what each member should produce; it never sees how a backend
turns that description into callable code.

Key protocols:
- SynthesisBackend: Allocates scaffolds
- Scaffold: Collects member definitions and finalizes them into a type
- MethodHandle / PropertyHandle / EventHandle: Defined members
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum, Flag, auto
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from nullify.contracts import Contract, MemberKey, Parameter


# =============================================================================
# Member Bodies
# =============================================================================


class MemberFlags(Flag):
    """Visibility and dispatch flags of a defined member."""

    PUBLIC = auto()
    FINAL = auto()
    VIRTUAL = auto()
    HIDE_BY_SIG = auto()
    NEW_SLOT = auto()
    SPECIAL_NAME = auto()  # property and event accessors
    CLASS_BOUND = auto()  # receives the class, like a classmethod
    STATIC = auto()  # no receiver


STUB_METHOD = (
    MemberFlags.PUBLIC
    | MemberFlags.FINAL
    | MemberFlags.VIRTUAL
    | MemberFlags.HIDE_BY_SIG
    | MemberFlags.NEW_SLOT
)
STUB_ACCESSOR = STUB_METHOD | MemberFlags.SPECIAL_NAME


class OpCode(Enum):
    """Operations a member body is described with."""

    LOAD_CONST = "load_const"  # operand: the override value
    NEW_DEFAULT = "new_default"  # operand: class to construct without arguments
    NEW_STUB = "new_stub"  # operand: StubHandle of a registered stub
    LOAD_ZERO = "load_zero"  # operand: declared type
    RETURN = "return"


VALUE_OPS: frozenset[OpCode] = frozenset(
    {OpCode.LOAD_CONST, OpCode.NEW_DEFAULT, OpCode.NEW_STUB, OpCode.LOAD_ZERO}
)


@dataclass(frozen=True)
class Instruction:
    """One step of a member body."""

    op: OpCode
    operand: Any = None

    def __repr__(self) -> str:
        if self.op is OpCode.RETURN:
            return "Instruction(RETURN)"
        return f"Instruction({self.op.name}, {self.operand!r})"


Body = tuple[Instruction, ...]

RETURN = Instruction(OpCode.RETURN)
NO_OP_BODY: Body = (RETURN,)


# =============================================================================
# Backend Protocols
# =============================================================================


@runtime_checkable
class MethodHandle(Protocol):
    """A method defined on a scaffold."""

    @property
    def name(self) -> str: ...

    def emit_body(self, body: Sequence[Instruction]) -> None:
        """Set the body; it must end with RETURN.

        Raises:
            BackendAllocationFailure: The body is malformed or already set
        """
        ...


@runtime_checkable
class PropertyHandle(Protocol):
    """A property defined on a scaffold."""

    @property
    def name(self) -> str: ...

    def set_getter(self, getter: MethodHandle) -> None: ...

    def set_setter(self, setter: MethodHandle) -> None: ...


@runtime_checkable
class EventHandle(Protocol):
    """An event defined on a scaffold."""

    @property
    def name(self) -> str: ...

    def set_add(self, accessor: MethodHandle) -> None: ...

    def set_remove(self, accessor: MethodHandle) -> None: ...


@runtime_checkable
class Scaffold(Protocol):
    """An empty type being filled with members."""

    contract: Contract
    name: str

    def define_method(
        self,
        name: str,
        flags: MemberFlags,
        return_type: Any,
        parameters: Sequence[Parameter],
        is_async: bool = False,
    ) -> MethodHandle: ...

    def define_property(
        self,
        name: str,
        property_type: Any,
        index_parameters: Sequence[Parameter] = (),
    ) -> PropertyHandle: ...

    def define_event(self, name: str, handler_type: Any) -> EventHandle: ...

    def define_override(self, implementation: MethodHandle, declaration: MemberKey) -> None:
        """Bind a defined method as the implementation of a contract member."""
        ...

    def finalize(self) -> type:
        """Turn the scaffold into a concrete type.

        Raises:
            FinalizationFailure: The scaffold cannot produce a usable type
        """
        ...


@runtime_checkable
class SynthesisBackend(Protocol):
    """Allocates scaffolds for stub types."""

    def create_scaffold(self, contract: Contract, name: str) -> Scaffold: ...


__all__ = [
    "NO_OP_BODY",
    "RETURN",
    "STUB_ACCESSOR",
    "STUB_METHOD",
    "VALUE_OPS",
    "Body",
    "EventHandle",
    "Instruction",
    "MemberFlags",
    "MethodHandle",
    "OpCode",
    "PropertyHandle",
    "Scaffold",
    "SynthesisBackend",
]

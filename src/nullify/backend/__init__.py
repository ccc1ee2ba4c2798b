"""Synthesis backends.

The engine talks to backends only through the protocols in
``nullify.backend.protocols``. ClassBackend is the built-in implementation.
"""

from .classes import DEFAULT_MODULE_NAME, ClassBackend, ClassScaffold, compile_body, is_stub
from .protocols import (
    NO_OP_BODY,
    RETURN,
    STUB_ACCESSOR,
    STUB_METHOD,
    VALUE_OPS,
    Body,
    EventHandle,
    Instruction,
    MemberFlags,
    MethodHandle,
    OpCode,
    PropertyHandle,
    Scaffold,
    SynthesisBackend,
)

__all__ = [
    "DEFAULT_MODULE_NAME",
    "NO_OP_BODY",
    "RETURN",
    "STUB_ACCESSOR",
    "STUB_METHOD",
    "VALUE_OPS",
    "Body",
    "ClassBackend",
    "ClassScaffold",
    "EventHandle",
    "Instruction",
    "MemberFlags",
    "MethodHandle",
    "OpCode",
    "PropertyHandle",
    "Scaffold",
    "SynthesisBackend",
    "compile_body",
    "is_stub",
]

"""Runtime null-object synthesis.

nullify builds concrete classes for abstract contracts (Protocols, ABCs,
classes marked with @contract). Every member of a generated class is inert:
methods and property getters return a configured override, a stub for
contract-typed results, a fresh default instance, or a zero value; setters
and event accessors accept their argument and do nothing.

Core components:
- Contract: Explicit member table of a contract (contract_of builds one)
- GenerationPolicy: Target contract, generated name, scope and overrides
- StubRegistry: (contract, name) -> synthesized stub type
- SynthesisBackend: Allocates and finalizes generated types
- SynthesisEngine: Turns a policy into a stub type
- Nullifier: Convenience facade returning ready instances

Example usage:
    from typing import Protocol

    from nullify import PolicyBuilder, SynthesisEngine

    class Greeter(Protocol):
        def greet(self) -> str: ...

        @property
        def count(self) -> int: ...

    engine = SynthesisEngine()
    policy = PolicyBuilder(Greeter).returns("greet", "hi").build()
    stub_type = engine.create(policy)
    if stub_type is not None:
        greeter = stub_type()
        greeter.greet()  # "hi"
        greeter.count    # 0
"""

from .api import Nullifier, get_nullifier, null_of, reset_nullifier
from .backend import ClassBackend, Instruction, MemberFlags, OpCode, SynthesisBackend, is_stub
from .config import BackendConfig, EngineConfig, LoggingConfig, NullifyConfig
from .contracts import (
    Contract,
    EventDescriptor,
    MemberKey,
    MethodBinding,
    MethodDescriptor,
    Parameter,
    PropertyDescriptor,
    as_contract,
    contract,
    contract_of,
    event,
    is_contract,
)
from .engine import MemberResultRule, Resolution, SynthesisEngine
from .policy import DEFAULT, GenerationPolicy, PolicyBuilder
from .registry import StubHandle, StubRegistry, get_stub_registry, reset_stub_registry
from .types import (
    BackendAllocationFailure,
    FinalizationFailure,
    ResultSource,
    SynthesisError,
    SynthesisResult,
)

__all__ = [
    "DEFAULT",
    "BackendAllocationFailure",
    "BackendConfig",
    "ClassBackend",
    "Contract",
    "EngineConfig",
    "EventDescriptor",
    "FinalizationFailure",
    "GenerationPolicy",
    "Instruction",
    "LoggingConfig",
    "MemberFlags",
    "MemberKey",
    "MemberResultRule",
    "MethodBinding",
    "MethodDescriptor",
    "Nullifier",
    "NullifyConfig",
    "OpCode",
    "Parameter",
    "PolicyBuilder",
    "PropertyDescriptor",
    "Resolution",
    "ResultSource",
    "StubHandle",
    "StubRegistry",
    "SynthesisBackend",
    "SynthesisEngine",
    "SynthesisError",
    "SynthesisResult",
    "as_contract",
    "contract",
    "contract_of",
    "event",
    "get_nullifier",
    "get_stub_registry",
    "is_contract",
    "is_stub",
    "null_of",
    "reset_nullifier",
    "reset_stub_registry",
]

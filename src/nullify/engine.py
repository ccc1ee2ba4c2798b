"""Stub synthesis engine.

The SynthesisEngine turns a GenerationPolicy into a concrete stub type:
1. Request a scaffold from the backend
2. Forward-declare the stub in the registry
3. Walk the target contract and every contract it extends
4. Define each method, property and event, with bodies chosen by the
   member-result rule
5. Finalize the scaffold and bind the forward declaration to it

The call either yields a complete type or nothing: any failure discards the
forward declaration and is reported as an unsuccessful SynthesisResult.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, get_origin

from nullify.backend import (
    NO_OP_BODY,
    RETURN,
    STUB_ACCESSOR,
    STUB_METHOD,
    Body,
    ClassBackend,
    Instruction,
    MemberFlags,
    OpCode,
    Scaffold,
    SynthesisBackend,
)
from nullify.config import EngineConfig
from nullify.contracts import (
    Contract,
    Member,
    MemberKey,
    MethodBinding,
    Parameter,
    is_contract,
)
from nullify.logging import NullifyLogger, get_logger
from nullify.policy import DEFAULT, GenerationPolicy
from nullify.registry import StubHandle, StubRegistry, get_stub_registry
from nullify.types import (
    BackendAllocationFailure,
    FinalizationFailure,
    ResultSource,
    SynthesisError,
    SynthesisResult,
)
from nullify.values import has_default_constructor, unwrap_optional

# =============================================================================
# Member-Result Rule
# =============================================================================


@dataclass(frozen=True)
class Resolution:
    """Decision of the member-result rule for one member."""

    source: ResultSource
    instruction: Instruction

    @property
    def body(self) -> Body:
        return (self.instruction, RETURN)


RuleStep = Callable[[MemberKey, Any, GenerationPolicy], Resolution | None]


class MemberResultRule:
    """Ordered evaluator deciding what a generated member produces.

    Steps run in priority order; the first one that decides wins:
    1. Explicit override (a DEFAULT or None override means zero value)
    2. Registered stub, for members whose type is itself a contract
    3. New default instance, for types constructible without arguments
    4. Zero value
    """

    def __init__(self, registry: StubRegistry) -> None:
        self.registry = registry
        self.steps: tuple[RuleStep, ...] = (
            self._override,
            self._registered_stub,
            self._default_instance,
        )

    def evaluate(self, key: MemberKey, declared_type: Any, policy: GenerationPolicy) -> Resolution:
        for step in self.steps:
            resolution = step(key, declared_type, policy)
            if resolution is not None:
                return resolution
        return _zero(declared_type)

    def _override(
        self, key: MemberKey, declared_type: Any, policy: GenerationPolicy
    ) -> Resolution | None:
        found, value = policy.override_for(key)
        if not found:
            return None
        if value is None or value is DEFAULT:
            return Resolution(ResultSource.OVERRIDE, Instruction(OpCode.LOAD_ZERO, declared_type))
        return Resolution(ResultSource.OVERRIDE, Instruction(OpCode.LOAD_CONST, value))

    def _registered_stub(
        self, key: MemberKey, declared_type: Any, policy: GenerationPolicy
    ) -> Resolution | None:
        target = unwrap_optional(declared_type)
        # Repo[int] resolves through Repo
        target = get_origin(target) or target
        if not is_contract(target):
            return None

        found, handle = self.registry.try_get(target, policy.name)
        if found:
            return Resolution(ResultSource.STUB, Instruction(OpCode.NEW_STUB, handle))
        # A contract has no constructor to fall back on
        return _zero(declared_type)

    def _default_instance(
        self, key: MemberKey, declared_type: Any, policy: GenerationPolicy
    ) -> Resolution | None:
        target = unwrap_optional(declared_type)
        if has_default_constructor(target):
            return Resolution(
                ResultSource.DEFAULT_INSTANCE, Instruction(OpCode.NEW_DEFAULT, target)
            )
        return None


def _zero(declared_type: Any) -> Resolution:
    return Resolution(ResultSource.ZERO, Instruction(OpCode.LOAD_ZERO, declared_type))


# =============================================================================
# Engine
# =============================================================================


_BINDING_FLAGS: dict[MethodBinding, MemberFlags] = {
    MethodBinding.INSTANCE: STUB_METHOD,
    MethodBinding.CLASS: STUB_METHOD | MemberFlags.CLASS_BOUND,
    MethodBinding.STATIC: STUB_METHOD | MemberFlags.STATIC,
}

# An ancestor's declaration of a name the derived contract redefines as another kind
_SHADOWED = object()


@dataclass
class _Definition:
    signature: tuple[Any, ...]
    handle: Any
    owner: Contract


@dataclass
class _FillState:
    """Bookkeeping for one create() call."""

    log: NullifyLogger
    defined: dict[str, _Definition] = field(default_factory=dict)
    resolutions: dict[MemberKey, ResultSource] = field(default_factory=dict)
    members_defined: int = 0

    def remember(self, member: Member, handle: Any, owner: Contract) -> None:
        self.defined[member.name] = _Definition(member.signature(), handle, owner)
        self.members_defined += 1


class SynthesisEngine:
    """Synthesizes stub types from generation policies.

    The engine keeps no mutable state of its own, so one instance can serve
    concurrent create() calls as long as its registry and backend can.
    """

    def __init__(
        self,
        registry: StubRegistry | None = None,
        backend: SynthesisBackend | None = None,
        config: EngineConfig | None = None,
        rule: MemberResultRule | None = None,
    ):
        self.registry = registry if registry is not None else get_stub_registry()
        self.backend = backend or ClassBackend()
        self.config = config or EngineConfig()
        self.rule = rule or MemberResultRule(self.registry)
        self._log = get_logger("engine")

    def can_create(self) -> bool:
        """Report whether synthesis is currently supported."""
        return True

    def create(self, policy: GenerationPolicy) -> type | None:
        """Synthesize a stub type; None when no type could be produced."""
        return self.synthesize(policy).stub_type

    def synthesize(self, policy: GenerationPolicy) -> SynthesisResult:
        """Synthesize a stub type and report how every member was resolved."""
        target = policy.target
        state = _FillState(log=self._log.with_operation("create").with_contract(target.name))
        reservation: StubHandle | None = None
        finalizing = False

        try:
            with state.log.timed("synthesis", stub=policy.generated_name):
                scaffold = self.backend.create_scaffold(target, policy.generated_name)
                if self.config.forward_declare:
                    reservation = self.registry.reserve(target, policy.name)

                for contract in target.lineage():
                    self._fill_methods(scaffold, contract, policy, state)
                    self._fill_properties(scaffold, contract, policy, state)
                    self._fill_events(scaffold, contract, state)

                finalizing = True
                stub_type = scaffold.finalize()
        except Exception as e:
            if reservation is not None:
                self.registry.discard(reservation)
            error = self._as_synthesis_error(e, target, finalizing)
            state.log.warning(
                "Synthesis failed",
                error=str(error),
                error_type=type(error).__name__,
            )
            return SynthesisResult(
                success=False,
                contract=target.name,
                error=str(error),
                members_defined=state.members_defined,
                resolutions=state.resolutions,
            )

        registered = self._register(reservation, target, policy.name, stub_type)
        state.log.debug(
            "Synthesized stub",
            stub=stub_type.__name__,
            members=state.members_defined,
            registered=registered,
        )
        return SynthesisResult(
            success=True,
            stub_type=stub_type,
            contract=target.name,
            members_defined=state.members_defined,
            resolutions=state.resolutions,
            registered=registered,
        )

    # -------------------------------------------------------------------------
    # Member definition
    # -------------------------------------------------------------------------

    def _fill_methods(
        self,
        scaffold: Scaffold,
        contract: Contract,
        policy: GenerationPolicy,
        state: _FillState,
    ) -> None:
        for method in contract.methods:
            existing = self._existing(state, method, contract)
            if existing is not None:
                if existing is not _SHADOWED:
                    scaffold.define_override(existing, method.key)
                continue

            handle = scaffold.define_method(
                method.name,
                _BINDING_FLAGS[method.binding],
                method.return_type,
                method.parameters,
                is_async=method.is_async,
            )
            state.remember(method, handle, contract)
            scaffold.define_override(handle, method.key)

            if method.returns_value:
                handle.emit_body(self._result_body(method.key, method.return_type, policy, state))
            else:
                handle.emit_body(NO_OP_BODY)

    def _fill_properties(
        self,
        scaffold: Scaffold,
        contract: Contract,
        policy: GenerationPolicy,
        state: _FillState,
    ) -> None:
        for prop in contract.properties:
            if self._existing(state, prop, contract) is not None:
                continue

            handle = scaffold.define_property(prop.name, prop.property_type, prop.index_parameters)
            state.remember(prop, handle, contract)

            if prop.readable:
                getter = scaffold.define_method(
                    f"get_{prop.name}", STUB_ACCESSOR, prop.property_type, prop.index_parameters
                )
                getter.emit_body(self._result_body(prop.key, prop.property_type, policy, state))
                handle.set_getter(getter)

            if prop.writable:
                # Accepts the value and stores nothing
                value = Parameter("value", prop.property_type)
                setter = scaffold.define_method(
                    f"set_{prop.name}", STUB_ACCESSOR, None, (*prop.index_parameters, value)
                )
                setter.emit_body(NO_OP_BODY)
                handle.set_setter(setter)

    def _fill_events(self, scaffold: Scaffold, contract: Contract, state: _FillState) -> None:
        for evt in contract.events:
            existing = self._existing(state, evt, contract)
            if existing is _SHADOWED:
                continue
            if existing is not None:
                add, remove = existing
            else:
                handle = scaffold.define_event(evt.name, evt.handler_type)
                handler = (Parameter("handler", evt.handler_type),)
                add = scaffold.define_method(f"add_{evt.name}", STUB_ACCESSOR, None, handler)
                remove = scaffold.define_method(f"remove_{evt.name}", STUB_ACCESSOR, None, handler)
                # Handlers are neither stored nor invoked
                add.emit_body(NO_OP_BODY)
                remove.emit_body(NO_OP_BODY)
                handle.set_add(add)
                handle.set_remove(remove)
                state.remember(evt, (add, remove), contract)

            scaffold.define_override(add, evt.add_key)
            scaffold.define_override(remove, evt.remove_key)

    def _existing(self, state: _FillState, member: Member, contract: Contract) -> Any:
        """Return the handle an earlier contract defined under this member's name.

        A derived contract's declaration overrides its ancestors' ones, whatever
        their signature. Between unrelated contracts only an identical member is
        shared, and only when dedupe is enabled.
        """
        entry = state.defined.get(member.name)
        if entry is None:
            return None
        if contract is not entry.owner and contract in entry.owner.lineage():
            return entry.handle if entry.signature[0] is member.kind else _SHADOWED
        if self.config.dedupe_members and entry.signature == member.signature():
            return entry.handle
        return None

    def _result_body(
        self,
        key: MemberKey,
        declared_type: Any,
        policy: GenerationPolicy,
        state: _FillState,
    ) -> Body:
        resolution = self.rule.evaluate(key, declared_type, policy)
        state.resolutions[key] = resolution.source
        state.log.debug("Resolved member", member=str(key), source=resolution.source.value)
        return resolution.body

    # -------------------------------------------------------------------------
    # Outcome
    # -------------------------------------------------------------------------

    def _register(
        self,
        reservation: StubHandle | None,
        target: Contract,
        name: str,
        stub_type: type,
    ) -> bool:
        if reservation is None:
            reservation = self.registry.reserve(target, name)
            if reservation is None:
                return False
        self.registry.bind(reservation, stub_type)
        return True

    @staticmethod
    def _as_synthesis_error(error: Exception, target: Contract, finalizing: bool) -> SynthesisError:
        if isinstance(error, SynthesisError):
            return error
        failure = FinalizationFailure if finalizing else BackendAllocationFailure
        return failure(f"{type(error).__name__}: {error}", contract=target.name)


__all__ = [
    "MemberResultRule",
    "Resolution",
    "SynthesisEngine",
]

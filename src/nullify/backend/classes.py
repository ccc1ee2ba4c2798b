"""Backend that synthesizes stubs as ordinary Python classes.

Each member body is compiled into a closure that runs on every call, so a
``NEW_DEFAULT`` or ``NEW_STUB`` body hands out a fresh instance each time
while a ``LOAD_CONST`` body returns the very same override object.

Generated classes subclass the contract's source class when there is one,
which keeps ``isinstance`` checks against Protocols and ABCs working.
"""

from __future__ import annotations

import inspect
import logging
import types
from collections.abc import Callable, Sequence
from typing import Any, final, get_origin

from nullify.contracts import Contract, MemberKey, Parameter, event
from nullify.types import BackendAllocationFailure, FinalizationFailure
from nullify.values import zero_value

from .protocols import VALUE_OPS, Instruction, MemberFlags, OpCode

logger = logging.getLogger(__name__)

DEFAULT_MODULE_NAME = "nullify.generated"

_VOID = (None, type(None), "None")


def _return_none() -> None:
    return None


def _producer(instruction: Instruction, member: str) -> Callable[[], Any]:
    op, operand = instruction.op, instruction.operand

    if op is OpCode.LOAD_CONST:
        return lambda: operand
    if op is OpCode.NEW_DEFAULT:
        return get_origin(operand) or operand
    if op is OpCode.NEW_STUB:
        if isinstance(operand, type):
            return operand
        return operand.instantiate
    if op is OpCode.LOAD_ZERO:
        value = zero_value(operand)
        return lambda: value

    raise BackendAllocationFailure(f"Unsupported instruction {instruction!r}", member=member)


def compile_body(member: str, body: Sequence[Instruction], return_type: Any) -> Callable[[], Any]:
    """Compile a body description into a zero-argument value producer."""
    body = tuple(body)
    if not body or body[-1].op is not OpCode.RETURN:
        raise BackendAllocationFailure(f"Body of {member} must end with RETURN", member=member)

    values = body[:-1]
    if any(instruction.op not in VALUE_OPS for instruction in values):
        raise BackendAllocationFailure(f"Body of {member} has a misplaced RETURN", member=member)
    if len(values) > 1:
        raise BackendAllocationFailure(
            f"Body of {member} produces {len(values)} values", member=member
        )
    if not values:
        return _return_none
    if return_type in _VOID:
        raise BackendAllocationFailure(
            f"{member} has no result but its body produces one", member=member
        )
    return _producer(values[0], member)


def _make_function(
    qualname: str,
    name: str,
    signature: inspect.Signature,
    produce: Callable[[], Any],
    is_async: bool,
) -> Callable[..., Any]:
    if is_async:

        async def member(*args: Any, **kwargs: Any) -> Any:
            signature.bind(*args, **kwargs)
            return produce()

    else:

        def member(*args: Any, **kwargs: Any) -> Any:
            signature.bind(*args, **kwargs)
            return produce()

    member.__name__ = name
    member.__qualname__ = f"{qualname}.{name}"
    member.__signature__ = signature  # type: ignore[attr-defined]
    return member


def _inert_init(self: Any) -> None:
    pass


def _stub_repr(self: Any) -> str:
    contract = type(self).__stub_contract__
    return f"<{type(self).__name__} stub of {contract.short_name}>"


# =============================================================================
# Handles
# =============================================================================


class _MethodBuilder:
    def __init__(
        self,
        owner: str,
        name: str,
        flags: MemberFlags,
        return_type: Any,
        parameters: Sequence[Parameter],
        is_async: bool,
    ) -> None:
        self._owner = owner
        self._name = name
        self.flags = flags
        self.return_type = return_type
        self.is_async = is_async
        # A plain function, or a classmethod/staticmethod wrapping one
        self.function: Any = None

        receiver = []
        if MemberFlags.STATIC not in flags:
            receiver_name = "cls" if MemberFlags.CLASS_BOUND in flags else "self"
            receiver.append(
                inspect.Parameter(receiver_name, inspect.Parameter.POSITIONAL_OR_KEYWORD)
            )
        try:
            self.signature = inspect.Signature(
                [*receiver, *(param.to_inspect() for param in parameters)],
                return_annotation=return_type,
            )
        except (TypeError, ValueError) as e:
            raise BackendAllocationFailure(
                f"Invalid signature for {owner}.{name}: {e}", member=name
            ) from e

    @property
    def name(self) -> str:
        return self._name

    @property
    def special(self) -> bool:
        return MemberFlags.SPECIAL_NAME in self.flags

    def emit_body(self, body: Sequence[Instruction]) -> None:
        if self.function is not None:
            raise BackendAllocationFailure(f"Body of {self._name} already emitted", member=self._name)

        produce = compile_body(self._name, body, self.return_type)
        function = _make_function(self._owner, self._name, self.signature, produce, self.is_async)
        if MemberFlags.FINAL in self.flags:
            function = final(function)
        if MemberFlags.STATIC in self.flags:
            function = staticmethod(function)
        elif MemberFlags.CLASS_BOUND in self.flags:
            function = classmethod(function)
        self.function = function


class _PropertyBuilder:
    def __init__(self, name: str, property_type: Any) -> None:
        self._name = name
        self.property_type = property_type
        self.getter: _MethodBuilder | None = None
        self.setter: _MethodBuilder | None = None

    @property
    def name(self) -> str:
        return self._name

    def set_getter(self, getter: Any) -> None:
        self.getter = getter

    def set_setter(self, setter: Any) -> None:
        self.setter = setter


class _EventBuilder:
    def __init__(self, name: str, handler_type: Any) -> None:
        self._name = name
        self.handler_type = handler_type
        self.add: _MethodBuilder | None = None
        self.remove: _MethodBuilder | None = None

    @property
    def name(self) -> str:
        return self._name

    def set_add(self, accessor: Any) -> None:
        self.add = accessor

    def set_remove(self, accessor: Any) -> None:
        self.remove = accessor


# =============================================================================
# Scaffold
# =============================================================================


class ClassScaffold:
    """Collects member definitions for one generated class."""

    def __init__(self, contract: Contract, name: str, module_name: str) -> None:
        self.contract = contract
        self.name = name
        self.module_name = module_name
        self._methods: dict[str, _MethodBuilder] = {}
        self._accessors: dict[str, _MethodBuilder] = {}
        self._properties: dict[str, _PropertyBuilder] = {}
        self._events: dict[str, _EventBuilder] = {}
        self._overrides: dict[MemberKey, _MethodBuilder] = {}
        self._declared = contract.declared_keys()
        self._stub_type: type | None = None

    @property
    def overrides(self) -> dict[MemberKey, str]:
        """Contract member -> name of the method implementing it."""
        return {key: builder.name for key, builder in self._overrides.items()}

    def define_method(
        self,
        name: str,
        flags: MemberFlags,
        return_type: Any,
        parameters: Sequence[Parameter],
        is_async: bool = False,
    ) -> _MethodBuilder:
        self._check_open(name)
        builder = _MethodBuilder(self.name, name, flags, return_type, parameters, is_async)

        if builder.special:
            if name in self._accessors:
                self._conflict(name)
            self._accessors[name] = builder
        else:
            self._check_free(name)
            self._methods[name] = builder
        return builder

    def define_property(
        self,
        name: str,
        property_type: Any,
        index_parameters: Sequence[Parameter] = (),
    ) -> _PropertyBuilder:
        self._check_open(name)
        if index_parameters:
            raise BackendAllocationFailure(
                f"Indexed property {name} is not supported by generated classes",
                contract=self.contract.name,
                member=name,
            )
        self._check_free(name)
        builder = _PropertyBuilder(name, property_type)
        self._properties[name] = builder
        return builder

    def define_event(self, name: str, handler_type: Any) -> _EventBuilder:
        self._check_open(name)
        self._check_free(name)
        builder = _EventBuilder(name, handler_type)
        self._events[name] = builder
        return builder

    def define_override(self, implementation: Any, declaration: MemberKey) -> None:
        self._check_open(declaration.member)
        if declaration not in self._declared:
            raise BackendAllocationFailure(
                f"{declaration} is not declared by {self.contract.short_name}",
                contract=self.contract.name,
                member=declaration.member,
            )
        self._overrides[declaration] = implementation

    def finalize(self) -> type:
        if self._stub_type is not None:
            return self._stub_type

        namespace = self._build_namespace()
        self._verify_complete(namespace)

        bases = (self.contract.source,) if self.contract.source is not None else ()
        try:
            stub_type = types.new_class(self.name, bases, exec_body=lambda ns: ns.update(namespace))
        except TypeError as e:
            raise FinalizationFailure(
                f"Cannot create {self.name}: {e}", contract=self.contract.name
            ) from e

        if inspect.isabstract(stub_type):
            missing = ", ".join(sorted(stub_type.__abstractmethods__))
            raise FinalizationFailure(
                f"{self.name} leaves abstract members unimplemented: {missing}",
                contract=self.contract.name,
            )

        self._stub_type = stub_type
        logger.debug("Finalized %s for %s", self.name, self.contract.name)
        return stub_type

    def _build_namespace(self) -> dict[str, Any]:
        namespace: dict[str, Any] = {
            "__module__": self.module_name,
            "__qualname__": self.name,
            "__doc__": f"Null object implementing {self.contract.name}.",
            "__init__": _inert_init,
            "__repr__": _stub_repr,
            "__stub_contract__": self.contract,
        }

        for name, method in self._methods.items():
            namespace[name] = self._function_of(method)

        for name, prop in self._properties.items():
            fget = self._function_of(prop.getter) if prop.getter else None
            fset = self._function_of(prop.setter) if prop.setter else None
            namespace[name] = property(fget, fset)

        for name, evt in self._events.items():
            if evt.add is None or evt.remove is None:
                raise FinalizationFailure(
                    f"Event {name} lacks an add or remove accessor",
                    contract=self.contract.name,
                    member=name,
                )
            descriptor = event(evt.handler_type)
            descriptor.name = name
            namespace[name] = descriptor
            for accessor in (evt.add, evt.remove):
                if accessor.name in namespace:
                    self._conflict(accessor.name)
                namespace[accessor.name] = self._function_of(accessor)

        return namespace

    def _function_of(self, builder: _MethodBuilder) -> Any:
        if builder.function is None:
            raise FinalizationFailure(
                f"{self.name}.{builder.name} has no body",
                contract=self.contract.name,
                member=builder.name,
            )
        return builder.function

    def _verify_complete(self, namespace: dict[str, Any]) -> None:
        missing: list[str] = []
        # Lineage runs most-derived first; later declarations of a name are shadowed
        seen: set[str] = set()
        for contract in self.contract.lineage():
            shadowed = set(seen)
            seen.update(m.name for m in contract.members())
            for method in contract.methods:
                if method.name in shadowed:
                    continue
                if not _is_method(namespace.get(method.name)):
                    missing.append(method.name)
            for declared in contract.properties:
                if declared.name in shadowed:
                    continue
                prop = namespace.get(declared.name)
                if (
                    not isinstance(prop, property)
                    or (declared.readable and prop.fget is None)
                    or (declared.writable and prop.fset is None)
                ):
                    missing.append(declared.name)
            for evt in contract.events:
                if evt.name in shadowed:
                    continue
                if f"add_{evt.name}" not in namespace or f"remove_{evt.name}" not in namespace:
                    missing.append(evt.name)

        if missing:
            raise FinalizationFailure(
                f"{self.name} does not implement: {', '.join(missing)}",
                contract=self.contract.name,
            )

    def _check_open(self, member: str) -> None:
        if self._stub_type is not None:
            raise BackendAllocationFailure(
                f"{self.name} is already finalized", contract=self.contract.name, member=member
            )

    def _check_free(self, name: str) -> None:
        if name in self._methods or name in self._properties or name in self._events:
            self._conflict(name)

    def _conflict(self, name: str) -> None:
        raise BackendAllocationFailure(
            f"Member {name!r} is already defined on {self.name}",
            contract=self.contract.name,
            member=name,
        )


def _is_method(value: Any) -> bool:
    # classmethod objects are not callable themselves
    return callable(value) or isinstance(value, (classmethod, staticmethod))


class ClassBackend:
    """Default backend: generated stubs are real Python classes."""

    def __init__(self, module_name: str = DEFAULT_MODULE_NAME) -> None:
        self.module_name = module_name

    def create_scaffold(self, contract: Contract, name: str) -> ClassScaffold:
        if not name:
            raise BackendAllocationFailure(
                "Generated class name must not be empty", contract=contract.name
            )
        return ClassScaffold(contract, name, self.module_name)


def is_stub(obj: Any) -> bool:
    """Check whether an object or class was generated by a ClassBackend."""
    cls = obj if isinstance(obj, type) else type(obj)
    return "__stub_contract__" in vars(cls)


__all__ = [
    "DEFAULT_MODULE_NAME",
    "ClassBackend",
    "ClassScaffold",
    "compile_body",
    "is_stub",
]

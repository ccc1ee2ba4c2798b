"""Contract descriptors and class introspection.

A contract is the explicit member table a stub has to satisfy: its methods,
properties and events, plus the contracts it extends. Tables are built once
per Python class and cached, so synthesis never has to walk a class twice.

Usage:
    from typing import Protocol

    from nullify.contracts import contract_of, event

    class Greeter(Protocol):
        greeted = event()

        def greet(self, name: str) -> str: ...

    table = contract_of(Greeter)
    for contract in table.lineage():
        print(contract.name, [m.name for m in contract.members()])
"""

from __future__ import annotations

import inspect
import threading
from abc import ABC
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Generic, Protocol, TypeVar, get_origin, get_type_hints

_EMPTY = inspect.Parameter.empty

_NON_CONTRACTS: frozenset[type] = frozenset({object, ABC, Protocol, Generic})  # type: ignore[arg-type]

C = TypeVar("C", bound=type)


class MemberKind(Enum):
    """Kinds of contract members."""

    METHOD = "method"
    PROPERTY = "property"
    EVENT = "event"


class MethodBinding(Enum):
    """What a method receives as its first argument."""

    INSTANCE = "instance"
    CLASS = "class"  # classmethod
    STATIC = "static"  # staticmethod, no receiver


@dataclass(frozen=True)
class MemberKey:
    """Identity of a member: the declaring contract plus the member name."""

    contract: str
    member: str

    def __str__(self) -> str:
        return f"{self.contract}.{self.member}"


@dataclass(frozen=True)
class Parameter:
    """A parameter of a contract method or indexed property."""

    name: str
    annotation: Any = Any
    kind: Any = inspect.Parameter.POSITIONAL_OR_KEYWORD
    default: Any = field(default=_EMPTY, compare=False)

    def to_inspect(self) -> inspect.Parameter:
        return inspect.Parameter(
            self.name, self.kind, default=self.default, annotation=self.annotation
        )


@dataclass(frozen=True)
class MethodDescriptor:
    """A method declared by a contract.

    Attributes:
        name: Method name
        contract: Qualified name of the declaring contract
        return_type: Declared result type (None for methods without a result)
        parameters: Parameters, excluding the receiver
        is_async: Whether the method is a coroutine function
        binding: Instance, class or static method
    """

    name: str
    contract: str
    return_type: Any = Any
    parameters: tuple[Parameter, ...] = ()
    is_async: bool = False
    binding: MethodBinding = MethodBinding.INSTANCE

    kind: ClassVar[MemberKind] = MemberKind.METHOD

    @property
    def key(self) -> MemberKey:
        return MemberKey(self.contract, self.name)

    @property
    def returns_value(self) -> bool:
        return self.return_type not in (None, type(None), "None")

    def signature(self) -> tuple[Any, ...]:
        return (self.kind, self.parameters, self.return_type, self.is_async, self.binding)


@dataclass(frozen=True)
class PropertyDescriptor:
    """A property declared by a contract."""

    name: str
    contract: str
    property_type: Any = Any
    readable: bool = True
    writable: bool = False
    index_parameters: tuple[Parameter, ...] = ()

    kind: ClassVar[MemberKind] = MemberKind.PROPERTY

    @property
    def key(self) -> MemberKey:
        return MemberKey(self.contract, self.name)

    def signature(self) -> tuple[Any, ...]:
        return (
            self.kind,
            self.property_type,
            self.readable,
            self.writable,
            self.index_parameters,
        )


@dataclass(frozen=True)
class EventDescriptor:
    """An event declared by a contract, with add/remove accessors."""

    name: str
    contract: str
    handler_type: Any = Callable[..., Any]

    kind: ClassVar[MemberKind] = MemberKind.EVENT

    @property
    def key(self) -> MemberKey:
        return MemberKey(self.contract, self.name)

    @property
    def add_key(self) -> MemberKey:
        return MemberKey(self.contract, f"add_{self.name}")

    @property
    def remove_key(self) -> MemberKey:
        return MemberKey(self.contract, f"remove_{self.name}")

    def signature(self) -> tuple[Any, ...]:
        return (self.kind, self.handler_type)


Member = MethodDescriptor | PropertyDescriptor | EventDescriptor


@dataclass(frozen=True)
class Contract:
    """Member table of one contract.

    Only members declared directly on this contract are listed; inherited
    ones live on the entries of ``bases``.
    """

    name: str
    methods: tuple[MethodDescriptor, ...] = ()
    properties: tuple[PropertyDescriptor, ...] = ()
    events: tuple[EventDescriptor, ...] = ()
    bases: tuple[Contract, ...] = ()
    source: type | None = field(default=None, compare=False, repr=False)

    @property
    def short_name(self) -> str:
        return self.name.rsplit(".", 1)[-1]

    def members(self) -> tuple[Member, ...]:
        return (*self.methods, *self.properties, *self.events)

    def lineage(self) -> list[Contract]:
        """Return this contract followed by every contract it extends.

        Each contract appears once, in depth-first declaration order.
        """
        ordered: list[Contract] = []
        seen: set[Contract] = set()

        def visit(current: Contract) -> None:
            if current in seen:
                return
            seen.add(current)
            ordered.append(current)
            for base in current.bases:
                visit(base)

        visit(self)
        return ordered

    def member(self, name: str) -> MemberKey:
        """Find the key of the first member called ``name`` along the lineage."""
        for current in self.lineage():
            for declared in current.members():
                if declared.name == name:
                    return declared.key
        raise KeyError(f"{self.short_name} has no member named {name!r}")

    def declared_keys(self) -> frozenset[MemberKey]:
        """Keys of every member and event accessor along the lineage."""
        keys: set[MemberKey] = set()
        for current in self.lineage():
            keys.update(declared.key for declared in current.members())
            for evt in current.events:
                keys.add(evt.add_key)
                keys.add(evt.remove_key)
        return frozenset(keys)


# =============================================================================
# Events
# =============================================================================


class event:  # noqa: N801
    """Declares an event on a contract class.

    The descriptor routes ``obj.name.add(h)``, ``obj.name += h`` and their
    removal counterparts to the instance's ``add_<name>`` and
    ``remove_<name>`` members.
    """

    def __init__(self, handler_type: Any = Callable[..., Any]) -> None:
        self.handler_type = handler_type
        self.name = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return BoundEvent(instance, self.name)

    def __set__(self, instance: Any, value: Any) -> None:
        # `obj.evt += h` rebinds the attribute to the BoundEvent it read
        if isinstance(value, BoundEvent) and value.instance is instance and value.name == self.name:
            return
        raise AttributeError(f"Event {self.name!r} cannot be assigned")

    def __repr__(self) -> str:
        return f"event({self.name!r})"


class BoundEvent:
    """An event accessed through an instance."""

    def __init__(self, instance: Any, name: str) -> None:
        self.instance = instance
        self.name = name

    def add(self, handler: Any) -> None:
        getattr(self.instance, f"add_{self.name}")(handler)

    def remove(self, handler: Any) -> None:
        getattr(self.instance, f"remove_{self.name}")(handler)

    def __iadd__(self, handler: Any) -> BoundEvent:
        self.add(handler)
        return self

    def __isub__(self, handler: Any) -> BoundEvent:
        self.remove(handler)
        return self


# =============================================================================
# Introspection
# =============================================================================


def contract(cls: C) -> C:
    """Mark a plain class as a contract."""
    cls.__nullify_contract__ = True  # type: ignore[attr-defined]
    return cls


def is_contract(tp: Any) -> bool:
    """Check whether a declared type is itself a contract."""
    if isinstance(tp, Contract):
        return True
    if not isinstance(tp, type) or tp in _NON_CONTRACTS:
        return False
    own = vars(tp)
    if own.get("__nullify_contract__") or own.get("_is_protocol"):
        return True
    return inspect.isabstract(tp)


def as_contract(target: Any) -> Contract:
    """Normalize a class or Contract into a Contract."""
    if isinstance(target, Contract):
        return target
    if isinstance(target, type):
        return contract_of(target)
    raise TypeError(f"Expected a contract or a class, got {target!r}")


_contract_cache: dict[type, Contract] = {}
_contract_lock = threading.RLock()


def contract_of(cls: type) -> Contract:
    """Get the member table for a class, building it on first use."""
    cached = _contract_cache.get(cls)
    if cached is not None:
        return cached

    with _contract_lock:
        cached = _contract_cache.get(cls)
        if cached is None:
            cached = _introspect(cls)
            _contract_cache[cls] = cached
        return cached


def member_key_of(member: Any) -> MemberKey:
    """Derive a MemberKey from a function or property taken off a contract class."""
    if isinstance(member, property):
        member = member.fget or member.fset
    elif isinstance(member, (classmethod, staticmethod)) or inspect.ismethod(member):
        member = member.__func__
    if inspect.isfunction(member):
        owner, _, name = member.__qualname__.rpartition(".")
        if owner:
            return MemberKey(f"{member.__module__}.{owner}", name)
    raise TypeError(f"Cannot derive a member key from {member!r}")


def _qualified_name(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


def _resolve_hints(obj: Any, localns: dict[str, Any]) -> dict[str, Any]:
    try:
        return get_type_hints(obj, localns=localns)
    except (NameError, AttributeError, TypeError):
        return dict(getattr(obj, "__annotations__", {}))


def _annotation(hints: dict[str, Any], name: str, fallback: Any) -> Any:
    if name in hints:
        return hints[name]
    return Any if fallback is _EMPTY else fallback


def _describe_method(
    attr: str,
    fn: Callable[..., Any],
    owner: str,
    localns: dict[str, Any],
    binding: MethodBinding = MethodBinding.INSTANCE,
) -> MethodDescriptor:
    hints = _resolve_hints(fn, localns)
    sig = inspect.signature(fn)

    has_receiver = binding is not MethodBinding.STATIC
    parameters = []
    for index, param in enumerate(sig.parameters.values()):
        # Receiver (self or cls)
        if (
            index == 0
            and has_receiver
            and param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD)
        ):
            continue
        parameters.append(
            Parameter(
                name=param.name,
                annotation=_annotation(hints, param.name, param.annotation),
                kind=param.kind,
                default=param.default,
            )
        )

    return MethodDescriptor(
        name=attr,
        contract=owner,
        return_type=_annotation(hints, "return", sig.return_annotation),
        parameters=tuple(parameters),
        is_async=inspect.iscoroutinefunction(fn),
        binding=binding,
    )


def _describe_property(
    attr: str, prop: property, owner: str, localns: dict[str, Any]
) -> PropertyDescriptor:
    property_type: Any = Any
    if prop.fget is not None:
        property_type = _resolve_hints(prop.fget, localns).get("return", Any)
    elif prop.fset is not None:
        values = [v for k, v in _resolve_hints(prop.fset, localns).items() if k != "return"]
        property_type = values[0] if values else Any

    return PropertyDescriptor(
        name=attr,
        contract=owner,
        property_type=property_type,
        readable=prop.fget is not None,
        writable=prop.fset is not None,
    )


def _describe_fields(
    cls: type, owner: str, localns: dict[str, Any], taken: set[str]
) -> list[PropertyDescriptor]:
    """Annotated attributes without a value become read/write properties."""
    raw = inspect.get_annotations(cls)
    if not raw:
        return []
    try:
        hints = get_type_hints(cls, localns=localns)
    except (NameError, AttributeError, TypeError):
        hints = dict(raw)

    fields = []
    own = vars(cls)
    for attr in raw:
        if attr.startswith("_") or attr in taken or attr in own:
            continue
        hint = hints.get(attr, Any)
        if hint is ClassVar or get_origin(hint) is ClassVar:
            continue
        fields.append(PropertyDescriptor(attr, owner, hint, readable=True, writable=True))
    return fields


def _introspect(cls: type) -> Contract:
    name = _qualified_name(cls)
    # Lets a contract refer to itself even when defined in a local scope
    localns = {cls.__name__: cls}
    abstract = getattr(cls, "__abstractmethods__", frozenset())

    methods: list[MethodDescriptor] = []
    properties: list[PropertyDescriptor] = []
    events: list[EventDescriptor] = []

    for attr, value in vars(cls).items():
        if attr.startswith("_") and attr not in abstract:
            continue
        if isinstance(value, event):
            events.append(EventDescriptor(attr, name, value.handler_type))
        elif isinstance(value, property):
            properties.append(_describe_property(attr, value, name, localns))
        elif inspect.isfunction(value):
            methods.append(_describe_method(attr, value, name, localns))
        elif isinstance(value, (classmethod, staticmethod)) and inspect.isfunction(value.__func__):
            binding = MethodBinding.CLASS if isinstance(value, classmethod) else MethodBinding.STATIC
            methods.append(_describe_method(attr, value.__func__, name, localns, binding))

    taken = {m.name for m in methods} | {p.name for p in properties} | {e.name for e in events}
    properties.extend(_describe_fields(cls, name, localns, taken))

    bases = tuple(
        contract_of(base)
        for base in cls.__bases__
        if base not in _NON_CONTRACTS and is_contract(base)
    )

    return Contract(
        name=name,
        methods=tuple(methods),
        properties=tuple(properties),
        events=tuple(events),
        bases=bases,
        source=cls,
    )


__all__ = [
    "BoundEvent",
    "Contract",
    "EventDescriptor",
    "Member",
    "MemberKey",
    "MemberKind",
    "MethodBinding",
    "MethodDescriptor",
    "Parameter",
    "PropertyDescriptor",
    "as_contract",
    "contract",
    "contract_of",
    "event",
    "is_contract",
    "member_key_of",
]

"""Tests for contract introspection."""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, ClassVar, Protocol

import pytest

from nullify.contracts import (
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
    member_key_of,
)


class Greeter(Protocol):
    def greet(self, name: str, excited: bool = False) -> str: ...

    @property
    def count(self) -> int: ...

    @count.setter
    def count(self, value: int) -> None: ...

    def _private(self) -> None: ...


class Named(Protocol):
    def name(self) -> str: ...


class Aged(Protocol):
    def age(self) -> int: ...


class Person(Named, Aged, Protocol):
    def describe(self) -> str: ...


class Employee(Person, Named, Protocol):
    def salary(self) -> float: ...


class Node(Protocol):
    def next(self) -> Node: ...


class Button(Protocol):
    clicked = event(Callable[[str], None])

    def label(self) -> str: ...


class Shape(ABC):
    @abstractmethod
    def area(self) -> float: ...

    @abstractmethod
    def __len__(self) -> int: ...

    def describe(self) -> str:
        return "shape"


class Record(Protocol):
    title: str
    version: int
    registry: ClassVar[dict[str, Any]]


class Fetcher(Protocol):
    async def fetch(self, url: str) -> bytes: ...



class Store(ABC):
    @classmethod
    @abstractmethod
    def open(cls, path: str) -> Store: ...

    @staticmethod
    @abstractmethod
    def version() -> int: ...

    @abstractmethod
    def size(self) -> int: ...


@contract
class Plain:
    def run(self) -> None:
        pass


class Concrete:
    def run(self) -> None:
        pass


class TestIsContract:
    """Tests for is_contract."""

    def test_protocol(self):
        assert is_contract(Greeter)

    def test_abstract_class(self):
        assert is_contract(Shape)

    def test_marked_class(self):
        assert is_contract(Plain)

    def test_concrete_class(self):
        assert not is_contract(Concrete)
        assert not is_contract(int)
        assert not is_contract(object)

    def test_typing_special_forms(self):
        assert not is_contract(Protocol)
        assert not is_contract(ABC)
        assert not is_contract(Any)

    def test_contract_instance(self):
        assert is_contract(contract_of(Greeter))

    def test_non_types(self):
        assert not is_contract("Greeter")
        assert not is_contract(None)


class TestContractOf:
    """Tests for building member tables."""

    def test_name_is_qualified(self):
        table = contract_of(Greeter)

        assert table.name == f"{Greeter.__module__}.Greeter"
        assert table.short_name == "Greeter"
        assert table.source is Greeter

    def test_cached(self):
        assert contract_of(Greeter) is contract_of(Greeter)

    def test_methods(self):
        table = contract_of(Greeter)

        assert [m.name for m in table.methods] == ["greet"]
        greet = table.methods[0]
        assert greet.return_type is str
        assert greet.parameters == (
            Parameter("name", str),
            Parameter("excited", bool),
        )
        assert greet.parameters[1].default is False
        assert not greet.is_async

    def test_private_members_skipped(self):
        names = [m.name for m in contract_of(Greeter).members()]

        assert "_private" not in names

    def test_property(self):
        (count,) = contract_of(Greeter).properties

        assert count.name == "count"
        assert count.property_type is int
        assert count.readable
        assert count.writable

    def test_event(self):
        table = contract_of(Button)

        assert table.events == (
            EventDescriptor("clicked", table.name, Callable[[str], None]),
        )

    def test_async_method(self):
        (fetch,) = contract_of(Fetcher).methods

        assert fetch.is_async
        assert fetch.return_type is bytes

    def test_abstract_dunder_included(self):
        names = {m.name for m in contract_of(Shape).methods}

        assert "__len__" in names
        assert "area" in names
        # Concrete helpers still count as members
        assert "describe" in names

    def test_class_and_static_methods(self):
        methods = {m.name: m for m in contract_of(Store).methods}

        assert methods["open"].binding is MethodBinding.CLASS
        assert [p.name for p in methods["open"].parameters] == ["path"]
        assert methods["open"].return_type is Store
        assert methods["version"].binding is MethodBinding.STATIC
        assert methods["version"].parameters == ()
        assert methods["size"].binding is MethodBinding.INSTANCE

    def test_annotated_fields_become_properties(self):
        table = contract_of(Record)
        by_name = {p.name: p for p in table.properties}

        assert set(by_name) == {"title", "version"}
        assert by_name["title"].property_type is str
        assert by_name["version"].writable

    def test_self_reference(self):
        (next_method,) = contract_of(Node).methods

        assert next_method.return_type is Node

    def test_self_reference_in_local_scope(self):
        class Chain(Protocol):
            def link(self) -> Chain: ...

        (link,) = contract_of(Chain).methods

        assert link.return_type is Chain

    def test_unresolvable_annotation_kept_as_text(self):
        class Broken(Protocol):
            def load(self) -> MissingType: ...  # noqa: F821

        (load,) = contract_of(Broken).methods

        assert load.return_type == "MissingType"

    def test_missing_annotations_are_any(self):
        class Loose(Protocol):
            def run(self, value): ...

        (run,) = contract_of(Loose).methods

        assert run.return_type is Any
        assert run.parameters == (Parameter("value", Any),)


class TestLineage:
    """Tests for contract inheritance."""

    def test_bases(self):
        table = contract_of(Person)

        assert table.bases == (contract_of(Named), contract_of(Aged))
        # Only members declared directly are listed
        assert [m.name for m in table.methods] == ["describe"]

    def test_lineage_order(self):
        lineage = contract_of(Person).lineage()

        assert [c.short_name for c in lineage] == ["Person", "Named", "Aged"]

    def test_lineage_visits_each_contract_once(self):
        lineage = contract_of(Employee).lineage()

        assert [c.short_name for c in lineage] == ["Employee", "Person", "Named", "Aged"]

    def test_concrete_bases_ignored(self):
        class Mixed(Concrete, ABC):
            @abstractmethod
            def extra(self) -> int: ...

        assert contract_of(Mixed).bases == ()

    def test_member_lookup_follows_lineage(self):
        key = contract_of(Person).member("name")

        assert key == MemberKey(contract_of(Named).name, "name")

    def test_member_lookup_unknown(self):
        with pytest.raises(KeyError):
            contract_of(Person).member("missing")

    def test_declared_keys(self):
        table = contract_of(Button)
        keys = table.declared_keys()

        assert MemberKey(table.name, "label") in keys
        assert MemberKey(table.name, "add_clicked") in keys
        assert MemberKey(table.name, "remove_clicked") in keys


class TestDescriptors:
    """Tests for member descriptors."""

    def test_returns_value(self):
        assert MethodDescriptor("run", "C", return_type=int).returns_value
        assert not MethodDescriptor("run", "C", return_type=None).returns_value
        assert not MethodDescriptor("run", "C", return_type=type(None)).returns_value

    def test_signature_ignores_contract(self):
        a = MethodDescriptor("name", "A", return_type=str)
        b = MethodDescriptor("name", "B", return_type=str)
        c = MethodDescriptor("name", "C", return_type=int)

        assert a.signature() == b.signature()
        assert a.signature() != c.signature()

    def test_property_and_method_signatures_differ(self):
        method = MethodDescriptor("value", "A", return_type=int)
        prop = PropertyDescriptor("value", "A", property_type=int)

        assert method.signature() != prop.signature()

    def test_binding_is_part_of_signature(self):
        instance = MethodDescriptor("open", "A", return_type=int)
        static = MethodDescriptor("open", "A", return_type=int, binding=MethodBinding.STATIC)

        assert instance.signature() != static.signature()

    def test_parameter_to_inspect(self):
        param = Parameter("limit", int, default=10).to_inspect()

        assert param.name == "limit"
        assert param.annotation is int
        assert param.default == 10
        assert param.kind is inspect.Parameter.POSITIONAL_OR_KEYWORD

    def test_member_key_str(self):
        assert str(MemberKey("pkg.Greeter", "greet")) == "pkg.Greeter.greet"

    def test_contract_equality_is_structural(self):
        a = Contract("pkg.Empty")
        b = Contract("pkg.Empty", source=Concrete)

        assert a == b


class TestHelpers:
    """Tests for as_contract and member_key_of."""

    def test_as_contract_from_class(self):
        assert as_contract(Greeter) is contract_of(Greeter)

    def test_as_contract_passthrough(self):
        table = contract_of(Greeter)

        assert as_contract(table) is table

    def test_as_contract_rejects_instances(self):
        with pytest.raises(TypeError):
            as_contract("Greeter")

    def test_member_key_of_function(self):
        assert member_key_of(Greeter.greet) == MemberKey(contract_of(Greeter).name, "greet")

    def test_member_key_of_property(self):
        assert member_key_of(Greeter.count) == MemberKey(contract_of(Greeter).name, "count")

    def test_member_key_of_inherited(self):
        assert member_key_of(Person.name) == MemberKey(contract_of(Named).name, "name")

    def test_member_key_of_class_and_static_methods(self):
        name = contract_of(Store).name

        assert member_key_of(Store.open) == MemberKey(name, "open")
        assert member_key_of(Store.version) == MemberKey(name, "version")
        assert member_key_of(vars(Store)["open"]) == MemberKey(name, "open")

    def test_member_key_of_rejects_values(self):
        with pytest.raises(TypeError):
            member_key_of(42)


class TestEventDescriptor:
    """Tests for the event descriptor."""

    def test_class_access_returns_descriptor(self):
        assert isinstance(Button.clicked, event)
        assert Button.clicked.name == "clicked"

    def test_bound_event_routes_to_accessors(self):
        calls = []

        class Widget:
            changed = event()

            def add_changed(self, handler):
                calls.append(("add", handler))

            def remove_changed(self, handler):
                calls.append(("remove", handler))

        widget = Widget()
        widget.changed += print
        widget.changed -= print
        widget.changed.add(len)

        assert calls == [("add", print), ("remove", print), ("add", len)]

    def test_assignment_rejected(self):
        class Widget:
            changed = event()

        with pytest.raises(AttributeError):
            Widget().changed = print

"""Tests for generation policies."""

from typing import Protocol

import pytest

from nullify.contracts import MemberKey, contract_of
from nullify.policy import DEFAULT, GenerationPolicy, PolicyBuilder, default_generated_name


class Greeter(Protocol):
    def greet(self) -> str: ...

    @property
    def count(self) -> int: ...


class Named(Protocol):
    def name(self) -> str: ...


class Person(Named, Protocol):
    def describe(self) -> str: ...


class TestGenerationPolicy:
    """Tests for GenerationPolicy."""

    def test_requires_target(self):
        with pytest.raises(ValueError):
            GenerationPolicy(None, "NullNothing")

    def test_class_target_converted(self):
        policy = GenerationPolicy(Greeter, "NullGreeter")

        assert policy.target is contract_of(Greeter)

    def test_overrides_are_read_only(self):
        key = contract_of(Greeter).member("greet")
        overrides = {key: "hi"}
        policy = GenerationPolicy(Greeter, "NullGreeter", overrides)

        # Later changes to the source mapping do not leak in
        overrides[key] = "changed"
        assert policy.override_for(key) == (True, "hi")

        with pytest.raises(TypeError):
            policy.return_overrides[key] = "bye"

    def test_override_for_missing(self):
        policy = GenerationPolicy(Greeter, "NullGreeter")

        assert policy.override_for(contract_of(Greeter).member("greet")) == (False, None)

    def test_override_of_none_is_found(self):
        key = contract_of(Greeter).member("greet")
        policy = GenerationPolicy(Greeter, "NullGreeter", {key: None})

        assert policy.override_for(key) == (True, None)

    def test_structural_equality(self):
        key = contract_of(Greeter).member("greet")
        a = GenerationPolicy(Greeter, "NullGreeter", {key: "hi"})
        b = GenerationPolicy(contract_of(Greeter), "NullGreeter", {key: "hi"})

        assert a == b
        assert hash(a) == hash(b)

    def test_frozen(self):
        policy = GenerationPolicy(Greeter, "NullGreeter")

        with pytest.raises(AttributeError):
            policy.generated_name = "Other"  # type: ignore[misc]

    def test_summary(self):
        assert GenerationPolicy(Greeter, "G").summary() == "G <- Greeter"
        assert GenerationPolicy(Greeter, "G", name="tests").summary() == "G <- Greeter @tests"


class TestPolicyBuilder:
    """Tests for PolicyBuilder."""

    def test_defaults(self):
        policy = PolicyBuilder(Greeter).build()

        assert policy.generated_name == "NullGreeter"
        assert policy.name == ""
        assert dict(policy.return_overrides) == {}

    def test_default_generated_name(self):
        assert default_generated_name(contract_of(Person)) == "NullPerson"

    def test_named_and_generated_as(self):
        policy = PolicyBuilder(Greeter).named("tests").generated_as("QuietGreeter").build()

        assert policy.name == "tests"
        assert policy.generated_name == "QuietGreeter"

    def test_returns_by_name(self):
        policy = PolicyBuilder(Greeter).returns("greet", "hi").build()
        key = MemberKey(contract_of(Greeter).name, "greet")

        assert policy.override_for(key) == (True, "hi")

    def test_returns_by_function(self):
        policy = PolicyBuilder(Greeter).returns(Greeter.greet, "hi").build()

        assert policy.override_for(contract_of(Greeter).member("greet")) == (True, "hi")

    def test_returns_by_property(self):
        policy = PolicyBuilder(Greeter).returns(Greeter.count, 7).build()

        assert policy.override_for(contract_of(Greeter).member("count")) == (True, 7)

    def test_returns_by_key(self):
        key = contract_of(Greeter).member("greet")
        policy = PolicyBuilder(Greeter).returns(key, "hi").build()

        assert policy.override_for(key) == (True, "hi")

    def test_inherited_member_keyed_by_declaring_contract(self):
        policy = PolicyBuilder(Person).returns("name", "Ada").build()
        key = MemberKey(contract_of(Named).name, "name")

        assert policy.override_for(key) == (True, "Ada")

    def test_returns_default(self):
        policy = PolicyBuilder(Greeter).returns_default("count").build()
        found, value = policy.override_for(contract_of(Greeter).member("count"))

        assert found
        assert value is DEFAULT

    def test_unknown_member(self):
        with pytest.raises(KeyError):
            PolicyBuilder(Greeter).returns("missing", 1)

    def test_requires_target(self):
        with pytest.raises(ValueError):
            PolicyBuilder(None)


class TestDefault:
    """Tests for the DEFAULT marker."""

    def test_singleton(self):
        assert type(DEFAULT)() is DEFAULT

    def test_repr(self):
        assert repr(DEFAULT) == "DEFAULT"

"""Tests for zero values and default construction."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol, TypeVar, Union

from nullify.contracts import contract
from nullify.values import has_default_constructor, unwrap_optional, zero_value


@dataclass
class Settings:
    verbose: bool = False
    tags: list[str] = field(default_factory=list)


class Endpoint:
    def __init__(self, url: str) -> None:
        self.url = url


class Color(Enum):
    RED = "red"


class Store(ABC):
    @abstractmethod
    def get(self) -> str: ...


T = TypeVar("T")


class Repo(Protocol[T]):
    def get(self) -> T: ...


@contract
class Marked:
    def run(self) -> None:
        pass


class TestZeroValue:
    """Tests for zero_value."""

    def test_numeric_builtins(self):
        assert zero_value(int) == 0
        assert zero_value(float) == 0.0
        assert zero_value(complex) == 0j
        assert zero_value(bool) is False

    def test_references_are_none(self):
        assert zero_value(str) is None
        assert zero_value(Settings) is None
        assert zero_value(list[int]) is None
        assert zero_value(Any) is None

    def test_optional_is_none(self):
        assert zero_value(Optional[int]) is None


class TestHasDefaultConstructor:
    """Tests for has_default_constructor."""

    def test_builtin_containers(self):
        assert has_default_constructor(str)
        assert has_default_constructor(list)
        assert has_default_constructor(dict)
        assert has_default_constructor(int)

    def test_generic_alias_uses_origin(self):
        assert has_default_constructor(list[str])
        assert has_default_constructor(dict[str, int])

    def test_dataclass_with_defaults(self):
        assert has_default_constructor(Settings)

    def test_required_arguments(self):
        assert not has_default_constructor(Endpoint)
        assert not has_default_constructor(range)

    def test_abstract_and_enum(self):
        assert not has_default_constructor(Store)
        assert not has_default_constructor(Color)

    def test_contracts(self):
        assert not has_default_constructor(Repo)
        assert not has_default_constructor(Repo[int])
        assert not has_default_constructor(Marked)

    def test_non_classes(self):
        assert not has_default_constructor(None)
        assert not has_default_constructor(type(None))
        assert not has_default_constructor(Any)
        assert not has_default_constructor("Settings")


class TestUnwrapOptional:
    """Tests for unwrap_optional."""

    def test_pipe_syntax(self):
        assert unwrap_optional(Settings | None) is Settings

    def test_typing_optional(self):
        assert unwrap_optional(Optional[Settings]) is Settings

    def test_wider_unions_unchanged(self):
        union = Union[int, str, None]

        assert unwrap_optional(union) == union

    def test_plain_type_unchanged(self):
        assert unwrap_optional(int) is int

"""Default values for declared types.

Two questions the member-result rule asks about a type:
- what is its zero value (the value of an unset slot of that type)
- can it be constructed without arguments
"""

from __future__ import annotations

import inspect
import types
from enum import Enum
from typing import Any, Union, get_args, get_origin

from nullify.contracts import is_contract

_ZERO_TYPES: tuple[type, ...] = (bool, int, float, complex)

# Builtins without a readable signature that still need arguments
_NO_DEFAULT_BUILTINS: frozenset[type] = frozenset(
    {range, slice, memoryview, type, super, property, staticmethod, classmethod}
)


def unwrap_optional(tp: Any) -> Any:
    """Reduce ``X | None`` to ``X``; other types are returned unchanged."""
    origin = get_origin(tp)
    if origin is Union or origin is types.UnionType:
        args = [arg for arg in get_args(tp) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return tp


def _runtime_class(tp: Any) -> type | None:
    cls = get_origin(tp) or tp
    return cls if isinstance(cls, type) else None


def zero_value(tp: Any) -> Any:
    """Zero value of a declared type: 0-like for numeric builtins, else None."""
    cls = _runtime_class(tp)
    if cls in _ZERO_TYPES:
        return cls()
    return None


def has_default_constructor(tp: Any) -> bool:
    """Check whether ``tp()`` would succeed without arguments."""
    cls = _runtime_class(tp)
    if cls is None or cls is type(None) or cls is Any:
        return False
    if inspect.isabstract(cls) or issubclass(cls, Enum) or is_contract(cls):
        return False

    try:
        sig = inspect.signature(cls)
    except (TypeError, ValueError):
        return cls.__module__ == "builtins" and cls not in _NO_DEFAULT_BUILTINS

    return all(
        param.default is not param.empty or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD)
        for param in sig.parameters.values()
    )


__all__ = ["has_default_constructor", "unwrap_optional", "zero_value"]

"""Marks interception wrappers and recovers the object they wrap."""

from __future__ import annotations

from typing import Any

IDENTITY_MARKER = "__taut_wrapped__"


class WrapperBase:
    """Base for every wrapper type; the wrapped object lives in ``_taut_target``."""

    __slots__ = ("_taut_target",)


def is_wrapped(value: Any) -> bool:
    # Checked on the concrete type: wrappers report the target's ``__class__``.
    return issubclass(type(value), WrapperBase)


def unwrap(value: Any) -> Any:
    if is_wrapped(value):
        return object.__getattribute__(value, "_taut_target")
    return value


def unwrap_args(args: tuple[Any, ...], kwargs: dict[str, Any]) -> tuple[tuple[Any, ...], dict[str, Any]]:
    return tuple(unwrap(arg) for arg in args), {key: unwrap(value) for key, value in kwargs.items()}

"""Component identity helpers for the foreign UI framework.

Memo and forward-ref wrappers are plain objects tagged with a ``$$typeof``
marker; the component they stand for lives under ``type`` / ``render``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

TYPEOF = "$$typeof"
MEMO_TYPE = "react.memo"
FORWARD_REF_TYPE = "react.forward_ref"
DEFAULT_ELEMENT_NAME = "Component"


def field(obj: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from a mapping key or an attribute."""
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


def typeof(component: Any) -> Any:
    if component is None or callable(component):
        return None
    return field(component, TYPEOF)


class OriginalElement:
    """Stands in for a patched component without being patched again."""

    __slots__ = ("original_type", "displayName")

    def __init__(self, original_type: Any, display_name: str) -> None:
        self.original_type = original_type
        self.displayName = display_name

    def __repr__(self) -> str:
        return f"OriginalElement({self.displayName})"


def get_component_name(component: Any) -> str | None:
    if not component:
        return None
    tag = typeof(component)
    if tag == MEMO_TYPE:
        return get_component_name(field(component, "type"))
    if tag == FORWARD_REF_TYPE:
        render = field(component, "render")
        return (
            field(component, "displayName")
            or field(render, "displayName")
            or getattr(render, "__name__", None)
            or None
        )
    if isinstance(component, OriginalElement):
        return component.displayName
    if callable(component):
        return getattr(component, "displayName", None) or None
    return None


def get_element_name(element: Any) -> str:
    if isinstance(element, str):
        return element
    return get_component_name(element) or DEFAULT_ELEMENT_NAME


def get_original_component(component: Any) -> Any:
    """Strip memo/forward-ref wrappers down to the underlying component."""
    while component:
        tag = typeof(component)
        if tag == MEMO_TYPE:
            component = field(component, "type")
        elif tag == FORWARD_REF_TYPE:
            component = field(component, "render")
        else:
            break
    return component

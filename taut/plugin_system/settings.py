"""Plugin config comparison helpers."""

from __future__ import annotations

import math
from copy import deepcopy
from typing import Any

DISABLED: dict[str, Any] = {"enabled": False}


def deep_equal(a: Any, b: Any) -> bool:
    """Structural equality over JSON values; NaN equals NaN and bool is never a number."""
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        if isinstance(a, float) and isinstance(b, float) and math.isnan(a) and math.isnan(b):
            return True
        return a == b
    if isinstance(a, dict) and isinstance(b, dict):
        if set(a) != set(b):
            return False
        return all(deep_equal(a[key], b[key]) for key in a)
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        if len(a) != len(b):
            return False
        return all(deep_equal(x, y) for x, y in zip(a, b))
    if type(a) is not type(b):
        return False
    return a == b


def diff_plugin_configs(old: dict[str, Any], new: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Names whose config changed, mapped to the new config (missing means disabled)."""
    changed: dict[str, dict[str, Any]] = {}
    for name in sorted(set(old or {}) | set(new or {})):
        before = (old or {}).get(name) or DISABLED
        after = (new or {}).get(name) or DISABLED
        if not deep_equal(before, after):
            changed[name] = deepcopy(after)
    return changed

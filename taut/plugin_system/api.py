"""Plugin API definitions."""

from __future__ import annotations

import types
from typing import Any

from taut.kernel.errors import PluginError


class TautPlugin:
    """Base class that every plugin extends.

    Subclasses must set ``name``, ``description`` and ``authors``.
    Plugins are constructed in the UI-rendering process with the bridge API
    and their own config from config.jsonc. ``start`` must be implemented;
    ``stop`` should undo whatever ``start`` did.
    """

    name: str
    description: str
    authors: list[str]

    def __init__(self, api: Any, config: dict[str, Any]) -> None:
        self.api = api
        self.config = config

    def start(self) -> None:
        raise NotImplementedError(f"{type(self).__name__} must implement start()")

    def stop(self) -> None:
        return None

    def log(self, *args: Any) -> None:
        label = f"[{type(self).__name__}]"
        self.api.log(label, *args, plugin=getattr(self, "name", None) or type(self).__name__)


def _is_plugin_class(value: Any) -> bool:
    return isinstance(value, type) and issubclass(value, TautPlugin) and value is not TautPlugin


def validate_plugin_class(plugin_class: Any) -> type[TautPlugin]:
    """Reject classes that do not satisfy the plugin contract."""
    if not _is_plugin_class(plugin_class):
        raise PluginError(f"{plugin_class!r} is not a TautPlugin subclass")
    label = plugin_class.__name__
    name = getattr(plugin_class, "name", None)
    if not isinstance(name, str) or not name:
        raise PluginError(f"{label} must set a non-empty string name")
    if not isinstance(getattr(plugin_class, "description", None), str):
        raise PluginError(f"{label} must set a string description")
    authors = getattr(plugin_class, "authors", None)
    if not isinstance(authors, (list, tuple)) or not all(isinstance(author, str) for author in authors):
        raise PluginError(f"{label} must set authors as a list of strings")
    return plugin_class


def resolve_plugin_class(module: types.ModuleType) -> type[TautPlugin]:
    """Pick the plugin class a module exposes: ``default`` or its only subclass."""
    default = getattr(module, "default", None)
    if default is not None:
        if not _is_plugin_class(default):
            raise PluginError(f"{module.__name__}.default is not a TautPlugin subclass")
        return validate_plugin_class(default)
    defined = [
        value
        for value in vars(module).values()
        if _is_plugin_class(value) and getattr(value, "__module__", None) == module.__name__
    ]
    if len(defined) != 1:
        raise PluginError(f"{module.__name__} must define exactly one TautPlugin subclass (found {len(defined)})")
    return validate_plugin_class(defined[0])


def load_plugin_class(name: str, code: str) -> type[TautPlugin]:
    """Execute delivered plugin code in a fresh module and return its class."""
    module_name = f"taut_plugin_{name.replace('.', '_').replace('-', '_')}"
    module = types.ModuleType(module_name)
    module.__file__ = f"<taut-plugin:{name}>"
    try:
        compiled = compile(code, module.__file__, "exec")
        exec(compiled, module.__dict__)
    except Exception as exc:
        raise PluginError(f"plugin {name} failed to evaluate: {type(exc).__name__}: {exc}") from exc
    return resolve_plugin_class(module)

"""Search over the foreign bundler's module registry.

The bundler keeps a global chunk registry: a list-like object whose
``push`` accepts ``(chunk_ids, modules, runtime_callback)``. Pushing a
chunk with a fresh id and no modules makes the bundler call
``runtime_callback(require)``, which hands us the module resolver. Every
module id listed by any chunk can then be resolved with ``require(id)``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from taut.kernel.errors import ExportNotFoundError, TautError

from .components import get_component_name, get_original_component

Predicate = Callable[[Any], bool]

_REACT_PROPS = ("createElement", "Component", "useState")
_REACT_DOM_PROPS = ("render", "createPortal")
_REACT_DOM_CLIENT_PROPS = ("createRoot", "hydrateRoot")


@dataclass(frozen=True)
class CommonModules:
    react: Any
    react_dom: Any
    react_dom_client: Any


def has_prop(exports: Any, name: str) -> bool:
    if isinstance(exports, Mapping):
        return name in exports
    try:
        return hasattr(exports, name)
    except Exception:
        return False


def _members(exports: Any) -> Iterable[Any]:
    """The export's own public members: mapping items or instance/module attributes."""
    if isinstance(exports, Mapping):
        return list(exports.values())
    try:
        namespace = vars(exports)
    except TypeError:
        return []
    return [value for key, value in list(namespace.items()) if not str(key).startswith("_")]


class ExportIndex:
    def __init__(self, chunk_registry: Any, *, logger: Any = None) -> None:
        self._chunks = chunk_registry
        self._logger = logger
        self._require: Callable[[Any], Any] | None = None
        self._capture()

    def _capture(self) -> None:
        def runtime(require: Callable[[Any], Any]) -> None:
            self._require = require

        self._chunks.push(([object()], {}, runtime))
        if self._require is None:
            raise TautError("bundler did not hand out its module resolver")
        if self._logger is not None:
            self._logger.event(event="exports.resolver_captured", level="debug")

    @property
    def require(self) -> Callable[[Any], Any]:
        if self._require is None:
            raise TautError("module resolver has not been captured")
        return self._require

    def module_ids(self) -> list[Any]:
        seen: set[Any] = set()
        ids: list[Any] = []
        for chunk in list(self._chunks):
            try:
                modules = chunk[1]
            except (IndexError, KeyError, TypeError):
                continue
            if not isinstance(modules, Mapping):
                continue
            for module_id in modules:
                if module_id in seen:
                    continue
                seen.add(module_id)
                ids.append(module_id)
        return ids

    def all_exports(self) -> list[tuple[Any, Any]]:
        """Resolve every known module; failing and empty modules are skipped."""
        resolved: list[tuple[Any, Any]] = []
        for module_id in self.module_ids():
            try:
                exports = self.require(module_id)
            except Exception:
                continue
            if not exports:
                continue
            resolved.append((module_id, exports))
        return resolved

    def find_export(self, predicate: Predicate, all: bool = False) -> Any:
        results: list[Any] = []
        seen: set[int] = set()

        def _check(candidate: Any) -> bool:
            try:
                return bool(predicate(candidate))
            except Exception:
                return False

        for _module_id, exports in self.all_exports():
            for candidate in [exports, *_members(exports)]:
                if not _check(candidate):
                    continue
                if not all:
                    return candidate
                if id(candidate) not in seen:
                    seen.add(id(candidate))
                    results.append(candidate)
        return results if all else None

    def find_by_props(self, props: Iterable[str], all: bool = False) -> Any:
        names = list(props)
        return self.find_export(lambda exp: all_props(exp, names), all)

    def find_component(self, name: str, all: bool = False, predicate: Predicate | None = None) -> Any:
        def _matches(exp: Any) -> bool:
            return get_component_name(exp) == name and (predicate(exp) if predicate else True)

        if all:
            return [get_original_component(item) for item in self.find_export(_matches, True)]
        result = self.find_export(_matches)
        if not result:
            raise ExportNotFoundError(f"could not find component: {name}")
        return get_original_component(result)

    def common_modules(self) -> CommonModules:
        return CommonModules(
            react=self.find_by_props(_REACT_PROPS),
            react_dom=self.find_by_props(_REACT_DOM_PROPS),
            react_dom_client=self.find_by_props(_REACT_DOM_CLIENT_PROPS),
        )


def all_props(exports: Any, names: list[str]) -> bool:
    return all(has_prop(exports, name) for name in names)

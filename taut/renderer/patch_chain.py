"""Component replacement at element-creation time.

``PatchChain.install()`` swaps the framework's ``createElement`` for a
wrapper. When an element of a patched component is created, the wrapper
folds the registered replacers over an ``OriginalElement`` sentinel::

    R2(R1(OriginalElement(C)))

Rendering the sentinel (or passing ``__original=True`` in props) creates
the real component without consulting the chain again, so a replacer can
always render what it replaced.
"""

from __future__ import annotations

import functools
import threading
from collections.abc import Mapping, MutableMapping
from typing import Any, Callable

from .components import OriginalElement, get_element_name, get_original_component

BYPASS_PROP = "__original"
POISON_PROP = "_poison"

Replacer = Callable[[Any], Any]


def _get(node: Any, name: str) -> Any:
    if isinstance(node, Mapping):
        return node.get(name)
    return getattr(node, name, None)


def _set(node: Any, name: str, value: Any) -> None:
    if isinstance(node, MutableMapping):
        node[name] = value
    else:
        setattr(node, name, value)


def fiber_root_from_hook(hook: Any) -> Callable[[], Any]:
    """Root provider backed by the framework's devtools global hook."""

    def _root() -> Any:
        roots = hook.getFiberRoots(1)
        return next(iter(roots), None)

    return _root


def poison_tree(root: Any) -> int:
    """Give every rendered node fresh props so memoized subtrees re-render."""
    if root is None:
        return 0
    start = _get(root, "current") or root
    poisoned = 0
    stack = [start]
    while stack:
        node = stack.pop()
        if node is None:
            continue
        props = _get(node, "memoizedProps")
        if isinstance(props, Mapping):
            _set(node, "memoizedProps", {**props, POISON_PROP: 1})
            poisoned += 1
        stack.append(_get(node, "sibling"))
        stack.append(_get(node, "child"))
    return poisoned


class PatchChain:
    def __init__(
        self,
        framework: Any,
        *,
        root_provider: Callable[[], Any] | None = None,
        logger: Any = None,
    ) -> None:
        self._framework = framework
        self._root_provider = root_provider
        self._logger = logger
        self._lock = threading.Lock()
        # id(component) -> (component, replacers)
        self._replacements: dict[int, tuple[Any, list[Replacer]]] = {}
        self._original_create: Callable[..., Any] | None = None
        self._installed: Callable[..., Any] | None = None

    @property
    def original_create_element(self) -> Callable[..., Any]:
        if self._original_create is None:
            return self._framework.createElement
        return self._original_create

    def install(self) -> None:
        with self._lock:
            if self._installed is not None:
                return
            original = self._framework.createElement
            wrapper = self._make_wrapper(original)
            self._framework.createElement = wrapper
            self._original_create = original
            self._installed = wrapper

    def uninstall(self) -> None:
        with self._lock:
            if self._installed is None:
                return
            if self._framework.createElement is self._installed:
                self._framework.createElement = self._original_create
            self._installed = None
            self._original_create = None

    def replacers_for(self, component: Any) -> list[Replacer]:
        with self._lock:
            entry = self._replacements.get(id(get_original_component(component)))
            return list(entry[1]) if entry else []

    def patched_components(self) -> list[Any]:
        with self._lock:
            return [component for component, _ in self._replacements.values()]

    def resolve_type(self, element_type: Any) -> Any:
        replacers = self.replacers_for(element_type)
        if not replacers:
            return element_type
        sentinel = OriginalElement(element_type, get_element_name(element_type))
        current: Any = sentinel
        for replacer in replacers:
            try:
                replaced = replacer(current)
            except Exception as exc:
                if self._logger is not None:
                    self._logger.event(
                        event="patch.replacer_failed",
                        level="error",
                        component=get_element_name(element_type),
                        replacer=getattr(replacer, "__qualname__", repr(replacer)),
                        error=exc,
                    )
                continue
            if callable(replaced) and not isinstance(replaced, type) and not hasattr(replaced, "displayName"):
                try:
                    replaced.displayName = f"Patched({get_element_name(current)})"
                except (AttributeError, TypeError):
                    pass
            current = replaced
        return element_type if current is sentinel else current

    def _make_wrapper(self, create: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(create)
        def create_element(element_type: Any, props: Any = None, *children: Any) -> Any:
            bypass = False
            if isinstance(props, Mapping) and props.get(BYPASS_PROP):
                bypass = True
                props = {key: value for key, value in props.items() if key != BYPASS_PROP}
            if isinstance(element_type, OriginalElement):
                return create(element_type.original_type, props, *children)
            if not bypass:
                element_type = self.resolve_type(element_type)
            return create(element_type, props, *children)

        return create_element

    def patch_component(self, original: Any, replacer: Replacer) -> Callable[[], None]:
        component = get_original_component(original)
        with self._lock:
            entry = self._replacements.get(id(component))
            if entry is None:
                entry = (component, [])
                self._replacements[id(component)] = entry
            entry[1].append(replacer)
        self.dirty_memoization_cache()
        if self._logger is not None:
            self._logger.event(event="patch.registered", component=get_element_name(component))

        def unpatch() -> None:
            self.unpatch_component(replacer)

        return unpatch

    def unpatch_component(self, replacer: Replacer) -> bool:
        removed = False
        with self._lock:
            for key, (_component, replacers) in list(self._replacements.items()):
                while replacer in replacers:
                    replacers.remove(replacer)
                    removed = True
                if not replacers:
                    del self._replacements[key]
        return removed

    def dirty_memoization_cache(self) -> int:
        if self._root_provider is None:
            return 0
        try:
            root = self._root_provider()
        except Exception as exc:
            if self._logger is not None:
                self._logger.event(event="patch.cache_poison_failed", level="error", error=exc)
            return 0
        if root is None:
            if self._logger is not None:
                self._logger.event(event="patch.no_render_tree", level="warning")
            return 0
        return poison_tree(root)

"""Registry of redirect handlers keyed by exact access path.

Access paths start at a module root such as ``<electron>`` and append one
``.name`` segment per attribute read. Constructor call sites end with
``.<constructor>``::

    <electron>.BrowserWindow.<constructor>
    <electron>.Menu.setApplicationMenu

Call handlers are invoked as ``handler(target, this, args, kwargs)`` and
constructor handlers as ``handler(target, args, kwargs)``.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Iterator

CONSTRUCTOR = "<constructor>"

RedirectHandler = Callable[..., Any]


def module_root(request: str) -> str:
    return f"<{request}>"


def child_path(path: str, name: str) -> str:
    return f"{path}.{name}"


def constructor_path(path: str) -> str:
    return child_path(path, CONSTRUCTOR)


class RedirectTable:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: dict[str, RedirectHandler] = {}

    def register(self, path: str, handler: RedirectHandler | None = None):
        """Register ``handler`` at ``path``; usable as a decorator when handler is omitted."""
        if handler is None:

            def _decorator(fn: RedirectHandler) -> RedirectHandler:
                self.register(path, fn)
                return fn

            return _decorator
        if not callable(handler):
            raise TypeError(f"redirect handler for {path} is not callable")
        with self._lock:
            self._handlers[str(path)] = handler
        return handler

    def unregister(self, path: str) -> RedirectHandler | None:
        with self._lock:
            return self._handlers.pop(str(path), None)

    def get(self, path: str) -> RedirectHandler | None:
        return self._handlers.get(path)

    def paths(self) -> list[str]:
        with self._lock:
            return sorted(self._handlers)

    def __contains__(self, path: object) -> bool:
        return path in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    def __iter__(self) -> Iterator[str]:
        return iter(self.paths())

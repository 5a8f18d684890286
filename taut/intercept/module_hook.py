"""Module-load interception.

Module resolution is modelled as a ``ModuleProvider`` (``load(request)``).
``ModuleLoadHook`` decorates another provider and wraps the exports of
allow-listed requests in an interception proxy rooted at ``<request>``.

``install_import_hook`` puts a hook in front of the interpreter's import
system for foreign code that imports modules directly. It composes with
whatever ``builtins.__import__`` / ``importlib.import_module`` were
installed before and returns an uninstall callable::

    uninstall = install_import_hook(hook)
    # ... run the host application ...
    uninstall()
"""

from __future__ import annotations

import builtins
import importlib
import re
import threading
from typing import Any, Callable, Iterable, Protocol

from .proxy import Interceptor
from .redirects import module_root

DEFAULT_MODULE_PATTERNS: tuple[str, ...] = (r"electron.*",)


class ModuleProvider(Protocol):
    def load(self, request: str) -> Any: ...


class ImportlibProvider:
    def load(self, request: str) -> Any:
        return importlib.import_module(request)


class ModuleLoadHook:
    def __init__(
        self,
        provider: ModuleProvider,
        interceptor: Interceptor,
        patterns: Iterable[str] = DEFAULT_MODULE_PATTERNS,
        *,
        logger: Any = None,
    ) -> None:
        self._provider = provider
        self._interceptor = interceptor
        self._patterns = [re.compile(p) for p in patterns]
        self._logger = logger

    def matches(self, request: str) -> bool:
        return any(pattern.fullmatch(request) for pattern in self._patterns)

    def wrap_exports(self, request: str, exports: Any) -> Any:
        if not self.matches(request):
            return exports
        if self._logger is not None:
            self._logger.event(event="intercept.module_wrapped", level="debug", request=request)
        return self._interceptor.wrap(exports, module_root(request))

    def load(self, request: str) -> Any:
        return self.wrap_exports(request, self._provider.load(request))


_install_lock = threading.Lock()
_installed: dict[str, Any] = {}


def install_import_hook(hook: ModuleLoadHook) -> Callable[[], None]:
    """Route ``import`` statements and ``importlib.import_module`` through ``hook``.

    Installing while a hook is already active returns the existing uninstall.
    """
    with _install_lock:
        existing = _installed.get("uninstall")
        if existing is not None:
            return existing

        orig_import = builtins.__import__
        orig_import_module = importlib.import_module

        def _import(name, globals=None, locals=None, fromlist=(), level=0):
            module = orig_import(name, globals, locals, fromlist, level)
            if level != 0:
                return module
            if fromlist or "." not in name:
                return hook.wrap_exports(name, module)
            # ``import a.b`` binds the top-level package.
            return hook.wrap_exports(name.partition(".")[0], module)

        def _import_module(name, package=None):
            module = orig_import_module(name, package)
            if name.startswith("."):
                return module
            return hook.wrap_exports(name, module)

        builtins.__import__ = _import
        importlib.import_module = _import_module

        def uninstall() -> None:
            with _install_lock:
                if builtins.__import__ is _import:
                    builtins.__import__ = orig_import
                if importlib.import_module is _import_module:
                    importlib.import_module = orig_import_module
                _installed.pop("uninstall", None)

        _installed["uninstall"] = uninstall
        return uninstall

"""Predefined redirects for the host's platform API.

The handlers here address the platform module by its own attribute names
(``BrowserWindow``, ``webPreferences``, ``Menu.setApplicationMenu``...).
Every handler logs and degrades on internal errors so the host can always
finish starting up.
"""

from __future__ import annotations

import functools
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from taut.kernel.paths import TautPaths

from .identity import unwrap_args
from .redirects import RedirectTable, child_path, constructor_path, module_root

PROJECT_URL = "https://github.com/jeremy46231/taut"
_BOOTSTRAP_EVENT = "did-finish-load"


@dataclass
class ControlSession:
    """State the control process owns for the lifetime of the host."""

    window: Any = None
    original_preload: str | None = None
    menu_installed: bool = False


def _degrade(logger: Any, event: str, default: Callable[..., Any]):
    """Run a handler; on failure log it and return ``default(*args)``."""

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(fn)
        def wrapper(*args: Any) -> Any:
            try:
                return fn(*args)
            except Exception as exc:
                if logger is not None:
                    logger.event(event=event, level="error", error=exc)
                return default(*args)

        return wrapper

    return decorator


def read_original_preload(path: Any, logger: Any = None) -> str | None:
    """Synchronously capture the host's own preload script.

    This runs inside the window constructor redirect, before the host gets
    control back and consumes the path, so it cannot be deferred.
    """
    if not path:
        return None
    try:
        text = Path(str(path)).read_text(encoding="utf-8")
    except Exception as exc:
        if logger is not None:
            logger.event(event="preload.read_failed", level="error", path=str(path), error=exc)
        return None
    if logger is not None:
        logger.event(event="preload.cached", path=str(path))
    return text


def _prepare_window_options(options: Any, preload_path: Path, session: ControlSession, logger: Any) -> dict[str, Any]:
    prepared = dict(options) if isinstance(options, dict) else {}
    prefs = prepared.get("webPreferences")
    prefs = dict(prefs) if isinstance(prefs, dict) else {}
    prefs["devTools"] = True
    session.original_preload = read_original_preload(prefs.get("preload"), logger)
    prefs["preload"] = str(preload_path)
    prepared["webPreferences"] = prefs
    return prepared


def _attach_bootstrap(window: Any, client_path: Path, logger: Any) -> None:
    def _inject(*_args: Any) -> None:
        try:
            if not client_path.exists():
                if logger is not None:
                    logger.event(event="client.missing", level="error", path=str(client_path))
                return
            code = client_path.read_text(encoding="utf-8")
            if logger is not None:
                logger.event(event="client.injecting", path=str(client_path))
            window.webContents.executeJavaScript(code)
        except Exception as exc:
            if logger is not None:
                logger.event(event="client.inject_failed", level="error", error=exc)

    window.webContents.on(_BOOTSTRAP_EVENT, _inject)


def browser_window_redirect(session: ControlSession, paths: TautPaths, logger: Any = None):
    def construct(target: type, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        if logger is not None:
            logger.event(event="window.constructing")
        call_args = list(args)
        try:
            options = call_args[0] if call_args else kwargs.get("options")
            prepared = _prepare_window_options(options, paths.preload_path, session, logger)
            if call_args:
                call_args[0] = prepared
            elif "options" in kwargs:
                kwargs = {**kwargs, "options": prepared}
            else:
                call_args = [prepared]
        except Exception as exc:
            if logger is not None:
                logger.event(event="window.prepare_failed", level="error", error=exc)
            call_args = list(args)
        window = target(*call_args, **kwargs)
        session.window = window
        try:
            _attach_bootstrap(window, paths.client_path, logger)
        except Exception as exc:
            if logger is not None:
                logger.event(event="window.bootstrap_failed", level="error", error=exc)
        return window

    return construct


def menu_lock_redirect(session: ControlSession, logger: Any = None):
    def set_application_menu(target: Any, this: Any, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        if session.menu_installed:
            if logger is not None:
                logger.event(event="menu.replace_ignored", level="debug")
            return None
        call_args, call_kwargs = unwrap_args(args, kwargs)
        return target(*call_args, **call_kwargs)

    return set_application_menu


def application_menu_template(platform: Any, *, darwin: bool | None = None) -> list[dict[str, Any]]:
    if darwin is None:
        darwin = sys.platform == "darwin"

    def _open_project(*_args: Any) -> None:
        platform.shell.openExternal(PROJECT_URL)

    template: list[dict[str, Any]] = [{"role": "appMenu"}] if darwin else []
    template.extend(
        [
            {"role": "fileMenu"},
            {"role": "editMenu"},
            {"role": "viewMenu"},
            {"role": "windowMenu"},
            {
                "label": "Taut",
                "submenu": [
                    {"label": "About Taut", "click": _open_project},
                    {"type": "separator"},
                    {"role": "toggleDevTools", "accelerator": "CmdOrCtrl+Alt+I"},
                    {"role": "reload"},
                    {"role": "forceReload"},
                    {"label": "Quit", "role": "quit"},
                ],
            },
            {"role": "help", "submenu": [{"label": "Open Taut GitHub", "click": _open_project}]},
        ]
    )
    return template


def install_application_menu(platform: Any, session: ControlSession, logger: Any = None) -> bool:
    """Install our menu once through the raw (unwrapped) platform module."""
    try:
        menu = platform.Menu.buildFromTemplate(application_menu_template(platform))
        platform.Menu.setApplicationMenu(menu)
    except Exception as exc:
        if logger is not None:
            logger.event(event="menu.install_failed", level="error", error=exc)
        return False
    session.menu_installed = True
    return True


def install_safe_storage_bypass(table: RedirectTable, root: str, logger: Any = None) -> None:
    """Pass credential data through unmodified.

    The platform keychain sees a re-signed binary on every patch, which makes
    its secure storage inconsistent between launches.
    """
    storage = child_path(root, "safeStorage")

    @_degrade(logger, "safe_storage.available_failed", lambda *_a: True)
    def is_available(target: Any, this: Any, args: tuple[Any, ...], kwargs: dict[str, Any]) -> bool:
        return True

    @_degrade(logger, "safe_storage.encrypt_failed", lambda *_a: b"")
    def encrypt(target: Any, this: Any, args: tuple[Any, ...], kwargs: dict[str, Any]) -> bytes:
        return str(args[0]).encode("utf-8")

    @_degrade(logger, "safe_storage.decrypt_failed", lambda *_a: "")
    def decrypt(target: Any, this: Any, args: tuple[Any, ...], kwargs: dict[str, Any]) -> str:
        return bytes(args[0]).decode("utf-8")

    table.register(child_path(storage, "isEncryptionAvailable"), is_available)
    table.register(child_path(storage, "encryptString"), encrypt)
    table.register(child_path(storage, "decryptString"), decrypt)


def install_default_redirects(
    table: RedirectTable,
    session: ControlSession,
    paths: TautPaths,
    *,
    module: str = "electron",
    safe_storage_bypass: bool | None = None,
    logger: Any = None,
) -> None:
    root = module_root(module)
    table.register(
        constructor_path(child_path(root, "BrowserWindow")),
        browser_window_redirect(session, paths, logger),
    )
    table.register(child_path(child_path(root, "Menu"), "setApplicationMenu"), menu_lock_redirect(session, logger))
    if safe_storage_bypass is None:
        safe_storage_bypass = sys.platform == "darwin"
    if safe_storage_bypass:
        install_safe_storage_bypass(table, root, logger)

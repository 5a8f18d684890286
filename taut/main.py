"""Control-process composition root.

``ControlProcess`` is built before the host application loads its platform
module. It owns the redirect table, the module hook, the session state the
redirects share, and the plugin coordinator, and answers the UI process's
requests on the channel::

    control = ControlProcess(channel)
    uninstall = control.install_import_hook()
    control.start(platform)       # raw platform module: menu + header rewrite
"""

from __future__ import annotations

from typing import Any, Callable

from taut.intercept.builtin import ControlSession, install_application_menu, install_default_redirects
from taut.intercept.cors import DEFAULT_HOST_ORIGIN, HeaderRewriter
from taut.intercept.module_hook import (
    DEFAULT_MODULE_PATTERNS,
    ImportlibProvider,
    ModuleLoadHook,
    ModuleProvider,
    install_import_hook,
)
from taut.intercept.proxy import Interceptor
from taut.intercept.redirects import RedirectTable
from taut.ipc.channel import GET_ORIGINAL_PRELOAD, START_PLUGINS, Channel
from taut.kernel.config import read_config, section
from taut.kernel.logging import JsonlLogger
from taut.kernel.paths import TautPaths, default_paths
from taut.kernel.watch import PollingWatcher
from taut.plugin_system.bundler import Bundler
from taut.plugin_system.coordinator import PluginLifecycleCoordinator


class ControlProcess:
    def __init__(
        self,
        channel: Channel,
        *,
        paths: TautPaths | None = None,
        provider: ModuleProvider | None = None,
        bundler: Bundler | None = None,
        watcher: PollingWatcher | None = None,
        logger: Any = None,
    ) -> None:
        self.paths = paths or default_paths()
        config = read_config(self.paths.config_path, logger)
        self.logger = logger or JsonlLogger.from_config(config, log_dir=self.paths.log_dir, name="main")
        self.logger.event(event="control.starting", root=str(self.paths.root))

        intercept_cfg = section(config, "intercept")
        watch_cfg = section(config, "watch")
        self.channel = channel
        self.session = ControlSession()
        self.table = RedirectTable()
        install_default_redirects(
            self.table,
            self.session,
            self.paths,
            safe_storage_bypass=intercept_cfg.get("safe_storage_bypass"),
            logger=self.logger,
        )
        self.interceptor = Interceptor(self.table, self.logger)
        self.hook = ModuleLoadHook(
            provider or ImportlibProvider(),
            self.interceptor,
            intercept_cfg.get("modules") or DEFAULT_MODULE_PATTERNS,
            logger=self.logger,
        )
        self.header_rewriter = HeaderRewriter(
            intercept_cfg.get("host_origin") or DEFAULT_HOST_ORIGIN,
            logger=self.logger,
        )
        if watcher is None:
            watcher = PollingWatcher(interval_s=float(watch_cfg.get("interval_s", 1.0)), logger=self.logger)
        self.coordinator = PluginLifecycleCoordinator(
            self.paths,
            channel,
            bundler=bundler,
            watcher=watcher,
            logger=self.logger,
        )
        channel.handle(START_PLUGINS, self._start_plugins)
        channel.handle(GET_ORIGINAL_PRELOAD, self._original_preload)

    def _start_plugins(self) -> list[str]:
        self.logger.event(event="plugins.starting")
        try:
            return self.coordinator.start_plugins()
        except Exception as exc:
            self.logger.event(event="plugins.start_failed", level="error", error=exc)
            return []

    def _original_preload(self) -> str | None:
        return self.session.original_preload

    def load(self, request: str) -> Any:
        """Load a module the way the host would, through the hook."""
        return self.hook.load(request)

    def install_import_hook(self) -> Callable[[], None]:
        return install_import_hook(self.hook)

    def start(self, platform: Any) -> None:
        """Startup work done through the raw platform module."""
        install_application_menu(platform, self.session, self.logger)
        try:
            self.header_rewriter.install(platform.session.defaultSession.webRequest)
        except Exception as exc:
            self.logger.event(event="cors.install_failed", level="error", error=exc)

    def stop(self) -> None:
        self.coordinator.stop()
        self.logger.event(event="control.stopped")

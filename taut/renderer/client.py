"""UI-process composition root.

Runs once the page has loaded: finds the component framework in the
bundler registry, installs the patch chain, exposes the bridge API and
asks the control process for plugins.
"""

from __future__ import annotations

from typing import Any, Callable

from taut.ipc.channel import LOAD_PLUGIN, STYLE_CHANGED, UNLOAD_PLUGIN, Channel
from taut.kernel.errors import TautError
from taut.kernel.logging import stderr_logger
from taut.plugin_system.host import PluginHost

from .bridge import TautAPI, UserStyle, exec_source, run_original_preload
from .export_index import ExportIndex
from .patch_chain import PatchChain, fiber_root_from_hook


class UIClient:
    def __init__(
        self,
        channel: Channel,
        chunk_registry: Any,
        *,
        framework: Any = None,
        devtools_hook: Any = None,
        document: Any = None,
        preload_runner: Callable[[str], Any] = exec_source,
        logger: Any = None,
    ) -> None:
        self.channel = channel
        self._chunk_registry = chunk_registry
        self._framework = framework
        self._devtools_hook = devtools_hook
        self._document = document
        self._preload_runner = preload_runner
        self._logger = logger if logger is not None else stderr_logger()
        self.style: UserStyle | None = None
        self.exports: ExportIndex | None = None
        self.patches: PatchChain | None = None
        self.api: TautAPI | None = None
        self.host: PluginHost | None = None

    def preload(self) -> None:
        """Secondary-script stage: user style sheet, then the host's own preload."""
        if self._document is not None:
            self.style = UserStyle(self._document, logger=self._logger)
            self.channel.on(STYLE_CHANGED, self.style.update)
        run_original_preload(self.channel, runner=self._preload_runner, logger=self._logger)

    def start(self) -> PluginHost:
        self.exports = ExportIndex(self._chunk_registry, logger=self._logger)
        framework = self._framework
        if framework is None:
            framework = self.exports.common_modules().react
        if framework is None:
            raise TautError("component framework not found in the module registry")
        root_provider = fiber_root_from_hook(self._devtools_hook) if self._devtools_hook is not None else None
        self.patches = PatchChain(framework, root_provider=root_provider, logger=self._logger)
        self.patches.install()
        self.api = TautAPI(self.channel, self.exports, self.patches, logger=self._logger)
        self.host = PluginHost(self.api, logger=self._logger)

        self.channel.on(LOAD_PLUGIN, self.host.load_source)
        self.channel.on(UNLOAD_PLUGIN, self.host.unload)
        self.api.on_config_change(self.host.update_config)
        if self._logger is not None:
            self._logger.event(event="client.starting_plugins")
        self.api.start_plugins()
        return self.host

    def stop(self) -> None:
        if self.host is not None:
            self.host.stop_all()
        if self.patches is not None:
            self.patches.uninstall()

"""Control-process plugin lifecycle coordination.

Discovers plugin files, bundles them and pushes the results to the UI
process; watches the plugin directories, the config file and user.css and
pushes only what changed.
"""

from __future__ import annotations

import threading
from copy import deepcopy
from pathlib import Path
from typing import Any, Sequence

from taut.ipc.channel import CONFIG_CHANGED, LOAD_PLUGIN, STYLE_CHANGED, UNLOAD_PLUGIN, Channel
from taut.kernel.config import DEFAULT_CONFIG, plugin_config, plugin_configs, read_config
from taut.kernel.paths import TautPaths
from taut.kernel.watch import PollingWatcher

from .bundler import Bundler, SourceBundler
from .discovery import DEFAULT_PLUGIN_EXTENSIONS, is_plugin_file, plugin_map, plugin_name
from .settings import diff_plugin_configs


class PluginLifecycleCoordinator:
    def __init__(
        self,
        paths: TautPaths,
        channel: Channel,
        *,
        bundler: Bundler | None = None,
        extensions: Sequence[str] = DEFAULT_PLUGIN_EXTENSIONS,
        watcher: PollingWatcher | None = None,
        logger: Any = None,
    ) -> None:
        self._paths = paths
        self._channel = channel
        self._bundler = bundler or SourceBundler()
        self._extensions = tuple(extensions)
        self._watcher = watcher or PollingWatcher(logger=logger)
        self._logger = logger
        self._state_lock = threading.Lock()
        self._bundle_lock = threading.Lock()
        self._config: dict[str, Any] = deepcopy(DEFAULT_CONFIG)
        self._plugin_map: dict[str, Path] = {}
        self._watching = False

    def _log(self, event: str, *, level: str = "info", **fields: Any) -> None:
        if self._logger is not None:
            self._logger.event(event=event, level=level, **fields)

    @property
    def config(self) -> dict[str, Any]:
        with self._state_lock:
            return deepcopy(self._config)

    @property
    def active_plugins(self) -> dict[str, Path]:
        with self._state_lock:
            return dict(self._plugin_map)

    def scan(self) -> dict[str, Path]:
        return plugin_map(self._paths.plugin_dirs(), self._extensions)

    def start_plugins(self) -> list[str]:
        """Deliver every active plugin, then begin watching (once)."""
        config = read_config(self._paths.config_path, self._logger)
        current = self.scan()
        with self._state_lock:
            self._config = config
            self._plugin_map = current
        self._log("plugins.found", count=len(current), files=sorted(str(p) for p in current.values()))
        delivered = [plugin_name(path) for path in current.values() if self.bundle_and_send(path)]
        self.watch()
        self.send_user_css()
        self._log("plugins.started", delivered=delivered)
        return delivered

    def bundle_and_send(self, path: Path) -> bool:
        name = plugin_name(path)
        with self._state_lock:
            config = plugin_config(self._config, name)
        try:
            with self._bundle_lock:
                code = self._bundler.bundle(Path(path))
            self._channel.send(LOAD_PLUGIN, name, code, config)
        except Exception as exc:
            self._log("plugin.bundle_failed", level="error", plugin=name, path=str(path), error=exc)
            return False
        self._log("plugin.sent", plugin=name, path=str(path))
        return True

    def handle_plugin_file_change(self, changed: Path) -> list[Path]:
        """Recompute the active map and re-deliver whatever it affects."""
        changed = Path(changed).absolute()
        current = self.scan()
        with self._state_lock:
            previous = self._plugin_map
            self._plugin_map = current

        to_load: list[Path] = []
        changed_name = plugin_name(changed)
        if current.get(changed_name) == changed:
            to_load.append(changed)
        else:
            self._log("plugin.inactive_change", level="debug", plugin=changed_name, path=str(changed))
        for name, path in current.items():
            old = previous.get(name)
            if old != path:
                self._log("plugin.resolution_changed", plugin=name, old=str(old) if old else None, new=str(path))
                if path not in to_load:
                    to_load.append(path)

        for name in sorted(set(previous) - set(current)):
            self._log("plugin.removed", plugin=name)
            try:
                self._channel.send(UNLOAD_PLUGIN, name)
            except Exception as exc:
                self._log("plugin.unload_send_failed", level="error", plugin=name, error=exc)

        for path in to_load:
            self.bundle_and_send(path)
        return to_load

    def handle_config_change(self, *_args: Any) -> list[str]:
        new_config = read_config(self._paths.config_path, self._logger)
        with self._state_lock:
            old_plugins = plugin_configs(self._config)
            changed = diff_plugin_configs(old_plugins, plugin_configs(new_config))
            self._config = new_config
        for name, config in changed.items():
            self._log("plugin.config_changed", plugin=name)
            try:
                self._channel.send(CONFIG_CHANGED, name, config)
            except Exception as exc:
                self._log("plugin.config_send_failed", level="error", plugin=name, error=exc)
        return list(changed)

    def read_user_css(self) -> str:
        path = self._paths.user_css_path
        try:
            if path.exists():
                return path.read_text(encoding="utf-8")
        except OSError as exc:
            self._log("style.read_failed", level="error", path=str(path), error=exc)
        return ""

    def send_user_css(self, *_args: Any) -> None:
        css = self.read_user_css()
        try:
            self._channel.send(STYLE_CHANGED, css)
        except Exception as exc:
            self._log("style.send_failed", level="error", error=exc)

    def _on_dir_event(self, kind: str, path: Path) -> None:
        if not is_plugin_file(path, self._extensions):
            return
        self._log("plugin.file_event", kind=kind, path=str(path))
        self.handle_plugin_file_change(path)

    def watch(self) -> None:
        with self._state_lock:
            if self._watching:
                return
            self._watching = True
        for directory in self._paths.plugin_dirs():
            try:
                if not directory.exists():
                    self._log("plugin.dir_created", path=str(directory))
                    directory.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                self._log("plugin.dir_failed", level="error", path=str(directory), error=exc)
                continue
            self._watcher.watch_dir(directory, self._on_dir_event)
        self._watcher.watch_file(self._paths.config_path, self.handle_config_change)
        self._watcher.watch_file(self._paths.user_css_path, self.send_user_css)
        self._watcher.start()

    def stop(self) -> None:
        self._watcher.stop()

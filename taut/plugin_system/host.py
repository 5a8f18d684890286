"""UI-process plugin host.

Holds one record per plugin name. Every transition for a name (load,
reconfigure, unload) runs under that name's lock and always stops the
running instance before a new one is constructed, so at most one live
instance exists per name.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any

from taut.kernel.errors import PluginError

from . import trace as lifecycle
from .api import TautPlugin, load_plugin_class, validate_plugin_class
from .trace import LifecycleTrace


@dataclass
class PluginRecord:
    name: str
    plugin_class: type[TautPlugin]
    instance: TautPlugin | None
    config: dict[str, Any]
    running: bool = False


def _enabled(config: Any) -> bool:
    return isinstance(config, dict) and config.get("enabled") is True


class PluginHost:
    def __init__(self, api: Any, *, logger: Any = None, trace: LifecycleTrace | None = None) -> None:
        self._api = api
        self._logger = logger
        self.trace = trace or LifecycleTrace()
        self._records: dict[str, PluginRecord] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._meta_lock = threading.Lock()

    def _lock_for(self, name: str) -> threading.RLock:
        with self._meta_lock:
            lock = self._locks.get(name)
            if lock is None:
                lock = threading.RLock()
                self._locks[name] = lock
            return lock

    def _log(self, event: str, name: str, *, level: str = "info", **fields: Any) -> None:
        if self._logger is not None:
            self._logger.event(event=event, level=level, plugin=name, **fields)

    def get(self, name: str) -> PluginRecord | None:
        return self._records.get(name)

    def names(self) -> list[str]:
        return sorted(self._records)

    def running(self) -> list[str]:
        return sorted(name for name, record in self._records.items() if record.running)

    def _stop(self, record: PluginRecord) -> None:
        """Stop a record's instance; safe to call repeatedly, never raises."""
        if not record.running or record.instance is None:
            record.running = False
            return
        record.running = False
        try:
            record.instance.stop()
        except Exception as exc:
            self._log("plugin.stop_failed", record.name, level="error", error=exc)
            self.trace.record(record.name, lifecycle.STOP, ok=False, error=exc)
            return
        self.trace.record(record.name, lifecycle.STOP)

    def _construct(self, record: PluginRecord) -> bool:
        try:
            record.instance = record.plugin_class(self._api, record.config)
        except Exception as exc:
            record.instance = None
            self._log("plugin.construct_failed", record.name, level="error", error=exc)
            return False
        return True

    def _start(self, record: PluginRecord) -> None:
        if record.instance is None or not _enabled(record.config):
            return
        try:
            record.instance.start()
        except Exception as exc:
            self._log("plugin.start_failed", record.name, level="error", error=exc)
            self.trace.record(record.name, lifecycle.START, ok=False, error=exc)
            return
        record.running = True
        self.trace.record(record.name, lifecycle.START)
        self._log("plugin.started", record.name)

    def load(self, name: str, plugin_class: type[TautPlugin], config: dict[str, Any]) -> PluginRecord:
        """Replace whatever runs under ``name``; an invalid class leaves it untouched."""
        try:
            validate_plugin_class(plugin_class)
        except PluginError as exc:
            self._log("plugin.invalid", name, level="error", error=exc)
            self.trace.record(name, lifecycle.LOAD, ok=False, error=exc)
            raise
        with self._lock_for(name):
            existing = self._records.get(name)
            if existing is not None:
                self._stop(existing)
            record = PluginRecord(name=name, plugin_class=plugin_class, instance=None, config=dict(config or {}))
            self._records[name] = record
            self.trace.record(name, lifecycle.LOAD)
            self._log("plugin.loading", name, enabled=_enabled(record.config))
            if self._construct(record):
                self._start(record)
            return record

    def load_source(self, name: str, code: str, config: dict[str, Any]) -> bool:
        """Evaluate delivered plugin code and load the class it exposes."""
        try:
            plugin_class = load_plugin_class(name, code)
        except PluginError as exc:
            self._log("plugin.load_failed", name, level="error", error=exc)
            self.trace.record(name, lifecycle.LOAD, ok=False, error=exc)
            return False
        self.load(name, plugin_class, config)
        return True

    def update_config(self, name: str, config: dict[str, Any]) -> bool:
        with self._lock_for(name):
            record = self._records.get(name)
            if record is None:
                self._log("plugin.config_for_unknown", name, level="warning")
                return False
            self._stop(record)
            record.config = dict(config or {})
            self.trace.record(name, lifecycle.RECONFIGURE)
            if self._construct(record):
                self._start(record)
            self._log("plugin.config_updated", name, enabled=_enabled(record.config))
            return True

    def unload(self, name: str) -> bool:
        with self._lock_for(name):
            record = self._records.pop(name, None)
            if record is None:
                return False
            self._stop(record)
            self.trace.record(name, lifecycle.UNLOAD)
            self._log("plugin.unloaded", name)
            return True

    def stop_all(self) -> None:
        for name in self.names():
            with self._lock_for(name):
                record = self._records.get(name)
                if record is not None:
                    self._stop(record)

"""Plugin lifecycle trace helpers."""

from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
import threading
from typing import Any

LOAD = "load"
START = "start"
STOP = "stop"
RECONFIGURE = "reconfigure"
UNLOAD = "unload"


@dataclass(frozen=True)
class LifecycleEvent:
    plugin: str
    action: str
    ts_utc: str
    ok: bool
    error: str | None = None


class LifecycleTrace:
    def __init__(self, *, max_events: int = 2000) -> None:
        self._lock = threading.Lock()
        self._events: list[LifecycleEvent] = []
        self._max_events = max(100, int(max_events))

    def record(self, plugin: str, action: str, *, ok: bool = True, error: BaseException | str | None = None) -> None:
        if isinstance(error, BaseException):
            error = f"{type(error).__name__}: {error}"
        entry = LifecycleEvent(
            plugin=str(plugin),
            action=str(action),
            ts_utc=datetime.now(timezone.utc).isoformat(),
            ok=bool(ok),
            error=error,
        )
        with self._lock:
            self._events.append(entry)
            if len(self._events) > self._max_events:
                self._events = self._events[-self._max_events :]

    def snapshot(self) -> list[dict[str, Any]]:
        with self._lock:
            return [asdict(item) for item in self._events]

    def actions(self, plugin: str) -> list[str]:
        with self._lock:
            return [item.action for item in self._events if item.plugin == plugin]

    def summary(self) -> dict[str, Any]:
        counts: dict[str, dict[str, int]] = {}
        with self._lock:
            events = list(self._events)
        for event in events:
            entry = counts.setdefault(event.plugin, {"events": 0, "errors": 0})
            entry["events"] += 1
            if not event.ok:
                entry["errors"] += 1
        return {"plugins": counts, "total_events": len(events)}

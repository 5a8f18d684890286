"""Polling file and directory watcher.

Snapshots are taken with ``os.stat``; a background daemon thread compares
them every ``interval_s`` seconds and fires callbacks on the watcher thread.
Tests drive ``poll_once()`` directly instead of starting the thread.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

FileCallback = Callable[[Path], None]
DirCallback = Callable[[str, Path], None]

CREATED = "created"
MODIFIED = "modified"
DELETED = "deleted"


def _stamp(path: Path) -> tuple[int, int] | None:
    try:
        st = os.stat(path)
    except OSError:
        return None
    return (int(st.st_mtime_ns), int(st.st_size))


def _dir_snapshot(path: Path) -> dict[str, tuple[int, int]]:
    snapshot: dict[str, tuple[int, int]] = {}
    try:
        entries = list(os.scandir(path))
    except OSError:
        return snapshot
    for entry in entries:
        try:
            if not entry.is_file():
                continue
            st = entry.stat()
        except OSError:
            continue
        snapshot[entry.name] = (int(st.st_mtime_ns), int(st.st_size))
    return snapshot


@dataclass
class _FileWatch:
    path: Path
    callback: FileCallback
    stamp: tuple[int, int] | None


@dataclass
class _DirWatch:
    path: Path
    callback: DirCallback
    snapshot: dict[str, tuple[int, int]] = field(default_factory=dict)


class PollingWatcher:
    def __init__(self, *, interval_s: float = 1.0, logger: Any = None) -> None:
        self._interval_s = max(0.05, float(interval_s))
        self._logger = logger
        self._lock = threading.Lock()
        self._files: list[_FileWatch] = []
        self._dirs: list[_DirWatch] = []
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def watch_file(self, path: Path, callback: FileCallback) -> None:
        with self._lock:
            self._files.append(_FileWatch(path=Path(path), callback=callback, stamp=_stamp(Path(path))))

    def watch_dir(self, path: Path, callback: DirCallback) -> None:
        with self._lock:
            self._dirs.append(_DirWatch(path=Path(path), callback=callback, snapshot=_dir_snapshot(Path(path))))

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="taut-watcher", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=max(1.0, self._interval_s * 2))
        self._thread = None

    def _loop(self) -> None:
        while not self._stop.wait(self._interval_s):
            self.poll_once()

    def poll_once(self) -> None:
        events: list[tuple[Callable[..., None], tuple[Any, ...]]] = []
        with self._lock:
            for watch in self._files:
                stamp = _stamp(watch.path)
                if stamp != watch.stamp:
                    watch.stamp = stamp
                    events.append((watch.callback, (watch.path,)))
            for dwatch in self._dirs:
                current = _dir_snapshot(dwatch.path)
                previous = dwatch.snapshot
                dwatch.snapshot = current
                for name in sorted(set(previous) | set(current)):
                    if name not in previous:
                        kind = CREATED
                    elif name not in current:
                        kind = DELETED
                    elif previous[name] != current[name]:
                        kind = MODIFIED
                    else:
                        continue
                    events.append((dwatch.callback, (kind, dwatch.path / name)))
        for callback, args in events:
            try:
                callback(*args)
            except Exception as exc:
                if self._logger is not None:
                    self._logger.event(event="watch.callback_failed", level="error", args=list(args), error=exc)

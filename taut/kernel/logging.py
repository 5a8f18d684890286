"""Structured JSONL logging for both Taut processes.

Design goals:
- Lightweight: no background threads, one line per event.
- Stable key ordering in JSON serialization.
- Archive-only rotation: old logs are moved aside, never deleted.
- Never raises: a failing log write must not disturb the host application.
"""

from __future__ import annotations

import json
import sys
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any

_PREFIX = "[Taut]"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _safe_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except Exception:
        return int(default)


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {value}"
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return repr(value)


@dataclass(frozen=True)
class JsonlLoggerConfig:
    path: Path | None
    rotate_max_bytes: int
    echo: bool = False


class JsonlLogger:
    def __init__(self, cfg: JsonlLoggerConfig, *, stream: IO[str] | None = None) -> None:
        self._cfg = cfg
        self._stream = stream
        self._lock = threading.Lock()
        if self._cfg.path is not None:
            try:
                self._cfg.path.parent.mkdir(parents=True, exist_ok=True)
            except Exception:
                pass

    @classmethod
    def from_config(cls, config: dict[str, Any], *, log_dir: Path, name: str = "main") -> "JsonlLogger":
        logging_cfg = config.get("logging", {}) if isinstance(config, dict) else {}
        if not isinstance(logging_cfg, dict):
            logging_cfg = {}
        rotate_max_bytes = _safe_int(logging_cfg.get("rotate_max_bytes", 5_000_000), 5_000_000)
        return cls(
            JsonlLoggerConfig(
                path=Path(log_dir) / f"{name}.jsonl",
                rotate_max_bytes=max(1024, rotate_max_bytes),
                echo=bool(logging_cfg.get("echo", True)),
            )
        )

    @property
    def path(self) -> str:
        return str(self._cfg.path or "")

    def _rotate_if_needed(self) -> None:
        path = self._cfg.path
        if path is None:
            return
        try:
            if not path.exists():
                return
            if path.stat().st_size < self._cfg.rotate_max_bytes:
                return
        except Exception:
            return
        try:
            archive_dir = path.parent / "archive"
            archive_dir.mkdir(parents=True, exist_ok=True)
            ts = _utc_now_iso().replace(":", "").replace("-", "").replace(".", "")
            archived = archive_dir / f"{path.stem}.{ts}{path.suffix}"
            if not archived.exists():
                path.replace(archived)
        except Exception:
            return

    def _echo(self, payload: dict[str, Any]) -> None:
        stream = self._stream if self._stream is not None else sys.stderr
        plugin = payload.get("plugin") or ""
        parts = [_PREFIX]
        if plugin:
            parts.append(f"[{plugin}]")
        parts.append(str(payload.get("event", "")))
        message = payload.get("message")
        if message:
            parts.append(str(message))
        error = payload.get("error")
        if error:
            parts.append(f"error={error}")
        try:
            stream.write(" ".join(parts) + "\n")
            stream.flush()
        except Exception:
            return

    def event(
        self,
        *,
        event: str,
        level: str = "info",
        plugin: str | None = None,
        ts_utc: str | None = None,
        **fields: Any,
    ) -> None:
        payload: dict[str, Any] = {
            "ts_utc": str(ts_utc or _utc_now_iso()),
            "level": str(level or "info"),
            "event": str(event or "event"),
            "plugin": str(plugin or ""),
        }
        for k, v in fields.items():
            if k in payload:
                continue
            payload[str(k)] = _jsonable(v)
        try:
            line = json.dumps(payload, sort_keys=True)
        except Exception:
            return
        with self._lock:
            if self._cfg.echo or self._stream is not None:
                self._echo(payload)
            if self._cfg.path is None:
                return
            self._rotate_if_needed()
            try:
                with self._cfg.path.open("a", encoding="utf-8") as handle:
                    handle.write(line + "\n")
            except Exception:
                return


class NullLogger:
    def event(self, *, event: str, level: str = "info", plugin: str | None = None, **fields: Any) -> None:
        return None


def stderr_logger() -> JsonlLogger:
    return JsonlLogger(JsonlLoggerConfig(path=None, rotate_max_bytes=1024, echo=True))

"""Cross-origin response header rewriting for the host's own frames.

Responses to requests made from a frame on the host origin get permissive
``Access-Control-*`` headers that echo the request's origin, method and
headers, so plugins can call third-party services. Iframes from other
origins are left alone.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import urlsplit

DEFAULT_HOST_ORIGIN = "https://app.slack.com"
_ENTRY_TTL_S = 300.0

_REWRITTEN_HEADERS = (
    "access-control-allow-origin",
    "access-control-allow-methods",
    "access-control-allow-headers",
    "access-control-expose-headers",
    "vary",
    "x-frame-options",
)


@dataclass(frozen=True)
class RequestInfo:
    origin: str | None
    requested_method: str | None
    requested_headers: str | None
    seen_at: float


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _header(headers: Any, name: str) -> str | None:
    if not isinstance(headers, dict):
        return None
    wanted = name.lower()
    for key, value in headers.items():
        if str(key).lower() == wanted:
            if isinstance(value, (list, tuple)):
                return str(value[0]) if value else None
            return str(value)
    return None


def _origin_of(url: Any) -> str | None:
    try:
        parts = urlsplit(str(url))
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}"


class HeaderRewriter:
    def __init__(
        self,
        host_origin: str = DEFAULT_HOST_ORIGIN,
        *,
        clock: Callable[[], float] = time.monotonic,
        logger: Any = None,
    ) -> None:
        self.host_origin = host_origin
        self._logger = logger
        self._clock = clock
        self._lock = threading.Lock()
        self._requests: dict[Any, RequestInfo] = {}

    def _prune(self, now: float) -> None:
        stale = [key for key, info in self._requests.items() if now - info.seen_at > _ENTRY_TTL_S]
        for key in stale:
            self._requests.pop(key, None)

    def pending(self) -> int:
        with self._lock:
            return len(self._requests)

    def on_before_send_headers(self, details: Any, callback: Callable[[dict[str, Any]], None]) -> None:
        headers = _field(details, "requestHeaders")
        now = self._clock()
        info = RequestInfo(
            origin=_header(headers, "origin"),
            requested_method=_header(headers, "access-control-request-method"),
            requested_headers=_header(headers, "access-control-request-headers"),
            seen_at=now,
        )
        with self._lock:
            self._prune(now)
            self._requests[_field(details, "id")] = info
        callback({})

    def rewrite(self, details: Any) -> dict[str, Any]:
        response_headers = dict(_field(details, "responseHeaders") or {})
        frame = _field(details, "frame")
        if frame is None or _origin_of(_field(frame, "url")) != self.host_origin:
            return response_headers

        with self._lock:
            info = self._requests.pop(_field(details, "id"), None)

        for key in list(response_headers):
            if str(key).lower() in _REWRITTEN_HEADERS:
                del response_headers[key]
        exposed = ", ".join(response_headers)

        response_headers["Access-Control-Allow-Origin"] = [(info.origin if info else None) or self.host_origin]
        if info is not None and info.requested_method:
            response_headers["Access-Control-Allow-Methods"] = [info.requested_method]
        if info is not None and info.requested_headers:
            response_headers["Access-Control-Allow-Headers"] = [info.requested_headers]
        response_headers["Access-Control-Expose-Headers"] = [exposed]
        response_headers["Vary"] = ["Origin"]
        return response_headers

    def on_headers_received(self, details: Any, callback: Callable[[dict[str, Any]], None]) -> None:
        try:
            headers = self.rewrite(details)
        except Exception as exc:
            if self._logger is not None:
                self._logger.event(event="cors.rewrite_failed", level="error", error=exc)
            callback({})
            return
        callback({"responseHeaders": headers})

    def install(self, web_request: Any) -> None:
        web_request.onBeforeSendHeaders(self.on_before_send_headers)
        web_request.onHeadersReceived(self.on_headers_received)

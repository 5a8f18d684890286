"""Named message channels between the control and UI-rendering processes.

Two styles share one interface:

* request/response: ``handle(name, fn)`` on one end, ``invoke(name, *args)``
  on the other;
* push: ``on(name, listener)`` on one end, ``send(name, *args)`` on the other.

Delivery is FIFO per channel name. ``LocalChannel.pair()`` connects two
ends inside one process; ``StreamChannel`` carries JSON lines over a pair
of text streams (pipes to a child process, sockets, ...).
"""

from __future__ import annotations

import base64
import json
import queue
import threading
from collections import defaultdict
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import IO, Any, Callable

from taut.kernel.errors import ChannelError

START_PLUGINS = "taut:start-plugins"
GET_ORIGINAL_PRELOAD = "taut:get-original-preload"
CONFIG_CHANGED = "taut:config-changed"
STYLE_CHANGED = "taut:user-css-changed"
LOAD_PLUGIN = "taut:load-plugin"
UNLOAD_PLUGIN = "taut:unload-plugin"

Handler = Callable[..., Any]
Listener = Callable[..., None]


class Channel:
    def __init__(self, *, logger: Any = None) -> None:
        self._logger = logger
        self._handlers: dict[str, Handler] = {}
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._registry_lock = threading.Lock()

    def handle(self, name: str, handler: Handler) -> None:
        with self._registry_lock:
            self._handlers[name] = handler

    def on(self, name: str, listener: Listener) -> Callable[[], None]:
        with self._registry_lock:
            self._listeners[name].append(listener)

        def off() -> None:
            with self._registry_lock:
                try:
                    self._listeners[name].remove(listener)
                except ValueError:
                    pass

        return off

    def invoke(self, name: str, *args: Any) -> Any:
        raise NotImplementedError

    def send(self, name: str, *args: Any) -> None:
        raise NotImplementedError

    def _answer(self, name: str, args: list[Any]) -> Any:
        handler = self._handlers.get(name)
        if handler is None:
            raise ChannelError(f"no handler registered for {name}")
        return handler(*args)

    def _dispatch(self, name: str, args: list[Any]) -> None:
        with self._registry_lock:
            listeners = list(self._listeners.get(name, ()))
        for listener in listeners:
            try:
                listener(*args)
            except Exception as exc:
                if self._logger is not None:
                    self._logger.event(event="ipc.listener_failed", level="error", channel=name, error=exc)


class LocalChannel(Channel):
    def __init__(self, *, logger: Any = None) -> None:
        super().__init__(logger=logger)
        self._peer: LocalChannel | None = None
        self._order_locks: dict[str, threading.RLock] = defaultdict(threading.RLock)

    @classmethod
    def pair(cls, *, logger: Any = None) -> tuple["LocalChannel", "LocalChannel"]:
        control, ui = cls(logger=logger), cls(logger=logger)
        control._peer = ui
        ui._peer = control
        return control, ui

    def _require_peer(self) -> "LocalChannel":
        if self._peer is None:
            raise ChannelError("channel is not connected")
        return self._peer

    def invoke(self, name: str, *args: Any) -> Any:
        peer = self._require_peer()
        try:
            return peer._answer(name, list(args))
        except ChannelError:
            raise
        except Exception as exc:
            raise ChannelError(f"{name} failed: {type(exc).__name__}: {exc}") from exc

    def send(self, name: str, *args: Any) -> None:
        peer = self._require_peer()
        with self._order_locks[name]:
            peer._dispatch(name, list(args))


def encode(obj: Any) -> Any:
    if isinstance(obj, (bytes, bytearray)):
        return {"__bytes__": base64.b64encode(obj).decode("ascii")}
    if is_dataclass(obj) and not isinstance(obj, type):
        return encode(asdict(obj))
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (list, tuple, set)):
        return [encode(v) for v in obj]
    if isinstance(obj, dict):
        return {str(k): encode(v) for k, v in obj.items()}
    return obj


def decode(obj: Any) -> Any:
    if isinstance(obj, dict) and "__bytes__" in obj:
        return base64.b64decode(obj["__bytes__"])
    if isinstance(obj, list):
        return [decode(v) for v in obj]
    if isinstance(obj, dict):
        return {k: decode(v) for k, v in obj.items()}
    return obj


def validate_message(message: Any) -> tuple[bool, str]:
    if not isinstance(message, dict):
        return False, "message_not_object"
    kind = message.get("kind")
    if kind in ("request", "push"):
        if not isinstance(message.get("channel"), str) or not message.get("channel"):
            return False, "missing_channel"
        if not isinstance(message.get("args", []), list):
            return False, "args_not_list"
        if kind == "request" and not isinstance(message.get("id"), int):
            return False, "missing_id"
        return True, "ok"
    if kind == "response":
        if not isinstance(message.get("id"), int):
            return False, "missing_id"
        if not isinstance(message.get("ok"), bool):
            return False, "missing_ok"
        return True, "ok"
    return False, "unknown_kind"


class StreamChannel(Channel):
    """JSON-lines channel over a reader/writer pair.

    A reader thread routes responses to waiting ``invoke`` calls and queues
    requests and pushes for a single dispatcher thread, so handlers run in
    arrival order and may themselves ``invoke`` the other end.
    """

    def __init__(
        self,
        reader: IO[str],
        writer: IO[str],
        *,
        logger: Any = None,
        max_message_bytes: int = 8_000_000,
    ) -> None:
        super().__init__(logger=logger)
        self._reader = reader
        self._writer = writer
        self._max_message_bytes = max(1024, int(max_message_bytes))
        self._write_lock = threading.Lock()
        self._req_id = 0
        self._req_lock = threading.Lock()
        self._pending: dict[int, queue.Queue] = {}
        self._pending_lock = threading.Lock()
        self._inbox: queue.Queue[dict[str, Any] | None] = queue.Queue()
        self._stop = threading.Event()
        self._error: str | None = None
        self._reader_thread = threading.Thread(target=self._reader_loop, name="taut-ipc-reader", daemon=True)
        self._dispatch_thread = threading.Thread(target=self._dispatch_loop, name="taut-ipc-dispatch", daemon=True)

    def start(self) -> None:
        self._reader_thread.start()
        self._dispatch_thread.start()

    def close(self) -> None:
        self._stop.set()
        self._set_error("channel closed")
        for thread in (self._dispatch_thread,):
            if thread.is_alive() and thread is not threading.current_thread():
                thread.join(timeout=1)

    def _set_error(self, message: str) -> None:
        if self._error:
            return
        self._error = message
        with self._pending_lock:
            pending = list(self._pending.items())
            self._pending.clear()
        for req_id, resp_q in pending:
            try:
                resp_q.put_nowait({"kind": "response", "id": req_id, "ok": False, "error": message})
            except queue.Full:
                pass
        self._inbox.put(None)

    def _write(self, payload: dict[str, Any]) -> None:
        if self._error:
            raise ChannelError(self._error)
        text = json.dumps(encode(payload))
        size = len(text.encode("utf-8"))
        if size > self._max_message_bytes:
            raise ChannelError(f"payload too large ({size} bytes)")
        with self._write_lock:
            try:
                self._writer.write(text + "\n")
                self._writer.flush()
            except (OSError, ValueError) as exc:
                raise ChannelError(f"write failed: {exc}") from exc

    def send(self, name: str, *args: Any) -> None:
        self._write({"kind": "push", "channel": name, "args": list(args)})

    def invoke(self, name: str, *args: Any) -> Any:
        with self._req_lock:
            self._req_id += 1
            req_id = self._req_id
        resp_q: queue.Queue = queue.Queue(maxsize=1)
        with self._pending_lock:
            self._pending[req_id] = resp_q
        try:
            self._write({"kind": "request", "id": req_id, "channel": name, "args": list(args)})
            response = resp_q.get()
        finally:
            with self._pending_lock:
                self._pending.pop(req_id, None)
        if not response.get("ok"):
            raise ChannelError(str(response.get("error", f"{name} failed")))
        return decode(response.get("result"))

    def _reader_loop(self) -> None:
        while not self._stop.is_set():
            try:
                line = self._reader.readline()
            except (OSError, ValueError) as exc:
                self._set_error(f"read failed: {exc}")
                return
            if not line:
                self._set_error("peer closed")
                return
            size = len(line.encode("utf-8"))
            if size > self._max_message_bytes:
                self._set_error(f"message too large ({size} bytes)")
                return
            try:
                message = json.loads(line)
            except json.JSONDecodeError as exc:
                self._set_error(f"invalid message: {exc}")
                return
            ok, reason = validate_message(message)
            if not ok:
                self._set_error(f"ipc_validation_failed:{reason}")
                return
            if message["kind"] == "response":
                with self._pending_lock:
                    resp_q = self._pending.get(message["id"])
                if resp_q is not None:
                    resp_q.put_nowait(message)
                continue
            self._inbox.put(message)

    def _dispatch_loop(self) -> None:
        while True:
            message = self._inbox.get()
            if message is None:
                return
            name = message["channel"]
            args = decode(message.get("args", []))
            if message["kind"] == "push":
                self._dispatch(name, args)
                continue
            try:
                response = {"kind": "response", "id": message["id"], "ok": True, "result": self._answer(name, args)}
            except Exception as exc:
                response = {"kind": "response", "id": message["id"], "ok": False, "error": f"{type(exc).__name__}: {exc}"}
            try:
                self._write(response)
            except ChannelError as exc:
                if self._logger is not None:
                    self._logger.event(event="ipc.response_failed", level="error", channel=name, error=exc)

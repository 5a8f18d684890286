"""Recursive interception wrappers with path-addressed redirects.

``Interceptor.wrap(value, path)`` returns an ``InterceptionProxy`` that
forwards every operation to ``value``. Each attribute read returns a new
wrapper rooted one segment deeper, so the proxy always knows the access
path it was reached through. Calls consult the redirect table at that exact
path; calling a class consults ``<path>.<constructor>``. Without a handler
the proxy behaves as the wrapped object would.
"""

from __future__ import annotations

import enum
import functools
import inspect
import math
import operator
import os
import threading
from typing import Any, Callable

from .identity import IDENTITY_MARKER, WrapperBase, is_wrapped, unwrap, unwrap_args
from .redirects import RedirectTable, child_path, constructor_path

_PASSTHROUGH_TYPES: tuple[type, ...] = (
    type(None),
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    bytearray,
    tuple,
    frozenset,
    range,
    slice,
    type(Ellipsis),
    type(NotImplemented),
)

# Read straight from the target, never wrapped.
_RAW_ATTRIBUTES = frozenset(
    {
        "__class__",
        "__dict__",
        "__name__",
        "__qualname__",
        "__module__",
        "__doc__",
        "__wrapped__",
    }
)

# Resolved on the wrapper itself. ``__mro_entries__`` is looked up on the
# instance when a wrapped class is used as a base.
_OWN_ATTRIBUTES = frozenset({"_taut_target", "_taut_path", "_taut_interceptor", "__mro_entries__"})


def bound_receiver(target: Any) -> Any:
    """The unwrapped object a bound method belongs to, else None."""
    if not (inspect.ismethod(target) or inspect.isbuiltin(target)):
        return None
    receiver = getattr(target, "__self__", None)
    # Built-in module-level functions report their module as __self__.
    if receiver is None or inspect.ismodule(receiver):
        return None
    return unwrap(receiver)


def is_passthrough(value: Any) -> bool:
    """Values that are returned as-is instead of being wrapped.

    Identity-compared values (enum members) and exception classes (which
    ``except`` clauses require to be real classes) must stay raw.
    """
    if isinstance(value, _PASSTHROUGH_TYPES) or isinstance(value, enum.Enum):
        return True
    return isinstance(value, type) and issubclass(value, BaseException)


class Interceptor:
    def __init__(self, table: RedirectTable, logger: Any = None) -> None:
        self.table = table
        self._logger = logger

    def _log(self, **fields: Any) -> None:
        if self._logger is not None:
            self._logger.event(**fields)

    def wrap(self, value: Any, path: str) -> Any:
        if is_passthrough(value) or is_wrapped(value):
            return value
        return proxy_type_for(value)(value, path, self)

    def read(self, target: Any, path: str, name: str) -> Any:
        value = getattr(target, name)
        if is_passthrough(value):
            return value
        return self.wrap(value, child_path(path, name))

    def call(self, target: Any, path: str, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        if isinstance(target, type):
            return self.construct(target, path, args, kwargs)
        handler = self.table.get(path)
        if handler is not None:
            this = bound_receiver(target)
            try:
                return handler(target, this, args, kwargs)
            except Exception as exc:
                self._log(event="intercept.redirect_failed", level="error", path=path, error=exc)
        call_args, call_kwargs = unwrap_args(args, kwargs)
        return target(*call_args, **call_kwargs)

    def construct(self, target: type, path: str, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        ctor_path = constructor_path(path)
        try:
            handler = self.table.get(ctor_path)
            if handler is not None:
                return handler(target, args, kwargs)
            call_args, call_kwargs = unwrap_args(args, kwargs)
            return target(*call_args, **call_kwargs)
        except Exception as exc:
            # Construction failures never propagate into the host's control flow.
            self._log(event="intercept.construct_failed", level="warning", path=path, error=exc)
            return None


def _target(proxy: "InterceptionProxy") -> Any:
    return object.__getattribute__(proxy, "_taut_target")


class InterceptionProxy(WrapperBase):
    """Behaviour every wrapper has regardless of what it wraps.

    Protocol dunders (operators, containers, conversions, calls) are added
    per target type by ``proxy_type_for`` so that a wrapper only supports
    what its target supports. Operator results are returned raw.
    """

    __slots__ = ("_taut_path", "_taut_interceptor")

    def __init__(self, target: Any, path: str, interceptor: Interceptor) -> None:
        object.__setattr__(self, "_taut_target", target)
        object.__setattr__(self, "_taut_path", path)
        object.__setattr__(self, "_taut_interceptor", interceptor)

    def __getattribute__(self, name: str) -> Any:
        if name in _OWN_ATTRIBUTES:
            return object.__getattribute__(self, name)
        target = _target(self)
        if name == IDENTITY_MARKER:
            return target
        if name in _RAW_ATTRIBUTES:
            return getattr(target, name)
        interceptor = object.__getattribute__(self, "_taut_interceptor")
        return interceptor.read(target, object.__getattribute__(self, "_taut_path"), name)

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(_target(self), name, unwrap(value))

    def __delattr__(self, name: str) -> None:
        delattr(_target(self), name)

    def __dir__(self) -> list[str]:
        return dir(_target(self))

    def __repr__(self) -> str:
        return repr(_target(self))

    def __str__(self) -> str:
        return str(_target(self))

    def __format__(self, format_spec: str) -> str:
        return format(_target(self), format_spec)

    def __bool__(self) -> bool:
        return bool(_target(self))

    def __eq__(self, other: Any) -> Any:
        return _target(self) == unwrap(other)

    def __ne__(self, other: Any) -> Any:
        return _target(self) != unwrap(other)

    def __lt__(self, other: Any) -> Any:
        return _target(self) < unwrap(other)

    def __le__(self, other: Any) -> Any:
        return _target(self) <= unwrap(other)

    def __gt__(self, other: Any) -> Any:
        return _target(self) > unwrap(other)

    def __ge__(self, other: Any) -> Any:
        return _target(self) >= unwrap(other)

    def __hash__(self) -> int:
        return hash(_target(self))

    def __mro_entries__(self, bases: tuple[Any, ...]) -> tuple[Any, ...]:
        return (_target(self),)


def _call(self: InterceptionProxy, *args: Any, **kwargs: Any) -> Any:
    interceptor = object.__getattribute__(self, "_taut_interceptor")
    return interceptor.call(_target(self), object.__getattribute__(self, "_taut_path"), args, kwargs)


def _binary(op: Callable[[Any, Any], Any]) -> tuple[Callable[..., Any], Callable[..., Any]]:
    def forward(self: InterceptionProxy, other: Any) -> Any:
        return op(_target(self), unwrap(other))

    def reflected(self: InterceptionProxy, other: Any) -> Any:
        return op(unwrap(other), _target(self))

    return forward, reflected


def _inplace(op: Callable[[Any, Any], Any]) -> Callable[..., Any]:
    def forward(self: InterceptionProxy, other: Any) -> Any:
        target = _target(self)
        result = op(target, unwrap(other))
        # Mutated in place: keep handing out the same wrapper.
        return self if result is target else result

    return forward


def _pow(self: InterceptionProxy, other: Any, modulo: Any = None) -> Any:
    if modulo is None:
        return pow(_target(self), unwrap(other))
    return pow(_target(self), unwrap(other), unwrap(modulo))


def _unary(fn: Callable[..., Any]) -> Callable[..., Any]:
    def forward(self: InterceptionProxy, *args: Any) -> Any:
        return fn(_target(self), *args)

    return forward


def _contains(self: InterceptionProxy, item: Any) -> bool:
    return unwrap(item) in _target(self)


def _getitem(self: InterceptionProxy, key: Any) -> Any:
    return _target(self)[unwrap(key)]


def _setitem(self: InterceptionProxy, key: Any, value: Any) -> None:
    _target(self)[unwrap(key)] = unwrap(value)


def _delitem(self: InterceptionProxy, key: Any) -> None:
    del _target(self)[unwrap(key)]


def _enter(self: InterceptionProxy) -> Any:
    return _target(self).__enter__()


def _exit(self: InterceptionProxy, exc_type: Any, exc: Any, tb: Any) -> Any:
    return _target(self).__exit__(exc_type, exc, tb)


def _aenter(self: InterceptionProxy) -> Any:
    return _target(self).__aenter__()


def _aexit(self: InterceptionProxy, exc_type: Any, exc: Any, tb: Any) -> Any:
    return _target(self).__aexit__(exc_type, exc, tb)


def _instancecheck(self: InterceptionProxy, instance: Any) -> bool:
    return isinstance(unwrap(instance), _target(self))


def _subclasscheck(self: InterceptionProxy, subclass: Any) -> bool:
    return issubclass(unwrap(subclass), _target(self))


_BINARY_OPERATORS: dict[str, tuple[Callable[[Any, Any], Any], Callable[[Any, Any], Any]]] = {
    "add": (operator.add, operator.iadd),
    "sub": (operator.sub, operator.isub),
    "mul": (operator.mul, operator.imul),
    "matmul": (operator.matmul, operator.imatmul),
    "truediv": (operator.truediv, operator.itruediv),
    "floordiv": (operator.floordiv, operator.ifloordiv),
    "mod": (operator.mod, operator.imod),
    "pow": (operator.pow, operator.ipow),
    "lshift": (operator.lshift, operator.ilshift),
    "rshift": (operator.rshift, operator.irshift),
    "and": (operator.and_, operator.iand),
    "or": (operator.or_, operator.ior),
    "xor": (operator.xor, operator.ixor),
}

# Each entry is added when the target's type defines the dunder.
_PROTOCOL_METHODS: dict[str, Callable[..., Any]] = {
    "__call__": _call,
    "__len__": _unary(len),
    "__iter__": _unary(iter),
    "__next__": _unary(next),
    "__reversed__": _unary(reversed),
    "__contains__": _contains,
    "__getitem__": _getitem,
    "__setitem__": _setitem,
    "__delitem__": _delitem,
    "__enter__": _enter,
    "__exit__": _exit,
    "__aenter__": _aenter,
    "__aexit__": _aexit,
    "__await__": _unary(lambda target: target.__await__()),
    "__aiter__": _unary(lambda target: target.__aiter__()),
    "__anext__": _unary(lambda target: target.__anext__()),
    "__neg__": _unary(operator.neg),
    "__pos__": _unary(operator.pos),
    "__abs__": _unary(abs),
    "__invert__": _unary(operator.invert),
    "__int__": _unary(int),
    "__float__": _unary(float),
    "__complex__": _unary(complex),
    "__index__": _unary(operator.index),
    "__bytes__": _unary(bytes),
    "__fspath__": _unary(os.fspath),
    "__round__": _unary(round),
    "__trunc__": _unary(math.trunc),
    "__floor__": _unary(math.floor),
    "__ceil__": _unary(math.ceil),
    "__divmod__": _binary(divmod)[0],
    "__rdivmod__": _binary(divmod)[1],
    "__instancecheck__": _instancecheck,
    "__subclasscheck__": _subclasscheck,
}
for _name, (_op, _iop) in _BINARY_OPERATORS.items():
    _PROTOCOL_METHODS[f"__{_name}__"], _PROTOCOL_METHODS[f"__r{_name}__"] = _binary(_op)
    _PROTOCOL_METHODS[f"__i{_name}__"] = _inplace(_iop)
_PROTOCOL_METHODS["__pow__"] = _pow
del _name, _op, _iop

_proxy_types: dict[frozenset[str], type[InterceptionProxy]] = {}
_proxy_types_lock = threading.Lock()


@functools.lru_cache(maxsize=1024)
def _type_protocols(cls: type) -> frozenset[str]:
    names = {name for name in _PROTOCOL_METHODS if hasattr(cls, name)}
    for name in _BINARY_OPERATORS:
        # ``x += y`` falls back to ``x + y``, so any of the three enables all three.
        if {f"__{name}__", f"__r{name}__", f"__i{name}__"} & names:
            names.update({f"__{name}__", f"__r{name}__", f"__i{name}__"})
    return frozenset(names)


def _supported(target: Any) -> frozenset[str]:
    names = _type_protocols(type(target))
    if isinstance(target, type) and hasattr(target, "__class_getitem__"):
        names = names | {"__getitem__"}
    return names


def proxy_type_for(target: Any) -> type[InterceptionProxy]:
    """Wrapper class exposing exactly the protocols ``target`` supports."""
    names = _supported(target)
    with _proxy_types_lock:
        cls = _proxy_types.get(names)
        if cls is None:
            namespace: dict[str, Any] = {name: _PROTOCOL_METHODS[name] for name in names}
            namespace["__slots__"] = ()
            namespace["__module__"] = __name__
            cls = type("InterceptionProxy", (InterceptionProxy,), namespace)
            _proxy_types[names] = cls
        return cls

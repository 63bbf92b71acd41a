# SPDX-FileCopyrightText: 2026 Airlock authors
#
# SPDX-License-Identifier: Apache-2.0

"""@log_method: record channel operations in the owner's EventLog."""

import functools
import inspect
from collections.abc import Callable
from typing import Any, Protocol, TypeVar, runtime_checkable

import httpx

from airlock.logging.event_log import EventLog


@runtime_checkable
class Loggable(Protocol):
    """Anything carrying an optional event log, e.g. a Channel."""

    _log: EventLog | None


_F = TypeVar("_F", bound=Callable[..., Any])


def _call_args(
    sig: inspect.Signature, args: tuple[Any, ...], kwargs: dict[str, Any]
) -> dict[str, Any]:
    """Named call arguments with defaults applied, minus ``self``."""
    bound = sig.bind(None, *args, **kwargs)
    bound.apply_defaults()
    return {k: v for k, v in bound.arguments.items() if k != "self"}


def _to_loggable(value: Any) -> Any:
    """Reduce a return value to something JSON can hold."""
    if isinstance(value, httpx.Response):
        return value.status_code
    if value is None or isinstance(value, str | int | float | bool):
        return value
    return str(value)


def _error_data(exc: Exception) -> dict[str, Any]:
    data: dict[str, Any] = {"error": type(exc).__name__, "text": str(exc)}
    status = getattr(exc, "status_code", None)
    if status is not None:
        data["status"] = status
    return data


def log_method(
    *,
    before: bool = False,
    after: bool = False,
    errors: bool = True,
) -> Callable[[_F], _F]:
    """Log calls of an async method to ``self._log``.

    Entries are ``<name>`` (arguments, if ``before``), ``<name>.result``
    (arguments plus result, if ``after``) and ``<name>.error`` (arguments,
    exception type and text, plus the HTTP status when the exception has
    one). Exceptions always propagate. A missing or closed log means the
    call is not recorded.
    """

    def decorator(fn: _F) -> _F:
        if not inspect.iscoroutinefunction(fn):
            raise TypeError(f"log_method needs a coroutine function, got {fn!r}")
        name = fn.__name__
        sig = inspect.signature(fn)

        @functools.wraps(fn)
        async def wrapper(self: Loggable, *args: Any, **kwargs: Any) -> Any:
            log = self._log if self._log is not None and self._log.is_open else None
            if log is None:
                return await fn(self, *args, **kwargs)
            call = _call_args(sig, args, kwargs)
            if before:
                log.log(name, call)
            try:
                result = await fn(self, *args, **kwargs)
            except Exception as exc:
                if errors:
                    log.log(f"{name}.error", {**call, **_error_data(exc)})
                raise
            if after:
                entry = dict(call)
                if result is not None:
                    entry["result"] = _to_loggable(result)
                log.log(f"{name}.result", entry)
            return result

        return wrapper  # type: ignore[return-value]

    return decorator

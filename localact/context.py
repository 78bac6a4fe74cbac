"""Request-scoped values and cancellation passed through executors."""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional, Union

_DRYRUN_KEY = object()
_JOB_ERROR_KEY = object()
_LOGGER_KEY = object()

_DEFAULT_LOGGER_NAME = "localact"


class Cancelled(Exception):
    """Reported when a context has been cancelled."""

    def __init__(self, message: str = "context canceled") -> None:
        super().__init__(message)


class Context:
    """A chain of immutable values that also carries a cancellation signal.

    Cancelling a context cancels every context derived from it, but never its
    parents.
    """

    def __init__(self, parent: Optional["Context"] = None) -> None:
        self._parent = parent
        self._values: dict[Any, Any] = {}
        self._cancelled = threading.Event()

    def with_value(self, key: Any, value: Any) -> "Context":
        """Return a child context that maps ``key`` to ``value``."""
        child = Context(self)
        child._values[key] = value
        return child

    def value(self, key: Any) -> Any:
        """Return the nearest value stored under ``key``, or None."""
        ctx: Optional[Context] = self
        while ctx is not None:
            if key in ctx._values:
                return ctx._values[key]
            ctx = ctx._parent
        return None

    def with_cancel(self) -> "Context":
        """Return a child context that can be cancelled on its own."""
        return Context(self)

    def cancel(self) -> None:
        """Cancel this context and everything derived from it."""
        self._cancelled.set()

    def err(self) -> Optional[Cancelled]:
        """Return a Cancelled error if this context or a parent was cancelled."""
        ctx: Optional[Context] = self
        while ctx is not None:
            if ctx._cancelled.is_set():
                return Cancelled()
            ctx = ctx._parent
        return None


def is_dryrun(ctx: Context) -> bool:
    """Report whether the context is in dry-run mode."""
    value = ctx.value(_DRYRUN_KEY)
    return value if isinstance(value, bool) else False


def with_dryrun(ctx: Context, dryrun: bool) -> Context:
    """Return a child context with the dry-run flag set."""
    return ctx.with_value(_DRYRUN_KEY, dryrun)


def job_error(ctx: Context) -> Optional[BaseException]:
    """Return the job error recorded in the context, if any."""
    container = ctx.value(_JOB_ERROR_KEY)
    if isinstance(container, dict):
        return container.get("error")
    return None


def set_job_error(ctx: Context, err: Optional[BaseException]) -> None:
    """Record a job error in the context's error container."""
    container = ctx.value(_JOB_ERROR_KEY)
    if not isinstance(container, dict):
        raise LookupError("context has no job error container")
    container["error"] = err


def with_job_error_container(ctx: Context) -> Context:
    """Return a child context holding a fresh, empty job error container."""
    return ctx.with_value(_JOB_ERROR_KEY, {})


def get_logger(ctx: Context) -> Union[logging.Logger, logging.LoggerAdapter]:
    """Return the logger attached to the context, or the package logger."""
    value = ctx.value(_LOGGER_KEY)
    if isinstance(value, (logging.Logger, logging.LoggerAdapter)):
        return value
    return logging.getLogger(_DEFAULT_LOGGER_NAME)


def with_logger(
    ctx: Context, logger: Union[logging.Logger, logging.LoggerAdapter]
) -> Context:
    """Return a child context carrying ``logger``."""
    return ctx.with_value(_LOGGER_KEY, logger)
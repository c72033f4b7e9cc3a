"""Deadline-bounded calls into external capabilities."""

from __future__ import annotations

import atexit
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Final, ParamSpec, TypeVar

P = ParamSpec("P")
T = TypeVar("T")

_MAX_WORKERS: Final[int] = 4

_EXECUTOR_LOCK = threading.Lock()
_EXECUTOR: ThreadPoolExecutor | None = None


class CapabilityTimeoutError(TimeoutError):
    """Raised when a capability call does not finish before its deadline."""


def call_with_timeout(
    func: Callable[P, T],
    /,
    *args: P.args,
    timeout_seconds: float,
    **kwargs: P.kwargs,
) -> T:
    """Run ``func`` on the capability pool and wait at most ``timeout_seconds``.

    The worker is not interrupted on expiry; its eventual result is discarded.
    """

    if timeout_seconds <= 0:
        raise ValueError("timeout_seconds must be > 0")

    future: Future[T] = _executor().submit(func, *args, **kwargs)
    try:
        return future.result(timeout=timeout_seconds)
    except FutureTimeoutError as exc:
        future.cancel()
        raise CapabilityTimeoutError(
            f"capability call timed out after {timeout_seconds} seconds"
        ) from exc


def shutdown_capability_pool() -> None:
    """Stop the shared pool; a new one is created on next use."""

    global _EXECUTOR
    with _EXECUTOR_LOCK:
        executor, _EXECUTOR = _EXECUTOR, None
    if executor is not None:
        executor.shutdown(wait=False, cancel_futures=True)


def _executor() -> ThreadPoolExecutor:
    global _EXECUTOR
    with _EXECUTOR_LOCK:
        if _EXECUTOR is None:
            _EXECUTOR = ThreadPoolExecutor(
                max_workers=_MAX_WORKERS,
                thread_name_prefix="inputgate-capability",
            )
        return _EXECUTOR


atexit.register(shutdown_capability_pool)


__all__ = [
    "CapabilityTimeoutError",
    "call_with_timeout",
    "shutdown_capability_pool",
]

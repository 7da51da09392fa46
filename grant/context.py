from __future__ import annotations

import threading
import time
from concurrent.futures import Future
from concurrent.futures import wait as wait_futures
from typing import Any, Callable, Optional, TypeVar

from grant.errors import OperationCancelled

T = TypeVar("T")

# How often a waiting caller re-checks for external cancellation.
POLL_INTERVAL = 0.05


class CallContext:
    """Deadline plus cancellation flag shared by one command's remote calls."""

    def __init__(self, timeout: Optional[float] = None):
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._cancelled = threading.Event()

    @classmethod
    def with_timeout(cls, seconds: float) -> "CallContext":
        return cls(timeout=seconds)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, ``None`` when unbounded."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    @property
    def done(self) -> bool:
        return self.cancelled or self.expired

    def check(self, operation: Optional[str] = None) -> None:
        if self.cancelled:
            raise OperationCancelled("operation cancelled", operation)
        if self.expired:
            raise OperationCancelled("operation timed out", operation)

    def wait(self, future: Future) -> bool:
        """Block until ``future`` finishes or the context ends.

        Returns True when the future finished.
        """
        while not future.done():
            if self.done:
                return False
            remaining = self.remaining()
            step = POLL_INTERVAL if remaining is None else min(POLL_INTERVAL, remaining)
            wait_futures([future], timeout=step)
        return True


def spawn(fn: Callable[..., T], *args: Any, name: str = "grant-call") -> "Future[T]":
    """Run ``fn(*args)`` on a daemon thread and return a Future for its result.

    Daemon workers never hold up interpreter exit, so a call abandoned after
    its context ended cannot outlive the command.
    """
    future: "Future[T]" = Future()

    def _run() -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            result = fn(*args)
        except BaseException as e:
            future.set_exception(e)
        else:
            future.set_result(result)

    threading.Thread(target=_run, name=name, daemon=True).start()
    return future


def run_in_context(ctx: CallContext, fn: Callable[[], T], operation: str) -> T:
    """Run a blocking call, abandoning it if ``ctx`` ends first."""
    ctx.check(operation)
    future = spawn(fn)
    if not ctx.wait(future):
        future.cancel()
        ctx.check(operation)
    return future.result()

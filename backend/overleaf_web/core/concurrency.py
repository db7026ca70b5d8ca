"""Threading primitives for bounded fan-out/fan-in work.

:class:`CancellationToken` is the cancellation signal passed down to fetches;
:class:`TaskGroup` runs callables on a thread pool and cancels its token on
the first failure; :class:`ClosableQueue` is a bounded queue whose consumers
stop once it is closed; :class:`PeriodicTask` owns a background thread that
runs a callable on an interval until stopped.
"""

from __future__ import annotations

import itertools
import threading
import weakref
from collections import deque
from concurrent import futures
from typing import Any, Callable, Generic, Iterator, TypeVar

from overleaf_web.core.errors import CancelledError
from overleaf_web.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class CancellationToken:
    """Thread-safe cancellation signal.

    Tokens form a tree: cancelling a token cancels every token derived from it
    through :meth:`child`, never its parent. Children are held weakly so a
    long-lived parent does not accumulate finished work. Callbacks registered
    with :meth:`on_cancel` run once, in the cancelling thread, and are how
    blocking I/O gets interrupted.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._children: weakref.WeakSet[CancellationToken] = weakref.WeakSet()
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._ids = itertools.count()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            children = list(self._children)
            callbacks = list(self._callbacks.values())
            self._children.clear()
            self._callbacks.clear()
        for callback in callbacks:
            try:
                callback()
            except Exception as exc:
                logger.warning("Cancel callback failed: %s", exc)
        for child in children:
            child.cancel()

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; return the cancelled state."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancelledError()

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` on cancellation; returns a function that unregisters it.

        An already cancelled token runs the callback immediately.
        """
        with self._lock:
            if not self._event.is_set():
                key = next(self._ids)
                self._callbacks[key] = callback

                def unregister() -> None:
                    with self._lock:
                        self._callbacks.pop(key, None)

                return unregister
        callback()
        return lambda: None

    def child(self) -> "CancellationToken":
        token = CancellationToken()
        with self._lock:
            cancelled = self._event.is_set()
            if not cancelled:
                self._children.add(token)
        if cancelled:
            token.cancel()
        return token

    def release(self, child: "CancellationToken") -> None:
        """Forget a finished child so later cancellation skips it."""
        with self._lock:
            self._children.discard(child)


class TaskGroup:
    """Run callables concurrently; the first failure wins and cancels the rest.

    Mirrors the errgroup pattern: :meth:`wait` blocks until every task
    returned, cancels the group token, and re-raises the first error.
    """

    def __init__(self, max_workers: int, parent: CancellationToken | None = None, name: str = "task") -> None:
        self._parent = parent
        self.token = parent.child() if parent is not None else CancellationToken()
        self._executor = futures.ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        self._futures: list[futures.Future[None]] = []
        self._lock = threading.Lock()
        self._error: BaseException | None = None

    @property
    def error(self) -> BaseException | None:
        """First failure so far; set before the token is cancelled."""
        with self._lock:
            return self._error

    def go(self, fn: Callable[..., Any], *args: Any) -> None:
        self._futures.append(self._executor.submit(self._run, fn, *args))

    def _run(self, fn: Callable[..., Any], *args: Any) -> None:
        try:
            fn(*args)
        except Exception as exc:
            with self._lock:
                if self._error is None:
                    self._error = exc
            self.token.cancel()

    def join(self) -> BaseException | None:
        """Wait for every task, cancel the group token and return the first error."""
        try:
            futures.wait(self._futures)
        finally:
            self._executor.shutdown(wait=True)
            self.token.cancel()
            if self._parent is not None:
                self._parent.release(self.token)
        return self.error

    def wait(self) -> None:
        error = self.join()
        if error is not None:
            raise error


class ClosableQueue(Generic[T]):
    """Bounded queue iterated by one or more consumers until closed.

    Closing never blocks. Producers waiting for room are released and every
    later :meth:`put` is refused; consumers drain what is queued, then stop.
    """

    def __init__(self, maxsize: int) -> None:
        self._items: deque[T] = deque()
        self._maxsize = max(1, maxsize)
        self._cond = threading.Condition()
        self._closed = False

    def put(self, item: T) -> bool:
        """Queue ``item``; ``False`` when the queue was closed instead."""
        with self._cond:
            while len(self._items) >= self._maxsize and not self._closed:
                self._cond.wait()
            if self._closed:
                return False
            self._items.append(item)
            self._cond.notify_all()
            return True

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def __iter__(self) -> Iterator[T]:
        while True:
            with self._cond:
                while not self._items and not self._closed:
                    self._cond.wait()
                if not self._items:
                    return
                item = self._items.popleft()
                self._cond.notify_all()
            yield item


class PeriodicTask:
    """Explicitly owned background loop with a stop signal."""

    def __init__(self, name: str, interval: float, fn: Callable[[], None]) -> None:
        self.name = name
        self.interval = interval
        self._fn = fn
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self._fn()
            except Exception as exc:
                logger.warning("Periodic task %s failed: %s", self.name, exc)


__all__ = ["CancellationToken", "TaskGroup", "ClosableQueue", "PeriodicTask"]

"""
Purpose: Cooperative cancellation for pipeline actors.
What it does:
- CancellationToken wraps a threading.Event that any thread can set.
- Blocking calls (buffer waits, simulated sleeps) watch the token and raise
  OperationCancelled as soon as it fires.
- Tokens can be chained: a child token fires when its parent fires, but the
  child can also be fired on its own (used for "stop generating" vs "cancel").
"""

from __future__ import annotations

import threading
from typing import Callable, Dict, Optional


class OperationCancelled(Exception):
    """Raised by a blocking call when its cancellation token fires."""
    pass


class CancellationToken:
    """
    Thread-safe one-shot cancellation signal.
    """
    def __init__(self, parent: Optional[CancellationToken] = None):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: Dict[int, Callable[[], None]] = {}
        self._next_handle = 0
        self.parent = parent
        self._parent_handle: Optional[int] = None
        if parent is not None:
            self._parent_handle = parent.add_callback(self.cancel)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def callback_count(self) -> int:
        with self._lock:
            return len(self._callbacks)

    def detach(self) -> None:
        """
        Stop following the parent token and drop the callback registered on it.
        """
        if self.parent is not None and self._parent_handle is not None:
            self.parent.remove_callback(self._parent_handle)
            self._parent_handle = None

    def cancel(self) -> None:
        """
        Fire the token. Callbacks run on the calling thread, once.
        """
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()

        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callable[[], None]) -> int:
        """
        Register `callback` to run on cancel. If the token already fired the
        callback runs immediately. Returns a handle for remove_callback().
        """
        with self._lock:
            if not self._event.is_set():
                handle = self._next_handle
                self._next_handle += 1
                self._callbacks[handle] = callback
                return handle

        callback()
        return -1

    def remove_callback(self, handle: int) -> None:
        with self._lock:
            self._callbacks.pop(handle, None)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block up to `timeout` seconds. True if the token fired.
        """
        return self._event.wait(timeout)

    def sleep(self, seconds: float) -> None:
        """
        Cancellable sleep: returns after `seconds` or raises OperationCancelled.
        """
        if self._event.wait(seconds):
            raise OperationCancelled()


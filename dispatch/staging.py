"""
Purpose: The shared staging buffer between order producers and dispatch workers.
What it does:
- Owns the in-memory holding area:
   - capacity-bounded (insert blocks while full)
   - priority-ordered at removal time (withdraw picks HIGH before MEDIUM before LOW,
     FIFO inside a class)

Provides operations:
   - insert(order, cancel)
   - withdraw(cancel)
   - pending_count()
   - close()

Rule: Buffer owns its contents. Nobody else reads or mutates them, and the lock is
never held across a sleep.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import List, Optional, Tuple

from orders.models import Order, OrderStatus
from .cancellation import CancellationToken, OperationCancelled
from .state_machines.order_state import OrderStateException

logger = logging.getLogger(__name__)


class BufferClosed(Exception):
    """Raised when inserting into a buffer that no longer accepts orders."""
    pass


@dataclass(frozen=True)
class BufferStats:
    pending: int
    capacity: int
    closed: bool
    inserted_total: int
    withdrawn_total: int


class StagingBuffer:
    """
    Bounded blocking monitor:

    producers --insert--> [ contents <= capacity ] --withdraw--> workers

    One lock guards the contents. `_not_full` and `_not_empty` share that lock,
    and every wait re-checks its condition in a loop.
    """
    def __init__(self, capacity: int):
        if not isinstance(capacity, int) or capacity <= 0:
            raise ValueError(f"capacity must be a positive integer, got {capacity!r}")

        self._capacity = capacity
        self._lock = threading.Lock()
        self._not_full = threading.Condition(self._lock)
        self._not_empty = threading.Condition(self._lock)

        # (insertion sequence, order); sequence breaks ties within a priority class
        self._contents: List[Tuple[int, Order]] = []
        self._sequence = itertools.count()
        self._closed = False

        self._inserted_total = 0
        self._withdrawn_total = 0

    # --- Public API ---

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def insert(self, order: Order, cancel: Optional[CancellationToken] = None) -> None:
        """
        Add an order, blocking while the buffer is full.

        Raises OperationCancelled if `cancel` fires while waiting (nothing is
        inserted) and BufferClosed if the buffer is or becomes closed.
        """
        if order.status != OrderStatus.PENDING:
            raise OrderStateException(f"Only PENDING orders can be staged, order {order.id} is {order.status}")

        handle = self._watch(cancel)
        try:
            with self._not_full:
                while True:
                    if self._closed:
                        raise BufferClosed(f"Buffer closed, order #{order.id} rejected")
                    if cancel is not None and cancel.cancelled:
                        if len(self._contents) < self._capacity:
                            # pass the free slot on to another inserter
                            self._not_full.notify()
                        raise OperationCancelled()
                    if len(self._contents) < self._capacity:
                        break
                    self._not_full.wait()

                self._contents.append((next(self._sequence), order))
                self._inserted_total += 1
                pending = len(self._contents)
                self._not_empty.notify()
        finally:
            self._unwatch(cancel, handle)

        logger.debug(f"[StagingBuffer] Order #{order.id} added ({pending}/{self._capacity})")

    def withdraw(self, cancel: Optional[CancellationToken] = None) -> Optional[Order]:
        """
        Remove and return the most urgent order, blocking while empty.

        Returns None only once the buffer is closed and fully drained.
        Raises OperationCancelled if `cancel` fires while waiting.
        """
        handle = self._watch(cancel)
        try:
            with self._not_empty:
                while True:
                    if cancel is not None and cancel.cancelled:
                        if self._contents:
                            self._not_empty.notify()
                        raise OperationCancelled()
                    if self._contents:
                        break
                    if self._closed:
                        return None
                    self._not_empty.wait()

                index = self._select_index()
                _, order = self._contents.pop(index)
                self._withdrawn_total += 1
                pending = len(self._contents)
                self._not_full.notify()
        finally:
            self._unwatch(cancel, handle)

        logger.debug(f"[StagingBuffer] Order #{order.id} withdrawn ({pending}/{self._capacity})")
        return order

    def pending_count(self) -> int:
        """
        Advisory occupancy snapshot.
        """
        with self._lock:
            return len(self._contents)

    def snapshot(self) -> BufferStats:
        with self._lock:
            return BufferStats(
                pending=len(self._contents),
                capacity=self._capacity,
                closed=self._closed,
                inserted_total=self._inserted_total,
                withdrawn_total=self._withdrawn_total,
            )

    def close(self) -> None:
        """
        Stop accepting orders and wake every waiter. Withdraw keeps draining
        what is left, then returns None.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            pending = len(self._contents)
            self._not_full.notify_all()
            self._not_empty.notify_all()

        logger.info(f"[StagingBuffer] Closed with {pending} order(s) still pending")

    # --- Internal helpers ---

    def _select_index(self) -> int:
        # linear scan is fine, contents never exceed capacity
        best = 0
        best_key = (self._contents[0][1].priority, self._contents[0][0])
        for index in range(1, len(self._contents)):
            sequence, order = self._contents[index]
            key = (order.priority, sequence)
            if key < best_key:
                best, best_key = index, key
        return best

    def _wake_all(self) -> None:
        with self._lock:
            self._not_full.notify_all()
            self._not_empty.notify_all()

    def _watch(self, cancel: Optional[CancellationToken]) -> Optional[int]:
        if cancel is None:
            return None
        return cancel.add_callback(self._wake_all)

    def _unwatch(self, cancel: Optional[CancellationToken], handle: Optional[int]) -> None:
        if cancel is not None and handle is not None:
            cancel.remove_callback(handle)

"""
Purpose: The producer side of the pipeline.
What it does:
Creates orders of a random kind at a paced, randomized interval and offers
each one to the staging buffer. Ids come from an OrderIdCounter that is safe
to share between several generators.
"""

from __future__ import annotations

import logging
import random
import threading
from typing import List, Optional

from orders.models import Order, OrderKind
from .cancellation import CancellationToken, OperationCancelled
from .policy import DispatchPolicy
from .staging import BufferClosed, StagingBuffer

logger = logging.getLogger(__name__)


class OrderIdCounter:
    """
    Monotonic id source. next_id() is atomic across threads.
    """
    def __init__(self, start: int = 2000):
        self._value = start
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    @property
    def last_issued(self) -> int:
        with self._lock:
            return self._value


class OrderGenerator:
    """
    Produces `policy.order_count` orders (or runs until stop() when unbounded).

    stop() ends production at the next suspension point and run() returns
    normally. Cancelling the shared token makes run() raise OperationCancelled.
    """
    def __init__(
        self,
        buffer: StagingBuffer,
        policy: DispatchPolicy,
        counter: Optional[OrderIdCounter] = None,
        rng: Optional[random.Random] = None,
        cancel: Optional[CancellationToken] = None,
        name: str = "Generator",
    ):
        self.buffer = buffer
        self.policy = policy
        self.counter = counter or OrderIdCounter(policy.id_start)
        self.rng = rng or random.Random()
        self.name = name
        self.cancel = cancel or CancellationToken()
        # fires on stop() or when the shared token fires
        self._stopping = CancellationToken(parent=self.cancel)
        self.generated: List[int] = []

    def stop(self) -> None:
        self._stopping.cancel()

    def build_order(self) -> Order:
        """
        One random order. The id is taken only when the order is built, so an
        aborted run never leaves a half-inserted order behind.
        """
        kind = self.rng.choice(list(OrderKind))
        order_id = self.counter.next_id()
        distance_km = 1 + 10 * self.rng.random()
        weight_kg = 1 + 9 * self.rng.random() if kind is OrderKind.PARCEL else None

        return Order.new(
            order_id,
            kind,
            f"Address #{order_id}",
            distance_km,
            weight_kg=weight_kg,
        )

    def run(self) -> int:
        logger.info(f"[{self.name}] Starting order generation...")
        produced = 0
        try:
            while self.policy.unbounded or produced < self.policy.order_count:
                if self._stopping.cancelled:
                    break

                order = self.build_order()
                try:
                    self.buffer.insert(order, cancel=self._stopping)
                except OperationCancelled:
                    # stop() while blocked on a full buffer is not a cancellation
                    if self.cancel.cancelled:
                        raise
                    break

                self.generated.append(order.id)
                produced += 1

                if self._stopping.wait(self.rng.uniform(self.policy.min_delay, self.policy.max_delay)):
                    break

            self.cancel.raise_if_cancelled()

        except BufferClosed:
            logger.info(f"[{self.name}] Buffer closed, stopping early.")
        except OperationCancelled:
            logger.info(f"[{self.name}] Cancelled after {produced} order(s).")
            raise
        finally:
            self._stopping.detach()

        logger.info(f"[{self.name}] Finished generating {produced} order(s).")
        return produced

"""
Purpose: The consumer side of the pipeline (one courier's shift).
What it does:
Withdraws the most urgent order, moves it to IN_TRANSIT, runs the order's
processing steps, simulates the ride and hands the delivered order to the ledger.
The loop ends normally once the staging buffer is closed and drained.
"""

from __future__ import annotations

import logging
import random
from typing import List, Optional

from orders.models import Order
from orders.processing import process_order
from .cancellation import CancellationToken, OperationCancelled
from .ledger import DeliveryLedger
from .policy import DispatchPolicy
from .staging import StagingBuffer
from .state_machines.order_state import cancel_order, complete_delivery, start_transit

logger = logging.getLogger(__name__)


class DispatchWorker:
    def __init__(
        self,
        name: str,
        buffer: StagingBuffer,
        ledger: DeliveryLedger,
        policy: DispatchPolicy,
        rng: Optional[random.Random] = None,
        cancel: Optional[CancellationToken] = None,
    ):
        self.name = name
        self.buffer = buffer
        self.ledger = ledger
        self.policy = policy
        self.rng = rng or random.Random()
        self.cancel = cancel or CancellationToken()

        self.delivered = 0
        # orders that were mid-delivery when the shift was cancelled
        self.abandoned: List[Order] = []

    def run(self) -> int:
        logger.info(f"[Worker - {self.name}] Shift started")
        try:
            while True:
                order = self.buffer.withdraw(cancel=self.cancel)
                if order is None:
                    break
                self.deliver(order)
        except OperationCancelled:
            logger.info(f"[Worker - {self.name}] Interrupted")
            raise

        logger.info(f"[Worker - {self.name}] Shift finished, {self.delivered} delivered")
        return self.delivered

    def deliver(self, order: Order) -> None:
        start_transit(order, self.name)
        logger.info(f"[Worker - {self.name}] order #{order.id} [{order.priority.name}] IN_TRANSIT")

        process_order(order)

        try:
            self.cancel.sleep(self.rng.uniform(self.policy.min_delivery_delay, self.policy.max_delivery_delay))
        except OperationCancelled:
            cancel_order(order)
            self.abandoned.append(order)
            logger.warning(f"[Worker - {self.name}] order #{order.id} abandoned mid-delivery, marked CANCELLED")
            raise

        complete_delivery(order)
        self.ledger.record_delivery(order)
        self.delivered += 1
        logger.info(f"[Worker - {self.name}] order #{order.id} DELIVERED")

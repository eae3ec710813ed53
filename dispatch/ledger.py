"""
Purpose: Append-only record of delivered orders.
What it does:
- record_delivery(order) is the single entry point workers call.
- report() renders the delivery history; it shares the ledger lock with
  appends so a report never sees a half-updated list.
- to_dataframe()/summary()/export_csv() for analytics after a run.
"""

from __future__ import annotations

import logging
import threading
from typing import List, Set

import pandas as pd

from orders.models import Order, OrderStatus
from orders.processing import estimate_delivery_minutes
from .state_machines.order_state import OrderStateException

logger = logging.getLogger(__name__)

COLUMNS = ["order_id", "kind", "priority", "worker", "status", "distance_km", "estimate_min"]


class DeliveryLedger:
    def __init__(self):
        self._lock = threading.Lock()
        self._history: List[Order] = []
        self._ids: Set[int] = set()

    def record_delivery(self, order: Order) -> None:
        if order.status is not OrderStatus.DELIVERED:
            raise OrderStateException(
                f"Order #{order.id} is {order.status.value}, only DELIVERED orders are recorded"
            )

        with self._lock:
            if order.id in self._ids:
                raise ValueError(f"Order #{order.id} already recorded")
            self._history.append(order)
            self._ids.add(order.id)

        logger.info(f"[Ledger] Order #{order.id} recorded, delivered by {order.assigned_worker}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._history)

    def orders(self) -> List[Order]:
        with self._lock:
            return list(self._history)

    def delivered_ids(self) -> List[int]:
        with self._lock:
            return [order.id for order in self._history]

    def report(self) -> str:
        with self._lock:
            lines = ["", "=== DELIVERY REPORT ==="]
            if not self._history:
                lines.append("[Ledger] No deliveries recorded.")
            else:
                for order in self._history:
                    lines.append(f"- {order.short_summary()}")
                    lines.append(f" | Status: [{order.status.value}]")
                lines.append("")
                lines.append(f"[Ledger] Total orders processed: {len(self._history)}")
            lines.append("=" * 42)
            text = "\n".join(lines)

        logger.info(text)
        return text

    def to_dataframe(self) -> pd.DataFrame:
        rows = [
            {
                "order_id": order.id,
                "kind": order.kind.value,
                "priority": order.priority.name,
                "worker": order.assigned_worker,
                "status": order.status.value,
                "distance_km": order.distance_km,
                "estimate_min": estimate_delivery_minutes(order),
            }
            for order in self.orders()
        ]
        return pd.DataFrame(rows, columns=COLUMNS)

    def summary(self) -> pd.DataFrame:
        """
        Deliveries per worker and priority class.
        """
        df = self.to_dataframe()
        if df.empty:
            return pd.DataFrame(columns=["worker", "priority", "deliveries"])
        return (
            df.groupby(["worker", "priority"])
            .size()
            .reset_index(name="deliveries")
        )

    def export_csv(self, path: str) -> None:
        self.to_dataframe().to_csv(path, index=False)

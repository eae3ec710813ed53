"""
Purpose: Per-kind processing rules (the fixed five-step sequence a worker runs
after withdrawing an order).
What it does:
- header -> validation -> assignment confirmation -> delivery-time estimate -> summary
- Each kind carries its own estimate and confirmation text in KIND_RULES.

Rule: Pure with respect to the staging buffer. Never touches order status.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List

from .models import Order, OrderKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KindRules:
    confirmation: str
    estimate: Callable[[Order], float]


def _food_minutes(order: Order) -> float:
    return 15 + 2 * order.distance_km


def _express_minutes(order: Order) -> float:
    return 10 + (5 if order.distance_km > 5.0 else 0)


def _parcel_minutes(order: Order) -> float:
    return 20 + 1.5 * order.distance_km + 0.5 * order.weight_kg


KIND_RULES: Dict[OrderKind, KindRules] = {
    OrderKind.FOOD: KindRules("Checking thermal bag...OK", _food_minutes),
    OrderKind.EXPRESS: KindRules("-> Nearest courier with immediate availability found", _express_minutes),
    OrderKind.PARCEL: KindRules("Validating weight and packaging...OK", _parcel_minutes),
}


@dataclass(frozen=True)
class ProcessingReport:
    """
    What the five steps produced for one order.
    """
    order_id: int
    estimate_minutes: float
    lines: List[str]

    def render(self) -> str:
        return "\n".join(self.lines)


def validate_order(order: Order) -> None:
    """
    Re-check the construction invariants. Orders are plain dataclasses, so a
    field can change after Order.new() accepted it.
    """
    if order.distance_km <= 0:
        raise ValueError(f"Order #{order.id}: distance_km must be > 0, got {order.distance_km}")

    if order.kind is OrderKind.PARCEL:
        if order.weight_kg is None or order.weight_kg <= 0:
            raise ValueError(f"Order #{order.id}: parcel orders need a positive weight_kg")
    elif order.weight_kg is not None:
        raise ValueError(f"Order #{order.id}: {order.kind.label} does not carry a weight")


def estimate_delivery_minutes(order: Order) -> float:
    return KIND_RULES[order.kind].estimate(order)


def process_order(order: Order) -> ProcessingReport:
    """
    Run the five processing steps for an order and emit them as a single
    log record so concurrent workers never interleave their blocks.
    """
    rules = KIND_RULES[order.kind]
    lines: List[str] = []

    # 1. header
    lines.append(f"[{order.kind.label}]")

    # 2. validation
    lines.append("Validating order data")
    validate_order(order)

    # 3. assignment confirmation
    lines.append("Assigning courier...")
    lines.append(rules.confirmation)

    # 4. delivery-time estimate
    minutes = rules.estimate(order)

    # 5. summary
    lines.extend([
        f"Order #{order.id}",
        f"Address: {order.address}",
        f"Distance: {order.distance_km:g} Km",
        f"Assigned worker: {order.assigned_worker}",
        f"Estimated time: {round(minutes)} minutes",
    ])

    report = ProcessingReport(order_id=order.id, estimate_minutes=minutes, lines=lines)
    logger.info("\n%s\n", report.render())
    return report

"""
Purpose: Domain models for the Orders capability.
What it does:
- Defines core data structures:
- Order (id, kind, priority, address, distance, optional weight, status, assigned worker)

Defines enums/constants:
- OrderStatus = PENDING | IN_TRANSIT | DELIVERED | CANCELLED
- PriorityClass = HIGH | MEDIUM | LOW (lower value = dispatched first)
- OrderKind = FOOD | EXPRESS | PARCEL

Rule: No threading, no buffer logic. Models only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union


class OrderStatus(Enum):
    PENDING = "PENDING"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)


class PriorityClass(int, Enum):
    """
    Ordinal urgency tag. The staging buffer always hands out the
    lowest value first.
    """
    HIGH = 1
    MEDIUM = 2
    LOW = 3


class OrderKind(str, Enum):
    FOOD = "food"
    EXPRESS = "express"
    PARCEL = "parcel"

    @property
    def label(self) -> str:
        return f"{self.value.capitalize()}Order"


# priority the generator gives each kind unless told otherwise
DEFAULT_PRIORITY = {
    OrderKind.FOOD: PriorityClass.HIGH,
    OrderKind.EXPRESS: PriorityClass.MEDIUM,
    OrderKind.PARCEL: PriorityClass.LOW,
}


@dataclass
class Order:
    """
    Represents a single delivery order moving through the pipeline.
    """

    id: int
    kind: OrderKind
    priority: PriorityClass
    address: str
    distance_km: float
    weight_kg: Optional[float] = None

    status: OrderStatus = OrderStatus.PENDING
    assigned_worker: Optional[str] = None

    #every status the order has held, oldest first
    history: List[OrderStatus] = field(default_factory=lambda: [OrderStatus.PENDING])

    @classmethod
    def new(
        cls,
        order_id: int,
        kind: Union[str, OrderKind],
        address: str,
        distance_km: float,
        *,
        priority: Union[str, PriorityClass, None] = None,
        weight_kg: Optional[float] = None,
    ) -> Order:
        """
        Validating factory. Bad selectors fail here so no malformed
        order ever reaches the staging buffer.
        """
        if not isinstance(kind, OrderKind):
            try:
                kind = OrderKind(str(kind).lower())
            except ValueError:
                raise ValueError(f"Unknown order kind: {kind!r}") from None

        if priority is None:
            priority = DEFAULT_PRIORITY[kind]
        elif not isinstance(priority, PriorityClass):
            try:
                priority = PriorityClass[str(priority).upper()]
            except KeyError:
                raise ValueError(f"Unknown priority class: {priority!r}") from None

        try:
            distance_km = float(distance_km)
        except (TypeError, ValueError):
            raise ValueError(f"distance_km must be a number, got {distance_km!r}") from None
        if distance_km <= 0:
            raise ValueError(f"distance_km must be > 0, got {distance_km}")

        if weight_kg is not None:
            try:
                weight_kg = float(weight_kg)
            except (TypeError, ValueError):
                raise ValueError(f"weight_kg must be a number, got {weight_kg!r}") from None

        if kind is OrderKind.PARCEL:
            if weight_kg is None or weight_kg <= 0:
                raise ValueError("Parcel orders need a positive weight_kg")
        elif weight_kg is not None:
            raise ValueError(f"{kind.label} does not carry a weight")

        return cls(
            id=order_id,
            kind=kind,
            priority=priority,
            address=address,
            distance_km=distance_km,
            weight_kg=weight_kg,
        )

    def short_summary(self) -> str:
        return f"{self.kind.label} #{self.id} - Worker: {self.assigned_worker}"

    def __str__(self) -> str:
        return (
            f"Order{{id={self.id}, address={self.address}, distance={self.distance_km}, "
            f"status={self.status.value}, priority={self.priority.name}}}"
        )

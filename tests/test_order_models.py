import pytest

from orders.models import DEFAULT_PRIORITY, Order, OrderKind, OrderStatus, PriorityClass
from orders.processing import estimate_delivery_minutes, process_order
from dispatch.state_machines.order_state import (
    OrderStateException,
    cancel_order,
    complete_delivery,
    start_transit,
)


@pytest.fixture
def food_order():
    return Order.new(1001, "food", "Av. Las Rosas 1470", 2)


def test_priority_ordering_is_high_medium_low():
    assert PriorityClass.HIGH < PriorityClass.MEDIUM < PriorityClass.LOW


def test_new_order_defaults(food_order):
    assert food_order.kind is OrderKind.FOOD
    assert food_order.priority is PriorityClass.HIGH
    assert food_order.status is OrderStatus.PENDING
    assert food_order.assigned_worker is None
    assert food_order.history == [OrderStatus.PENDING]


def test_default_priority_follows_kind():
    assert DEFAULT_PRIORITY[OrderKind.FOOD] is PriorityClass.HIGH
    assert Order.new(1, "express", "x", 1).priority is PriorityClass.MEDIUM
    assert Order.new(2, "parcel", "x", 1, weight_kg=2).priority is PriorityClass.LOW


def test_explicit_priority_overrides_kind():
    order = Order.new(5, OrderKind.PARCEL, "x", 1, weight_kg=1, priority="high")
    assert order.priority is PriorityClass.HIGH


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(kind="pizza"),
        dict(kind="food", priority="urgent"),
        dict(kind="food", distance_km=0),
        dict(kind="parcel"),
        dict(kind="parcel", weight_kg=-1),
        dict(kind="express", weight_kg=2),
        dict(kind="food", distance_km="far"),
        dict(kind="food", distance_km=None),
        dict(kind="parcel", weight_kg="heavy"),
    ],
)
def test_invalid_orders_fail_at_construction(kwargs):
    params = dict(order_id=1, address="x", distance_km=3.0)
    params.update(kwargs)
    kind = params.pop("kind")
    order_id = params.pop("order_id")
    address = params.pop("address")
    distance = params.pop("distance_km")

    with pytest.raises(ValueError):
        Order.new(order_id, kind, address, distance, **params)


def test_numeric_strings_are_coerced():
    order = Order.new(7, "parcel", "x", "2.5", weight_kg="4")

    assert order.distance_km == 2.5
    assert order.weight_kg == 4.0


@pytest.mark.parametrize(
    "kind, distance, weight, expected",
    [
        ("food", 2, None, 19),
        ("food", 4, None, 23),
        ("express", 5, None, 10),
        ("express", 6, None, 15),
        ("parcel", 6, 3, 30.5),
    ],
)
def test_delivery_estimates(kind, distance, weight, expected):
    order = Order.new(1, kind, "x", distance, weight_kg=weight)
    assert estimate_delivery_minutes(order) == pytest.approx(expected)


def test_process_order_runs_the_five_steps_in_order(food_order):
    food_order.assigned_worker = "Cecilia"

    report = process_order(food_order)

    assert report.order_id == 1001
    assert report.estimate_minutes == pytest.approx(19)
    assert report.lines[0] == "[FoodOrder]"
    assert report.lines[1] == "Validating order data"
    assert "thermal bag" in report.lines[3]
    assert "Assigned worker: Cecilia" in report.lines
    assert "Distance: 2 Km" in report.lines
    assert report.lines[-1] == "Estimated time: 19 minutes"
    # processing never moves the order through its lifecycle
    assert food_order.status is OrderStatus.PENDING


@pytest.mark.parametrize(
    "field, value",
    [
        ("distance_km", 0),
        ("distance_km", -3.0),
        ("weight_kg", 2.0),
    ],
)
def test_processing_rejects_orders_changed_after_construction(food_order, field, value):
    setattr(food_order, field, value)

    with pytest.raises(ValueError):
        process_order(food_order)


def test_processing_rejects_parcel_without_weight():
    parcel = Order.new(9, "parcel", "x", 3, weight_kg=2)
    parcel.weight_kg = None

    with pytest.raises(ValueError):
        process_order(parcel)


def test_happy_path_transitions(food_order):
    start_transit(food_order, "Rafael")
    assert food_order.status is OrderStatus.IN_TRANSIT
    assert food_order.assigned_worker == "Rafael"

    complete_delivery(food_order)
    assert food_order.status is OrderStatus.DELIVERED
    assert food_order.history == [OrderStatus.PENDING, OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED]
    assert food_order.short_summary() == "FoodOrder #1001 - Worker: Rafael"


def test_cannot_deliver_before_transit(food_order):
    with pytest.raises(OrderStateException):
        complete_delivery(food_order)


def test_cannot_start_transit_twice(food_order):
    start_transit(food_order, "Rafael")
    with pytest.raises(OrderStateException):
        start_transit(food_order, "Cecilia")
    assert food_order.assigned_worker == "Rafael"


def test_terminal_states_are_final(food_order):
    start_transit(food_order, "Rafael")
    complete_delivery(food_order)

    with pytest.raises(OrderStateException):
        cancel_order(food_order)
    assert food_order.status is OrderStatus.DELIVERED


def test_cancel_in_transit(food_order):
    start_transit(food_order, "Rafael")
    cancel_order(food_order)

    assert food_order.status is OrderStatus.CANCELLED
    with pytest.raises(OrderStateException):
        complete_delivery(food_order)

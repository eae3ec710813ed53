from orders.models import Order, OrderStatus


class OrderStateException(Exception):
    """Raised when an invalid state transition is attempted."""
    pass


def _move(order: Order, new_status: OrderStatus) -> Order:
    order.status = new_status
    order.history.append(new_status)
    return order


def start_transit(order: Order, worker_name: str) -> Order:
    """
    Called by the worker that just withdrew the order from the staging buffer.
    Withdrawal is exclusive, so the assignment is never contested.
    """
    if order.status != OrderStatus.PENDING:
        raise OrderStateException(f"Cannot start transit for order {order.id} from {order.status}")
    if order.assigned_worker is not None:
        raise OrderStateException(f"Order {order.id} already assigned to {order.assigned_worker}")

    order.assigned_worker = worker_name
    return _move(order, OrderStatus.IN_TRANSIT)


def complete_delivery(order: Order) -> Order:
    """
    Simulated drop-off finished. DELIVERED is terminal.
    """
    if order.status != OrderStatus.IN_TRANSIT:
        raise OrderStateException(f"Order {order.id} is not IN_TRANSIT. Current: {order.status}")
    return _move(order, OrderStatus.DELIVERED)


def cancel_order(order: Order) -> Order:
    """
    Emergency fallback: the order is abandoned (worker cancelled mid-delivery,
    or the customer called it off before pickup). It is never re-staged.
    """
    if order.status.is_terminal:
        raise OrderStateException(f"Order {order.id} already finished as {order.status}")
    return _move(order, OrderStatus.CANCELLED)

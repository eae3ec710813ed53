import random
import threading

import pytest

from orders.models import Order, OrderStatus, PriorityClass
from dispatch.cancellation import CancellationToken, OperationCancelled
from dispatch.pipeline import DispatchPipeline, demo_orders
from dispatch.policy import DispatchPolicy, default_dispatch_policy, fast_policy, policy_from_env


def mixed_orders():
    priorities = [PriorityClass.HIGH, PriorityClass.MEDIUM, PriorityClass.LOW,
                  PriorityClass.HIGH, PriorityClass.MEDIUM, PriorityClass.LOW]
    return [
        Order.new(500 + index, "express", f"Address #{index}", 2.5, priority=priority)
        for index, priority in enumerate(priorities)
    ]


def test_three_workers_deliver_six_preloaded_orders():
    """
    3 workers, capacity 10, 6 preloaded orders of mixed priority:
    the ledger ends with each order exactly once, all DELIVERED.
    """
    policy = fast_policy(capacity=10, worker_count=3, generator_count=0)
    pipeline = DispatchPipeline(policy, rng=random.Random(3))
    orders = mixed_orders()
    pipeline.preload(orders)

    result = pipeline.run()

    ids = result.ledger.delivered_ids()
    assert sorted(ids) == [order.id for order in orders]
    assert len(set(ids)) == 6
    assert all(order.status is OrderStatus.DELIVERED for order in result.ledger.orders())
    assert result.delivered == 6
    assert not result.timed_out
    assert result.abandoned == []
    assert result.cancelled_actors == []
    assert pipeline.buffer.pending_count() == 0


def test_generated_and_preloaded_orders_are_all_delivered():
    policy = fast_policy(capacity=4, worker_count=3, order_count=8)
    pipeline = DispatchPipeline(policy, rng=random.Random(11))
    pipeline.preload(demo_orders()[:4])

    result = pipeline.run()

    assert result.generated_ids == list(range(2001, 2009))
    assert sorted(result.ledger.delivered_ids()) == [1001, 1002, 1003, 1004] + result.generated_ids
    assert result.delivered == 12
    assert result.monitor_samples
    assert all(0 <= sample <= 4 for sample in result.monitor_samples)
    assert "Total orders processed: 12" in result.report


def test_multiple_generators_never_reuse_ids():
    policy = fast_policy(worker_count=2, generator_count=3, order_count=5)
    result = DispatchPipeline(policy).run()

    assert len(result.generated_ids) == 15
    assert len(set(result.generated_ids)) == 15
    assert sorted(result.ledger.delivered_ids()) == sorted(result.generated_ids)


def test_unbounded_generation_stops_after_window():
    policy = fast_policy(order_count=None, generation_window=0.1, worker_count=2)
    result = DispatchPipeline(policy).run()

    assert result.generated_ids
    assert sorted(result.ledger.delivered_ids()) == sorted(result.generated_ids)
    assert not result.timed_out


def test_stragglers_are_cancelled_after_shutdown_timeout():
    policy = fast_policy(
        worker_count=3,
        generator_count=0,
        min_delivery_delay=30,
        max_delivery_delay=30,
        shutdown_timeout=0.2,
    )
    pipeline = DispatchPipeline(policy, worker_names=["Rogelio", "Cecilia", "Rafael"])
    pipeline.preload(demo_orders()[:3])

    result = pipeline.run()

    assert result.timed_out
    assert result.delivered == 0
    assert len(result.abandoned) == 3
    assert all(order.status is OrderStatus.CANCELLED for order in result.abandoned)
    assert {"Rogelio", "Cecilia", "Rafael"} <= set(result.cancelled_actors)
    assert "No deliveries recorded" in result.report


def test_unexpected_worker_failure_aborts_the_run():
    class BrokenLedger:
        def record_delivery(self, order):
            raise RuntimeError("ledger offline")

        def __len__(self):
            return 0

    policy = fast_policy(worker_count=1, order_count=20, capacity=2)
    pipeline = DispatchPipeline(policy)
    pipeline.workers[0].ledger = BrokenLedger()

    with pytest.raises(RuntimeError, match="ledger offline"):
        pipeline.run()


def test_interrupted_run_releases_every_actor():
    """
    An error while waiting on generators (Ctrl-C here) must not leave the
    executor joining actors that nobody will ever stop.
    """
    policy = fast_policy(worker_count=2, order_count=None, generation_window=60.0, capacity=2)
    pipeline = DispatchPipeline(policy)

    def interrupted(generator_futures, worker_futures):
        raise KeyboardInterrupt

    pipeline._await_generators = interrupted
    outcome = {}

    def target():
        try:
            pipeline.run()
        except BaseException as exc:
            outcome["error"] = exc

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    thread.join(timeout=3)

    assert not thread.is_alive()
    assert isinstance(outcome.get("error"), KeyboardInterrupt)
    assert pipeline.buffer.closed
    assert pipeline.cancel.cancelled


def test_preload_beyond_capacity_is_rejected():
    pipeline = DispatchPipeline(fast_policy(capacity=2))

    with pytest.raises(ValueError):
        pipeline.preload(demo_orders())
    assert pipeline.buffer.pending_count() == 0


def test_worker_names_must_match_pool_size():
    with pytest.raises(ValueError):
        DispatchPipeline(fast_policy(worker_count=3), worker_names=["only-one"])


def test_demo_orders_match_the_morning_batch():
    orders = demo_orders()

    assert [order.id for order in orders] == [1001, 1002, 1003, 1004, 1005, 1006]
    assert [order.priority for order in orders].count(PriorityClass.HIGH) == 3
    assert orders[3].weight_kg == 3


# --- DispatchPolicy ---

def test_default_policy_is_valid():
    policy = default_dispatch_policy()
    assert policy.capacity == 10
    assert policy.worker_count == 3
    assert policy.shutdown_timeout == 60.0


@pytest.mark.parametrize(
    "overrides",
    [
        dict(capacity=0),
        dict(worker_count=0),
        dict(min_delay=2.0, max_delay=1.0),
        dict(min_delivery_delay=-1.0),
        dict(monitor_interval=0),
        dict(shutdown_timeout=0),
        dict(order_count=None, generation_window=None),
        dict(order_count=-1),
    ],
)
def test_invalid_policies_abort_startup(overrides):
    with pytest.raises(ValueError):
        DispatchPolicy(**overrides).validate()
    with pytest.raises(ValueError):
        DispatchPipeline(DispatchPolicy(**overrides))


def test_policy_from_env(monkeypatch):
    monkeypatch.setenv("DISPATCH_CAPACITY", "4")
    monkeypatch.setenv("DISPATCH_WORKERS", "5")
    monkeypatch.setenv("DISPATCH_ORDER_COUNT", "unbounded")
    monkeypatch.setenv("DISPATCH_ID_START", "5000")
    monkeypatch.setenv("DISPATCH_GENERATION_WINDOW", "2.5")

    policy = policy_from_env()

    assert policy.capacity == 4
    assert policy.worker_count == 5
    assert policy.unbounded
    assert policy.generation_window == 2.5
    assert policy.id_start == 5000
    assert DispatchPipeline(policy).counter.next_id() == 5001


def test_policy_from_env_rejects_garbage(monkeypatch):
    monkeypatch.setenv("DISPATCH_CAPACITY", "lots")

    with pytest.raises(ValueError):
        policy_from_env()


# --- CancellationToken ---

def test_child_token_fires_with_parent_but_not_the_reverse():
    parent = CancellationToken()
    child = CancellationToken(parent=parent)

    child.cancel()
    assert child.cancelled
    assert not parent.cancelled

    other = CancellationToken(parent=parent)
    parent.cancel()
    assert other.cancelled


def test_token_sleep_raises_when_cancelled():
    token = CancellationToken()
    token.cancel()

    with pytest.raises(OperationCancelled):
        token.sleep(5)


def test_callback_on_fired_token_runs_immediately():
    token = CancellationToken()
    token.cancel()
    calls = []

    token.add_callback(lambda: calls.append(1))

    assert calls == [1]


def test_detached_child_no_longer_follows_parent():
    parent = CancellationToken()
    child = CancellationToken(parent=parent)
    assert parent.callback_count == 1

    child.detach()
    assert parent.callback_count == 0

    parent.cancel()
    assert not child.cancelled

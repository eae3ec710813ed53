"""
Purpose: Orchestrator for one dispatch run (the "glue").
What it does:
Builds the staging buffer, ledger, generators, worker pool and monitor from a
DispatchPolicy, runs them on one thread pool and applies the shutdown protocol:

1. wait for generators to finish (or stop them when the generation window ends)
2. close the buffer so idle workers can leave
3. give workers `shutdown_timeout` seconds to drain the buffer
4. cancel any straggler, then stop the monitor
"""

from __future__ import annotations

import logging
import random
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from orders.models import Order, OrderKind, PriorityClass
from .cancellation import CancellationToken, OperationCancelled
from .generator import OrderGenerator, OrderIdCounter
from .ledger import DeliveryLedger
from .monitor import StateMonitor
from .policy import DispatchPolicy, default_dispatch_policy
from .staging import StagingBuffer
from .worker import DispatchWorker

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """
    What a finished run leaves behind.
    """
    ledger: DeliveryLedger
    delivered: int
    generated_ids: List[int]
    abandoned: List[Order] = field(default_factory=list)
    # True if workers were still busy when shutdown_timeout expired
    timed_out: bool = False
    cancelled_actors: List[str] = field(default_factory=list)
    monitor_samples: List[int] = field(default_factory=list)
    report: str = ""


def demo_orders() -> List[Order]:
    """
    The six orders staged before the demo shift starts.
    """
    return [
        Order.new(1001, OrderKind.FOOD, "Av. Las Rosas 1470", 2, priority=PriorityClass.HIGH),
        Order.new(1002, OrderKind.EXPRESS, "Av. Manuel Rodriguez 780", 5, priority=PriorityClass.MEDIUM),
        Order.new(1003, OrderKind.FOOD, "Los Carrera 1890", 4, priority=PriorityClass.HIGH),
        Order.new(1004, OrderKind.PARCEL, "Av. Paicavi 1250", 6, weight_kg=3, priority=PriorityClass.LOW),
        Order.new(1005, OrderKind.EXPRESS, "Av. O'Higgins 940", 3, priority=PriorityClass.MEDIUM),
        Order.new(1006, OrderKind.FOOD, "San Martin 520", 1, priority=PriorityClass.HIGH),
    ]


class DispatchPipeline:
    def __init__(
        self,
        policy: Optional[DispatchPolicy] = None,
        rng: Optional[random.Random] = None,
        worker_names: Optional[Sequence[str]] = None,
    ):
        self.policy = policy or default_dispatch_policy()
        self.policy.validate()

        if worker_names is not None and len(worker_names) != self.policy.worker_count:
            raise ValueError(
                f"Expected {self.policy.worker_count} worker names, got {len(worker_names)}"
            )

        self.rng = rng or random.Random()
        self.cancel = CancellationToken()
        self.buffer = StagingBuffer(self.policy.capacity)
        self.ledger = DeliveryLedger()
        self.counter = OrderIdCounter(self.policy.id_start)

        names = list(worker_names) if worker_names else [
            f"courier-{index + 1}" for index in range(self.policy.worker_count)
        ]
        self.workers = [
            DispatchWorker(name, self.buffer, self.ledger, self.policy,
                           rng=self._child_rng(), cancel=self.cancel)
            for name in names
        ]
        self.generators = [
            OrderGenerator(self.buffer, self.policy, counter=self.counter,
                           rng=self._child_rng(), cancel=self.cancel,
                           name=f"Generator-{index + 1}")
            for index in range(self.policy.generator_count)
        ]
        self.monitor = StateMonitor(self.buffer, self.policy.monitor_interval, cancel=self.cancel)

    def _child_rng(self) -> random.Random:
        return random.Random(self.rng.random())

    def preload(self, orders: Iterable[Order]) -> None:
        """
        Stage orders before the run starts. Nothing is consuming yet, so more
        orders than free slots would block forever; reject that up front.
        """
        orders = list(orders)
        free = self.policy.capacity - self.buffer.pending_count()
        if len(orders) > free:
            raise ValueError(f"Cannot preload {len(orders)} orders, only {free} free slot(s)")
        for order in orders:
            self.buffer.insert(order, cancel=self.cancel)

    def cancel_run(self) -> None:
        """
        Force cancellation of every actor (used for stragglers, or from outside).
        """
        self.cancel.cancel()

    def run(self) -> PipelineResult:
        policy = self.policy
        pool_size = len(self.workers) + len(self.generators) + 1

        logger.info(
            f"[Pipeline] Starting run: {len(self.workers)} worker(s), "
            f"{len(self.generators)} generator(s), capacity {policy.capacity}"
        )

        with ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="dispatch") as executor:
            monitor_future = executor.submit(self.monitor.run)
            worker_futures = {executor.submit(worker.run): worker.name for worker in self.workers}
            generator_futures = {executor.submit(gen.run): gen.name for gen in self.generators}

            try:
                # 1. generators finish, or are stopped when the window closes
                self._await_generators(list(generator_futures), list(worker_futures))

                # 2. no more orders will arrive
                self.buffer.close()

                # 3. drain
                _, not_done = wait(list(worker_futures), timeout=policy.shutdown_timeout)
                timed_out = bool(not_done)
                if timed_out:
                    logger.warning(
                        f"[Pipeline] {len(not_done)} worker(s) still busy after "
                        f"{policy.shutdown_timeout}s, cancelling"
                    )
                    self.cancel_run()
                    wait(not_done)

                # 4. observability last
                self.monitor.stop()
                wait([monitor_future])
            except BaseException:
                # release every actor before the executor joins them
                logger.error("[Pipeline] Run interrupted, cancelling every actor")
                self.cancel_run()
                self.buffer.close()
                self.monitor.stop()
                raise

        cancelled: List[str] = []
        failures: List[BaseException] = []
        named = dict(worker_futures)
        named.update(generator_futures)
        named[monitor_future] = "Monitor"
        for future, name in named.items():
            error = future.exception()
            if error is None:
                continue
            if isinstance(error, OperationCancelled):
                cancelled.append(name)
            else:
                logger.error(f"[Pipeline] {name} failed: {error!r}")
                failures.append(error)

        if failures:
            raise failures[0]

        abandoned = [order for worker in self.workers for order in worker.abandoned]
        generated = [order_id for gen in self.generators for order_id in gen.generated]

        logger.info("\nAll deliveries finished." if not timed_out else "\nRun ended with cancelled deliveries.")
        report = self.ledger.report()

        return PipelineResult(
            ledger=self.ledger,
            delivered=len(self.ledger),
            generated_ids=generated,
            abandoned=abandoned,
            timed_out=timed_out,
            cancelled_actors=sorted(cancelled),
            monitor_samples=list(self.monitor.samples),
            report=report,
        )

    def _await_generators(self, generator_futures: List[Future], worker_futures: List[Future]) -> None:
        """
        Block until every generator is done.

        Unbounded generators are stopped once the generation window ends. A
        worker that finishes before the buffer is closed can only have crashed;
        in that case everything is cancelled so no generator blocks on a full
        buffer forever.
        """
        deadline = None
        if self.policy.unbounded and self.policy.generation_window is not None:
            deadline = time.monotonic() + self.policy.generation_window

        watched = set(generator_futures) | set(worker_futures)
        while not all(future.done() for future in generator_futures):
            timeout = None
            if deadline is not None:
                timeout = max(0.0, deadline - time.monotonic())

            done, _ = wait(watched, timeout=timeout, return_when=FIRST_COMPLETED)
            watched -= done

            if deadline is not None and time.monotonic() >= deadline:
                logger.info("[Pipeline] Generation window closed, stopping generators")
                for gen in self.generators:
                    gen.stop()
                deadline = None

            if any(future in worker_futures for future in done):
                logger.error("[Pipeline] A worker stopped before shutdown, cancelling the run")
                self.cancel_run()

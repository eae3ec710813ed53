#Expose the high-level pipeline pieces:
#Staging buffer (bounded, priority-ordered monitor)
#Actors (generator, workers, monitor) and the delivery ledger
#Pipeline orchestrator (the "one call" entry point)

from .cancellation import CancellationToken, OperationCancelled
from .staging import StagingBuffer, BufferClosed, BufferStats
from .generator import OrderGenerator, OrderIdCounter
from .worker import DispatchWorker
from .monitor import StateMonitor
from .ledger import DeliveryLedger
from .policy import DispatchPolicy, default_dispatch_policy, fast_policy, policy_from_env
from .pipeline import DispatchPipeline, PipelineResult, demo_orders #the main entry point for a full run

__all__ = [
    "CancellationToken",
    "OperationCancelled",
    "StagingBuffer",
    "BufferClosed",
    "BufferStats",
    "OrderGenerator",
    "OrderIdCounter",
    "DispatchWorker",
    "StateMonitor",
    "DeliveryLedger",
    "DispatchPolicy",
    "default_dispatch_policy",
    "fast_policy",
    "policy_from_env",
    "DispatchPipeline",
    "PipelineResult",
    "demo_orders",
]

"""
Purpose: Read-only observability loop over the staging buffer.
What it does:
Samples pending_count() every `interval` seconds and logs it until stopped
or cancelled. Never mutates the buffer.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .cancellation import CancellationToken, OperationCancelled
from .staging import StagingBuffer

logger = logging.getLogger(__name__)


class StateMonitor:
    def __init__(self, buffer: StagingBuffer, interval: float = 3.0, cancel: Optional[CancellationToken] = None):
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self.buffer = buffer
        self.interval = interval
        self.cancel = cancel or CancellationToken()
        self._stopping = CancellationToken(parent=self.cancel)
        self.samples: List[int] = []

    def stop(self) -> None:
        self._stopping.cancel()

    def sample(self) -> int:
        pending = self.buffer.pending_count()
        self.samples.append(pending)
        logger.info(f"[Monitor] Pending orders: {pending}")
        return pending

    def run(self) -> List[int]:
        try:
            while not self._stopping.cancelled:
                self.sample()
                self._stopping.wait(self.interval)
        finally:
            self._stopping.detach()

        if self.cancel.cancelled:
            logger.info("[Monitor] Interrupted.")
            raise OperationCancelled()

        logger.info("[Monitor] Finished.")
        return list(self.samples)

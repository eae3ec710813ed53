"""
Purpose: Central configuration for a dispatch run.
What it does:

Stores all tunable sizes and timings for the pipeline:

CAPACITY = 10
WORKER_COUNT = 3
GENERATOR_DELAY = 1s
DELIVERY_DELAY = 2s..5s
MONITOR_INTERVAL = 3s
SHUTDOWN_TIMEOUT = 60s

Rule: Parameters and their sanity checks only, so you can tune without rewriting code.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class DispatchPolicy:
    """
    Central configuration for the staging buffer, worker pool and actors.
    All timings are in seconds.
    """

    # --- Staging buffer ---
    capacity: int = 10

    # --- Worker pool (fixed for the whole run) ---
    worker_count: int = 3

    # --- Order generation ---
    generator_count: int = 1
    # None = keep generating until the generation window closes
    order_count: Optional[int] = 6
    min_delay: float = 1.0
    max_delay: float = 1.0
    # first generated id is id_start + 1
    id_start: int = 2000
    # how long unbounded generators run before they are told to stop
    generation_window: Optional[float] = None

    # --- Simulated delivery ---
    min_delivery_delay: float = 2.0
    max_delivery_delay: float = 5.0

    # --- Observability ---
    monitor_interval: float = 3.0

    # --- Shutdown ---
    # how long workers get to drain the buffer before stragglers are cancelled
    shutdown_timeout: float = 60.0

    @property
    def unbounded(self) -> bool:
        return self.order_count is None

    def validate(self) -> None:
        """
        Basic sanity checks. A bad policy aborts startup.
        """
        if self.capacity < 1:
            raise ValueError("capacity must be >= 1")

        if self.worker_count < 1:
            raise ValueError("worker_count must be >= 1")

        if self.generator_count < 0:
            raise ValueError("generator_count must be >= 0")

        if self.order_count is not None and self.order_count < 0:
            raise ValueError("order_count must be >= 0 (or None for unbounded)")

        if self.min_delay < 0 or self.max_delay < self.min_delay:
            raise ValueError("generator delays must satisfy 0 <= min_delay <= max_delay")

        if self.min_delivery_delay < 0 or self.max_delivery_delay < self.min_delivery_delay:
            raise ValueError("delivery delays must satisfy 0 <= min_delivery_delay <= max_delivery_delay")

        if self.monitor_interval <= 0:
            raise ValueError("monitor_interval must be > 0")

        if self.shutdown_timeout <= 0:
            raise ValueError("shutdown_timeout must be > 0")

        if self.unbounded and self.generator_count > 0:
            if self.generation_window is None or self.generation_window <= 0:
                raise ValueError("unbounded generation needs a positive generation_window")


def default_dispatch_policy() -> DispatchPolicy:
    """
    Convenience factory for the default policy.
    """
    p = DispatchPolicy()
    p.validate()
    return p


def fast_policy(**overrides) -> DispatchPolicy:
    """
    Same shape as the default, but with millisecond timings.
    Handy for tests and quick demo runs.
    """
    p = DispatchPolicy(
        min_delay=0.001,
        max_delay=0.005,
        min_delivery_delay=0.001,
        max_delivery_delay=0.01,
        monitor_interval=0.01,
        shutdown_timeout=5.0,
    )
    p = replace(p, **overrides)
    p.validate()
    return p


def _env_int(name: str, default, allow_none: bool = False):
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    if allow_none and raw.lower() in ("none", "unbounded"):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default, allow_none: bool = False):
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    if allow_none and raw.lower() == "none":
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def policy_from_env(base: Optional[DispatchPolicy] = None) -> DispatchPolicy:
    """
    Build a policy from DISPATCH_* variables (a .env file is picked up too).

    Example in .env:
    DISPATCH_CAPACITY=10
    DISPATCH_WORKERS=3
    DISPATCH_ID_START=5000
    DISPATCH_ORDER_COUNT=unbounded
    DISPATCH_GENERATION_WINDOW=30
    """
    load_dotenv()
    base = base or DispatchPolicy()

    p = replace(
        base,
        capacity=_env_int("DISPATCH_CAPACITY", base.capacity),
        worker_count=_env_int("DISPATCH_WORKERS", base.worker_count),
        generator_count=_env_int("DISPATCH_GENERATORS", base.generator_count),
        order_count=_env_int("DISPATCH_ORDER_COUNT", base.order_count, allow_none=True),
        id_start=_env_int("DISPATCH_ID_START", base.id_start),
        min_delay=_env_float("DISPATCH_MIN_DELAY", base.min_delay),
        max_delay=_env_float("DISPATCH_MAX_DELAY", base.max_delay),
        min_delivery_delay=_env_float("DISPATCH_MIN_DELIVERY_DELAY", base.min_delivery_delay),
        max_delivery_delay=_env_float("DISPATCH_MAX_DELIVERY_DELAY", base.max_delivery_delay),
        monitor_interval=_env_float("DISPATCH_MONITOR_INTERVAL", base.monitor_interval),
        shutdown_timeout=_env_float("DISPATCH_SHUTDOWN_TIMEOUT", base.shutdown_timeout),
        generation_window=_env_float("DISPATCH_GENERATION_WINDOW", base.generation_window, allow_none=True),
    )
    p.validate()
    return p

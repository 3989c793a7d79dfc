"""Compute dispatch backends."""
from __future__ import annotations

from svsim.config import SimulatorConfig
from svsim.dispatch.base import Dispatcher, KernelDescriptor
from svsim.dispatch.sequential import SequentialDispatcher
from svsim.dispatch.threaded import ThreadedDispatcher
from svsim.errors import ValidationError


def create_dispatcher(config: SimulatorConfig) -> Dispatcher:
    """Build the backend named by ``config.backend``."""
    if config.backend == "sequential":
        return SequentialDispatcher(config.chunk_units)
    if config.backend == "threaded":
        return ThreadedDispatcher(config.worker_count, config.chunk_units)
    raise ValidationError(f"unknown backend {config.backend!r}")


__all__ = [
    "Dispatcher", "KernelDescriptor",
    "SequentialDispatcher", "ThreadedDispatcher",
    "create_dispatcher",
]

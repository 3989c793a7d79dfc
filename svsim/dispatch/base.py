"""Compute dispatch contract.

A dispatcher runs a kernel over a range of independent units of work and
returns only after every unit is done.  Units inside one ``execute`` call
read and write disjoint amplitude sets, so they may run in any order or
concurrently; the only synchronisation is the barrier at the end of the
call.  Callers never issue overlapping dispatches against one buffer.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

import numpy as np

from svsim.errors import BackendError, CapacityError

log = logging.getLogger(__name__)

KernelBody = Callable[[np.ndarray, np.ndarray], None]


@dataclass(frozen=True)
class KernelDescriptor:
    """``body(handle, units)`` updates ``handle`` in place for a 1-D array of unit ids."""

    name: str
    body: KernelBody
    handle: np.ndarray


class Dispatcher(ABC):
    """Backend that executes kernels over index ranges."""

    name = "abstract"

    def allocate_buffer(self, size: int, dtype) -> np.ndarray:
        """Zeroed, contiguous amplitude buffer of ``size`` elements."""
        try:
            return np.zeros(size, dtype=dtype)
        except (MemoryError, ValueError) as exc:
            raise CapacityError(f"cannot allocate {size} amplitudes of {np.dtype(dtype)}") from exc

    def read_buffer(self, handle: np.ndarray) -> np.ndarray:
        """Read-only copy of the buffer contents."""
        out = np.array(handle, copy=True)
        out.setflags(write=False)
        return out

    def execute(self, kernel: KernelDescriptor, index_range: range) -> None:
        """Run ``kernel`` on every unit in ``index_range``; block until done."""
        if index_range.step != 1:
            raise ValueError("index_range must be contiguous")
        if len(index_range) == 0:
            return
        log.debug("%s: %s over %d units", self.name, kernel.name, len(index_range))
        self._execute(kernel, index_range)

    @abstractmethod
    def _execute(self, kernel: KernelDescriptor, index_range: range) -> None:
        ...

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


def split_range(index_range: range, chunk_units: int) -> list[tuple[int, int]]:
    """Contiguous (lo, hi) slices of at most ``chunk_units`` units covering ``index_range``."""
    return [
        (lo, min(lo + chunk_units, index_range.stop))
        for lo in range(index_range.start, index_range.stop, chunk_units)
    ]


def run_units(kernel: KernelDescriptor, start: int, stop: int) -> None:
    """Run one contiguous slice of units in the calling thread."""
    units = np.arange(start, stop, dtype=np.int64)
    kernel.body(kernel.handle, units)


def backend_failure(kernel: KernelDescriptor, exc: BaseException) -> BackendError:
    log.warning("kernel %s failed: %s", kernel.name, exc)
    return BackendError(f"kernel {kernel.name!r} failed: {exc}")

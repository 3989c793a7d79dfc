"""Reference dispatcher: vectorised slices in the calling thread.

Correctness oracle for the parallel backend; results are identical because
each unit performs the same arithmetic regardless of how units are grouped.
Kernel temporaries (index arrays, gathered groups) scale with
``chunk_units``, not with the 2^n range.
"""
from __future__ import annotations

from svsim.dispatch.base import (
    Dispatcher, KernelDescriptor, backend_failure, run_units, split_range,
)


class SequentialDispatcher(Dispatcher):
    name = "sequential"

    def __init__(self, chunk_units: int = 1 << 14):
        if chunk_units < 1:
            raise ValueError(f"chunk_units must be >= 1, got {chunk_units}")
        self.chunk_units = chunk_units

    def _execute(self, kernel: KernelDescriptor, index_range: range) -> None:
        try:
            for lo, hi in split_range(index_range, self.chunk_units):
                run_units(kernel, lo, hi)
        except Exception as exc:
            raise backend_failure(kernel, exc) from exc

    def __repr__(self) -> str:
        return f"SequentialDispatcher(chunk_units={self.chunk_units})"

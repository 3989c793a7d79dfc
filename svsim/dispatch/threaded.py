"""Thread-pool dispatcher: chunk the unit range, run chunks concurrently.

numpy releases the GIL inside gather/scatter and matmul loops, so chunks
of one kernel make progress in parallel.  Every future is awaited before
``execute`` returns (the barrier); a failure in any chunk is reported only
after all chunks have settled so no worker still writes to the buffer.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Optional

from svsim.dispatch.base import (
    Dispatcher, KernelDescriptor, backend_failure, run_units, split_range,
)

log = logging.getLogger(__name__)


class ThreadedDispatcher(Dispatcher):
    name = "threaded"

    def __init__(self, workers: int, chunk_units: int = 1 << 14):
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        if chunk_units < 1:
            raise ValueError(f"chunk_units must be >= 1, got {chunk_units}")
        self.workers = workers
        self.chunk_units = chunk_units
        self._pool: Optional[ThreadPoolExecutor] = None

    def _executor(self) -> ThreadPoolExecutor:
        if self._pool is None:
            self._pool = ThreadPoolExecutor(
                max_workers=self.workers, thread_name_prefix="svsim-dispatch",
            )
            log.debug("started pool with %d workers", self.workers)
        return self._pool

    def chunks(self, index_range: range) -> list[tuple[int, int]]:
        return split_range(index_range, self.chunk_units)

    def _execute(self, kernel: KernelDescriptor, index_range: range) -> None:
        parts = self.chunks(index_range)
        if len(parts) == 1 or self.workers == 1:
            try:
                for lo, hi in parts:
                    run_units(kernel, lo, hi)
            except Exception as exc:
                raise backend_failure(kernel, exc) from exc
            return

        pool = self._executor()
        futures = [pool.submit(run_units, kernel, lo, hi) for lo, hi in parts]
        wait(futures)
        for fut in futures:
            exc = fut.exception()
            if exc is not None:
                raise backend_failure(kernel, exc) from exc

    def close(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None

    def __repr__(self) -> str:
        return f"ThreadedDispatcher(workers={self.workers}, chunk_units={self.chunk_units})"

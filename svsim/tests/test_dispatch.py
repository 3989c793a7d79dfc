"""Dispatch backends: coverage of the unit range, barrier, failure reporting."""
import threading

import numpy as np
import pytest

from svsim.config import SimulatorConfig
from svsim.dispatch import (
    KernelDescriptor, SequentialDispatcher, ThreadedDispatcher, create_dispatcher,
)
from svsim.errors import BackendError, CapacityError


def _mark_kernel(handle):
    def body(buf, units):
        buf[units] += 1

    return KernelDescriptor("mark", body, handle)


@pytest.fixture(params=["sequential", "threaded"])
def dispatcher(request):
    if request.param == "sequential":
        d = SequentialDispatcher(chunk_units=5)
    else:
        d = ThreadedDispatcher(workers=4, chunk_units=7)
    yield d
    d.close()


def test_every_unit_runs_exactly_once(dispatcher):
    buf = dispatcher.allocate_buffer(100, np.float64)
    dispatcher.execute(_mark_kernel(buf), range(100))
    np.testing.assert_array_equal(buf, np.ones(100))


def test_sub_range(dispatcher):
    buf = dispatcher.allocate_buffer(10, np.float64)
    dispatcher.execute(_mark_kernel(buf), range(3, 8))
    np.testing.assert_array_equal(buf, [0, 0, 0, 1, 1, 1, 1, 1, 0, 0])


def test_empty_range_is_noop(dispatcher):
    buf = dispatcher.allocate_buffer(4, np.float64)
    dispatcher.execute(_mark_kernel(buf), range(0))
    assert not buf.any()


def test_strided_range_rejected(dispatcher):
    buf = dispatcher.allocate_buffer(4, np.float64)
    with pytest.raises(ValueError, match="contiguous"):
        dispatcher.execute(_mark_kernel(buf), range(0, 4, 2))


def test_failure_surfaces_as_backend_error(dispatcher):
    def body(buf, units):
        raise FloatingPointError("boom")

    with pytest.raises(BackendError, match="boom"):
        dispatcher.execute(KernelDescriptor("bad", body, np.zeros(4)), range(40))


def test_read_buffer_copy(dispatcher):
    buf = dispatcher.allocate_buffer(4, np.complex128)
    snap = dispatcher.read_buffer(buf)
    buf[0] = 1
    assert snap[0] == 0
    assert not snap.flags.writeable


def test_allocation_too_large():
    with pytest.raises(CapacityError):
        SequentialDispatcher().allocate_buffer(-1, np.complex128)


def test_threaded_uses_worker_threads():
    seen = set()
    lock = threading.Lock()

    def body(buf, units):
        with lock:
            seen.add(threading.current_thread().name)
        buf[units] = 1

    with ThreadedDispatcher(workers=3, chunk_units=4) as d:
        buf = d.allocate_buffer(64, np.float64)
        d.execute(KernelDescriptor("who", body, buf), range(64))
    assert buf.all()
    assert all(name.startswith("svsim-dispatch") for name in seen)


def test_sequential_runs_bounded_slices():
    sizes = []

    def body(buf, units):
        sizes.append(len(units))
        buf[units] += 1

    d = SequentialDispatcher(chunk_units=16)
    buf = d.allocate_buffer(100, np.float64)
    d.execute(KernelDescriptor("sizes", body, buf), range(100))
    assert sizes == [16] * 6 + [4]
    np.testing.assert_array_equal(buf, np.ones(100))


def test_sequential_stops_at_first_failing_slice():
    seen = []

    def body(buf, units):
        seen.append(int(units[0]))
        if units[0] == 4:
            raise RuntimeError("slice fails")

    with pytest.raises(BackendError, match="slice fails"):
        SequentialDispatcher(chunk_units=4).execute(KernelDescriptor("bad", body, np.zeros(12)), range(12))
    assert seen == [0, 4]


def test_threaded_chunks():
    d = ThreadedDispatcher(workers=2, chunk_units=4)
    assert d.chunks(range(10)) == [(0, 4), (4, 8), (8, 10)]


def test_threaded_partial_failure_waits_for_all_chunks():
    done = []

    def body(buf, units):
        if units[0] == 0:
            raise RuntimeError("first chunk fails")
        buf[units] = 1
        done.append(int(units[0]))

    with ThreadedDispatcher(workers=4, chunk_units=2) as d:
        buf = np.zeros(8)
        with pytest.raises(BackendError):
            d.execute(KernelDescriptor("partial", body, buf), range(8))
    assert sorted(done) == [2, 4, 6]


def test_create_dispatcher():
    seq = create_dispatcher(SimulatorConfig(chunk_units=32))
    assert isinstance(seq, SequentialDispatcher) and seq.chunk_units == 32
    d = create_dispatcher(SimulatorConfig(backend="threaded", workers=2, chunk_units=16))
    assert isinstance(d, ThreadedDispatcher)
    assert d.workers == 2 and d.chunk_units == 16


def test_threaded_rejects_bad_arguments():
    with pytest.raises(ValueError):
        ThreadedDispatcher(workers=0)
    with pytest.raises(ValueError):
        ThreadedDispatcher(workers=1, chunk_units=0)
    with pytest.raises(ValueError):
        SequentialDispatcher(chunk_units=0)

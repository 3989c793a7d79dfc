"""Dense complex amplitude buffer of an n-qubit register.

Index i is the basis state whose bits are the binary digits of i
(little-endian, see :mod:`svsim.indexing`).  Storage is a contiguous
numpy array obtained from the dispatcher so kernels can gather and
scatter whole ranges at once.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np
import psutil

from svsim.dispatch.base import Dispatcher
from svsim.errors import CapacityError, NormalizationError, ValidationError

log = logging.getLogger(__name__)

# Below this a probability (an outcome, a branch, a whole state) counts as zero.
ZERO_PROBABILITY = 1e-12


def check_capacity(n_qubits: int, dtype, max_qubits: int) -> int:
    """Fail fast when 2^n amplitudes cannot be held.  Returns the byte count."""
    if n_qubits > max_qubits:
        raise CapacityError(f"{n_qubits} qubits exceeds configured maximum of {max_qubits}")
    nbytes = (1 << n_qubits) * np.dtype(dtype).itemsize
    available = psutil.virtual_memory().available
    if nbytes > available:
        raise CapacityError(
            f"{n_qubits} qubits need {nbytes} bytes, only {available} available"
        )
    return nbytes


class AmplitudeBuffer:
    """Owns the 2^n amplitudes.  Mutated only by the engine, measurement and noise."""

    def __init__(
        self,
        n_qubits: int,
        dispatcher: Dispatcher,
        dtype=np.complex128,
        initial: Optional[Sequence[complex]] = None,
        norm_atol: float = 1e-8,
        max_qubits: int = 30,
        zero_atol: float = ZERO_PROBABILITY,
    ):
        if isinstance(n_qubits, bool) or not isinstance(n_qubits, (int, np.integer)) or n_qubits < 1:
            raise ValidationError(f"qubit count must be a positive int, got {n_qubits!r}")
        self.n_qubits = int(n_qubits)
        self.dispatcher = dispatcher
        self.dtype = np.dtype(dtype)
        self.norm_atol = norm_atol
        self.zero_atol = zero_atol

        size = 1 << self.n_qubits
        init = None if initial is None else self._validated_initial(initial, size)
        nbytes = check_capacity(self.n_qubits, self.dtype, max_qubits)
        self._data = dispatcher.allocate_buffer(size, self.dtype)
        if init is None:
            self._data[0] = 1.0
        else:
            self._data[:] = init
        log.debug("allocated %d amplitudes (%d bytes, %s)", size, nbytes, self.dtype)

    def _validated_initial(self, initial, size: int) -> np.ndarray:
        try:
            arr = np.asarray(initial, dtype=np.complex128)
        except (TypeError, ValueError) as exc:
            raise ValidationError("initial state must be a sequence of complex numbers") from exc
        if arr.ndim != 1 or arr.shape[0] != size:
            raise ValidationError(
                f"initial state must have {size} amplitudes, got shape {arr.shape}"
            )
        if not np.all(np.isfinite(arr)):
            raise ValidationError("initial state has non-finite amplitudes")
        total = float(np.sum(np.abs(arr) ** 2))
        if abs(total - 1.0) > self.norm_atol:
            raise ValidationError(f"initial state is not normalised: sum |a|^2 = {total!r}")
        return arr

    # ── element access ──────────────────────────────────────────────

    def _check_index(self, i: int) -> int:
        if isinstance(i, bool) or not isinstance(i, (int, np.integer)):
            raise TypeError(f"amplitude index must be int, got {type(i).__name__}")
        i = int(i)
        if i < 0 or i >= len(self._data):
            raise IndexError(f"amplitude index {i} out of range [0, {len(self._data)})")
        return i

    def get(self, i: int) -> complex:
        return complex(self._data[self._check_index(i)])

    def set(self, i: int, value: complex) -> None:
        self._data[self._check_index(i)] = value

    def probability(self, i: int) -> float:
        return float(abs(self._data[self._check_index(i)]) ** 2)

    def length(self) -> int:
        return len(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __getitem__(self, i: int) -> complex:
        return self.get(i)

    # ── batched access ──────────────────────────────────────────────

    @property
    def raw(self) -> np.ndarray:
        """Underlying array, for kernels only."""
        return self._data

    def probabilities(self) -> np.ndarray:
        return np.abs(self._data) ** 2

    def norm(self) -> float:
        """Total probability, sum of |a|^2."""
        return float(np.vdot(self._data, self._data).real)

    def snapshot(self) -> np.ndarray:
        return self.dispatcher.read_buffer(self._data)

    def scale(self, factor: complex) -> None:
        self._data *= factor

    def renormalize(self) -> float:
        """Divide by sqrt(norm).  Returns the norm found before scaling."""
        total = self.norm()
        if total < self.zero_atol:
            raise NormalizationError(f"cannot renormalise a state with total probability {total!r}")
        self.scale(1.0 / np.sqrt(total))
        return total

    def reset(self) -> None:
        self._data[:] = 0
        self._data[0] = 1.0

    def is_normalized(self, atol: Optional[float] = None) -> bool:
        return abs(self.norm() - 1.0) <= (self.norm_atol if atol is None else atol)

    def __repr__(self) -> str:
        return f"AmplitudeBuffer(n_qubits={self.n_qubits}, dtype={self.dtype})"

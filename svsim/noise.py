"""Single-qubit noise channels by Monte-Carlo trajectory.

A pure state vector cannot hold a mixed state, so each application of a
channel picks ONE Kraus branch K_k with probability p_k = ||K_k psi||^2,
applies K_k / sqrt(p_k) through the gate engine and leaves the state
normalised.  Averaging observables over many trajectories reproduces the
density-matrix result.

Channels (parameter p or gamma in [0, 1]):

  bit_flip           K0 = sqrt(1-p) I,          K1 = sqrt(p) X
  phase_flip         K0 = sqrt(1-p) I,          K1 = sqrt(p) Z
  depolarizing       rho -> (1-p) rho + p I/2
                     K0 = sqrt(1-3p/4) I,  K1..3 = sqrt(p/4) {X, Y, Z}
  phase_damping      K0 = diag(1, sqrt(1-g)),   K1 = diag(0, sqrt(g))
  amplitude_damping  K0 = diag(1, sqrt(1-g)),   K1 = sqrt(g) |0><1|
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import numpy as np

from svsim.engine import GateEngine
from svsim.errors import NormalizationError, ValidationError
from svsim.indexing import check_qubits, index_pairs
from svsim.measurement import sample_outcome

log = logging.getLogger(__name__)

_I = np.eye(2, dtype=np.complex128)
_X = np.array([[0, 1], [1, 0]], dtype=np.complex128)
_Y = np.array([[0, -1j], [1j, 0]], dtype=np.complex128)
_Z = np.array([[1, 0], [0, -1]], dtype=np.complex128)

NOISE_KINDS = ("bit_flip", "phase_flip", "depolarizing", "phase_damping", "amplitude_damping")


@dataclass(frozen=True)
class NoiseModel:
    kind: str
    parameter: float

    def __post_init__(self):
        if self.kind not in NOISE_KINDS:
            raise ValidationError(f"unknown noise kind {self.kind!r}, expected one of {NOISE_KINDS}")
        try:
            p = float(self.parameter)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"noise parameter must be a number, got {self.parameter!r}") from exc
        if not 0.0 <= p <= 1.0:
            raise ValidationError(f"noise parameter must lie in [0, 1], got {p!r}")
        object.__setattr__(self, "parameter", p)


def kraus_operators(model: NoiseModel) -> list[np.ndarray]:
    """Kraus set of ``model``; sum_k K_k^dagger K_k = I."""
    p = model.parameter
    if model.kind == "bit_flip":
        return [np.sqrt(1 - p) * _I, np.sqrt(p) * _X]
    if model.kind == "phase_flip":
        return [np.sqrt(1 - p) * _I, np.sqrt(p) * _Z]
    if model.kind == "depolarizing":
        q = np.sqrt(p / 4)
        return [np.sqrt(1 - 3 * p / 4) * _I, q * _X, q * _Y, q * _Z]
    if model.kind == "phase_damping":
        return [
            np.array([[1, 0], [0, np.sqrt(1 - p)]], dtype=np.complex128),
            np.array([[0, 0], [0, np.sqrt(p)]], dtype=np.complex128),
        ]
    if model.kind == "amplitude_damping":
        return [
            np.array([[1, 0], [0, np.sqrt(1 - p)]], dtype=np.complex128),
            np.array([[0, np.sqrt(p)], [0, 0]], dtype=np.complex128),
        ]
    raise ValidationError(f"unknown noise kind {model.kind!r}")


def reduced_density_matrix(psi: np.ndarray, n_qubits: int, qubit: int) -> np.ndarray:
    """2x2 reduced density matrix of one qubit of a pure state."""
    i0, i1 = index_pairs(n_qubits, qubit)
    a0, a1 = psi[i0], psi[i1]
    r01 = np.vdot(a1, a0)  # sum a0 * conj(a1)
    return np.array([
        [np.vdot(a0, a0).real, r01],
        [np.conj(r01), np.vdot(a1, a1).real],
    ], dtype=np.complex128)


def branch_probabilities(ops: Sequence[np.ndarray], rho: np.ndarray) -> np.ndarray:
    """p_k = Tr(K_k rho K_k^dagger)."""
    probs = np.array([np.trace(k @ rho @ k.conj().T).real for k in ops])
    return np.clip(probs, 0.0, None)


class NoiseChannel:
    """Applies one noise model to a register's buffer, one trajectory step at a time."""

    def __init__(self, model: NoiseModel, engine: GateEngine, rng: np.random.Generator):
        self.model = model
        self.engine = engine
        self.rng = rng
        self.operators = kraus_operators(model)

    def apply(self, qubits: Optional[Iterable[int]] = None) -> list[int]:
        """Sample and apply one branch per qubit.  Returns the chosen branch indices."""
        n = self.engine.n_qubits
        qubits = tuple(range(n)) if qubits is None else check_qubits(qubits, n, "noisy qubit")
        return [self._apply_one(q) for q in qubits]

    def _apply_one(self, qubit: int) -> int:
        if self.model.parameter == 0.0:
            return 0
        buf = self.engine.buffer
        rho = reduced_density_matrix(buf.raw, buf.n_qubits, qubit)
        probs = branch_probabilities(self.operators, rho)
        k = sample_outcome(probs, self.rng)
        p = float(probs[k])
        if p < buf.zero_atol:
            raise NormalizationError(
                f"{self.model.kind} branch {k} on qubit {qubit} has probability {p!r}"
            )
        op = self.operators[k] / np.sqrt(p)
        if not np.allclose(op, _I):
            self.engine.apply_operator(f"{self.model.kind}[{k}]", op, qubit)
        log.debug("%s on qubit %d: branch %d (p=%.6g)", self.model.kind, qubit, k, p)
        return k

"""Quantum register: the public state machine over one amplitude buffer.

    reg = QuantumRegister(2, config=SimulatorConfig(seed=7))
    reg.h(0).cnot(0, 1)
    reg.probabilities()          # [0.5, 0, 0, 0.5]
    reg.measure([0, 1]).bits     # (0, 0) or (1, 1)

Every operation is synchronous.  A register is not safe for concurrent use;
independent registers share nothing and may run in different threads.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence, Union

import numpy as np

from svsim.buffer import AmplitudeBuffer
from svsim.config import DEFAULT_CONFIG, SimulatorConfig
from svsim.dispatch import create_dispatcher
from svsim.engine import GateEngine
from svsim.errors import BackendError, ValidationError
from svsim.gates import Gate, gate_by_name
from svsim.indexing import check_qubits, ket
from svsim.measurement import (
    MeasurementOutcome, collapse, marginal_probabilities, measure, sample_counts,
)
from svsim.noise import NoiseChannel, NoiseModel

log = logging.getLogger(__name__)

GateLike = Union[Gate, str, np.ndarray, Sequence[Sequence[complex]]]
Qubits = Union[int, Iterable[int]]


def _as_tuple(qubits: Qubits) -> tuple:
    if isinstance(qubits, (int, np.integer)) and not isinstance(qubits, bool):
        return (int(qubits),)
    if isinstance(qubits, (str, bytes)):
        raise ValidationError(f"qubit indices must be ints, got {qubits!r}")
    try:
        return tuple(qubits)
    except TypeError as exc:
        raise ValidationError(f"qubit indices must be an int or a sequence of ints, got {qubits!r}") from exc


class QuantumRegister:
    """n qubits backed by a dense 2^n amplitude vector."""

    def __init__(
        self,
        qubit_count: int,
        initial_state: Optional[Sequence[complex]] = None,
        config: Optional[SimulatorConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.config = config or DEFAULT_CONFIG
        self._dispatcher = create_dispatcher(self.config)
        try:
            self._buffer = AmplitudeBuffer(
                qubit_count,
                self._dispatcher,
                dtype=self.config.np_dtype,
                initial=initial_state,
                norm_atol=self.config.norm_atol,
                zero_atol=self.config.zero_atol,
                max_qubits=self.config.max_qubits,
            )
        except Exception:
            self._dispatcher.close()
            raise
        self._n = self._buffer.n_qubits
        self._engine = GateEngine(self._buffer, self._dispatcher)
        self.rng = rng if rng is not None else np.random.default_rng(self.config.seed)
        self._noise: Optional[NoiseChannel] = None
        self._failure: Optional[BackendError] = None
        if self.config.noise is not None:
            self._noise = NoiseChannel(self.config.noise, self._engine, self.rng)
        log.info("register: %d qubits, backend=%s, dtype=%s",
                 self._n, self._dispatcher.name, self.config.dtype)

    # ── readout ─────────────────────────────────────────────────────

    @property
    def qubit_count(self) -> int:
        return self._n

    num_qubits = qubit_count

    def __len__(self) -> int:
        return self._n

    def amplitudes(self) -> np.ndarray:
        """Read-only copy of the full state vector."""
        self._check_usable()
        return self._buffer.snapshot()

    def amplitude(self, index: int) -> complex:
        self._check_usable()
        return self._buffer.get(index)

    def norm(self) -> float:
        self._check_usable()
        return self._buffer.norm()

    def probabilities(self, targets: Optional[Qubits] = None) -> np.ndarray:
        """Marginal distribution over ``targets`` (all qubits by default).  No collapse."""
        self._check_usable()
        targets = range(self._n) if targets is None else _as_tuple(targets)
        return marginal_probabilities(self._buffer, targets)

    def sample(self, shots: int, targets: Optional[Qubits] = None) -> dict[str, int]:
        """Outcome counts over ``shots`` draws, without collapsing the state."""
        self._check_usable()
        targets = range(self._n) if targets is None else _as_tuple(targets)
        return sample_counts(self._buffer, targets, shots, self.rng)

    # ── gates ───────────────────────────────────────────────────────

    def resolve_gate(self, gate: GateLike, **params) -> Gate:
        if isinstance(gate, Gate):
            if params:
                raise ValidationError("parameters are only accepted with a gate name")
            return gate
        if isinstance(gate, str):
            return gate_by_name(gate, **params)
        if params:
            raise ValidationError("parameters are only accepted with a gate name")
        return Gate.from_matrix(gate, atol=self.config.atol)

    def apply(self, gate: GateLike, targets: Qubits, controls: Qubits = (), **params) -> "QuantumRegister":
        """Apply a gate (object, library name or unitary matrix) to ``targets``.

        Controls restrict the update to basis states where every control
        qubit is 1.  Validation happens before the buffer is touched.
        """
        self._check_usable()
        g = self.resolve_gate(gate, **params)
        targets, controls = self._engine.validate(g, _as_tuple(targets), _as_tuple(controls))
        self._guarded(self._engine.apply, g, targets, controls)
        if self._noise is not None:
            self._guarded(self._noise.apply, controls + targets)
        return self

    def apply_all(self, gate: GateLike, **params) -> "QuantumRegister":
        self._check_usable()
        g = self.resolve_gate(gate, **params)
        if g.num_targets != 1 or g.num_controls:
            raise ValidationError(f"apply_all needs an uncontrolled 1-qubit gate, got {g.name!r}")
        for q in range(self._n):
            self.apply(g, q)
        return self

    def h(self, target: int):
        return self.apply("H", target)

    def x(self, target: int):
        return self.apply("X", target)

    def y(self, target: int):
        return self.apply("Y", target)

    def z(self, target: int):
        return self.apply("Z", target)

    def s(self, target: int):
        return self.apply("S", target)

    def t(self, target: int):
        return self.apply("T", target)

    def phase(self, angle: float, target: int):
        return self.apply("PHASE", target, phi=angle)

    def cnot(self, control: int, target: int):
        return self.apply("CNOT", target, control)

    def cz(self, control: int, target: int):
        return self.apply("CZ", target, control)

    def swap(self, a: int, b: int):
        return self.apply("SWAP", (a, b))

    def toffoli(self, control_a: int, control_b: int, target: int):
        return self.apply("TOFFOLI", target, (control_a, control_b))

    # ── measurement ─────────────────────────────────────────────────

    def measure(self, targets: Qubits) -> MeasurementOutcome:
        """Sample a joint outcome of ``targets``; the state collapses onto it."""
        self._check_usable()
        return self._guarded(measure, self._buffer, self._dispatcher, _as_tuple(targets), self.rng)

    def measure_all(self) -> MeasurementOutcome:
        return self.measure(range(self._n))

    def postselect(self, targets: Qubits, bits: Sequence[int]) -> float:
        """Force the outcome ``bits`` on ``targets``.  Returns its prior probability.

        Raises NormalizationError when that outcome is impossible.
        """
        self._check_usable()
        targets = check_qubits(_as_tuple(targets), self._n, "measured qubit")
        bits = tuple(bits)
        if len(bits) != len(targets) or any(b not in (0, 1) for b in bits):
            raise ValidationError(f"need one 0/1 bit per target, got {bits}")
        value = sum(b << m for m, b in enumerate(bits))
        p = float(marginal_probabilities(self._buffer, targets)[value])
        self._guarded(collapse, self._buffer, self._dispatcher, targets, value, p)
        return p

    # ── noise ───────────────────────────────────────────────────────

    @property
    def noise_model(self) -> Optional[NoiseModel]:
        return self._noise.model if self._noise is not None else None

    def set_noise_model(self, kind: Optional[Union[str, NoiseModel]], parameter: float = 0.0) -> None:
        """Enable a noise channel after every gate; ``None`` disables noise."""
        if kind is None:
            self._noise = None
            return
        model = kind if isinstance(kind, NoiseModel) else NoiseModel(kind, parameter)
        self._noise = NoiseChannel(model, self._engine, self.rng)
        log.info("noise model set: %s(%g)", model.kind, model.parameter)

    def decohere(self, qubits: Optional[Qubits] = None) -> list[int]:
        """Apply the configured noise channel once.  Returns the sampled branch per qubit."""
        self._check_usable()
        if self._noise is None:
            raise ValidationError("no noise model configured")
        qubits = None if qubits is None else _as_tuple(qubits)
        return self._guarded(self._noise.apply, qubits)

    # ── lifecycle ───────────────────────────────────────────────────

    def reset(self) -> "QuantumRegister":
        self._check_usable()
        self._buffer.reset()
        return self

    def close(self) -> None:
        self._dispatcher.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

    def _check_usable(self) -> None:
        if self._failure is not None:
            raise BackendError(f"register unusable after backend failure: {self._failure}")

    def _guarded(self, fn, *args):
        try:
            return fn(*args)
        except BackendError as exc:
            self._failure = exc
            log.warning("register poisoned by backend failure: %s", exc)
            raise

    def __repr__(self) -> str:
        return f"QuantumRegister(qubit_count={self._n}, backend={self._dispatcher.name!r})"

    def __str__(self) -> str:
        if self._failure is not None:
            return repr(self)
        amps = self._buffer.raw
        parts = [
            f"({a.real:+.4f}{a.imag:+.4f}j){ket(i, self._n)}"
            for i, a in enumerate(amps)
            if abs(a) > 1e-12
        ]
        return " + ".join(parts) if parts else "0"

"""Marginal probabilities, sampling and projective collapse.

Outcomes for targets [t_0, t_1, ...] are encoded little-endian: bit m of
the outcome value is the measured value of t_m.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from svsim.buffer import AmplitudeBuffer
from svsim.dispatch.base import Dispatcher, KernelDescriptor
from svsim.errors import NormalizationError, ValidationError
from svsim.indexing import INDEX_DTYPE, check_qubits, code_to_bits, outcome_codes

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class MeasurementOutcome:
    """Result of one measurement call.  ``bits[m]`` belongs to ``targets[m]``."""

    targets: tuple[int, ...]
    bits: tuple[int, ...]
    value: int
    probability: float

    @property
    def bitstring(self) -> str:
        """Highest target first, as in ket notation."""
        return "".join(str(b) for b in reversed(self.bits))

    def __getitem__(self, qubit: int) -> int:
        return self.bits[self.targets.index(qubit)]


def _targets(buffer: AmplitudeBuffer, targets: Sequence[int]) -> tuple[int, ...]:
    targets = check_qubits(targets, buffer.n_qubits, "measured qubit")
    if not targets:
        raise ValidationError("at least one qubit must be measured")
    return targets


def marginal_probabilities(buffer: AmplitudeBuffer, targets: Sequence[int]) -> np.ndarray:
    """Distribution over the 2^|targets| joint outcomes.  Does not touch the state."""
    targets = _targets(buffer, targets)
    # float64 at any buffer precision
    probs = buffer.probabilities().astype(np.float64)
    if targets == tuple(range(buffer.n_qubits)):
        return probs
    codes = outcome_codes(np.arange(len(probs), dtype=INDEX_DTYPE), targets)
    return np.bincount(codes, weights=probs, minlength=1 << len(targets))


def sample_outcome(probs: np.ndarray, rng: np.random.Generator) -> int:
    """Draw one outcome value from a (possibly slightly unnormalised) distribution."""
    cdf = np.cumsum(probs)
    total = cdf[-1]
    r = rng.random() * total
    value = int(np.searchsorted(cdf, r, side="right"))
    value = min(value, len(probs) - 1)
    # rounding can land on a zero-width bin at the top; step back to a real one
    while probs[value] <= 0.0 and value > 0:
        value -= 1
    return value


def _collapse_kernel(targets: tuple[int, ...], value: int, factor: float):
    def body(psi: np.ndarray, units: np.ndarray) -> None:
        keep = outcome_codes(units, targets) == value
        psi[units] = np.where(keep, psi[units] * factor, 0)

    return body


def collapse(buffer: AmplitudeBuffer, dispatcher: Dispatcher, targets: Sequence[int],
             value: int, probability: float) -> None:
    """Project onto ``value`` of ``targets`` and renormalise by 1/sqrt(probability)."""
    if probability < buffer.zero_atol:
        raise NormalizationError(
            f"outcome {value} on qubits {tuple(targets)} has probability {probability!r}"
        )
    kernel = KernelDescriptor(
        "collapse", _collapse_kernel(tuple(targets), value, 1.0 / np.sqrt(probability)), buffer.raw,
    )
    dispatcher.execute(kernel, range(len(buffer)))


def measure(buffer: AmplitudeBuffer, dispatcher: Dispatcher, targets: Sequence[int],
            rng: np.random.Generator) -> MeasurementOutcome:
    """Sample a joint outcome of ``targets`` and collapse the state onto it."""
    targets = _targets(buffer, targets)
    probs = marginal_probabilities(buffer, targets)
    value = sample_outcome(probs, rng)
    p = float(probs[value])
    collapse(buffer, dispatcher, targets, value, p)
    outcome = MeasurementOutcome(targets, code_to_bits(value, len(targets)), value, p)
    log.debug("measured %s -> %s (p=%.6g)", targets, outcome.bitstring, p)
    return outcome


def sample_counts(buffer: AmplitudeBuffer, targets: Sequence[int], shots: int,
                  rng: np.random.Generator) -> dict[str, int]:
    """Repeated sampling without collapse.  Keys are bitstrings, highest target first."""
    if isinstance(shots, bool) or not isinstance(shots, (int, np.integer)) or shots < 1:
        raise ValidationError(f"shots must be a positive int, got {shots!r}")
    targets = _targets(buffer, targets)
    probs = marginal_probabilities(buffer, targets)
    probs = probs / probs.sum()
    draws = rng.multinomial(int(shots), probs)
    width = len(targets)
    return {
        format(value, f"0{width}b"): int(count)
        for value, count in enumerate(draws)
        if count
    }

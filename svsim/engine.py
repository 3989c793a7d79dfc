"""Gate application engine: gather -> GEMM -> scatter over index groups.

For a k-target gate with c controls on n qubits, the index space splits
into 2^(n-k-c) independent groups of 2^k amplitudes each (control bits
fixed to 1, target bits enumerated).  Each group is one unit of work:

    base  = deposit(unit, zeros at target bits, ones at control bits)
    group = base + offsets            (offsets enumerate the target bits)
    psi[group] = U @ psi[group]

Groups never share an index, so a dispatch may run them in any order.
Indices whose control bits are not all set belong to no group and are left
untouched.  A single target with no controls degenerates to the 2^(n-1)
index pairs {i, i ^ (1 << k)}.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from svsim.buffer import AmplitudeBuffer
from svsim.dispatch.base import Dispatcher, KernelDescriptor
from svsim.errors import ValidationError
from svsim.gates import Gate
from svsim.indexing import bit_mask, check_qubits, deposit_bits, group_offsets

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatePlan:
    """Everything a kernel needs, resolved before dispatch."""

    name: str
    matrix: np.ndarray
    targets: tuple[int, ...]
    controls: tuple[int, ...]
    fixed: tuple[int, ...]
    control_mask: int
    offsets: np.ndarray
    n_units: int


def make_plan(name: str, matrix: np.ndarray, targets: Sequence[int],
              controls: Sequence[int], n_qubits: int, dtype) -> GatePlan:
    targets, controls = tuple(targets), tuple(controls)
    fixed = tuple(sorted(targets + controls))
    return GatePlan(
        name=name,
        matrix=np.ascontiguousarray(matrix, dtype=dtype),
        targets=targets,
        controls=controls,
        fixed=fixed,
        control_mask=bit_mask(controls),
        offsets=group_offsets(targets),
        n_units=1 << (n_qubits - len(fixed)),
    )


def group_indices(plan: GatePlan, units: np.ndarray) -> np.ndarray:
    """(2^k, M) index matrix: column j holds the group of unit ``units[j]``."""
    base = deposit_bits(units, plan.fixed, plan.control_mask)
    return base[None, :] + plan.offsets[:, None]


def _matrix_kernel(plan: GatePlan):
    U = plan.matrix

    def body(psi: np.ndarray, units: np.ndarray) -> None:
        idx = group_indices(plan, units)
        v = psi[idx]  # gather: copy, so the scatter below cannot alias its inputs
        psi[idx] = U @ v

    return body


class GateEngine:
    """Applies gates to one buffer through one dispatcher."""

    def __init__(self, buffer: AmplitudeBuffer, dispatcher: Dispatcher):
        self.buffer = buffer
        self.dispatcher = dispatcher

    @property
    def n_qubits(self) -> int:
        return self.buffer.n_qubits

    def validate(self, gate: Gate, targets: Sequence[int], controls: Sequence[int] = ()):
        """Check qubit indices against ``gate``.  Returns (targets, controls) as int tuples."""
        n = self.n_qubits
        targets = check_qubits(targets, n, "target")
        controls = check_qubits(controls, n, "control")
        if not targets:
            raise ValidationError("at least one target qubit is required")
        overlap = set(targets) & set(controls)
        if overlap:
            raise ValidationError(f"qubits {sorted(overlap)} are both target and control")
        if gate.num_targets != len(targets):
            raise ValidationError(
                f"gate {gate.name!r} acts on {gate.num_targets} target(s), got {len(targets)}"
            )
        if gate.num_controls and len(controls) != gate.num_controls:
            raise ValidationError(
                f"gate {gate.name!r} needs {gate.num_controls} control(s), got {len(controls)}"
            )
        return targets, controls

    def apply(self, gate: Gate, targets: Sequence[int], controls: Sequence[int] = ()) -> None:
        """Apply ``gate`` in place.  Blocks until the buffer reflects the full update."""
        targets, controls = self.validate(gate, targets, controls)
        plan = make_plan(gate.name, gate.matrix, targets, controls, self.n_qubits, self.buffer.dtype)
        self._dispatch(plan)

    def apply_operator(self, name: str, operator: np.ndarray, target: int) -> None:
        """Apply an arbitrary 2x2 operator (no unitarity check).

        Used for Kraus branches; the caller owns normalisation.
        """
        (target,) = check_qubits((target,), self.n_qubits, "target")
        operator = np.asarray(operator, dtype=np.complex128)
        if operator.shape != (2, 2):
            raise ValidationError(f"operator {name!r} must be 2x2, got {operator.shape}")
        plan = make_plan(name, operator, (target,), (), self.n_qubits, self.buffer.dtype)
        self._dispatch(plan)

    def _dispatch(self, plan: GatePlan) -> None:
        log.debug("apply %s targets=%s controls=%s (%d units)",
                  plan.name, plan.targets, plan.controls, plan.n_units)
        kernel = KernelDescriptor(plan.name, _matrix_kernel(plan), self.buffer.raw)
        self.dispatcher.execute(kernel, range(plan.n_units))

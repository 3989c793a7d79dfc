"""Index arithmetic over the 2^n amplitude space.

Endianness convention: LITTLE-ENDIAN.
  qubit k = bit k of the state-vector index (qubit 0 = LSB).
  |q_{n-1} ... q_1 q_0>  has index  q_0 + 2*q_1 + ... + 2^{n-1}*q_{n-1}.

Sub-space order for gates and joint outcomes: for targets [t_0, t_1, ...],
t_m is bit m of the sub-space index.  So a 4x4 matrix on targets [a, b]
has row/col 1 -> (a=1, b=0) and row/col 2 -> (a=0, b=1).
"""
from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np

from svsim.errors import ValidationError

ENDIANNESS = "little"
INDEX_DTYPE = np.int64


def check_qubits(qubits: Iterable, n: int, what: str = "qubit") -> tuple[int, ...]:
    """Validate qubit indices against an n-qubit register.  Returns them as ints."""
    out = []
    for q in qubits:
        if isinstance(q, (bool, np.bool_)) or not isinstance(q, (int, np.integer)):
            raise ValidationError(f"{what} index must be int, got {q!r}")
        q = int(q)
        if q < 0 or q >= n:
            raise ValidationError(f"{what} {q} out of range [0, {n})")
        out.append(q)
    if len(set(out)) != len(out):
        raise ValidationError(f"duplicate {what} indices in {out}")
    return tuple(out)


def bit_mask(qubits: Iterable[int]) -> int:
    mask = 0
    for q in qubits:
        mask |= 1 << q
    return mask


def deposit_bits(units: np.ndarray, fixed_positions: Sequence[int], fixed_mask: int = 0) -> np.ndarray:
    """Spread unit ids over the free bit positions of an amplitude index.

    Each position in ``fixed_positions`` gets a zero bit inserted; the
    result is then OR-ed with ``fixed_mask`` (used to force control bits
    to 1).  Unit u in [0, 2^(n - len(fixed_positions))) maps to a distinct
    base index, so the units partition the index space.
    """
    idx = np.asarray(units, dtype=INDEX_DTYPE)
    for pos in sorted(fixed_positions):
        low = idx & ((1 << pos) - 1)
        idx = ((idx >> pos) << (pos + 1)) | low
    if fixed_mask:
        idx = idx | fixed_mask
    return idx


def group_offsets(targets: Sequence[int]) -> np.ndarray:
    """Offsets of the 2^k members of a target group relative to its base index."""
    k = len(targets)
    offsets = np.zeros(1 << k, dtype=INDEX_DTYPE)
    for j in range(1 << k):
        for m, t in enumerate(targets):
            if (j >> m) & 1:
                offsets[j] |= 1 << t
    return offsets


def index_pairs(n: int, qubit: int) -> tuple[np.ndarray, np.ndarray]:
    """The 2^(n-1) disjoint pairs (i0, i1) with bit ``qubit`` clear in i0 and set in i1."""
    N = 1 << n
    step = 1 << qubit
    block = step << 1
    base = np.arange(0, N, block, dtype=INDEX_DTYPE)
    off = np.arange(step, dtype=INDEX_DTYPE)
    idx0 = (base[:, None] + off[None, :]).ravel()
    return idx0, idx0 + step


def outcome_codes(indices: np.ndarray, targets: Sequence[int]) -> np.ndarray:
    """Joint outcome of ``targets`` (little-endian over targets) for each amplitude index."""
    indices = np.asarray(indices, dtype=INDEX_DTYPE)
    codes = np.zeros(indices.shape, dtype=INDEX_DTYPE)
    for m, t in enumerate(targets):
        codes |= ((indices >> t) & 1) << m
    return codes


def code_to_bits(code: int, width: int) -> tuple[int, ...]:
    return tuple((code >> m) & 1 for m in range(width))


def ket(index: int, n: int) -> str:
    """Ket label, most significant qubit first: index 1 of 3 qubits -> '|001>'."""
    return "|" + format(index, f"0{n}b") + ">"

"""Gate values and the canonical gate library.

Convention:
  1-qubit gates: 2x2 complex128 matrix.
  k-qubit gates: 2^k x 2^k matrix in *little-endian* sub-space order over
  the targets passed at application time (targets[0] = bit 0).
  Controlled gates store only the target matrix plus ``num_controls``;
  the engine restricts the update to indices whose control bits are set.
"""
from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from svsim.errors import ValidationError

UNITARY_ATOL = 1e-10

_S2 = 1.0 / np.sqrt(2.0)


def _mat(*rows):
    return np.array(rows, dtype=np.complex128)


def is_unitary(matrix: np.ndarray, atol: float = UNITARY_ATOL) -> bool:
    m = np.asarray(matrix)
    eye = np.eye(m.shape[0], dtype=np.complex128)
    return bool(np.allclose(m.conj().T @ m, eye, atol=atol, rtol=0.0))


def _check_square_pow2(m: np.ndarray, name: str) -> int:
    if m.ndim != 2 or m.shape[0] != m.shape[1]:
        raise ValidationError(f"gate {name!r}: matrix must be square, got shape {m.shape}")
    dim = m.shape[0]
    if dim < 2 or dim & (dim - 1):
        raise ValidationError(f"gate {name!r}: dimension {dim} is not a power of two >= 2")
    if not np.all(np.isfinite(m)):
        raise ValidationError(f"gate {name!r}: matrix has non-finite entries")
    return dim.bit_length() - 1


@dataclass(frozen=True, eq=False)
class Gate:
    """A unitary acting on ``num_targets`` qubits, optionally requiring controls.

    The matrix is copied, checked for unitarity and frozen on construction.
    """

    name: str
    matrix: np.ndarray
    num_controls: int = 0
    atol: float = field(default=UNITARY_ATOL, repr=False)

    def __post_init__(self):
        try:
            m = np.array(self.matrix, dtype=np.complex128)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"gate {self.name!r}: matrix is not numeric") from exc
        _check_square_pow2(m, self.name)
        if not is_unitary(m, self.atol):
            raise ValidationError(f"gate {self.name!r}: matrix is not unitary (U^dagger U != I)")
        if self.num_controls < 0:
            raise ValidationError(f"gate {self.name!r}: num_controls must be >= 0")
        m.setflags(write=False)
        object.__setattr__(self, "matrix", m)

    @classmethod
    def from_matrix(cls, matrix, name: str = "custom", atol: float = UNITARY_ATOL) -> "Gate":
        return cls(name, matrix, atol=atol)

    @property
    def num_targets(self) -> int:
        return self.matrix.shape[0].bit_length() - 1

    @property
    def num_qubits(self) -> int:
        return self.num_targets + self.num_controls

    def dagger(self) -> "Gate":
        return Gate(f"{self.name}_dg", self.matrix.conj().T, self.num_controls, self.atol)

    def controlled(self, k: int = 1) -> "Gate":
        if k < 1:
            raise ValidationError("controlled() needs k >= 1")
        return Gate("C" * k + self.name, self.matrix, self.num_controls + k, self.atol)

    def power(self, exponent: int) -> "Gate":
        if isinstance(exponent, bool) or not isinstance(exponent, (int, np.integer)):
            raise ValidationError(f"gate {self.name!r}: power needs an int exponent, got {exponent!r}")
        base = self.matrix if exponent >= 0 else self.matrix.conj().T
        m = np.linalg.matrix_power(base, abs(int(exponent)))
        return Gate(f"{self.name}^{exponent}", m, self.num_controls, self.atol)

    def __eq__(self, other):
        if not isinstance(other, Gate):
            return NotImplemented
        return (
            self.num_controls == other.num_controls
            and self.matrix.shape == other.matrix.shape
            and np.allclose(self.matrix, other.matrix, atol=self.atol, rtol=0.0)
        )

    def __hash__(self):
        return hash((self.num_controls, self.matrix.shape))

    def __str__(self):
        rows = ", ".join("[" + ", ".join(f"{v:.4g}" for v in row) + "]" for row in self.matrix)
        prefix = f"{self.name}" if not self.num_controls else f"{self.name} ({self.num_controls} ctrl)"
        return f"{prefix}: [{rows}]"


# ── 1-qubit fixed ───────────────────────────────────────────────────
def I():
    return Gate("I", _mat([1, 0], [0, 1]))

def H():
    return Gate("H", _mat([_S2, _S2], [_S2, -_S2]))

def NEGH():
    return Gate("NEGH", _mat([-_S2, -_S2], [-_S2, _S2]))

def X():
    return Gate("X", _mat([0, 1], [1, 0]))

def Y():
    return Gate("Y", _mat([0, -1j], [1j, 0]))

def Z():
    return Gate("Z", _mat([1, 0], [0, -1]))

def S():
    return Gate("S", _mat([1, 0], [0, 1j]))

def SDG():
    return Gate("SDG", _mat([1, 0], [0, -1j]))

def T():
    return Gate("T", _mat([1, 0], [0, np.exp(1j * np.pi / 4)]))

def TDG():
    return Gate("TDG", _mat([1, 0], [0, np.exp(-1j * np.pi / 4)]))

def SX():
    return Gate("SX", 0.5 * _mat([1 + 1j, 1 - 1j], [1 - 1j, 1 + 1j]))


# ── 1-qubit parameterised ──────────────────────────────────────────
def RX(theta: float):
    c, s = np.cos(theta / 2), np.sin(theta / 2)
    return Gate("RX", _mat([c, -1j * s], [-1j * s, c]))

def RY(theta: float):
    c, s = np.cos(theta / 2), np.sin(theta / 2)
    return Gate("RY", _mat([c, -s], [s, c]))

def RZ(theta: float):
    return Gate("RZ", _mat([np.exp(-0.5j * theta), 0], [0, np.exp(0.5j * theta)]))

def PHASE(phi: float):
    return Gate("PHASE", _mat([1, 0], [0, np.exp(1j * phi)]))

def R(k: int):
    return Gate(f"R{k}", _mat([1, 0], [0, np.exp(2j * np.pi / 2**k)]))

def U3(theta: float, phi: float, lam: float):
    c, s = np.cos(theta / 2), np.sin(theta / 2)
    return Gate("U3", _mat(
        [c, -np.exp(1j * lam) * s],
        [np.exp(1j * phi) * s, np.exp(1j * (phi + lam)) * c],
    ))


# ── multi-qubit fixed ───────────────────────────────────────────────
def CNOT():
    return Gate("CNOT", X().matrix, num_controls=1)

def CY():
    return Gate("CY", Y().matrix, num_controls=1)

def CZ():
    return Gate("CZ", Z().matrix, num_controls=1)

def TOFFOLI():
    return Gate("TOFFOLI", X().matrix, num_controls=2)

def SWAP():
    return Gate("SWAP", _mat([1, 0, 0, 0], [0, 0, 1, 0], [0, 1, 0, 0], [0, 0, 0, 1]))


# ── dispatcher ──────────────────────────────────────────────────────
_FIXED = {
    "I": I, "ID": I, "H": H, "NEGH": NEGH, "X": X, "Y": Y, "Z": Z,
    "S": S, "SDG": SDG, "T": T, "TDG": TDG, "SX": SX,
    "CNOT": CNOT, "CX": CNOT, "CY": CY, "CZ": CZ,
    "TOFFOLI": TOFFOLI, "CCX": TOFFOLI, "SWAP": SWAP,
}
_PARAM = {
    "RX": (RX, ("theta",)),
    "RY": (RY, ("theta",)),
    "RZ": (RZ, ("theta",)),
    "PHASE": (PHASE, ("phi",)),
    "P": (PHASE, ("phi",)),
    "R": (R, ("k",)),
    "U3": (U3, ("theta", "phi", "lam")),
}

GATE_NAMES = frozenset(_FIXED) | frozenset(_PARAM)


def gate_by_name(name: str, **params) -> Gate:
    """Return the gate for a library name.  Raises ValidationError on bad input."""
    key = name.upper()
    if key in _FIXED:
        if params:
            raise ValidationError(f"gate {name!r} takes no parameters, got {sorted(params)}")
        return _FIXED[key]()
    if key in _PARAM:
        fn, names = _PARAM[key]
        missing = [p for p in names if p not in params]
        if missing:
            raise ValidationError(f"gate {name!r} requires param(s) {missing}")
        extra = set(params) - set(names)
        if extra:
            raise ValidationError(f"gate {name!r}: unknown params {sorted(extra)}")
        return fn(*(params[p] for p in names))
    raise ValidationError(f"unknown gate {name!r}")

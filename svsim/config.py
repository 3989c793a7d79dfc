"""
Configuration for the state-vector simulator.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Optional

import numpy as np

from svsim.errors import ValidationError

if TYPE_CHECKING:
    from svsim.noise import NoiseModel


BACKENDS = ("sequential", "threaded")
DTYPES = ("complex128", "complex64")


@dataclass(frozen=True)
class SimulatorConfig:
    """Configuration for one quantum register."""

    # Compute dispatch
    backend: str = "sequential"
    workers: Optional[int] = None  # threaded backend only; None -> os.cpu_count()
    chunk_units: int = 1 << 14  # units of work per dispatched chunk

    # Numerics
    dtype: str = "complex128"
    atol: float = 1e-10  # unitarity check
    norm_atol: float = 1e-8  # total probability check
    zero_atol: float = 1e-12  # probability treated as zero (collapse, noise branch, renormalise)

    # Capacity
    max_qubits: int = 30

    # Randomness (measurement sampling, noise trajectories)
    seed: Optional[int] = None

    # Noise is off unless a model is given
    noise: Optional["NoiseModel"] = None

    def __post_init__(self):
        if self.backend not in BACKENDS:
            raise ValidationError(f"unknown backend {self.backend!r}, expected one of {BACKENDS}")
        if self.dtype not in DTYPES:
            raise ValidationError(f"unsupported dtype {self.dtype!r}, expected one of {DTYPES}")
        if self.workers is not None and self.workers < 1:
            raise ValidationError(f"workers must be >= 1, got {self.workers}")
        if self.chunk_units < 1:
            raise ValidationError(f"chunk_units must be >= 1, got {self.chunk_units}")
        if self.max_qubits < 1:
            raise ValidationError(f"max_qubits must be >= 1, got {self.max_qubits}")
        if self.atol <= 0 or self.norm_atol <= 0 or self.zero_atol <= 0:
            raise ValidationError("tolerances must be positive")

    @property
    def np_dtype(self) -> np.dtype:
        return np.dtype(self.dtype)

    @property
    def worker_count(self) -> int:
        return self.workers or os.cpu_count() or 1

    def with_options(self, **changes) -> "SimulatorConfig":
        """Copy with some fields replaced (validated again)."""
        return replace(self, **changes)


# Default configuration instance
DEFAULT_CONFIG = SimulatorConfig()

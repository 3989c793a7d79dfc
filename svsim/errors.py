"""Exception hierarchy for the simulator.

Every public failure is one of these.  Each also derives from the builtin
exception a caller would expect (ValueError, MemoryError, ...) so plain
``except ValueError`` handlers keep working.
"""
from __future__ import annotations


class SimulatorError(Exception):
    """Base class for all simulator failures."""


class ValidationError(SimulatorError, ValueError):
    """Bad input detected before any amplitude is touched."""


class CapacityError(SimulatorError, MemoryError):
    """2^n amplitudes cannot be allocated."""


class NormalizationError(SimulatorError, ArithmeticError):
    """Renormalisation onto a branch whose probability is numerically zero."""


class BackendError(SimulatorError, RuntimeError):
    """A dispatcher failed to run a kernel.  Buffer contents are undefined."""

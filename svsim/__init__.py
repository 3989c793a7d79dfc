"""svsim: dense state-vector quantum register simulator.

Qubit k is bit k of the amplitude index (little-endian).
"""
from svsim.config import DEFAULT_CONFIG, SimulatorConfig
from svsim.errors import (
    BackendError, CapacityError, NormalizationError, SimulatorError, ValidationError,
)
from svsim.gates import Gate, gate_by_name
from svsim.logging_config import get_logger, setup_logging
from svsim.measurement import MeasurementOutcome
from svsim.noise import NoiseModel
from svsim.register import QuantumRegister

__version__ = "0.1.0"

__all__ = [
    "QuantumRegister", "Gate", "gate_by_name", "MeasurementOutcome", "NoiseModel",
    "SimulatorConfig", "DEFAULT_CONFIG",
    "SimulatorError", "ValidationError", "CapacityError", "NormalizationError", "BackendError",
    "setup_logging", "get_logger",
]

"""Configuration validation and the package logger."""
import logging

import numpy as np
import pytest

from svsim.config import DEFAULT_CONFIG, SimulatorConfig
from svsim.dispatch import SequentialDispatcher, ThreadedDispatcher, create_dispatcher
from svsim.errors import ValidationError
from svsim.logging_config import ROOT_LOGGER, get_logger, setup_logging
from svsim.noise import NoiseModel


class TestConfig:
    def test_defaults(self):
        assert DEFAULT_CONFIG.backend == "sequential"
        assert DEFAULT_CONFIG.np_dtype == np.complex128
        assert DEFAULT_CONFIG.noise is None
        assert DEFAULT_CONFIG.worker_count >= 1

    @pytest.mark.parametrize("field,value", [
        ("backend", "gpu"),
        ("dtype", "float64"),
        ("workers", 0),
        ("chunk_units", 0),
        ("max_qubits", 0),
        ("atol", 0.0),
        ("norm_atol", -1e-9),
        ("zero_atol", 0.0),
    ])
    def test_rejects_bad_values(self, field, value):
        with pytest.raises(ValidationError):
            SimulatorConfig(**{field: value})

    def test_with_options_revalidates(self):
        cfg = DEFAULT_CONFIG.with_options(backend="threaded", workers=2)
        assert cfg.backend == "threaded" and cfg.workers == 2
        assert DEFAULT_CONFIG.backend == "sequential"
        with pytest.raises(ValidationError):
            cfg.with_options(backend="mpi")

    def test_noise_in_config(self):
        cfg = SimulatorConfig(noise=NoiseModel("phase_flip", 0.1))
        assert cfg.noise.parameter == 0.1

    def test_create_dispatcher(self):
        with create_dispatcher(DEFAULT_CONFIG) as d:
            assert isinstance(d, SequentialDispatcher)
        cfg = SimulatorConfig(backend="threaded", workers=3, chunk_units=8)
        with create_dispatcher(cfg) as d:
            assert isinstance(d, ThreadedDispatcher)
            assert d.workers == 3 and d.chunk_units == 8


@pytest.fixture
def restore_root_logger():
    logger = logging.getLogger(ROOT_LOGGER)
    handlers, level = list(logger.handlers), logger.level
    yield
    for h in logger.handlers:
        h.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)


class TestLogging:
    def test_get_logger_names(self):
        assert get_logger("engine").name == "svsim.engine"
        assert get_logger("svsim.engine").name == "svsim.engine"
        assert get_logger("svsim").name == "svsim"

    def test_setup_logging_writes_file(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "sim.log"
        logger = setup_logging(logging.DEBUG, log_file=log_file, format_string="%(name)s|%(message)s")
        assert logger.name == ROOT_LOGGER
        assert len(logger.handlers) == 2
        get_logger("engine").debug("hello %d", 3)
        for h in logger.handlers:
            h.flush()
        assert "svsim.engine|hello 3" in log_file.read_text()

    def test_setup_logging_is_idempotent(self, restore_root_logger):
        setup_logging(logging.WARNING)
        logger = setup_logging(logging.WARNING)
        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING

    def test_level_by_name_and_thread_in_format(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "sim.log"
        logger = setup_logging("DEBUG", log_file=log_file)
        assert logger.level == logging.DEBUG
        get_logger("dispatch").debug("chunk done")
        for h in logger.handlers:
            h.flush()
        text = log_file.read_text()
        assert "svsim.dispatch - DEBUG - [MainThread] chunk done" in text

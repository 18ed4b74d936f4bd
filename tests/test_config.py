"""Tests for qengine.config: defaults, validation and environment parsing."""

import pytest

from qengine.config import SimulatorConfig
from qengine.exceptions import ValidationError


def test_defaults():
    config = SimulatorConfig()
    assert config.num_workers == 4
    assert config.memory_limit_bytes == 1024 * 1024 * 1024
    assert config.norm_tolerance == 1e-6
    assert config.default_shots == 1024
    assert config.seed is None


@pytest.mark.parametrize("kwargs", [
    {"num_workers": 0},
    {"memory_limit_bytes": 0},
    {"norm_tolerance": 0.0},
    {"norm_tolerance": 1.0},
    {"default_shots": -1},
    {"poll_interval": 0},
])
def test_invalid_values(kwargs):
    with pytest.raises(ValidationError):
        SimulatorConfig(**kwargs)


def test_from_env():
    config = SimulatorConfig.from_env({
        "QENGINE_NUM_WORKERS": "8",
        "QENGINE_MEMORY_LIMIT_MB": "64",
        "QENGINE_NORM_TOLERANCE": "1e-8",
        "QENGINE_SEED": "99",
    })
    assert config.num_workers == 8
    assert config.memory_limit_bytes == 64 * 1024 * 1024
    assert config.norm_tolerance == 1e-8
    assert config.seed == 99


def test_from_env_ignores_blank_and_unset():
    config = SimulatorConfig.from_env({"QENGINE_NUM_WORKERS": "  "})
    assert config == SimulatorConfig()


def test_from_env_reads_process_environment(monkeypatch):
    monkeypatch.setenv("QENGINE_NUM_WORKERS", "3")
    assert SimulatorConfig.from_env().num_workers == 3


def test_from_env_parse_error():
    with pytest.raises(ValidationError, match="QENGINE_NUM_WORKERS"):
        SimulatorConfig.from_env({"QENGINE_NUM_WORKERS": "many"})


def test_from_env_range_error():
    with pytest.raises(ValidationError):
        SimulatorConfig.from_env({"QENGINE_NUM_WORKERS": "0"})

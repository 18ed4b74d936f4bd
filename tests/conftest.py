"""Shared fixtures for the qengine test suite."""

import threading

import numpy as np
import pytest

from qengine import Simulator, SimulatorConfig


class HoldingNoise:
    """Noise provider that parks every job in RUNNING until released."""

    def __init__(self, inner):
        self.inner = inner
        self.started = threading.Event()
        self.release = threading.Event()

    def __call__(self):
        self.started.set()
        self.release.wait(10)
        return self.inner()


@pytest.fixture
def sim():
    """A two-worker simulator with a fixed seed and fast polling."""
    simulator = Simulator(SimulatorConfig(num_workers=2, seed=1234, poll_interval=0.005))
    yield simulator
    simulator.shutdown()


@pytest.fixture
def held_sim():
    """A one-worker simulator whose jobs block in RUNNING until ``held_sim.hold.release`` is set."""
    simulator = Simulator(SimulatorConfig(num_workers=1, seed=99, poll_interval=0.005))
    hold = HoldingNoise(simulator._scheduler._noise_provider)
    simulator._scheduler._noise_provider = hold
    simulator.hold = hold
    yield simulator
    hold.release.set()
    simulator.shutdown()


@pytest.fixture
def rng():
    return np.random.default_rng(42)

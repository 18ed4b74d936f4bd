"""Noise model.

A single :class:`NoiseModel` instance belongs to each simulator. It has two
effects when ``enabled``:

* Gate errors: after every gate the worker samples a Pauli error on each
  target qubit (bit flip → X, phase flip → Z, depolarization → X, Y or Z
  with equal weight). Pauli errors are unitary, so the state norm is
  preserved.
* Readout errors: the measurement sampler flips a sampled 0 to 1 with
  ``readout_error_0to1`` and a 1 to 0 with ``readout_error_1to0``.

Gate errors are drawn once per job (one trajectory); all shots of that job
then re-sample the same final state.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass

import numpy as np

from .exceptions import ValidationError
from .gates import Gate, GateType
from .statevector import QuantumState, apply_single_qubit_gate

logger = logging.getLogger(__name__)

_PAULI_X = np.array([[0, 1], [1, 0]], dtype=np.complex128)
_PAULI_Y = np.array([[0, -1j], [1j, 0]], dtype=np.complex128)
_PAULI_Z = np.array([[1, 0], [0, -1]], dtype=np.complex128)
_DEPOLARIZING_PAULIS = (_PAULI_X, _PAULI_Y, _PAULI_Z)


@dataclass(frozen=True)
class NoiseModel:
    """Process noise rates. Defaults mirror the stock simulator profile."""

    name: str = "default"
    depolarization_rate: float = 0.001
    bit_flip_rate: float = 0.0005
    phase_flip_rate: float = 0.0005
    readout_error_0to1: float = 0.01
    readout_error_1to0: float = 0.015
    enabled: bool = False

    def __post_init__(self) -> None:
        for f in dataclasses.fields(self):
            if f.name in ("name", "enabled"):
                continue
            value = getattr(self, f.name)
            if not 0.0 <= value <= 1.0:
                raise ValidationError(f"{f.name} must be in [0, 1], got {value}")

    @classmethod
    def ideal(cls) -> "NoiseModel":
        """All rates zero, disabled."""
        return cls(
            name="ideal",
            depolarization_rate=0.0,
            bit_flip_rate=0.0,
            phase_flip_rate=0.0,
            readout_error_0to1=0.0,
            readout_error_1to0=0.0,
            enabled=False,
        )

    def with_enabled(self, enabled: bool) -> "NoiseModel":
        return dataclasses.replace(self, enabled=enabled)

    def enable(self) -> "NoiseModel":
        return self.with_enabled(True)

    def disable(self) -> "NoiseModel":
        return self.with_enabled(False)

    @property
    def has_gate_errors(self) -> bool:
        return self.enabled and (
            self.depolarization_rate > 0 or self.bit_flip_rate > 0 or self.phase_flip_rate > 0
        )

    @property
    def has_readout_errors(self) -> bool:
        return self.enabled and (self.readout_error_0to1 > 0 or self.readout_error_1to0 > 0)


def apply_gate_noise(
    state: QuantumState,
    gate: Gate,
    noise: NoiseModel,
    rng: np.random.Generator,
) -> int:
    """Sample and apply Pauli errors on the targets of ``gate``.

    Returns:
        Number of Pauli errors applied.
    """
    if not noise.has_gate_errors or gate.type is GateType.I:
        return 0
    applied = 0
    for qubit in gate.targets:
        if noise.bit_flip_rate and rng.random() < noise.bit_flip_rate:
            apply_single_qubit_gate(state, qubit, _PAULI_X)
            applied += 1
        if noise.phase_flip_rate and rng.random() < noise.phase_flip_rate:
            apply_single_qubit_gate(state, qubit, _PAULI_Z)
            applied += 1
        if noise.depolarization_rate and rng.random() < noise.depolarization_rate:
            pauli = _DEPOLARIZING_PAULIS[int(rng.integers(3))]
            apply_single_qubit_gate(state, qubit, pauli)
            applied += 1
    if applied:
        logger.debug("Injected %d Pauli error(s) after %r", applied, gate)
    return applied

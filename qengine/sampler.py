"""Measurement Sampler.

Draws shot outcomes from a fixed final state. Every shot is an independent
preparation-and-measurement of the same state: the state is never
collapsed or otherwise mutated, so shot ``k`` does not influence shot
``k + 1``.

Within a shot each qubit is decided on its own from its marginal
P(bit = 1), perturbed by the readout error rates while noise is enabled.
The n decided bits are composed into the outcome index. Qubits are not
conditioned on each other, so an entangled pair is sampled as two
independent bits with the pair's marginals.
"""

from __future__ import annotations

import numpy as np

from .exceptions import ValidationError
from .noise import NoiseModel
from .statevector import QuantumState, marginal_probability


def _combine_flip(a: float, b: float) -> float:
    """Net flip probability of two independent flips."""
    return a * (1.0 - b) + b * (1.0 - a)


def readout_rates(noise: NoiseModel | None, readout_fidelity: float = 1.0) -> tuple[float, float]:
    """Effective ``(P(0→1), P(1→0))`` for a noise model and backend fidelity.

    Both are zero unless the noise model is enabled.
    """
    if noise is None or not noise.enabled:
        return 0.0, 0.0
    backend_error = max(0.0, 1.0 - readout_fidelity)
    return (
        _combine_flip(noise.readout_error_0to1, backend_error),
        _combine_flip(noise.readout_error_1to0, backend_error),
    )


def sample_outcomes(
    state: QuantumState,
    shots: int,
    noise: NoiseModel | None = None,
    rng: np.random.Generator | None = None,
    readout_fidelity: float = 1.0,
) -> np.ndarray:
    """Draw ``shots`` basis indices, one per shot.

    Raises:
        ValidationError: If ``shots`` is negative.
    """
    if shots < 0:
        raise ValidationError(f"shots must be >= 0, got {shots}")
    rng = rng if rng is not None else np.random.default_rng()
    if shots == 0:
        return np.zeros(0, dtype=np.int64)

    p01, p10 = readout_rates(noise, readout_fidelity)
    outcomes = np.zeros(shots, dtype=np.int64)
    for qubit in range(state.num_qubits):
        p1 = marginal_probability(state, qubit)
        p1 = p1 * (1.0 - p10) + (1.0 - p1) * p01
        bits = (rng.random(shots) < p1).astype(np.int64)
        outcomes |= bits << qubit
    return outcomes


def sample_shots(
    state: QuantumState,
    shots: int,
    noise: NoiseModel | None = None,
    rng: np.random.Generator | None = None,
    readout_fidelity: float = 1.0,
) -> np.ndarray:
    """Histogram of ``shots`` measurements over all 2**n basis states.

    Args:
        state: Final state; left untouched.
        shots: Number of shots, >= 0. The histogram always sums to it.
        noise: Noise model; readout errors only apply when it is enabled.
        rng: Random generator (fresh entropy if omitted).
        readout_fidelity: Backend readout fidelity, folded into the
            readout error rates when noise is enabled.

    Returns:
        int64 array of length 2**n.
    """
    outcomes = sample_outcomes(state, shots, noise, rng, readout_fidelity)
    return np.bincount(outcomes, minlength=state.dimension).astype(np.int64)


def histogram_to_counts(histogram: np.ndarray) -> dict[int, int]:
    """Sparse ``{basis_index: count}`` view of a dense histogram."""
    nonzero = np.flatnonzero(histogram)
    return {int(i): int(histogram[i]) for i in nonzero}

"""Grover search circuits.

Builds the textbook circuit on n qubits for a single marked basis index:

    H^n · (D · O)^k · measure

where the oracle ``O`` flips the phase of |target⟩ (X on the 0-bits of the
target, multi-controlled Z, X again) and the diffusion ``D`` reflects about
the uniform superposition (H, X, multi-controlled Z, X, H on every qubit).

Quick start::

    from qengine import Simulator
    from qengine.algorithms import grover_search

    with Simulator() as sim:
        circuit_id, job_id = grover_search(sim, n_qubits=2, target=3, iterations=1)
        print(sim.wait_for_job(job_id).most_frequent())   # (3, 1.0)
"""

from __future__ import annotations

import logging
import math

from ..backends import DEFAULT_BACKEND
from ..exceptions import ValidationError
from ..gates import GateType, multi_controlled_z_matrix

logger = logging.getLogger(__name__)

MAX_GROVER_QUBITS = 4


def grover_iterations(space_size: int) -> int:
    """⌈π·√N/4⌉ iterations for a search space of ``space_size`` items."""
    if space_size < 1:
        raise ValidationError(f"Search space must be non-empty, got {space_size}")
    return math.ceil(math.pi * math.sqrt(space_size) / 4)


def optimal_grover_iterations(space_size: int) -> int:
    """Iteration count that maximises P(target) for one marked item.

    With sin θ = 1/√N, k iterations succeed with probability
    sin²((2k + 1)θ); the best integer k is ⌊π / 4θ⌋.
    """
    if space_size < 1:
        raise ValidationError(f"Search space must be non-empty, got {space_size}")
    if space_size == 1:
        return 0
    theta = math.asin(1.0 / math.sqrt(space_size))
    return int(math.floor(math.pi / (4.0 * theta)))


def append_multi_controlled_z(sim, circuit_id, qubits) -> None:
    """Phase-flip |1...1⟩ on ``qubits`` (1 to 4 of them).

    Raises:
        ValidationError: For more than 4 qubits.
    """
    qubits = list(qubits)
    n = len(qubits)
    if n == 1:
        sim.add_gate(circuit_id, GateType.Z, qubits)
    elif n == 2:
        sim.add_gate(circuit_id, GateType.CZ, qubits)
    elif n == 3:
        # Z on the last qubit conjugated by H is X, so H·CCX·H is CCZ.
        sim.add_gate(circuit_id, GateType.H, [qubits[-1]])
        sim.add_gate(circuit_id, GateType.TOFFOLI, qubits)
        sim.add_gate(circuit_id, GateType.H, [qubits[-1]])
    elif n == MAX_GROVER_QUBITS:
        sim.add_gate(circuit_id, GateType.CUSTOM, qubits, matrix=multi_controlled_z_matrix(n))
    else:
        raise ValidationError(
            f"Multi-controlled Z supports 1-{MAX_GROVER_QUBITS} qubits, got {n}"
        )


def append_oracle(sim, circuit_id, n_qubits: int, target: int) -> None:
    """Phase-flip the basis state |target⟩."""
    zero_bits = [q for q in range(n_qubits) if not (target >> q) & 1]
    for q in zero_bits:
        sim.add_gate(circuit_id, GateType.X, [q])
    append_multi_controlled_z(sim, circuit_id, range(n_qubits))
    for q in zero_bits:
        sim.add_gate(circuit_id, GateType.X, [q])


def append_diffusion(sim, circuit_id, n_qubits: int) -> None:
    """Inversion about the mean."""
    for q in range(n_qubits):
        sim.add_gate(circuit_id, GateType.H, [q])
        sim.add_gate(circuit_id, GateType.X, [q])
    append_multi_controlled_z(sim, circuit_id, range(n_qubits))
    for q in range(n_qubits):
        sim.add_gate(circuit_id, GateType.X, [q])
        sim.add_gate(circuit_id, GateType.H, [q])


def build_grover_circuit(sim, n_qubits: int, target: int, iterations: int | None = None):
    """Create a measured Grover circuit and return its id.

    Args:
        sim: Simulator to build the circuit in.
        n_qubits: Register size (1-4); the search space has 2**n_qubits items.
        target: Marked basis index.
        iterations: Grover iterations; defaults to :func:`grover_iterations`.

    Raises:
        ValidationError: If the register size, target or iteration count is invalid.
    """
    if not 1 <= n_qubits <= MAX_GROVER_QUBITS:
        raise ValidationError(
            f"Grover search supports 1-{MAX_GROVER_QUBITS} qubits, got {n_qubits}"
        )
    space_size = 1 << n_qubits
    if not 0 <= target < space_size:
        raise ValidationError(f"Target {target} outside search space of {space_size}")
    if iterations is None:
        iterations = grover_iterations(space_size)
    if iterations < 0:
        raise ValidationError(f"iterations must be >= 0, got {iterations}")

    circuit_id = sim.create_circuit(f"grover_search_{target}", n_qubits, n_qubits)
    for q in range(n_qubits):
        sim.add_gate(circuit_id, GateType.H, [q])
    for _ in range(iterations):
        append_oracle(sim, circuit_id, n_qubits, target)
        append_diffusion(sim, circuit_id, n_qubits)
    for q in range(n_qubits):
        sim.add_measurement(circuit_id, q, q)

    logger.debug(
        "Built Grover circuit %s: %d qubits, target %d, %d iterations",
        circuit_id, n_qubits, target, iterations,
    )
    return circuit_id


def grover_search(
    sim,
    n_qubits: int,
    target: int,
    backend_id: str = DEFAULT_BACKEND,
    shots: int = 1000,
    iterations: int | None = None,
):
    """Build a Grover circuit and submit it.

    Returns:
        ``(circuit_id, job_id)``
    """
    circuit_id = build_grover_circuit(sim, n_qubits, target, iterations)
    job_id = sim.submit_job(circuit_id, backend_id, shots)
    return circuit_id, job_id

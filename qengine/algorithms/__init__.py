"""qengine.algorithms: circuits built on top of the simulator registry.

  - Grover search for one marked item on up to 4 qubits.
  - Quantum Fourier Transform and its inverse.
  - VQE over sparse Pauli Hamiltonians (SciPy COBYLA).

Every builder only calls the public :class:`~qengine.simulator.Simulator`
API (``create_circuit``, ``add_gate``, ``add_measurement``, ``submit_job``).

Quick start::

    from qengine import Simulator
    from qengine.algorithms import grover_search

    with Simulator() as sim:
        _, job_id = grover_search(sim, n_qubits=2, target=2, iterations=1)
        print(sim.wait_for_job(job_id).counts)   # {2: 1000}
"""

from ._grover import (
    append_diffusion,
    append_multi_controlled_z,
    append_oracle,
    build_grover_circuit,
    grover_iterations,
    grover_search,
    optimal_grover_iterations,
)
from ._qft import append_inverse_qft, append_qft, build_qft_circuit
from ._vqe import SparsePauliOp, VqeResult, VQESolver, build_ansatz, pauli_expectation

__all__ = [
    # Grover
    "grover_iterations",
    "optimal_grover_iterations",
    "build_grover_circuit",
    "grover_search",
    "append_oracle",
    "append_diffusion",
    "append_multi_controlled_z",
    # QFT
    "append_qft",
    "append_inverse_qft",
    "build_qft_circuit",
    # VQE
    "SparsePauliOp",
    "VQESolver",
    "VqeResult",
    "build_ansatz",
    "pauli_expectation",
]

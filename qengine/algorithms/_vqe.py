"""VQE: Variational Quantum Eigensolver for SparsePauliOp Hamiltonians.

Estimates the ground-state energy of a Hamiltonian expressed as a sum of
weighted Pauli strings via a hardware-efficient variational ansatz + COBYLA.

Algorithm:
  1. Build the RY + CNOT-ring ansatz for the current parameters in the
     simulator's circuit registry.
  2. Exact mode (``shots=None``): evolve it with ``run_statevector`` and
     take ⟨ψ|P_k|ψ⟩ for every term directly from the amplitudes.
     Sampling mode: for each Pauli basis append rotations
     (X→H, Y→S†·H), submit a job, and estimate ⟨P_k⟩ from parity counts.
  3. ⟨H⟩ = Σ c_k ⟨P_k⟩.
  4. COBYLA minimises ⟨H⟩ over the ansatz parameters.

Quick start::

    from qengine import Simulator
    from qengine.algorithms import SparsePauliOp, VQESolver

    # H = -ZZ  (ground state energy = -1)
    h = SparsePauliOp([(-1.0, {0: 'Z', 1: 'Z'})])
    with Simulator() as sim:
        result = VQESolver(sim, h, n_qubits=2, n_layers=2, seed=42).solve()
    print(result.energy)   # ≈ -1.0
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

import numpy as np
from scipy.optimize import OptimizeResult, minimize

from ..backends import DEFAULT_BACKEND
from ..exceptions import ValidationError
from ..gates import GateType
from ..statevector import QuantumState, apply_single_qubit_gate

logger = logging.getLogger(__name__)

_PAULI_MATRICES = {
    'X': np.array([[0, 1], [1, 0]], dtype=np.complex128),
    'Y': np.array([[0, -1j], [1j, 0]], dtype=np.complex128),
    'Z': np.array([[1, 0], [0, -1]], dtype=np.complex128),
}


# ---------------------------------------------------------------------------
# SparsePauliOp
# ---------------------------------------------------------------------------

class SparsePauliOp:
    """Lightweight sparse Pauli operator for VQE.

    Represents H = Σ_k c_k · P_k where each P_k is a Pauli string given
    as a dict mapping qubit index → 'X', 'Y', or 'Z'.

    Args:
        terms: List of (coeff, ops) pairs where ops is dict[int, str].

    Example::

        # H = -1.0 * Z0 Z1 + 0.5 * X0
        h = SparsePauliOp([
            (-1.0, {0: 'Z', 1: 'Z'}),
            ( 0.5, {0: 'X'}),
        ])
    """

    def __init__(self, terms: list[tuple[float, dict[int, str]]]) -> None:
        self.terms: list[tuple[float, dict[int, str]]] = []
        for coeff, ops in terms:
            # Identity factors are dropped; an empty ops dict is a constant term.
            norm_ops = {int(q): str(p).upper() for q, p in ops.items() if str(p).upper() != 'I'}
            for q, p in norm_ops.items():
                if p not in _PAULI_MATRICES:
                    raise ValidationError(f"Unknown Pauli {p!r} on qubit {q}")
                if q < 0:
                    raise ValidationError(f"Pauli qubit index must be >= 0, got {q}")
            self.terms.append((float(coeff), norm_ops))

    def n_qubits(self) -> int:
        """Minimum number of qubits required."""
        max_q = -1
        for _, ops in self.terms:
            for q in ops:
                if q > max_q:
                    max_q = q
        return max_q + 1 if max_q >= 0 else 0

    def to_matrix(self, n_qubits: int | None = None) -> np.ndarray:
        """Dense 2^n x 2^n matrix (qubit 0 is the least significant bit)."""
        n = self.n_qubits() if n_qubits is None else n_qubits
        dim = 1 << n
        total = np.zeros((dim, dim), dtype=np.complex128)
        for coeff, ops in self.terms:
            term = np.array([[1.0]], dtype=np.complex128)
            for q in reversed(range(n)):
                factor = _PAULI_MATRICES[ops[q]] if q in ops else np.eye(2, dtype=np.complex128)
                term = np.kron(term, factor)
            total += coeff * term
        return total

    def expectation(self, state: QuantumState) -> float:
        """Exact ⟨ψ|H|ψ⟩."""
        if self.n_qubits() > state.num_qubits:
            raise ValidationError(
                f"Operator acts on {self.n_qubits()} qubits, state has {state.num_qubits}"
            )
        energy = 0.0
        for coeff, ops in self.terms:
            energy += coeff * pauli_expectation(state, ops)
        return energy

    def __repr__(self) -> str:
        return f"SparsePauliOp(n_terms={len(self.terms)}, n_qubits={self.n_qubits()})"


def pauli_expectation(state: QuantumState, ops: dict[int, str]) -> float:
    """⟨ψ|P|ψ⟩ for a single Pauli string."""
    if not ops:
        return 1.0
    rotated = state.copy()
    for q, p in ops.items():
        apply_single_qubit_gate(rotated, q, _PAULI_MATRICES[p])
    return float(np.vdot(state.amplitudes, rotated.amplitudes).real)


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------

@dataclass
class VqeResult:
    """Result of a VQE solve."""

    energy: float
    """Ground-state energy estimate."""

    params: np.ndarray
    """Optimal ansatz parameters."""

    n_iters: int
    """Number of cost function evaluations (nfev)."""

    converged: bool
    """Whether scipy reported success."""

    energy_history: list[float] = field(default_factory=list)
    """Energy value at each cost function evaluation."""


# ---------------------------------------------------------------------------
# VQESolver
# ---------------------------------------------------------------------------

class VQESolver:
    """Variational Quantum Eigensolver.

    Estimates the ground-state energy of a Hamiltonian via a hardware-efficient
    RY + CNOT-ring ansatz and COBYLA optimisation.

    Args:
        sim:         Simulator whose registry and workers run the circuits.
        hamiltonian: SparsePauliOp describing H.
        n_qubits:    Number of qubits in the ansatz.
        n_layers:    Ansatz depth (RY + CNOT layers).
        shots:       Shots per basis circuit; ``None`` evaluates ⟨H⟩ exactly.
        backend_id:  Backend for sampling mode.
        max_iter:    Maximum COBYLA iterations.
        seed:        RNG seed for reproducible initial parameters.
    """

    def __init__(
        self,
        sim,
        hamiltonian: SparsePauliOp,
        *,
        n_qubits: int,
        n_layers: int = 2,
        shots: int | None = None,
        backend_id: str = DEFAULT_BACKEND,
        max_iter: int = 300,
        seed: int | None = None,
    ) -> None:
        if hamiltonian.n_qubits() > n_qubits:
            raise ValidationError(
                f"Hamiltonian needs {hamiltonian.n_qubits()} qubits, ansatz has {n_qubits}"
            )
        if n_layers < 1:
            raise ValidationError(f"n_layers must be >= 1, got {n_layers}")
        self.sim = sim
        self.hamiltonian = hamiltonian
        self.n_qubits = n_qubits
        self.n_layers = n_layers
        self.shots = shots
        self.backend_id = backend_id
        self.max_iter = max_iter
        self._rng = np.random.default_rng(seed)
        self._history: list[float] = []
        self._groups = _group_by_basis(hamiltonian.terms)

    @property
    def n_params(self) -> int:
        return self.n_layers * self.n_qubits

    def solve(self) -> VqeResult:
        """Run VQE and return the ground-state energy estimate."""
        theta0 = self._rng.uniform(0.0, 2.0 * math.pi, self.n_params)
        self._history = []

        opt: OptimizeResult = minimize(
            self._cost,
            theta0,
            method="COBYLA",
            options={"maxiter": self.max_iter, "rhobeg": 0.3},
        )

        logger.info(
            "VQE finished: energy %.6f after %d evaluations (success=%s)",
            float(opt.fun), int(opt.nfev), bool(opt.success),
        )
        return VqeResult(
            energy=float(opt.fun),
            params=opt.x,
            n_iters=int(opt.nfev),
            converged=bool(opt.success),
            energy_history=list(self._history),
        )

    def energy(self, theta: np.ndarray) -> float:
        """⟨H⟩ for one parameter vector."""
        if len(theta) != self.n_params:
            raise ValidationError(f"Expected {self.n_params} parameters, got {len(theta)}")
        if self.shots is None:
            return self._exact_energy(theta)
        return self._sampled_energy(theta)

    # ------------------------------------------------------------------
    # Cost function
    # ------------------------------------------------------------------

    def _cost(self, theta: np.ndarray) -> float:
        energy = self.energy(theta)
        self._history.append(energy)
        return energy

    def _exact_energy(self, theta: np.ndarray) -> float:
        circuit_id = build_ansatz(self.sim, self.n_qubits, self.n_layers, theta)
        try:
            state = self.sim.run_statevector(circuit_id)
        finally:
            self.sim.remove_circuit(circuit_id)
        return self.hamiltonian.expectation(state)

    def _sampled_energy(self, theta: np.ndarray) -> float:
        energy = 0.0
        for basis, term_list in self._groups.items():
            if not basis:
                energy += sum(coeff for coeff, _ in term_list)
                continue
            circuit_id = build_ansatz(self.sim, self.n_qubits, self.n_layers, theta, basis)
            try:
                result = self.sim.run(circuit_id, self.backend_id, self.shots)
            finally:
                self.sim.remove_circuit(circuit_id)
            self.sim.remove_job(result.job_id)
            total = sum(result.counts.values())
            if total == 0:
                continue
            for coeff, ops in term_list:
                energy += coeff * _parity_expectation(result.counts, ops, total)
        return energy


# ---------------------------------------------------------------------------
# Circuit construction
# ---------------------------------------------------------------------------

def build_ansatz(
    sim,
    n_qubits: int,
    n_layers: int,
    theta: np.ndarray,
    basis: frozenset[tuple[int, str]] | None = None,
):
    """Create the ansatz circuit, optionally rotated into a Pauli basis.

    Each layer is an RY per qubit followed by a ring of CNOTs
    (0→1, 1→2, ..., n-1→0). With two qubits the closing CNOT(1, 0) is left
    out, so the entangler is the single CNOT(0, 1) rather than a CNOT pair
    that would partially undo itself.

    Basis rotations:
      - X measurement: H gate (rotate X basis → Z basis)
      - Y measurement: S† (as Z·S) then H (rotate Y basis → Z basis)
      - Z measurement: no rotation needed
    """
    circuit_id = sim.create_circuit("vqe_ansatz", n_qubits, n_qubits)
    for layer in range(n_layers):
        offset = layer * n_qubits
        for i in range(n_qubits):
            sim.add_gate(circuit_id, GateType.RY, [i], [float(theta[offset + i])])
        if n_qubits > 1:
            for i in range(n_qubits - 1):
                sim.add_gate(circuit_id, GateType.CNOT, [i, i + 1])
            if n_qubits > 2:
                sim.add_gate(circuit_id, GateType.CNOT, [n_qubits - 1, 0])

    if basis is not None:
        basis_dict = dict(basis)
        for q in range(n_qubits):
            op = basis_dict.get(q, 'Z')
            if op == 'X':
                sim.add_gate(circuit_id, GateType.H, [q])
            elif op == 'Y':
                sim.add_gate(circuit_id, GateType.Z, [q])
                sim.add_gate(circuit_id, GateType.S, [q])
                sim.add_gate(circuit_id, GateType.H, [q])
        for q in range(n_qubits):
            sim.add_measurement(circuit_id, q, q)
    return circuit_id


# ---------------------------------------------------------------------------
# Expectation value helpers
# ---------------------------------------------------------------------------

def _parity_expectation(counts: dict[int, int], ops: dict[int, str], total: int) -> float:
    """⟨P⟩ = Σ_index (-1)^{parity of the measured qubits} · count / total."""
    mask = 0
    for q in ops:
        mask |= 1 << q
    exp_val = 0.0
    for index, count in counts.items():
        parity = bin(index & mask).count("1") & 1
        exp_val += (-1 if parity else 1) * count
    return exp_val / total


def _group_by_basis(
    terms: list[tuple[float, dict[int, str]]]
) -> dict[frozenset[tuple[int, str]], list[tuple[float, dict[int, str]]]]:
    """Group Pauli terms that share one measurement circuit."""
    groups: dict[frozenset[tuple[int, str]], list[tuple[float, dict[int, str]]]] = {}
    for coeff, ops in terms:
        key = frozenset(ops.items())
        groups.setdefault(key, []).append((coeff, ops))
    return groups
